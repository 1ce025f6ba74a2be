import pytest

from imagepipe.core.constants import ProcessorKind
from imagepipe.core.errors import InvalidProcessorKind, ImagePipeError
from imagepipe.core.options import (
    ResizeOptions,
    CropOptions,
    OptimizeOptions,
    RenameOptions,
    FaviconOptions,
    default_options,
    resolve_options,
    build_options,
    options_to_dict,
    normalize_kind,
)


class TestDefaults:

    @pytest.mark.unit
    def test_default_variants(self):
        assert isinstance(default_options("resize"), ResizeOptions)
        assert isinstance(default_options(ProcessorKind.crop), CropOptions)

        resize = default_options("resize")
        assert resize.dimension == 1024
        assert resize.mode == "longest"
        assert resize.algorithm == "lanczos3"

        optimize = default_options("optimize")
        assert optimize.quality == 85
        assert optimize.format == "auto"
        assert optimize.browser_support == ["modern", "legacy"]

    @pytest.mark.unit
    def test_defaults_are_not_shared(self):
        a = default_options("favicon")
        b = default_options("favicon")
        a.sizes.append(1000)
        assert 1000 not in b.sizes

    @pytest.mark.unit
    def test_unknown_kind_raises(self):
        with pytest.raises(InvalidProcessorKind) as exc_info:
            resolve_options("sharpen", {})
        assert exc_info.value.kind == "sharpen"
        assert isinstance(exc_info.value, ImagePipeError)
        assert isinstance(exc_info.value, ValueError)

        assert normalize_kind(ProcessorKind.rename) == "rename"


class TestResolveOptions:

    @pytest.mark.unit
    def test_overrides_win_and_absent_keys_fall_through(self):
        opts = resolve_options("resize", {"dimension": 800, "mode": "width"})
        assert opts.dimension == 800
        assert opts.mode == "width"
        assert opts.upscale is True

    @pytest.mark.unit
    def test_explicit_none_is_kept(self):
        opts = resolve_options("optimize", {"max_display_width": None, "quality": None})
        assert opts.max_display_width is None
        assert opts.quality is None

    @pytest.mark.unit
    def test_unknown_keys_go_to_extras(self):
        opts = resolve_options("resize", {"dimension": 500, "sharpen": True})
        assert opts.extras == {"sharpen": True}
        assert options_to_dict(opts)["sharpen"] is True
        assert "extras" not in options_to_dict(opts)

    @pytest.mark.unit
    def test_resolution_is_idempotent(self):
        raw_inputs = [
            ("optimize", {"format": "jpg", "quality": 70}),
            ("optimize", {"format": "jpg", "preserve_transparency": True}),
            ("optimize", {"format": "avif", "quality": 90, "browser_support": ["ancient"]}),
            ("favicon", {"sizes": [32, 16, 16, 9999, 8]}),
            ("crop", {"mode": "face", "confidence_threshold": 150}),
            ("rename", {"pattern": "static-name"}),
            ("resize", {"dimension": "auto"}),
        ]
        for kind, raw in raw_inputs:
            once = resolve_options(kind, raw)
            twice = resolve_options(kind, once)
            assert options_to_dict(twice) == options_to_dict(once), kind

    @pytest.mark.unit
    def test_resolving_a_variant_does_not_mutate_it(self):
        first = resolve_options("favicon", {"sizes": [16, 32]})
        second = resolve_options("favicon", first)
        second.sizes.append(64)
        assert first.sizes == [16, 32]


class TestFaviconNormalization:

    @pytest.mark.unit
    def test_sizes_are_deduplicated_sorted_and_bounded(self):
        opts = resolve_options("favicon", {"sizes": [32, 16, 16, 9999, 8]})
        assert opts.sizes == [16, 32]

    @pytest.mark.unit
    def test_non_numeric_sizes_are_dropped(self):
        opts = resolve_options("favicon", {"sizes": [16, "32", None, True, 64]})
        assert opts.sizes == [16, 64]

    @pytest.mark.unit
    def test_non_list_sizes_are_left_for_validation(self):
        opts = resolve_options("favicon", {"sizes": "16,32"})
        assert opts.sizes == "16,32"

    @pytest.mark.unit
    def test_single_format_string_becomes_a_list(self):
        opts = resolve_options("favicon", {"formats": "png"})
        assert opts.formats == ["png"]


class TestOptimizeNormalization:

    @pytest.mark.unit
    def test_jpg_with_transparency_becomes_png(self):
        opts = resolve_options("optimize", {"format": "jpg", "preserve_transparency": True})
        assert opts.format == "png"
        assert opts.preserve_transparency is True

    @pytest.mark.unit
    def test_jpg_without_transparency_key_drops_transparency(self):
        opts = resolve_options("optimize", {"format": "jpg"})
        assert opts.format == "jpg"
        assert opts.preserve_transparency is False

    @pytest.mark.unit
    def test_jpg_with_transparency_false_stays_jpg(self):
        opts = resolve_options("optimize", {"format": "jpg", "preserve_transparency": False})
        assert opts.format == "jpg"

    @pytest.mark.unit
    def test_avif_quality_is_clamped(self):
        assert resolve_options("optimize", {"format": "avif", "quality": 90}).quality == 63
        assert resolve_options("optimize", {"format": "avif", "quality": 40}).quality == 40

    @pytest.mark.unit
    def test_browser_support_is_filtered(self):
        opts = resolve_options("optimize", {"browser_support": ["modern", "ie6"]})
        assert opts.browser_support == ["modern"]

        opts = resolve_options("optimize", {"browser_support": ["ie6"]})
        assert opts.browser_support == ["modern", "legacy"]

        opts = resolve_options("optimize", {"browser_support": "modern"})
        assert opts.browser_support == ["modern", "legacy"]

    @pytest.mark.unit
    def test_unknown_compression_mode_falls_back_to_adaptive(self):
        opts = resolve_options("optimize", {"compression_mode": "extreme"})
        assert opts.compression_mode == "adaptive"


class TestCropNormalization:

    @pytest.mark.unit
    def test_ai_mode_threshold_is_clamped(self):
        assert resolve_options("crop", {"mode": "face", "confidence_threshold": 150}).confidence_threshold == 100
        assert resolve_options("crop", {"mode": "smart", "confidence_threshold": -3}).confidence_threshold == 0
        assert resolve_options("crop", {"mode": "smart", "confidence_threshold": "high"}).confidence_threshold == 70

    @pytest.mark.unit
    def test_ai_mode_fills_missing_fields(self):
        opts = resolve_options("crop", {"mode": "object", "multiple_faces": None, "objects_to_detect": "car"})
        assert opts.multiple_faces is False
        assert opts.objects_to_detect == ["person", "face", "car", "dog", "cat"]

    @pytest.mark.unit
    def test_anchor_modes_are_not_normalized(self):
        opts = resolve_options("crop", {"mode": "center", "confidence_threshold": 150})
        assert opts.confidence_threshold == 150


class TestRenameNormalization:

    @pytest.mark.unit
    def test_pattern_without_placeholder_self_heals(self):
        opts = resolve_options("rename", {"pattern": "static-name"})
        assert opts.pattern == "{name}-{index}"

    @pytest.mark.unit
    def test_empty_pattern_self_heals(self):
        assert resolve_options("rename", {"pattern": ""}).pattern == "{name}-{index}"
        assert resolve_options("rename", {"pattern": None}).pattern == "{name}-{index}"

    @pytest.mark.unit
    def test_pattern_with_placeholder_is_kept(self):
        assert resolve_options("rename", {"pattern": "thumb-{width}"}).pattern == "thumb-{width}"


class TestBuildOptions:

    @pytest.mark.unit
    def test_merges_without_normalizing(self):
        opts = build_options("rename", {"pattern": ""})
        assert isinstance(opts, RenameOptions)
        assert opts.pattern == ""

    @pytest.mark.unit
    def test_variant_passes_through(self):
        opts = OptimizeOptions(quality=10)
        assert build_options("optimize", opts) is opts

    @pytest.mark.unit
    def test_favicon_variant_keeps_raw_sizes(self):
        opts = build_options("favicon", {"sizes": [8, 2048]})
        assert isinstance(opts, FaviconOptions)
        assert opts.sizes == [8, 2048]
