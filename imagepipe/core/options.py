"""
Per-processor option variants and their resolution.

Resolution merges caller overrides over the kind's defaults, then applies the
kind-specific normalization. It never raises: anything it cannot correct is
left in place for StepValidator to report.
"""
import logging
from dataclasses import dataclass, field, fields, asdict
from typing import Optional, Dict, Any, List, Mapping, Union

from .constants import (
    ProcessorKind,
    PROCESSOR_KINDS,
    AI_CROP_MODES,
    BROWSER_SUPPORT,
    COMPRESSION_MODES,
    AVIF_MAX_QUALITY,
    FAVICON_MIN_SIZE,
    FAVICON_MAX_SIZE,
    DEFAULT_OBJECTS_TO_DETECT,
    RENAME_PLACEHOLDERS,
    DEFAULT_RENAME_PATTERN,
)
from .errors import InvalidProcessorKind

logger = logging.getLogger(__name__)


@dataclass
class ResizeOptions:
    dimension: Any = 1024
    mode: str = "longest"
    maintain_aspect_ratio: bool = True
    upscale: bool = True
    algorithm: str = "lanczos3"
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CropOptions:
    width: Any = 500
    height: Any = 500
    mode: str = "smart"
    upscale: bool = False
    preserve_aspect_ratio: bool = True
    confidence_threshold: Any = 70
    crop_to_fit: bool = True
    objects_to_detect: Any = field(default_factory=lambda: list(DEFAULT_OBJECTS_TO_DETECT))
    multiple_faces: bool = False
    algorithm: str = "lanczos3"
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OptimizeOptions:
    quality: Any = 85
    format: Any = "auto"                # a format name, or a list of them for multi-format output
    lossless: bool = False
    strip_metadata: bool = True
    preserve_transparency: bool = True
    max_display_width: Optional[int] = None
    browser_support: Any = field(default_factory=lambda: ["modern", "legacy"])
    compression_mode: str = "adaptive"
    analyze_content: bool = True
    ico_sizes: List[int] = field(default_factory=lambda: [16, 32, 48, 64, 128, 256])
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RenameOptions:
    pattern: Any = "{name}-{dimensions}"
    preserve_extension: bool = True
    add_index: bool = True
    add_timestamp: bool = False
    custom_separator: str = "-"
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TemplateOptions:
    template_id: Optional[str] = None
    apply_to_all: bool = True
    preserve_original: bool = False
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FaviconOptions:
    sizes: Any = field(default_factory=lambda: [16, 32, 48, 64, 128, 180, 192, 256, 512])
    formats: Any = field(default_factory=lambda: ["png", "ico"])
    generate_manifest: bool = True
    generate_html: bool = True
    include_apple_touch: bool = True
    include_android: bool = True
    round_corners: bool = True
    background_color: str = "#ffffff"
    extras: Dict[str, Any] = field(default_factory=dict)


StepOptions = Union[ResizeOptions, CropOptions, OptimizeOptions, RenameOptions, TemplateOptions, FaviconOptions]

OPTION_TYPES = {
    ProcessorKind.resize.value: ResizeOptions,
    ProcessorKind.crop.value: CropOptions,
    ProcessorKind.optimize.value: OptimizeOptions,
    ProcessorKind.rename.value: RenameOptions,
    ProcessorKind.template.value: TemplateOptions,
    ProcessorKind.favicon.value: FaviconOptions,
}


def normalize_kind(kind: Any) -> str:
    """Return the processor kind as a plain string, raising for unknown kinds."""
    value = kind.value if isinstance(kind, ProcessorKind) else kind
    if value not in PROCESSOR_KINDS:
        raise InvalidProcessorKind(kind)
    return value


def default_options(kind: Any) -> StepOptions:
    return OPTION_TYPES[normalize_kind(kind)]()


def options_to_dict(options: Any) -> Dict[str, Any]:
    """Flatten an options variant into a plain mapping; extras are merged back in."""
    if options is None:
        return {}
    if isinstance(options, Mapping):
        return dict(options)
    data = asdict(options)
    extras = data.pop("extras", {}) or {}
    return {**extras, **data}


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _copy(value: Any) -> Any:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


def _merge(cls, raw: Dict[str, Any]):
    names = {f.name for f in fields(cls) if f.name != "extras"}
    known = {key: _copy(value) for key, value in raw.items() if key in names}
    extras = {key: _copy(value) for key, value in raw.items() if key not in names and key != "extras"}
    nested = raw.get("extras")
    if isinstance(nested, Mapping):
        extras = {**nested, **extras}
    return cls(**known, extras=extras)


def _normalize_favicon(options: FaviconOptions, raw: Dict[str, Any]) -> None:
    if isinstance(options.formats, str):
        options.formats = [options.formats]
    # Non-list sizes are left alone so validation can report them
    if isinstance(options.sizes, list):
        sizes = {size for size in options.sizes if is_number(size)}
        options.sizes = sorted(size for size in sizes if FAVICON_MIN_SIZE <= size <= FAVICON_MAX_SIZE)


def _normalize_optimize(options: OptimizeOptions, raw: Dict[str, Any]) -> None:
    if options.format == "jpg":
        if "preserve_transparency" in raw and raw["preserve_transparency"]:
            options.format = "png"
        elif "preserve_transparency" not in raw:
            # JPEG has no alpha channel to preserve
            options.preserve_transparency = False

    if isinstance(options.browser_support, list):
        options.browser_support = [b for b in options.browser_support if b in BROWSER_SUPPORT]
    if not isinstance(options.browser_support, list) or not options.browser_support:
        options.browser_support = ["modern", "legacy"]

    if options.compression_mode not in COMPRESSION_MODES:
        options.compression_mode = "adaptive"

    if options.format == "avif" and is_number(options.quality):
        options.quality = min(AVIF_MAX_QUALITY, options.quality)


def _normalize_crop(options: CropOptions, raw: Dict[str, Any]) -> None:
    if options.mode not in AI_CROP_MODES:
        return

    threshold = options.confidence_threshold
    if not is_number(threshold):
        threshold = 70
    options.confidence_threshold = max(0, min(100, threshold))

    if options.multiple_faces is None:
        options.multiple_faces = False

    if not isinstance(options.objects_to_detect, list):
        options.objects_to_detect = list(DEFAULT_OBJECTS_TO_DETECT)


def _normalize_rename(options: RenameOptions, raw: Dict[str, Any]) -> None:
    pattern = options.pattern
    if not isinstance(pattern, str) or not any(token in pattern for token in RENAME_PLACEHOLDERS):
        logger.debug(f"Rename pattern {pattern!r} has no unique placeholder, using {DEFAULT_RENAME_PATTERN}")
        options.pattern = DEFAULT_RENAME_PATTERN


_NORMALIZERS = {
    ProcessorKind.favicon.value: _normalize_favicon,
    ProcessorKind.optimize.value: _normalize_optimize,
    ProcessorKind.crop.value: _normalize_crop,
    ProcessorKind.rename.value: _normalize_rename,
}


def build_options(kind: Any, raw: Any = None) -> StepOptions:
    """Merge over defaults without normalizing; used to validate options as given."""
    kind = normalize_kind(kind)
    if isinstance(raw, OPTION_TYPES[kind]):
        return raw
    return _merge(OPTION_TYPES[kind], options_to_dict(raw))


def resolve_options(kind: Any, raw: Any = None) -> StepOptions:
    """
    Merge caller options over the defaults for ``kind`` and normalize them.

    ``raw`` may be a mapping, an options variant or None. Keys present in the
    mapping always win (even when None); absent keys fall through to defaults.
    Unknown keys are carried in ``extras``.

    Raises:
        InvalidProcessorKind: if ``kind`` is not a recognized processor
    """
    kind = normalize_kind(kind)
    raw_dict = options_to_dict(raw)

    options = _merge(OPTION_TYPES[kind], raw_dict)

    normalizer = _NORMALIZERS.get(kind)
    if normalizer:
        normalizer(options, raw_dict)

    return options
