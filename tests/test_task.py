import pytest

from imagepipe.config import PipelineConfig
from imagepipe.core.errors import InvalidProcessorKind, UnknownPresetError
from imagepipe.core.models import Capabilities
from imagepipe.core.options import OptimizeOptions
from imagepipe.core.task import Task, format_duration


class TestTaskConstruction:

    @pytest.mark.unit
    def test_new_task(self):
        task = Task()
        assert task.id.startswith("task_")
        assert task.name == "Untitled Task"
        assert task.steps == []
        assert task.created_at == task.updated_at

    @pytest.mark.unit
    def test_default_name_comes_from_config(self):
        task = Task(config=PipelineConfig(default_task_name="Batch"))
        assert task.name == "Batch"

    @pytest.mark.unit
    def test_add_step_is_fluent(self):
        task = Task("Web")
        assert task.add_step("resize", {"dimension": 800}) is task
        step = task.steps[0]
        assert step.id.startswith("step_")
        assert step.processor == "resize"
        assert step.order == 1
        assert step.enabled is True
        assert step.options.dimension == 800

    @pytest.mark.unit
    def test_add_step_rejects_unknown_kind(self):
        task = Task()
        with pytest.raises(InvalidProcessorKind):
            task.add_step("sharpen", {})
        assert task.steps == []

    @pytest.mark.unit
    def test_step_metadata(self):
        task = Task().add_optimize(80, ["webp", "avif"]).add_favicon().add_template("web-hero")
        optimize, favicon, template = task.steps
        assert optimize.metadata.output_type == "optimized-webp+avif"
        assert optimize.metadata.is_batchable is True
        assert favicon.metadata.requires_favicon is True
        assert favicon.metadata.is_batchable is False
        assert template.metadata.output_type == "template-applied"


class TestTaskMutation:

    @pytest.mark.unit
    def test_order_follows_position_after_every_mutation(self):
        task = Task().add_resize(800).add_crop(400, 400).add_optimize().add_rename("{name}")

        def orders():
            return [s.order for s in task.steps]

        assert orders() == [1, 2, 3, 4]

        assert task.remove_step(1) is True
        assert [s.processor for s in task.steps] == ["resize", "optimize", "rename"]
        assert orders() == [1, 2, 3]

        assert task.move_step_up(2) is True
        assert [s.processor for s in task.steps] == ["resize", "rename", "optimize"]
        assert orders() == [1, 2, 3]

        assert task.move_step_down(0) is True
        assert [s.processor for s in task.steps] == ["rename", "resize", "optimize"]
        assert orders() == [1, 2, 3]

    @pytest.mark.unit
    def test_remove_by_id(self):
        task = Task().add_resize(800).add_optimize()
        step_id = task.steps[0].id
        assert task.remove_step(step_id) is True
        assert [s.processor for s in task.steps] == ["optimize"]
        assert task.steps[0].order == 1

        assert task.remove_step("step_missing") is False
        assert task.remove_step(5) is False

    @pytest.mark.unit
    def test_moves_at_the_edges_are_refused(self):
        task = Task().add_resize(800).add_optimize()
        assert task.move_step_up(0) is False
        assert task.move_step_down(1) is False
        assert task.move_step_up(7) is False
        assert [s.processor for s in task.steps] == ["resize", "optimize"]

    @pytest.mark.unit
    def test_disable_step(self):
        task = Task().add_resize(800).add_optimize()
        assert task.set_step_enabled(0, False) is True
        assert [s.processor for s in task.get_enabled_steps()] == ["optimize"]
        assert task.metadata.step_count == 1
        assert task.metadata.category == "optimization-only"
        assert task.set_step_enabled(9, False) is False

    @pytest.mark.unit
    def test_metadata_is_recomputed(self):
        task = Task().add_smart_crop(500, 500)
        assert task.metadata.has_smart_crop is True
        assert task.metadata.processor_count == {"crop": 1}

        task.add_optimize()
        assert task.metadata.has_auto_optimization is True
        assert task.metadata.estimated_duration == task.get_time_estimate().total

        task.add_favicon()
        assert task.metadata.category == "favicon"


class TestTaskQueries:

    @pytest.mark.unit
    def test_processor_queries(self):
        task = Task().add_resize(800).add_optimize(70).add_optimize(60, "webp")
        assert len(task.get_steps_by_processor("optimize")) == 2
        assert task.has_processor("resize")
        assert not task.has_processor("crop")
        assert task.has_optimization()
        assert task.get_optimization_step().options.quality == 70

        task.set_step_enabled(0, False)
        assert not task.has_processor("resize")

    @pytest.mark.unit
    def test_add_helpers(self):
        task = Task().add_web_optimization().add_favicon(sizes=[32, 16]).add_rename("{name}-{index}")
        optimize, favicon, rename = task.steps
        assert optimize.options.max_display_width == 1920
        assert favicon.options.sizes == [16, 32]
        assert favicon.options.formats == ["png", "ico"]
        assert rename.options.pattern == "{name}-{index}"

        smart = Task().add_smart_crop(400, 300).steps[0].options
        assert smart.mode == "smart"
        assert smart.multiple_faces is True


class TestTaskValidation:

    @pytest.mark.unit
    def test_empty_task(self):
        task = Task()
        report = task.validate()
        assert report.errors == []
        assert [w.code for w in report.warnings] == ["empty_task"]
        assert report.warnings[0].severity == "warning"

        summary = task.get_validation_summary()
        assert summary.can_proceed is True
        assert summary.status == "has_warnings"

    @pytest.mark.unit
    def test_invalid_crop(self):
        task = Task().add_step("crop", {"width": -5, "height": 500})
        report = task.validate()
        assert len(report.errors) == 1
        assert report.errors[0].code == "invalid_width"
        assert report.errors[0].step == 1
        assert task.get_validation_summary().can_proceed is False

    @pytest.mark.unit
    def test_rename_self_heal_validates_clean(self):
        task = Task().add_resize(800).add_step("rename", {"pattern": "static-name"})
        assert task.steps[1].options.pattern == "{name}-{index}"
        report = task.validate()
        codes = [i.code for i in report.errors + report.warnings]
        assert "empty_pattern" not in codes
        assert "no_placeholders" not in codes

    @pytest.mark.unit
    def test_messages_are_tagged_with_step_order(self, tiny_image):
        task = Task().add_resize(800).add_crop(500, 500, "center").add_optimize(30)
        report = task.validate(tiny_image)
        by_code = {i.code: i.step for i in report.warnings}
        assert by_code["source_too_small"] == 2
        assert by_code["low_quality"] == 3

    @pytest.mark.unit
    def test_ordering_warnings_come_after_step_messages(self):
        task = Task().add_crop(500, 500, "center").add_optimize(30)
        codes = [i.code for i in task.validate().warnings]
        assert codes == ["low_quality", "crop_without_resize"]

    @pytest.mark.unit
    def test_capabilities_flow_to_crop_validation(self):
        task = Task().add_resize(800).add_smart_crop(500, 500)
        report = task.validate(capabilities=Capabilities())
        assert "ai_capability_unavailable" in [w.code for w in report.warnings]

    @pytest.mark.unit
    async def test_validate_with_probe_only_probes_for_ai_crops(self, mock_probe):
        plain = Task().add_resize(800).add_crop(500, 500, "center")
        await plain.validate_with_probe(probe=mock_probe)
        mock_probe.detect_capabilities.assert_not_awaited()

        smart = Task().add_resize(800).add_smart_crop(500, 500)
        report = await smart.validate_with_probe(probe=mock_probe)
        mock_probe.detect_capabilities.assert_awaited_once()
        assert report.valid

    @pytest.mark.unit
    def test_cached_results_are_not_refreshed_by_mutation(self):
        task = Task().add_step("crop", {"width": -5, "height": 500})
        task.validate()
        assert len(task.validation_errors) == 1

        task.remove_step(0)
        assert len(task.validation_errors) == 1
        assert task.get_validation_summary().status == "invalid"

        task.validate()
        assert task.validation_errors == []

    @pytest.mark.unit
    def test_status_follows_counts(self):
        task = Task().add_resize(800).add_crop(500, 500, "center").add_optimize()
        task.validate()
        summary = task.get_validation_summary()
        assert summary.status == "valid"
        assert summary.can_proceed is True

        task.add_optimize(30)
        task.validate()
        assert task.get_validation_summary().status == "has_warnings"

        task.add_optimize(0)
        task.validate()
        summary = task.get_validation_summary()
        assert summary.status == "invalid"
        assert summary.can_proceed is False


class TestTaskSummary:

    @pytest.mark.unit
    @pytest.mark.parametrize("builder, expected", [
        (lambda t: t.add_resize(800).add_favicon(), "favicon"),
        (lambda t: t.add_template("web-hero").add_optimize(), "template"),
        (lambda t: t.add_resize(800).add_crop(500, 500).add_optimize(), "basic"),
        (lambda t: t.add_optimize(), "optimization-only"),
        (lambda t: t.add_optimize(80).add_optimize(60, "webp"), "optimization-only"),
        (lambda t: t.add_resize(800).add_rename("{name}"), "general"),
        (lambda t: t, "general"),
    ])
    def test_task_type(self, builder, expected):
        task = builder(Task())
        assert task.get_validation_summary().task_type == expected

    @pytest.mark.unit
    def test_summary_counts(self):
        task = Task().add_resize(800).add_smart_crop(500, 500).add_optimize().add_favicon()
        task.set_step_enabled(0, False)
        summary = task.get_validation_summary()
        assert summary.total_steps == 3
        assert summary.enabled_steps == 3
        assert summary.disabled_steps == 1
        assert summary.processor_count == {"crop": 1, "optimize": 1, "favicon": 1}
        assert summary.has_favicon is True
        assert summary.has_smart_crop is True
        assert summary.has_auto_optimization is True
        assert summary.requires_image is True

    @pytest.mark.unit
    @pytest.mark.parametrize("options, level", [
        (None, "none"),
        ({"quality": 60, "compression_mode": "aggressive"}, "aggressive"),
        ({"quality": 95, "compression_mode": "adaptive"}, "balanced"),
        ({"quality": 80, "compression_mode": "balanced"}, "balanced"),
        ({"quality": 95, "compression_mode": "balanced"}, "high-quality"),
        ({"quality": 95, "compression_mode": "aggressive"}, "standard"),
    ])
    def test_optimization_level(self, options, level):
        task = Task().add_resize(800)
        if options is not None:
            task.add_step("optimize", options)
        assert task.get_validation_summary().optimization_level == level


class TestTaskEstimation:

    @pytest.mark.unit
    def test_favicon_output_count(self):
        task = Task().add_favicon(
            sizes=[16, 32, 48],
            formats=["png", "ico"],
            generate_manifest=True,
            generate_html=False,
            include_apple_touch=False,
            include_android=False,
        )
        assert task._estimate_output_count() == 8

    @pytest.mark.unit
    def test_favicon_defaults_add_all_extras(self):
        task = Task().add_favicon(sizes=[16, 32, 48], formats=["png", "ico"])
        assert task._estimate_output_count() == 1 + 6 + 4

    @pytest.mark.unit
    def test_multi_format_optimize_output_count(self):
        task = Task().add_optimize(80, ["webp", "avif", "jpg"])
        assert task._estimate_output_count() == 3
        assert task.metadata.estimated_outputs == 3

    @pytest.mark.unit
    def test_time_estimate(self):
        task = Task().add_resize(800).add_crop(500, 500, "face").add_optimize(compression_mode="aggressive")
        estimate = task.get_time_estimate(image_count=10)
        # resize 100 + AI crop 150*3 + optimize 200*1.5*1.2
        assert estimate.per_image == pytest.approx(100 + 450 + 360)
        assert estimate.total == pytest.approx(9100)
        assert estimate.formatted == "9.1s"
        assert estimate.step_count == 3
        assert estimate.image_count == 10

    @pytest.mark.unit
    def test_factor_does_not_leak_between_steps(self):
        task = Task().add_favicon(sizes=[16, 32], formats=["png", "ico"]).add_rename("{name}")
        # favicon 500*4, rename 10*1
        assert task.get_time_estimate().per_image == pytest.approx(2010)

    @pytest.mark.unit
    def test_anchor_crop_has_no_ai_factor(self):
        task = Task().add_crop(500, 500, "center")
        assert task.get_time_estimate().per_image == pytest.approx(150)

    @pytest.mark.unit
    @pytest.mark.parametrize("ms, text", [
        (0, "0ms"),
        (999, "999ms"),
        (1500, "1.5s"),
        (61000, "1m 1s"),
        (125000, "2m 5s"),
    ])
    def test_format_duration(self, ms, text):
        assert format_duration(ms) == text


class TestTaskPresentation:

    @pytest.mark.unit
    def test_describe(self):
        task = Task().add_resize(800).add_smart_crop(400, 400).add_optimize(80, "webp", compression_mode="balanced")
        lines = task.describe().splitlines()
        assert lines[0] == "1. Resize to 800px (longest)"
        assert lines[1] == "2. Crop to 400x400 (AI smart mode)"
        assert lines[2] == "3. Optimize to WEBP (80%), balanced compression, modern+legacy browsers"

        assert Task().describe() == "No processing steps configured"

    @pytest.mark.unit
    def test_check_compatibility(self):
        task = Task().add_resize(512).add_smart_crop(512, 512).add_favicon()
        svg = task.check_compatibility("image/svg+xml")
        assert len(svg.warnings) == 2
        assert svg.compatible is True
        assert svg.recommended is False

        assert task.check_compatibility("image/png").recommended is True
        assert len(Task().add_optimize().check_compatibility("image/gif").warnings) == 1

    @pytest.mark.unit
    def test_to_simple_dict(self):
        task = Task("Thumbs").add_resize(300)
        data = task.to_simple_dict()
        assert data["name"] == "Thumbs"
        assert data["step_count"] == 1
        assert data["task_type"] == "basic"
        assert data["status"] == "valid"


class TestTaskCopies:

    @pytest.mark.unit
    def test_clone_is_independent(self):
        task = Task("Original").add_resize(800).add_favicon(sizes=[16, 32])
        clone = task.clone()
        assert clone.id == task.id
        assert [s.id for s in clone.steps] == [s.id for s in task.steps]

        clone.steps[1].options.sizes.append(64)
        clone.add_optimize()
        assert task.steps[1].options.sizes == [16, 32]
        assert len(task.steps) == 2

    @pytest.mark.unit
    def test_from_preset(self):
        task = Task.from_preset("favicon-package")
        assert [s.processor for s in task.steps] == ["resize", "crop", "favicon", "rename"]

        with pytest.raises(UnknownPresetError) as exc_info:
            Task.from_preset("missing")
        assert str(exc_info.value) == "Unknown preset: missing"

    @pytest.mark.unit
    def test_options_variant_can_be_added_directly(self):
        task = Task().add_step("optimize", OptimizeOptions(quality=70, format="webp"))
        assert task.steps[0].options.quality == 70
        assert task.steps[0].options.format == "webp"
