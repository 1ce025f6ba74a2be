"""
Task: an ordered, mutable list of processing steps with aggregate
validation, summary and estimation.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Union

from ulid import ULID

from ..config import PipelineConfig
from .constants import (
    ProcessorKind,
    AI_CROP_MODES,
    SMART_CROP_MODES,
    STEP_BASE_COSTS,
)
from .logic import validate_ordering
from .models import (
    Step,
    StepMetadata,
    TaskMetadata,
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
    TimeEstimate,
    CompatibilityReport,
    SubjectImage,
    Capabilities,
)
from .options import resolve_options, normalize_kind
from .validators import StepValidator

logger = logging.getLogger(__name__)

BASIC_KINDS = {"resize", "crop", "optimize"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _step_output_type(kind: str, options) -> str:
    if kind == ProcessorKind.optimize.value:
        fmt = options.format
        if isinstance(fmt, list):
            return "optimized-" + "+".join(str(f) for f in fmt)
        return "optimized-auto" if fmt == "auto" else f"optimized-{fmt}"
    if kind == ProcessorKind.favicon.value:
        return "favicon-set"
    if kind == ProcessorKind.template.value:
        return "template-applied"
    return "processed"


def build_step_metadata(kind: str, options) -> StepMetadata:
    return StepMetadata(
        requires_favicon=kind == ProcessorKind.favicon.value,
        is_batchable=kind not in (ProcessorKind.favicon.value, ProcessorKind.template.value),
        output_type=_step_output_type(kind, options),
    )


def format_duration(ms: float) -> str:
    if ms < 1000:
        return f"{round(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    minutes = int(ms // 60000)
    seconds = round((ms % 60000) / 1000)
    return f"{minutes}m {seconds}s"


class Task:
    """
    An image-processing pipeline.

    Steps keep ``order == index + 1`` after every mutation. The results of the
    last ``validate()`` call are cached in ``validation_errors`` and
    ``validation_warnings`` and are NOT refreshed by mutations; call
    ``validate()`` again after changing the steps. The derived ``metadata``
    is recomputed on every mutation.
    """

    def __init__(self, name: Optional[str] = None, description: str = "",
                 config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self.id = f"task_{ULID()}"
        self.name = name if name is not None else self.config.default_task_name
        self.description = description
        self.steps: List[Step] = []
        self.validation_errors: List[ValidationIssue] = []
        self.validation_warnings: List[ValidationIssue] = []
        self.created_at = _now()
        self.updated_at = self.created_at
        self.metadata = TaskMetadata()
        self._validator = StepValidator(self.config)

    def __repr__(self):
        return f"<Task {self.id} '{self.name}' steps={len(self.steps)}>"

    # Mutation

    def add_step(self, processor: Union[str, ProcessorKind], options: Any = None) -> "Task":
        """
        Append a step with resolved options.

        Raises:
            InvalidProcessorKind: if ``processor`` is not a recognized kind
        """
        kind = normalize_kind(processor)
        resolved = resolve_options(kind, options)
        step = Step(
            id=f"step_{ULID()}",
            processor=kind,
            options=resolved,
            order=len(self.steps) + 1,
            enabled=True,
            added_at=_now(),
            metadata=build_step_metadata(kind, resolved),
        )
        self.steps.append(step)
        self._touch()
        logger.debug(f"Task {self.id}: added {kind} step at position {step.order}")
        return self

    def remove_step(self, identifier: Union[int, str]) -> bool:
        """Remove a step by 0-based index or by id."""
        if isinstance(identifier, int) and not isinstance(identifier, bool):
            index = identifier
        else:
            index = next((i for i, step in enumerate(self.steps) if step.id == identifier), -1)

        if 0 <= index < len(self.steps):
            removed = self.steps.pop(index)
            self._reindex()
            self._touch()
            logger.debug(f"Task {self.id}: removed {removed.processor} step {removed.id}")
            return True
        return False

    def move_step_up(self, index: int) -> bool:
        if index <= 0 or index >= len(self.steps):
            return False
        self.steps[index - 1], self.steps[index] = self.steps[index], self.steps[index - 1]
        self._reindex()
        self._touch()
        return True

    def move_step_down(self, index: int) -> bool:
        if index < 0 or index >= len(self.steps) - 1:
            return False
        self.steps[index], self.steps[index + 1] = self.steps[index + 1], self.steps[index]
        self._reindex()
        self._touch()
        return True

    def set_step_enabled(self, index: int, enabled: bool = True) -> bool:
        if 0 <= index < len(self.steps):
            self.steps[index].enabled = enabled
            self._touch()
            return True
        return False

    def _reindex(self):
        for idx, step in enumerate(self.steps):
            step.order = idx + 1

    def _touch(self):
        self.updated_at = _now()
        self._update_metadata()

    # Step helpers

    def add_resize(self, dimension: Any, mode: str = "longest", **options) -> "Task":
        return self.add_step("resize", {"dimension": dimension, "mode": mode, **options})

    def add_crop(self, width: Any, height: Any, mode: str = "smart", **options) -> "Task":
        return self.add_step("crop", {"width": width, "height": height, "mode": mode, **options})

    def add_smart_crop(self, width: Any, height: Any, **options) -> "Task":
        return self.add_step("crop", {
            "width": width,
            "height": height,
            "mode": "smart",
            "confidence_threshold": 70,
            "multiple_faces": True,
            "crop_to_fit": True,
            **options,
        })

    def add_optimize(self, quality: Any = 85, format: Any = "auto", **options) -> "Task":
        return self.add_step("optimize", {"quality": quality, "format": format, **options})

    def add_web_optimization(self, **options) -> "Task":
        return self.add_step("optimize", {
            "quality": 85,
            "format": "auto",
            "max_display_width": 1920,
            "browser_support": ["modern", "legacy"],
            "compression_mode": "adaptive",
            "strip_metadata": True,
            "preserve_transparency": True,
            **options,
        })

    def add_rename(self, pattern: Any, **options) -> "Task":
        return self.add_step("rename", {"pattern": pattern, **options})

    def add_template(self, template_id: str, **options) -> "Task":
        return self.add_step("template", {"template_id": template_id, **options})

    def add_favicon(self, sizes: Optional[List[int]] = None, formats: Optional[List[str]] = None, **options) -> "Task":
        raw = dict(options)
        if sizes is not None:
            raw["sizes"] = sizes
        if formats is not None:
            raw["formats"] = formats
        return self.add_step("favicon", raw)

    # Queries

    def get_enabled_steps(self) -> List[Step]:
        return [step for step in self.steps if step.enabled]

    def get_steps_by_processor(self, processor: Union[str, ProcessorKind]) -> List[Step]:
        kind = normalize_kind(processor)
        return [step for step in self.steps if step.processor == kind]

    def has_processor(self, processor: Union[str, ProcessorKind]) -> bool:
        kind = normalize_kind(processor)
        return any(step.processor == kind for step in self.get_enabled_steps())

    def has_optimization(self) -> bool:
        return self.has_processor("optimize")

    def get_optimization_step(self) -> Optional[Step]:
        return next((s for s in self.get_enabled_steps() if s.processor == "optimize"), None)

    # Validation

    def validate(self, image: Optional[SubjectImage] = None,
                 capabilities: Optional[Capabilities] = None) -> ValidationResult:
        """
        Validate every enabled step, then the step ordering.

        Step messages are tagged with the step's order and appear in step order,
        followed by the ordering checks. The result is also cached on the task.
        """
        result = ValidationResult()
        enabled = self.get_enabled_steps()

        if not enabled:
            result.add_warning(
                "empty_task",
                "Task has no enabled steps",
                suggestion="Add at least one processing step",
            )

        for step in enabled:
            step_result = self._validator.validate(step.processor, step.options, image, capabilities)
            result.extend(step_result, step=step.order)

        result.warnings.extend(validate_ordering(enabled))

        self.validation_errors = list(result.errors)
        self.validation_warnings = list(result.warnings)

        logger.info(
            f"Validated task {self.id}: {len(result.errors)} error(s), {len(result.warnings)} warning(s)"
        )
        return result

    async def validate_with_probe(self, image: Optional[SubjectImage] = None, probe=None) -> ValidationResult:
        """Validate, asking ``probe`` for detector capabilities once if any AI crop is enabled."""
        capabilities = None
        needs_probe = any(
            step.processor == "crop" and step.options.mode in AI_CROP_MODES
            for step in self.get_enabled_steps()
        )
        if probe is not None and needs_probe:
            capabilities = await probe.detect_capabilities()
        return self.validate(image, capabilities)

    def get_validation_summary(self) -> ValidationSummary:
        """Summarize the cached results of the last ``validate()`` call."""
        enabled = self.get_enabled_steps()
        error_count = len(self.validation_errors)
        warning_count = len(self.validation_warnings)
        processor_count = self._processor_count(enabled)

        if error_count:
            status = "invalid"
        elif warning_count:
            status = "has_warnings"
        else:
            status = "valid"

        return ValidationSummary(
            total_steps=len(enabled),
            enabled_steps=len(enabled),
            disabled_steps=len(self.steps) - len(enabled),
            error_count=error_count,
            warning_count=warning_count,
            processor_count=processor_count,
            task_type=self._task_type(enabled),
            status=status,
            can_proceed=error_count == 0,
            requires_image=any(s.processor in ("resize", "crop", "optimize", "favicon") for s in enabled),
            has_favicon=processor_count.get("favicon", 0) > 0,
            has_smart_crop=self._has_smart_crop(enabled),
            has_auto_optimization=self._has_auto_optimization(enabled),
            estimated_outputs=self._estimate_output_count(),
            optimization_level=self._get_optimization_level(),
        )

    @staticmethod
    def _task_type(enabled: List[Step]) -> str:
        kinds = {step.processor for step in enabled}
        if "favicon" in kinds:
            return "favicon"
        if "template" in kinds:
            return "template"
        if kinds and kinds <= BASIC_KINDS and kinds & {"resize", "crop"}:
            return "basic"
        if kinds == {"optimize"}:
            return "optimization-only"
        return "general"

    @staticmethod
    def _processor_count(steps: List[Step]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for step in steps:
            counts[step.processor] = counts.get(step.processor, 0) + 1
        return counts

    @staticmethod
    def _has_smart_crop(steps: List[Step]) -> bool:
        return any(s.processor == "crop" and s.options.mode in SMART_CROP_MODES for s in steps)

    @staticmethod
    def _has_auto_optimization(steps: List[Step]) -> bool:
        return any(s.processor == "optimize" and s.options.format == "auto" for s in steps)

    def _get_optimization_level(self) -> str:
        step = self.get_optimization_step()
        if step is None:
            return "none"

        mode = step.options.compression_mode
        quality = step.options.quality
        numeric = isinstance(quality, (int, float)) and not isinstance(quality, bool)

        if mode == "aggressive" and numeric and quality < 70:
            return "aggressive"
        if mode == "adaptive" or (numeric and 70 <= quality <= 90):
            return "balanced"
        if mode == "balanced" and numeric and quality > 90:
            return "high-quality"
        return "standard"

    # Estimation

    def _estimate_output_count(self) -> int:
        count = 1
        for step in self.get_enabled_steps():
            options = step.options
            if step.processor == "favicon":
                sizes = options.sizes if isinstance(options.sizes, list) else []
                formats = options.formats if isinstance(options.formats, list) else []
                count += len(sizes) * len(formats)
                for flag in (options.generate_manifest, options.generate_html,
                             options.include_apple_touch, options.include_android):
                    if flag:
                        count += 1
            elif step.processor == "optimize" and isinstance(options.format, list):
                count += len(options.format) - 1
        return count

    def get_time_estimate(self, image_count: int = 1) -> TimeEstimate:
        """Relative processing cost per image and for ``image_count`` images."""
        enabled = self.get_enabled_steps()
        per_image = 0.0

        for step in enabled:
            base = STEP_BASE_COSTS.get(step.processor, 100)
            factor = 1.0
            options = step.options

            if step.processor == "favicon":
                size_count = len(options.sizes) if isinstance(options.sizes, list) and options.sizes else 1
                format_count = len(options.formats) if isinstance(options.formats, list) and options.formats else 1
                factor = size_count * format_count
            elif step.processor == "crop" and options.mode in AI_CROP_MODES:
                factor = 3
            elif step.processor == "optimize":
                if options.compression_mode == "aggressive":
                    factor = 1.5
                if options.analyze_content:
                    factor *= 1.2

            per_image += base * factor

        total = per_image * image_count
        return TimeEstimate(
            per_image=per_image,
            total=total,
            formatted=format_duration(total),
            step_count=len(enabled),
            image_count=image_count,
        )

    def _update_metadata(self):
        enabled = self.get_enabled_steps()
        counts = self._processor_count(enabled)

        if counts.get("favicon", 0) > 0:
            category = "favicon"
        elif counts.get("template", 0) > 0:
            category = "template"
        elif counts.get("optimize", 0) > 0 and not counts.get("resize") and not counts.get("crop"):
            category = "optimization-only"
        else:
            category = "general"

        self.metadata = TaskMetadata(
            estimated_duration=self.get_time_estimate().total,
            estimated_outputs=self._estimate_output_count(),
            step_count=len(enabled),
            category=category,
            processor_count=counts,
            has_smart_crop=self._has_smart_crop(enabled),
            has_auto_optimization=self._has_auto_optimization(enabled),
        )

    # Presentation

    def describe(self) -> str:
        """Numbered, human-readable list of the enabled steps."""
        enabled = self.get_enabled_steps()
        if not enabled:
            return "No processing steps configured"

        lines = []
        for num, step in enumerate(enabled, start=1):
            o = step.options
            if step.processor == "resize":
                lines.append(f"{num}. Resize to {o.dimension}px ({o.mode})")
            elif step.processor == "crop":
                mode = f"AI {o.mode} mode" if o.mode in AI_CROP_MODES else o.mode
                lines.append(f"{num}. Crop to {o.width}x{o.height} ({mode})")
            elif step.processor == "optimize":
                fmt = o.format if isinstance(o.format, list) else [o.format]
                fmt_str = "+".join(
                    "auto (intelligent selection)" if f == "auto" else str(f).upper() for f in fmt
                )
                line = f"{num}. Optimize to {fmt_str} ({o.quality}%)"
                if o.max_display_width:
                    line += f", max {o.max_display_width}px"
                if o.compression_mode != "adaptive":
                    line += f", {o.compression_mode} compression"
                line += f", {'+'.join(o.browser_support)} browsers"
                lines.append(line)
            elif step.processor == "rename":
                lines.append(f'{num}. Rename with pattern: "{o.pattern}"')
            elif step.processor == "template":
                lines.append(f"{num}. Apply template: {o.template_id}")
            elif step.processor == "favicon":
                size_count = len(o.sizes) if isinstance(o.sizes, list) else 0
                format_count = len(o.formats) if isinstance(o.formats, list) else 0
                lines.append(f"{num}. Generate favicon set ({size_count} sizes, {format_count} formats)")
        return "\n".join(lines)

    def check_compatibility(self, mime_type: str) -> CompatibilityReport:
        """Advisories for source formats that some steps handle poorly."""
        enabled = self.get_enabled_steps()
        has_favicon = any(s.processor == "favicon" for s in enabled)
        has_smart_crop = self._has_smart_crop(enabled)
        has_optimization = any(s.processor == "optimize" for s in enabled)
        report = CompatibilityReport()

        if mime_type == "image/svg+xml":
            if has_favicon:
                report.warnings.append("SVG to favicon conversion may not preserve all features")
            if has_smart_crop:
                report.warnings.append("SVG images will be rasterized before smart cropping")
        elif mime_type == "image/gif":
            if has_favicon:
                report.warnings.append("Animated GIFs will lose animation in favicon conversion")
            if has_smart_crop:
                report.warnings.append("Smart crop will use the first frame of an animated GIF")
            if has_optimization:
                report.warnings.append("GIF optimization may reduce animation quality")
        elif mime_type in ("image/x-icon", "image/vnd.microsoft.icon"):
            report.warnings.append("ICO files contain multiple images; processing may use the first frame only")

        return report

    def to_simple_dict(self) -> Dict[str, Any]:
        summary = self.get_validation_summary()
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "step_count": len(self.steps),
            "enabled_step_count": summary.enabled_steps,
            "has_favicon": summary.has_favicon,
            "has_smart_crop": summary.has_smart_crop,
            "has_auto_optimization": summary.has_auto_optimization,
            "task_type": summary.task_type,
            "status": summary.status,
            "can_proceed": summary.can_proceed,
            "estimated_outputs": summary.estimated_outputs,
            "optimization_level": summary.optimization_level,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    # Serialization

    def export_config(self) -> Dict[str, Any]:
        from .serializer import export_config
        return export_config(self)

    @classmethod
    def import_config(cls, data: Dict[str, Any], config: Optional[PipelineConfig] = None) -> "Task":
        from .serializer import import_config
        return import_config(data, config=config)

    def clone(self) -> "Task":
        from .serializer import export_config, import_config
        return import_config(export_config(self), config=self.config)

    @classmethod
    def from_preset(cls, name: str, config: Optional[PipelineConfig] = None) -> "Task":
        """
        Raises:
            UnknownPresetError: if ``name`` is not a known preset
        """
        from .presets import build_preset_task
        return build_preset_task(name, config=config)
