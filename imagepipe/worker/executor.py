"""
Runs a validated task against one image through a raster backend.

Steps run in canonical order (resize, crop, optimize, rename) whatever their
insertion order; favicon and template steps keep their positions.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..config import PipelineConfig
from ..core.constants import CANONICAL_ORDER, AI_CROP_MODES
from ..core.dimensions import parse_dimension
from ..core.errors import ImagePipeError, TaskNotExecutable
from ..core.models import Step, SubjectImage, ValidationIssue
from ..core.task import Task
from ..core.templates import get_template
from .backend import OperationFailed, Detection
from .geometry import (
    resize_target,
    calculate_crop,
    center_on_detection,
    best_detection,
    content_preservation,
)
from .naming import NamingContext, build_filename

logger = logging.getLogger(__name__)

_RANK = {kind: i for i, kind in enumerate(CANONICAL_ORDER)}

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/avif": "avif",
    "image/gif": "gif",
    "image/svg+xml": "svg",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
}


def sort_for_execution(steps: List[Step]) -> List[Step]:
    """
    Order steps for execution.

    Canonical kinds are sorted among the positions they occupy (stable within
    a kind); other kinds stay where they are.
    """
    result = list(steps)
    slots = [i for i, step in enumerate(result) if step.processor in _RANK]
    ordered = sorted((result[i] for i in slots), key=lambda s: _RANK[s.processor])
    for slot, step in zip(slots, ordered):
        result[slot] = step
    return result


@dataclass
class OutputFile:
    name: str
    data: Any
    format: str
    width: Optional[int] = None
    height: Optional[int] = None
    kind: str = "image"             # image | favicon | manifest | html


@dataclass
class ExecutionResult:
    outputs: List[OutputFile] = field(default_factory=list)
    name: str = ""
    width: int = 0
    height: int = 0
    format: str = ""
    applied_steps: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    content_preservation: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outputs": [
                {"name": o.name, "format": o.format, "width": o.width, "height": o.height, "kind": o.kind}
                for o in self.outputs
            ],
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "applied_steps": self.applied_steps,
            "warnings": [w.to_dict() for w in self.warnings],
            "content_preservation": self.content_preservation,
        }


@dataclass
class _Working:
    """Mutable state of one image while steps are applied."""
    data: Any
    width: int
    height: int
    format: str
    has_transparency: bool
    is_icon: bool
    name: str
    encoded: List[Tuple[str, Any]] = field(default_factory=list)    # (format, bytes) from the last optimize
    extras: List[OutputFile] = field(default_factory=list)
    preservation: Optional[float] = None


class TaskExecutor:
    """Applies a task's enabled steps to images through a RasterBackend."""

    def __init__(self, backend, detector=None, probe=None, config: Optional[PipelineConfig] = None):
        self.backend = backend
        self.detector = detector
        self.probe = probe
        self.config = config or PipelineConfig()

    async def execute(self, task: Task, image: SubjectImage, data: Any,
                      index: int = 1, total: int = 1, now: Optional[datetime] = None) -> ExecutionResult:
        """
        Validate then run ``task`` on one image.

        Raises:
            TaskNotExecutable: if validation reports errors
            OperationFailed: if the backend fails; ``step_order`` and
                ``processor`` identify the step
        """
        report = await task.validate_with_probe(image, self.probe)
        if report.errors:
            raise TaskNotExecutable(report)

        state = _Working(
            data=data,
            width=image.width,
            height=image.height,
            format=MIME_EXTENSIONS.get(image.format, "png"),
            has_transparency=image.has_transparency,
            is_icon=image.is_icon,
            name=image.name,
        )
        result = ExecutionResult(warnings=list(report.warnings))

        for step in sort_for_execution(task.get_enabled_steps()):
            try:
                details = await self._apply(step, state, index, total, now)
            except OperationFailed as e:
                e.step_order = step.order
                e.processor = step.processor
                logger.error(f"Task {task.id}: {e}")
                raise
            result.applied_steps.append({"order": step.order, "processor": step.processor, **details})

        encoded = state.encoded or [(state.format, state.data)]
        for fmt, blob in encoded:
            result.outputs.append(OutputFile(
                name=f"{state.name}.{fmt}", data=blob, format=fmt,
                width=state.width, height=state.height,
            ))
        result.outputs.extend(state.extras)
        result.name = state.name
        result.width = state.width
        result.height = state.height
        result.format = encoded[0][0]
        result.content_preservation = state.preservation

        logger.info(f"Task {task.id}: produced {len(result.outputs)} output(s) for {image.name}")
        return result

    async def execute_batch(self, task: Task, items: List[Tuple[SubjectImage, Any]]) -> List[ExecutionResult]:
        """Run a task over several images in sequence."""
        if len(items) > self.config.max_batch_size:
            raise ImagePipeError(
                f"Batch of {len(items)} images exceeds the limit of {self.config.max_batch_size}"
            )
        now = datetime.now()
        results = []
        for idx, (image, data) in enumerate(items, start=1):
            results.append(await self.execute(task, image, data, index=idx, total=len(items), now=now))
        return results

    async def _apply(self, step: Step, state: _Working, index: int, total: int,
                     now: Optional[datetime]) -> Dict[str, Any]:
        handler = {
            "resize": self._apply_resize,
            "crop": self._apply_crop,
            "optimize": self._apply_optimize,
            "rename": self._apply_rename,
            "favicon": self._apply_favicon,
            "template": self._apply_template,
        }[step.processor]
        if step.processor == "rename":
            return await handler(step.options, state, index, total, now)
        return await handler(step.options, state)

    async def _resize_to(self, state: _Working, width: int, height: int, algorithm: str):
        if (width, height) == (state.width, state.height):
            return
        state.data = await self.backend.resize(state.data, width, height, algorithm)
        state.width, state.height = width, height

    async def _apply_resize(self, options, state: _Working) -> Dict[str, Any]:
        dim = parse_dimension(options.dimension)
        if not dim.is_fixed:
            # variable dimension keeps the current size
            return {"width": state.width, "height": state.height, "skipped": True}
        width, height = resize_target(state.width, state.height, round(dim.value), options.mode, options.upscale)
        await self._resize_to(state, width, height, options.algorithm)
        return {"width": width, "height": height}

    async def _apply_crop(self, options, state: _Working) -> Dict[str, Any]:
        target_w = parse_dimension(options.width).value or state.width
        target_h = parse_dimension(options.height).value or state.height
        target_w, target_h = round(target_w), round(target_h)

        rect = calculate_crop(
            state.width, state.height, target_w, target_h, options.mode,
            upscale=options.upscale,
            crop_to_fit=options.crop_to_fit,
            preserve_aspect_ratio=options.preserve_aspect_ratio,
        )

        detections: List[Detection] = []
        used: Optional[Detection] = None
        if options.mode in AI_CROP_MODES and self.detector is not None:
            detections = await self.detector.detect(
                state.data, state.width, state.height, options.mode, list(options.objects_to_detect or []),
            )
            used = best_detection(detections, options.confidence_threshold)
            if used is not None:
                rect = center_on_detection(rect, used, state.width, state.height)

        state.preservation = content_preservation(rect, detections)
        state.data = await self.backend.crop(state.data, rect.x, rect.y, rect.width, rect.height)
        state.width, state.height = rect.width, rect.height

        if options.upscale and (rect.width, rect.height) != (target_w, target_h):
            await self._resize_to(state, target_w, target_h, options.algorithm)

        details = {
            "x": rect.x, "y": rect.y, "width": state.width, "height": state.height,
            "mode": options.mode,
        }
        if used is not None:
            details["detection"] = {"label": used.label, "confidence": used.confidence}
        if state.preservation is not None:
            details["content_preservation"] = state.preservation
        return details

    def _select_format(self, requested: str, state: _Working, options) -> str:
        if requested == "original":
            return state.format
        if requested != "auto":
            return requested
        if state.format == "svg":
            return "svg"
        if state.is_icon:
            return "ico"
        if state.has_transparency:
            return "webp"
        if state.width * state.height > 1_000_000:
            return "avif" if "modern" in options.browser_support else "webp"
        return "webp"

    def _quality_for(self, fmt: str, state: _Working, options) -> int:
        quality = options.quality
        if options.compression_mode == "aggressive":
            quality = max(40, quality - 20)
        elif options.compression_mode == "adaptive" and state.width * state.height > 2_000_000:
            quality = max(60, quality - 10)
        if fmt == "avif":
            quality = min(63, quality)
        return int(quality)

    async def _apply_optimize(self, options, state: _Working) -> Dict[str, Any]:
        if options.max_display_width and state.width > options.max_display_width:
            width, height = resize_target(state.width, state.height, options.max_display_width, "width", False)
            await self._resize_to(state, width, height, "lanczos3")

        requested = options.format if isinstance(options.format, list) else [options.format]
        encoded = []
        for fmt in requested:
            actual = self._select_format(fmt, state, options)
            quality = self._quality_for(actual, state, options)
            encoded.append((actual, await self.backend.encode(state.data, actual, quality)))

        state.encoded = encoded
        state.data = encoded[0][1]
        state.format = encoded[0][0]
        return {"formats": [fmt for fmt, _ in encoded], "quality": self._quality_for(state.format, state, options)}

    async def _apply_rename(self, options, state: _Working, index: int, total: int,
                            now: Optional[datetime]) -> Dict[str, Any]:
        ctx = NamingContext(
            name=state.name, width=state.width, height=state.height,
            index=index, total=total, extension=state.format, now=now,
        )
        state.name = build_filename(
            options.pattern, ctx,
            separator=options.custom_separator or "-",
            add_timestamp=options.add_timestamp,
            max_length=self.config.max_filename_length,
        )
        return {"name": state.name}

    async def _apply_favicon(self, options, state: _Working) -> Dict[str, Any]:
        # favicons are square; crop the centre of non-square sources first
        side = min(state.width, state.height)
        source = state.data
        if state.width != state.height:
            rect = calculate_crop(state.width, state.height, side, side, "center")
            source = await self.backend.crop(state.data, rect.x, rect.y, rect.width, rect.height)

        sizes = [s for s in options.sizes if isinstance(s, int)]
        formats = list(options.formats) if isinstance(options.formats, list) else []
        icons = []
        for size in sizes:
            resized = await self.backend.resize(source, size, size, "lanczos3")
            for fmt in formats:
                blob = await self.backend.encode(resized, fmt, 100)
                name = f"favicon-{size}x{size}.{fmt}"
                icons.append(name)
                state.extras.append(OutputFile(name=name, data=blob, format=fmt, width=size, height=size, kind="favicon"))

        if options.include_apple_touch:
            blob = await self.backend.encode(await self.backend.resize(source, 180, 180, "lanczos3"), "png", 100)
            state.extras.append(OutputFile("apple-touch-icon.png", blob, "png", 180, 180, kind="favicon"))
        if options.include_android:
            blob = await self.backend.encode(await self.backend.resize(source, 192, 192, "lanczos3"), "png", 100)
            state.extras.append(OutputFile("android-chrome-192x192.png", blob, "png", 192, 192, kind="favicon"))
        if options.generate_manifest:
            state.extras.append(OutputFile(
                "site.webmanifest", build_manifest(sizes, options.background_color), "json", kind="manifest",
            ))
        if options.generate_html:
            state.extras.append(OutputFile(
                "favicon.html", build_html_snippet(sizes, formats, options), "html", kind="html",
            ))

        return {"icons": len(icons), "sizes": sizes, "formats": formats}

    async def _apply_template(self, options, state: _Working) -> Dict[str, Any]:
        template = get_template(options.template_id)
        if template is None:
            # reported as template_not_found during validation
            logger.warning(f"Skipping unknown template {options.template_id}")
            return {"template_id": options.template_id, "skipped": True}

        width = parse_dimension(template["width"])
        height = parse_dimension(template["height"])

        if width.is_fixed and height.is_fixed:
            template_aspect = width.value / height.value
            if abs(template_aspect - state.width / state.height) > 0.1:
                rect = calculate_crop(state.width, state.height, width.value, height.value, "smart")
                state.data = await self.backend.crop(state.data, rect.x, rect.y, rect.width, rect.height)
                state.width, state.height = rect.width, rect.height
            target = resize_target(state.width, state.height, max(width.value, height.value), "longest")
            await self._resize_to(state, *target, "lanczos3")
        elif width.is_variable and height.is_fixed:
            await self._resize_to(state, *resize_target(state.width, state.height, height.value, "height"), "lanczos3")
        elif height.is_variable and width.is_fixed:
            await self._resize_to(state, *resize_target(state.width, state.height, width.value, "width"), "lanczos3")

        return {"template_id": template["id"], "width": state.width, "height": state.height}


def build_manifest(sizes: List[int], background_color: str) -> bytes:
    manifest = {
        "icons": [
            {"src": f"favicon-{size}x{size}.png", "sizes": f"{size}x{size}", "type": "image/png"}
            for size in sizes if size >= 192
        ],
        "theme_color": background_color,
        "background_color": background_color,
        "display": "standalone",
    }
    return json.dumps(manifest, indent=2).encode("utf-8")


def build_html_snippet(sizes: List[int], formats: List[str], options) -> bytes:
    lines = []
    if "ico" in formats:
        lines.append('<link rel="icon" href="/favicon.ico" sizes="any">')
    if "png" in formats:
        for size in sizes:
            lines.append(f'<link rel="icon" type="image/png" sizes="{size}x{size}" href="/favicon-{size}x{size}.png">')
    if "svg" in formats:
        lines.append('<link rel="icon" type="image/svg+xml" href="/favicon.svg">')
    if options.include_apple_touch:
        lines.append('<link rel="apple-touch-icon" href="/apple-touch-icon.png">')
    if options.generate_manifest:
        lines.append('<link rel="manifest" href="/site.webmanifest">')
    return ("\n".join(lines) + "\n").encode("utf-8")
