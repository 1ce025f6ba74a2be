"""
Per-step validation.

StepValidator checks one step's options, optionally against the subject
image and the detector capabilities. It never raises for bad data and does
not know which step it is looking at; the task tags messages with the step
order afterwards.
"""
import logging
from typing import Any, Optional

from ..config import PipelineConfig
from .constants import (
    ProcessorKind,
    RESIZE_MODES,
    RESIZE_ALGORITHMS,
    CROP_MODES,
    AI_CROP_MODES,
    OPTIMIZATION_FORMATS,
    FAVICON_FORMATS,
    FAVICON_MIN_SIZE,
    RENAME_UNIQUE_PLACEHOLDERS,
    INVALID_FILENAME_CHARS,
)
from .dimensions import parse_dimension, DimensionValue
from .models import ValidationResult, SubjectImage, Capabilities
from .options import build_options, normalize_kind, is_number
from .templates import get_template, check_template_compatibility

logger = logging.getLogger(__name__)

LARGE_FAVICON_SIZE = 1024
LOW_CONFIDENCE_THRESHOLD = 50
MIN_ASPECT_RATIO = 0.1
MAX_ASPECT_RATIO = 10
EXTREME_UPSCALE = 3
EXTREME_DOWNSCALE = 0.1


class StepValidator:
    """Validates the resolved options of a single step."""

    def __init__(self, config=None):
        self.config = config or PipelineConfig()

    def validate(
        self,
        kind: Any,
        options: Any,
        image: Optional[SubjectImage] = None,
        capabilities: Optional[Capabilities] = None,
    ) -> ValidationResult:
        kind = normalize_kind(kind)
        options = build_options(kind, options)
        result = ValidationResult()

        if kind == ProcessorKind.resize.value:
            self._validate_resize(options, image, result)
        elif kind == ProcessorKind.crop.value:
            self._validate_crop(options, image, capabilities, result)
        elif kind == ProcessorKind.optimize.value:
            self._validate_optimize(options, image, result)
        elif kind == ProcessorKind.rename.value:
            self._validate_rename(options, result)
        elif kind == ProcessorKind.favicon.value:
            self._validate_favicon(options, image, result)
        elif kind == ProcessorKind.template.value:
            self._validate_template(options, image, result)

        return result

    def _check_dimension(self, name: str, dim: DimensionValue, result: ValidationResult, error_code: str) -> bool:
        """Report variable, invalid and non-integer values. Returns True if usable as a number."""
        if dim.is_variable:
            result.add_info(
                "flexible_dimension",
                f"{name} '{dim.raw}' is variable and will be resolved from the image",
            )
            return False
        if dim.is_invalid or dim.value <= 0:
            result.add_error(
                error_code,
                f"{name} must be a positive number, got {dim.raw!r}",
                suggestion=f"Use a {name} greater than 0",
            )
            return False
        if isinstance(dim.value, float) and not dim.value.is_integer():
            result.add_info(
                "non_integer_dimension",
                f"{name} {dim.value} will be rounded to whole pixels",
            )
        return True

    def _validate_resize(self, options, image: Optional[SubjectImage], result: ValidationResult):
        if options.mode not in RESIZE_MODES:
            result.add_error(
                "invalid_mode",
                f"Invalid resize mode: {options.mode}",
                suggestion=f"Use one of: {', '.join(RESIZE_MODES)}",
            )
        if options.algorithm not in RESIZE_ALGORITHMS:
            result.add_error(
                "invalid_algorithm",
                f"Invalid resize algorithm: {options.algorithm}",
                suggestion=f"Use one of: {', '.join(RESIZE_ALGORITHMS)}",
            )

        dim = parse_dimension(options.dimension)
        if not self._check_dimension("dimension", dim, result, "invalid_dimension"):
            return
        value = dim.value

        if value < self.config.min_dimension:
            result.add_warning(
                "very_small_dimension",
                f"Dimension {value}px is very small",
                suggestion=f"Use at least {self.config.min_dimension}px",
            )
        if self.config.max_dimension and value > self.config.max_dimension:
            result.add_warning(
                "very_large_dimension",
                f"Dimension {value}px exceeds {self.config.max_dimension}px",
                suggestion="Large outputs are slow to process and may exhaust memory",
            )

        if image is None or not image.width or not image.height:
            return

        if value > max(image.width, image.height) and not options.upscale:
            result.add_warning(
                "upscale_disabled",
                f"Target {value}px is larger than the image ({image.width}x{image.height}) but upscaling is disabled",
                suggestion="Enable upscale or choose a smaller dimension",
            )

        edge = _resize_edge(options.mode, image)
        scale = value / edge
        if scale > EXTREME_UPSCALE and options.upscale:
            result.add_warning(
                "extreme_upscale",
                f"Resizing scales the image up {scale:.1f}x, expect visible blur",
            )
        elif scale < EXTREME_DOWNSCALE:
            result.add_warning(
                "extreme_downscale",
                f"Resizing scales the image down to {scale * 100:.1f}% of its size",
            )

    def _validate_crop(self, options, image, capabilities, result: ValidationResult):
        mode = options.mode
        if mode not in CROP_MODES:
            result.add_error(
                "invalid_crop_mode",
                f"Invalid crop mode: {mode}",
                suggestion=f"Use one of: {', '.join(CROP_MODES)}",
            )
        if options.algorithm not in RESIZE_ALGORITHMS:
            result.add_error(
                "invalid_algorithm",
                f"Invalid crop algorithm: {options.algorithm}",
                suggestion=f"Use one of: {', '.join(RESIZE_ALGORITHMS)}",
            )

        width = parse_dimension(options.width)
        height = parse_dimension(options.height)
        width_ok = self._check_dimension("width", width, result, "invalid_width")
        height_ok = self._check_dimension("height", height, result, "invalid_height")

        if width_ok and height_ok:
            w, h = width.value, height.value
            if w < self.config.min_dimension or h < self.config.min_dimension:
                result.add_warning(
                    "very_small_crop",
                    f"Crop size {w}x{h} is very small",
                )
            ratio = w / h
            if ratio < MIN_ASPECT_RATIO or ratio > MAX_ASPECT_RATIO:
                result.add_warning(
                    "extreme_aspect_ratio",
                    f"Crop aspect ratio {ratio:.2f} is extreme",
                    suggestion="Keep the aspect ratio between 1:10 and 10:1",
                )
            if w > self.config.max_crop_size or h > self.config.max_crop_size:
                result.add_warning(
                    "large_crop_size",
                    f"Crop size {w}x{h} exceeds {self.config.max_crop_size}px",
                )
            if image is not None and not options.upscale and (w > image.width or h > image.height):
                result.add_warning(
                    "source_too_small",
                    f"Source image ({image.width}x{image.height}) is smaller than the crop ({w}x{h})",
                    suggestion="Enable upscale or use smaller crop dimensions",
                )

        if mode in AI_CROP_MODES:
            threshold = options.confidence_threshold
            if is_number(threshold) and threshold < LOW_CONFIDENCE_THRESHOLD:
                result.add_warning(
                    "low_confidence_threshold",
                    f"Confidence threshold {threshold} may accept false detections",
                    suggestion="Use a threshold of 50 or higher",
                )
            if capabilities is not None and not capabilities.supports(mode):
                logger.warning(f"No detector available for crop mode '{mode}'")
                result.add_warning(
                    "ai_capability_unavailable",
                    f"Detection for '{mode}' mode is not available, a centered crop will be used",
                    suggestion="Use an anchor mode such as 'center'",
                )

    def _validate_optimize(self, options, image, result: ValidationResult):
        quality = options.quality
        if not is_number(quality) or quality < 1 or quality > 100:
            result.add_error(
                "invalid_quality",
                f"Quality must be between 1 and 100, got {quality!r}",
            )
        else:
            if quality > 95:
                result.add_info(
                    "high_quality",
                    f"Quality {quality} gives diminishing returns in file size",
                    suggestion="Quality 85-95 is usually indistinguishable",
                )
            elif quality < 50:
                result.add_warning(
                    "low_quality",
                    f"Quality {quality} may produce visible artifacts",
                )
            if options.compression_mode == "aggressive" and quality < 60:
                result.add_warning(
                    "excessive_compression",
                    f"Aggressive compression at quality {quality} may degrade the image heavily",
                )

        formats = options.format if isinstance(options.format, list) else [options.format]
        if not formats:
            result.add_error("invalid_format", "At least one output format is required")
        for fmt in formats:
            if fmt not in OPTIMIZATION_FORMATS:
                result.add_error(
                    "invalid_format",
                    f"Invalid output format: {fmt}",
                    suggestion=f"Use one of: {', '.join(OPTIMIZATION_FORMATS)}",
                )

        jpeg_target = any(fmt in ("jpg", "jpeg") for fmt in formats)
        if jpeg_target and options.preserve_transparency:
            result.add_warning(
                "transparency_loss",
                "JPEG does not support transparency",
                suggestion="Use PNG or WebP to keep transparency",
            )
        elif jpeg_target and image is not None and image.has_transparency:
            result.add_warning(
                "transparency_loss",
                "Image has transparency that will be lost in JPEG",
                suggestion="Use PNG or WebP to keep transparency",
            )

        browser_support = options.browser_support if isinstance(options.browser_support, list) else []
        if "avif" in formats and set(browser_support) != {"modern"}:
            result.add_warning(
                "avif_browser_support",
                "AVIF has limited browser support",
                suggestion="Provide a WebP fallback or target modern browsers only",
            )

        max_width = options.max_display_width
        if max_width is not None and (not is_number(max_width) or max_width < 10 or max_width > 10000):
            result.add_warning(
                "extreme_max_display_width",
                f"max_display_width ({max_width}) is outside the recommended range 10-10000",
            )

    def _validate_rename(self, options, result: ValidationResult):
        pattern = options.pattern
        if not isinstance(pattern, str) or not pattern.strip():
            result.add_error(
                "empty_pattern",
                "Rename pattern cannot be empty",
                suggestion="Use a pattern such as '{name}-{index}'",
            )
            return

        bad = sorted({c for c in pattern if c in INVALID_FILENAME_CHARS or ord(c) < 32})
        if bad:
            result.add_error(
                "invalid_chars",
                f"Rename pattern contains invalid filename characters: {bad!r}",
            )

        if not any(token in pattern for token in RENAME_UNIQUE_PLACEHOLDERS):
            result.add_warning(
                "no_placeholders",
                "Rename pattern has no placeholder, all outputs will get the same name",
                suggestion="Add {name}, {index} or {timestamp}",
            )

        if len(pattern) > self.config.max_filename_length:
            result.add_warning(
                "very_long_filename",
                f"Rename pattern is {len(pattern)} characters long",
            )

    def _validate_favicon(self, options, image, result: ValidationResult):
        sizes = options.sizes
        if not isinstance(sizes, list) or not sizes:
            result.add_error(
                "invalid_favicon_sizes",
                "Favicon sizes must be a non-empty list",
                suggestion="Use sizes such as [16, 32, 180, 192, 512]",
            )
            sizes = []

        numeric = [s for s in sizes if is_number(s)]
        if len(numeric) != len(sizes):
            result.add_error(
                "invalid_favicon_sizes",
                "Favicon sizes must all be numbers",
            )

        for size in numeric:
            if size < FAVICON_MIN_SIZE:
                result.add_warning(
                    "small_favicon_size",
                    f"Favicon size {size}px is below the recommended minimum of {FAVICON_MIN_SIZE}px",
                )
            elif size > LARGE_FAVICON_SIZE:
                result.add_info(
                    "large_favicon_size",
                    f"Favicon size {size}px is unusually large",
                )

        formats = options.formats if isinstance(options.formats, list) else [options.formats]
        for fmt in formats:
            if fmt not in FAVICON_FORMATS:
                result.add_warning(
                    "unsupported_format",
                    f"Unsupported favicon format: {fmt}",
                    suggestion=f"Use one of: {', '.join(FAVICON_FORMATS)}",
                )

        if image is None or not image.width or not image.height:
            return

        if numeric and min(image.width, image.height) < min(numeric):
            result.add_warning(
                "source_too_small",
                f"Source image ({image.width}x{image.height}) is smaller than the smallest favicon size ({min(numeric)}px)",
            )
        if abs(image.aspect_ratio - 1) > 0.1:
            result.add_warning(
                "non_square_source",
                f"Source image is not square ({image.width}x{image.height}), favicons will be cropped or padded",
                suggestion="Crop to a square before generating favicons",
            )

    def _validate_template(self, options, image, result: ValidationResult):
        if not options.template_id:
            result.add_error(
                "missing_template_id",
                "Template step requires a template_id",
            )
            return

        template = get_template(options.template_id)
        if template is None:
            result.add_warning(
                "template_not_found",
                f"Template '{options.template_id}' is not in the catalog",
            )
            return

        if image is not None:
            compatibility = check_template_compatibility(template, image)
            result.warnings.extend(compatibility.warnings)


def _resize_edge(mode: str, image: SubjectImage) -> int:
    if mode == "width":
        return image.width
    if mode == "height":
        return image.height
    if mode == "shortest":
        return min(image.width, image.height)
    return max(image.width, image.height)


def validate_step(kind: Any, options: Any, image=None, capabilities=None, config=None) -> ValidationResult:
    return StepValidator(config).validate(kind, options, image, capabilities)
