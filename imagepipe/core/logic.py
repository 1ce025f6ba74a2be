"""
Cross-step checks over the ordered list of enabled steps.

Every rule is advisory and independent; all applicable rules fire in one pass.
"""
import logging
from typing import List

from .models import Step, ValidationIssue
from .constants import Severity

logger = logging.getLogger(__name__)


def _issue(code: str, message: str, severity: str, suggestion: str = None, step: int = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, severity=severity, step=step, suggestion=suggestion)


def validate_ordering(enabled_steps: List[Step]) -> List[ValidationIssue]:
    """
    Check step ordering anti-patterns, redundant steps and missing preparation.

    Args:
        enabled_steps: enabled steps in task order

    Returns:
        Warnings and infos; ordering problems are never errors
    """
    warnings: List[ValidationIssue] = []
    kinds = [step.processor for step in enabled_steps]
    has_resize = "resize" in kinds
    has_crop = "crop" in kinds

    if has_crop and not has_resize:
        warnings.append(_issue(
            "crop_without_resize",
            "Crop without resize may produce unexpected output on large or small images",
            Severity.info.value,
            suggestion="Add a resize step before cropping",
        ))

    optimize_steps = [step for step in enabled_steps if step.processor == "optimize"]
    if len(optimize_steps) > 1:
        warnings.append(_issue(
            "multiple_optimize",
            f"{len(optimize_steps)} optimize steps will re-encode the image repeatedly and degrade quality",
            Severity.warning.value,
            suggestion="Keep a single optimize step",
        ))

    if "rename" in kinds:
        rename_index = kinds.index("rename")
        if rename_index < len(kinds) - 2:
            warnings.append(_issue(
                "early_rename",
                "Rename is placed early in the task",
                Severity.info.value,
                suggestion="Move rename to the end",
                step=enabled_steps[rename_index].order,
            ))

    if "favicon" in kinds:
        favicon_index = kinds.index("favicon")
        if not any(kind in ("resize", "crop") for kind in kinds[:favicon_index]):
            warnings.append(_issue(
                "favicon_without_preparation",
                "Favicon generation without a preceding resize or crop",
                Severity.warning.value,
                suggestion="Crop to a square before generating favicons",
                step=enabled_steps[favicon_index].order,
            ))

    for favicon in (step for step in enabled_steps if step.processor == "favicon"):
        if any(step.order > favicon.order for step in optimize_steps):
            warnings.append(_issue(
                "optimize_after_favicon",
                "Optimize after favicon generation may affect favicon quality",
                Severity.warning.value,
                suggestion="Optimize before generating favicons",
                step=favicon.order,
            ))

    if optimize_steps and not has_resize and not has_crop:
        warnings.append(_issue(
            "optimization_only",
            "Task only optimizes; images keep their original dimensions",
            Severity.info.value,
        ))

    if warnings:
        logger.debug(f"Ordering checks produced: {', '.join(w.code for w in warnings)}")
    return warnings
