"""
Core models for the image pipeline.
"""
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List

from .constants import Severity


@dataclass
class ValidationIssue:
    """One error, warning or info message produced by validation."""
    code: str
    message: str
    severity: str = Severity.error.value
    step: Optional[int] = None          # order of the step this refers to; None for task-level
    suggestion: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.code

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.error.value

    def with_step(self, order: Optional[int]) -> "ValidationIssue":
        return ValidationIssue(
            code=self.code,
            message=self.message,
            severity=self.severity,
            step=order,
            suggestion=self.suggestion,
            details=dict(self.details),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "type": self.code,
            "message": self.message,
            "severity": self.severity,
        }
        if self.step is not None:
            data["step"] = self.step
        if self.suggestion:
            data["suggestion"] = self.suggestion
        if self.details:
            data["details"] = dict(self.details)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationIssue":
        return cls(
            code=data.get("code") or data.get("type") or "unknown",
            message=data.get("message", ""),
            severity=data.get("severity", Severity.error.value),
            step=data.get("step"),
            suggestion=data.get("suggestion"),
            details=dict(data.get("details") or {}),
        )


@dataclass
class ValidationResult:
    """
    Accumulator for one validation pass.

    Errors make the result invalid; warnings (severity warning or info) never do.
    """
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, code: str, message: str, suggestion: Optional[str] = None, **details) -> None:
        self.errors.append(ValidationIssue(code, message, Severity.error.value, suggestion=suggestion, details=details))

    def add_warning(self, code: str, message: str, suggestion: Optional[str] = None, **details) -> None:
        self.warnings.append(ValidationIssue(code, message, Severity.warning.value, suggestion=suggestion, details=details))

    def add_info(self, code: str, message: str, suggestion: Optional[str] = None, **details) -> None:
        self.warnings.append(ValidationIssue(code, message, Severity.info.value, suggestion=suggestion, details=details))

    def extend(self, other: "ValidationResult", step: Optional[int] = None) -> None:
        """Append another result's messages, tagging them with a step order when given."""
        for issue in other.errors:
            self.errors.append(issue.with_step(step) if step is not None else issue)
        for issue in other.warnings:
            self.warnings.append(issue.with_step(step) if step is not None else issue)

    def codes(self) -> List[str]:
        return [issue.code for issue in self.errors + self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


@dataclass
class SubjectImage:
    """Read-only description of the image a task is validated or run against."""
    width: int
    height: int
    format: str = "image/png"           # MIME type
    has_transparency: bool = False
    name: str = "image"                 # base name without extension, used by rename

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    @property
    def is_svg(self) -> bool:
        return "svg" in (self.format or "")

    @property
    def is_icon(self) -> bool:
        return "icon" in (self.format or "")


@dataclass
class Capabilities:
    """Detector availability reported by a capability probe."""
    face_detection: bool = False
    object_detection: bool = False
    saliency_detection: bool = False
    entropy_detection: bool = False
    canvas_available: bool = True

    @property
    def has_any_ai(self) -> bool:
        return self.face_detection or self.object_detection or self.saliency_detection

    def supports(self, mode: str) -> bool:
        """Whether the detector behind an AI crop mode is available"""
        if mode == "smart":
            return self.has_any_ai
        if mode == "face":
            return self.face_detection
        if mode == "object":
            return self.object_detection
        if mode == "saliency":
            return self.saliency_detection
        if mode == "entropy":
            return self.entropy_detection
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["has_any_ai"] = self.has_any_ai
        return data


@dataclass
class StepMetadata:
    requires_favicon: bool = False
    is_batchable: bool = True
    output_type: str = "processed"


@dataclass
class Step:
    """One configured operation within a task."""
    id: str
    processor: str
    options: Any                        # one of the *Options variants in core.options
    order: int
    enabled: bool = True
    added_at: str = ""
    metadata: StepMetadata = field(default_factory=StepMetadata)


@dataclass
class TaskMetadata:
    """Aggregate figures recomputed after every mutation."""
    estimated_duration: float = 0
    estimated_outputs: int = 1
    step_count: int = 0
    category: str = "general"
    processor_count: Dict[str, int] = field(default_factory=dict)
    has_smart_crop: bool = False
    has_auto_optimization: bool = False


@dataclass
class ValidationSummary:
    total_steps: int
    enabled_steps: int
    disabled_steps: int
    error_count: int
    warning_count: int
    processor_count: Dict[str, int]
    task_type: str
    status: str                         # invalid | has_warnings | valid
    can_proceed: bool
    requires_image: bool
    has_favicon: bool
    has_smart_crop: bool
    has_auto_optimization: bool
    estimated_outputs: int
    optimization_level: str


@dataclass
class TimeEstimate:
    per_image: float
    total: float
    formatted: str
    step_count: int
    image_count: int


@dataclass
class CompatibilityReport:
    compatible: bool = True
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def recommended(self) -> bool:
        return not self.warnings and not self.errors
