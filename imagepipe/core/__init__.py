"""Pipeline core

- Task: ordered steps with validation, summary and estimation
- StepValidator: per-step option checks
- validate_ordering: cross-step ordering checks
- resolve_options: defaults and normalization per processor kind
"""

from .constants import ProcessorKind, Severity
from .dimensions import DimensionValue, parse_dimension
from .errors import ImagePipeError, InvalidProcessorKind, UnknownPresetError, TaskNotExecutable
from .logic import validate_ordering
from .models import (
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
    TimeEstimate,
    SubjectImage,
    Capabilities,
    Step,
)
from .options import resolve_options
from .validators import StepValidator
from .task import Task
from .serializer import export_config, import_config, dump_yaml, load_yaml

__all__ = [
    'ProcessorKind',
    'Severity',
    'DimensionValue',
    'parse_dimension',
    'ImagePipeError',
    'InvalidProcessorKind',
    'UnknownPresetError',
    'TaskNotExecutable',
    'validate_ordering',
    'ValidationIssue',
    'ValidationResult',
    'ValidationSummary',
    'TimeEstimate',
    'SubjectImage',
    'Capabilities',
    'Step',
    'resolve_options',
    'StepValidator',
    'Task',
    'export_config',
    'import_config',
    'dump_yaml',
    'load_yaml',
]
