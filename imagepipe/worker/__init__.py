"""Execution boundary

- TaskExecutor: runs a validated task through a RasterBackend
- sort_for_execution: canonical step order for execution
- RasterBackend / CapabilityProbe / SubjectDetector: collaborator interfaces
"""

from .backend import (
    OperationFailed,
    RasterBackend,
    CapabilityProbe,
    SubjectDetector,
    Detection,
    StaticCapabilityProbe,
)
from .executor import TaskExecutor, ExecutionResult, OutputFile, sort_for_execution

__all__ = [
    'OperationFailed',
    'RasterBackend',
    'CapabilityProbe',
    'SubjectDetector',
    'Detection',
    'StaticCapabilityProbe',
    'TaskExecutor',
    'ExecutionResult',
    'OutputFile',
    'sort_for_execution',
]
