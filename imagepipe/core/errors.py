"""
Exceptions raised by the pipeline core.

Data-quality problems never raise; they are collected in a ValidationResult.
"""
from typing import Any


class ImagePipeError(Exception):
    """Base class for imagepipe errors"""
    pass


class InvalidProcessorKind(ImagePipeError, ValueError):
    """Raised when a step is added with an unrecognized processor kind"""

    def __init__(self, kind: Any):
        self.kind = kind
        super().__init__(f"Invalid processor kind: {kind!r}")


class UnknownPresetError(ImagePipeError, KeyError):
    """Raised when a preset name is not in the preset table"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown preset: {name}")

    def __str__(self):
        return self.args[0]


class TaskNotExecutable(ImagePipeError):
    """Raised when a task with validation errors is handed to the executor"""

    def __init__(self, report):
        self.report = report
        codes = ", ".join(issue.code for issue in report.errors)
        super().__init__(f"Task has {len(report.errors)} validation error(s): {codes}")
