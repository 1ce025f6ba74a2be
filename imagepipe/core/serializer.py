"""
Export and import of tasks as plain, JSON-ready data.

Round trips keep the step sequence, the resolved options and the enabled
flags. Step ids are kept when present; ``order`` is always recomputed from
position.
"""
import logging
from dataclasses import asdict
from typing import Optional, Dict, Any, List

import yaml
from pydantic import BaseModel, Field

from ..config import PipelineConfig
from .constants import TASK_FORMAT_VERSION, PROCESSOR_VERSIONS
from .models import ValidationIssue, StepMetadata
from .options import options_to_dict
from .task import Task

logger = logging.getLogger(__name__)


class StepConfig(BaseModel):
    id: Optional[str] = None
    processor: str
    options: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    order: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ValidationConfig(BaseModel):
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


class TaskConfig(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: str = ""
    version: str = TASK_FORMAT_VERSION
    steps: List[StepConfig] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    validation: ValidationConfig = Field(default_factory=ValidationConfig)


def export_config(task: Task) -> Dict[str, Any]:
    """Export a task as a plain dictionary."""
    config = TaskConfig(
        id=task.id,
        name=task.name,
        description=task.description,
        version=TASK_FORMAT_VERSION,
        steps=[
            StepConfig(
                id=step.id,
                processor=step.processor,
                options=options_to_dict(step.options),
                enabled=step.enabled,
                order=step.order,
                metadata=asdict(step.metadata),
            )
            for step in task.steps
        ],
        metadata={**asdict(task.metadata), "processor_versions": dict(PROCESSOR_VERSIONS)},
        created_at=task.created_at,
        updated_at=task.updated_at,
        validation=ValidationConfig(
            errors=[issue.to_dict() for issue in task.validation_errors],
            warnings=[issue.to_dict() for issue in task.validation_warnings],
        ),
    )
    return config.model_dump()


def import_config(data: Dict[str, Any], config: Optional[PipelineConfig] = None) -> Task:
    """
    Build a task from exported data.

    Options are resolved again, so hand-written configs get the same defaults
    and normalization as ``Task.add_step``.

    Raises:
        InvalidProcessorKind: if a step names an unknown processor
        pydantic.ValidationError: if the data does not have the task shape
    """
    parsed = TaskConfig.model_validate(data)
    task = Task(parsed.name, parsed.description, config=config)
    task.id = parsed.id or task.id
    task.created_at = parsed.created_at or task.created_at

    for step_config in parsed.steps:
        task.add_step(step_config.processor, step_config.options)
        step = task.steps[-1]
        step.enabled = step_config.enabled
        step.id = step_config.id or step.id
        if step_config.metadata:
            known = {k: v for k, v in step_config.metadata.items() if k in StepMetadata.__dataclass_fields__}
            step.metadata = StepMetadata(**{**asdict(step.metadata), **known})

    # enabled flags changed after add_step
    task._update_metadata()
    task.updated_at = parsed.updated_at or task.updated_at
    task.validation_errors = [ValidationIssue.from_dict(d) for d in parsed.validation.errors]
    task.validation_warnings = [ValidationIssue.from_dict(d) for d in parsed.validation.warnings]

    logger.debug(f"Imported task {task.id} with {len(task.steps)} step(s)")
    return task


def dump_yaml(task: Task) -> str:
    return yaml.safe_dump(export_config(task), sort_keys=False)


def load_yaml(text: str, config: Optional[PipelineConfig] = None) -> Task:
    data = yaml.safe_load(text) or {}
    return import_config(data, config=config)
