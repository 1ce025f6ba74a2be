from fastapi import APIRouter, HTTPException
from dataclasses import asdict
from typing import Dict, Any, List
import logging

from imagepipe.api.schemas.tasks import (
    TaskRequest,
    ValidateRequest,
    EstimateRequest,
    ValidationResponse,
    EstimateResponse,
    PresetResponse,
)
from imagepipe.config import config_service
from imagepipe.core.constants import PROCESSOR_INFO, PROCESSOR_KINDS
from imagepipe.core.errors import ImagePipeError
from imagepipe.core.models import SubjectImage, Capabilities
from imagepipe.core.options import default_options, options_to_dict
from imagepipe.core.presets import list_presets, build_preset_task
from imagepipe.core.serializer import import_config, export_config
from imagepipe.core.task import Task

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_task(payload: TaskRequest) -> Task:
    try:
        return import_config(payload.model_dump(), config=config_service.config)
    except ImagePipeError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/meta")
async def get_task_metadata() -> Dict[str, Any]:
    """Processor descriptions and defaults for task builders"""
    return {
        "processors": PROCESSOR_INFO,
        "defaults": {kind: options_to_dict(default_options(kind)) for kind in PROCESSOR_KINDS},
        "limits": config_service.get_all(),
    }


@router.get("/presets", response_model=List[PresetResponse])
async def get_task_presets() -> List[PresetResponse]:
    """List the built-in task presets"""
    return [PresetResponse(**preset) for preset in list_presets()]


@router.post("/presets/{preset_id}")
async def instantiate_preset(preset_id: str) -> Dict[str, Any]:
    """Build a task from a preset and return its config"""
    try:
        task = build_preset_task(preset_id, config=config_service.config)
    except ImagePipeError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return export_config(task)


@router.post("/compile")
async def compile_task(payload: TaskRequest) -> Dict[str, Any]:
    """Resolve a task's options and return the normalized config"""
    task = _build_task(payload)
    report = task.validate()
    return {
        "valid": report.valid,
        "task": export_config(task),
        "description": task.describe(),
        "message": "Task is valid" if report.valid else "Task has validation errors",
    }


@router.post("/validate", response_model=ValidationResponse)
async def validate_task(payload: ValidateRequest) -> ValidationResponse:
    """Validate a task, optionally against a subject image"""
    task = _build_task(payload.task)
    image = SubjectImage(**payload.image.model_dump()) if payload.image else None
    capabilities = Capabilities(**payload.capabilities.model_dump()) if payload.capabilities else None

    report = task.validate(image, capabilities)
    summary = task.get_validation_summary()
    logger.info(f"Validated task '{task.name}': status={summary.status}")

    return ValidationResponse(
        valid=report.valid,
        errors=[issue.to_dict() for issue in report.errors],
        warnings=[issue.to_dict() for issue in report.warnings],
        summary=asdict(summary),
    )


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_task(payload: EstimateRequest) -> EstimateResponse:
    """Estimate processing cost and output count"""
    max_batch = config_service.get("max_batch_size")
    if payload.image_count > max_batch:
        raise HTTPException(status_code=400, detail=f"image_count exceeds the batch limit of {max_batch}")

    task = _build_task(payload.task)
    estimate = task.get_time_estimate(payload.image_count)
    return EstimateResponse(
        **asdict(estimate),
        estimated_outputs=task._estimate_output_count(),
    )
