from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class StepRequest(BaseModel):
    """One step of a task payload"""
    id: Optional[str] = Field(None, description="Step id; generated when omitted")
    processor: str = Field(..., description="resize, crop, optimize, rename, template or favicon")
    options: Dict[str, Any] = Field(default_factory=dict, description="Overrides merged over the processor defaults")
    enabled: bool = True


class TaskRequest(BaseModel):
    """Task payload, the same shape as an exported task config"""
    id: Optional[str] = None
    name: Optional[str] = None
    description: str = ""
    steps: List[StepRequest] = Field(default_factory=list)


class SubjectImageRequest(BaseModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    format: str = Field("image/png", description="MIME type")
    has_transparency: bool = False
    name: str = "image"


class CapabilitiesRequest(BaseModel):
    face_detection: bool = False
    object_detection: bool = False
    saliency_detection: bool = False
    entropy_detection: bool = False
    canvas_available: bool = True


class ValidateRequest(BaseModel):
    task: TaskRequest
    image: Optional[SubjectImageRequest] = None
    capabilities: Optional[CapabilitiesRequest] = None


class EstimateRequest(BaseModel):
    task: TaskRequest
    image_count: int = Field(1, ge=1)


class IssueResponse(BaseModel):
    code: str
    type: str
    message: str
    severity: str
    step: Optional[int] = None
    suggestion: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[IssueResponse]
    warnings: List[IssueResponse]
    summary: Dict[str, Any]


class EstimateResponse(BaseModel):
    per_image: float
    total: float
    formatted: str
    step_count: int
    image_count: int
    estimated_outputs: int


class PresetResponse(BaseModel):
    id: str
    name: str
    description: str
    processors: List[str]
