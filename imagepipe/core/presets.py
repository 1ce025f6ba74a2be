"""
Ready-made task presets and template-driven task building.
"""
import logging
from typing import Optional, Dict, Any, List

from ..config import PipelineConfig
from .dimensions import parse_dimension
from .errors import UnknownPresetError
from .models import SubjectImage
from .serializer import import_config
from .task import Task

logger = logging.getLogger(__name__)

TASK_PRESETS: Dict[str, Dict[str, Any]] = {
    "web-optimized": {
        "name": "Web Optimization",
        "description": "Optimize images for web with modern formats",
        "steps": [
            {"processor": "resize", "options": {"dimension": 1920, "mode": "longest"}},
            {"processor": "optimize", "options": {"quality": 85, "format": "auto", "compression_mode": "adaptive"}},
            {"processor": "rename", "options": {"pattern": "{name}-{width}w"}},
        ],
    },
    "social-media": {
        "name": "Social Media Posts",
        "description": "Prepare images for social media platforms",
        "steps": [
            {"processor": "resize", "options": {"dimension": 1080, "mode": "longest"}},
            {"processor": "crop", "options": {
                "width": 1080, "height": 1080, "mode": "smart",
                "confidence_threshold": 70, "multiple_faces": True,
            }},
            {"processor": "optimize", "options": {"quality": 90, "format": "auto", "compression_mode": "balanced"}},
        ],
    },
    "portrait-smart": {
        "name": "Smart Portrait Cropping",
        "description": "Portrait cropping centred on detected faces",
        "steps": [
            {"processor": "resize", "options": {"dimension": 1080, "mode": "longest"}},
            {"processor": "crop", "options": {
                "width": 1080, "height": 1350, "mode": "face",
                "confidence_threshold": 80, "preserve_aspect_ratio": True,
            }},
            {"processor": "optimize", "options": {"quality": 95, "format": "auto", "compression_mode": "adaptive"}},
        ],
    },
    "product-showcase": {
        "name": "Product Showcase",
        "description": "Object-centred cropping for product images",
        "steps": [
            {"processor": "resize", "options": {"dimension": 1200, "mode": "longest"}},
            {"processor": "crop", "options": {
                "width": 1200, "height": 1200, "mode": "object",
                "objects_to_detect": ["product", "item"], "confidence_threshold": 75,
            }},
            {"processor": "optimize", "options": {"quality": 90, "format": "auto", "compression_mode": "balanced"}},
        ],
    },
    "favicon-package": {
        "name": "Favicon Package",
        "description": "Generate a complete favicon set for all devices",
        "steps": [
            {"processor": "resize", "options": {"dimension": 512, "mode": "longest"}},
            {"processor": "crop", "options": {"width": 512, "height": 512, "mode": "smart", "confidence_threshold": 70}},
            {"processor": "favicon", "options": {
                "sizes": [16, 32, 48, 64, 128, 180, 192, 256, 512],
                "formats": ["png", "ico"],
                "generate_manifest": True,
                "generate_html": True,
            }},
            {"processor": "rename", "options": {"pattern": "{name}-favicon-{size}"}},
        ],
    },
    "optimization-only": {
        "name": "Optimization Only",
        "description": "Optimize images without resizing or cropping",
        "steps": [
            {"processor": "optimize", "options": {
                "quality": 85,
                "format": "auto",
                "max_display_width": 1920,
                "compression_mode": "adaptive",
                "browser_support": ["modern", "legacy"],
            }},
        ],
    },
}


def list_presets() -> List[Dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "name": preset["name"],
            "description": preset["description"],
            "processors": [step["processor"] for step in preset["steps"]],
        }
        for preset_id, preset in TASK_PRESETS.items()
    ]


def build_preset_task(name: str, config: Optional[PipelineConfig] = None) -> Task:
    preset = TASK_PRESETS.get(name)
    if preset is None:
        raise UnknownPresetError(name)
    logger.debug(f"Building task from preset '{name}'")
    return import_config(preset, config=config)


def build_template_task(template: Dict[str, Any], image: Optional[SubjectImage] = None,
                        config: Optional[PipelineConfig] = None) -> Task:
    """
    Plan a crop/resize + optimize task that fits an image to a template.

    Fixed templates crop when the image aspect differs by more than 0.1 and
    otherwise resize by the longest edge. Templates with one variable side
    resize by the fixed side.
    """
    task = Task(f"Template: {template.get('display_name', template.get('id'))}",
                template.get("description", ""), config=config)
    width = parse_dimension(template.get("width"))
    height = parse_dimension(template.get("height"))

    if width.is_fixed and height.is_fixed:
        template_aspect = width.value / height.value
        if image is not None and image.height and abs(template_aspect - image.aspect_ratio) > 0.1:
            task.add_crop(width.value, height.value, "smart")
        else:
            task.add_resize(max(width.value, height.value), "longest")
    elif width.is_variable and height.is_fixed:
        task.add_resize(height.value, "height")
    elif height.is_variable and width.is_fixed:
        task.add_resize(width.value, "width")

    recommended = [f.lower() for f in template.get("recommended_formats", [])]
    task.add_optimize(
        85,
        "auto",
        compression_mode="adaptive",
        preserve_transparency="png" in recommended or "svg" in recommended,
    )
    return task
