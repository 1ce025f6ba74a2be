"""
Static tables shared by option resolution, validation and estimation.
"""
from enum import Enum
from typing import Dict, Any, List


class ProcessorKind(str, Enum):
    """Processor kinds a step can use"""
    resize = "resize"
    crop = "crop"
    optimize = "optimize"
    rename = "rename"
    template = "template"
    favicon = "favicon"


class Severity(str, Enum):
    """Severity of a validation message"""
    info = "info"
    warning = "warning"
    error = "error"


PROCESSOR_KINDS = [kind.value for kind in ProcessorKind]

# Execution order for the pixel operations; other kinds keep their positions
CANONICAL_ORDER = ["resize", "crop", "optimize", "rename"]

RESIZE_MODES = ["auto", "width", "height", "longest", "shortest", "fit"]
RESIZE_ALGORITHMS = ["lanczos3", "bilinear", "nearest", "cubic", "mitchell"]

AI_CROP_MODES = ["smart", "face", "object", "saliency", "entropy"]
ANCHOR_CROP_MODES = [
    "center", "top", "bottom", "left", "right",
    "top-left", "top-right", "bottom-left", "bottom-right",
]
CROP_MODES = AI_CROP_MODES + ANCHOR_CROP_MODES

# Modes counted as "smart crop" in task metadata
SMART_CROP_MODES = ["smart", "face", "object"]

OPTIMIZATION_FORMATS = ["auto", "webp", "jpg", "jpeg", "png", "avif", "ico", "svg", "original"]
COMPRESSION_MODES = ["adaptive", "aggressive", "balanced"]
BROWSER_SUPPORT = ["modern", "legacy", "all"]
AVIF_MAX_QUALITY = 63

FAVICON_FORMATS = ["png", "ico", "svg"]
FAVICON_MIN_SIZE = 16
FAVICON_MAX_SIZE = 512

DEFAULT_OBJECTS_TO_DETECT = ["person", "face", "car", "dog", "cat"]

RENAME_PLACEHOLDERS = ["{name}", "{index}", "{timestamp}", "{width}", "{height}", "{dimensions}"]
# The validator also accepts date/time tokens as making names distinct
RENAME_UNIQUE_PLACEHOLDERS = RENAME_PLACEHOLDERS + ["{date}", "{time}"]
DEFAULT_RENAME_PATTERN = "{name}-{index}"
INVALID_FILENAME_CHARS = '<>:"/\\|?*'

# Relative cost units per step kind, used by time estimation
STEP_BASE_COSTS: Dict[str, float] = {
    "resize": 100,
    "crop": 150,
    "optimize": 200,
    "rename": 10,
    "template": 300,
    "favicon": 500,
}

TASK_FORMAT_VERSION = "2.2.0"

PROCESSOR_VERSIONS: Dict[str, str] = {
    "resize": "1.2.1",
    "crop": "2.0.0",
    "optimize": "2.0.0",
    "rename": "1.0.0",
    "template": "1.3.0",
    "favicon": "2.0.0",
}

# Read-only descriptions served to presentation layers
PROCESSOR_INFO: List[Dict[str, Any]] = [
    {
        "key": "resize",
        "label": "Resize",
        "description": "Scale the image so the chosen edge matches a target dimension",
        "modes": RESIZE_MODES,
        "algorithms": RESIZE_ALGORITHMS,
        "batchable": True,
    },
    {
        "key": "crop",
        "label": "Crop",
        "description": "Cut a fixed-size region using an anchor or subject detection",
        "modes": CROP_MODES,
        "ai_modes": AI_CROP_MODES,
        "batchable": True,
    },
    {
        "key": "optimize",
        "label": "Optimize",
        "description": "Re-encode with format selection and quality tuning",
        "formats": OPTIMIZATION_FORMATS,
        "compression_modes": COMPRESSION_MODES,
        "batchable": True,
    },
    {
        "key": "rename",
        "label": "Rename",
        "description": "Name outputs from a placeholder pattern",
        "placeholders": RENAME_UNIQUE_PLACEHOLDERS,
        "batchable": True,
    },
    {
        "key": "template",
        "label": "Template",
        "description": "Fit the image to a catalog template's dimensions",
        "batchable": False,
    },
    {
        "key": "favicon",
        "label": "Favicon set",
        "description": "Generate favicons in several sizes and formats",
        "formats": FAVICON_FORMATS,
        "batchable": False,
    },
]
