"""
Size and crop-rectangle arithmetic used by the executor.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..core.constants import AI_CROP_MODES
from .backend import Detection

# Where AI modes place the crop window when no detection is usable
AI_BIAS = {
    "face": (0.5, 0.4),
}
DEFAULT_AI_BIAS = (0.5, 0.5)


@dataclass
class CropRect:
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def intersection(self, det: Detection) -> int:
        left = max(self.x, det.x)
        top = max(self.y, det.y)
        right = min(self.x + self.width, det.x + det.width)
        bottom = min(self.y + self.height, det.y + det.height)
        if right <= left or bottom <= top:
            return 0
        return (right - left) * (bottom - top)


def resize_target(width: int, height: int, dimension: int, mode: str, upscale: bool = True) -> Tuple[int, int]:
    """New (width, height) for a resize that keeps the aspect ratio."""
    if mode == "width":
        edge = width
    elif mode == "height":
        edge = height
    elif mode == "shortest":
        edge = min(width, height)
    else:
        edge = max(width, height)

    scale = dimension / edge
    if scale > 1 and not upscale:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def calculate_crop(src_w: int, src_h: int, target_w: int, target_h: int, mode: str,
                   upscale: bool = False, crop_to_fit: bool = True,
                   preserve_aspect_ratio: bool = True) -> CropRect:
    """Crop window for an anchor or AI mode, always inside the source."""
    crop_w, crop_h = target_w, target_h
    if not upscale:
        crop_w = min(target_w, src_w)
        crop_h = min(target_h, src_h)

    if crop_to_fit and preserve_aspect_ratio:
        source_aspect = src_w / src_h
        target_aspect = target_w / target_h
        if abs(source_aspect - target_aspect) > 0.01:
            if source_aspect > target_aspect:
                crop_w = round(crop_h * target_aspect)
            else:
                crop_h = round(crop_w / target_aspect)

    crop_w = max(1, min(crop_w, src_w))
    crop_h = max(1, min(crop_h, src_h))
    free_x = src_w - crop_w
    free_y = src_h - crop_h

    if mode in AI_CROP_MODES:
        bias_x, bias_y = AI_BIAS.get(mode, DEFAULT_AI_BIAS)
        x, y = int(free_x * bias_x), int(free_y * bias_y)
    else:
        horizontal = {"left": 0, "right": free_x}
        vertical = {"top": 0, "bottom": free_y}
        parts = mode.split("-")
        x = next((horizontal[p] for p in parts if p in horizontal), free_x // 2)
        y = next((vertical[p] for p in parts if p in vertical), free_y // 2)

    return CropRect(max(0, min(x, free_x)), max(0, min(y, free_y)), crop_w, crop_h)


def center_on_detection(rect: CropRect, detection: Detection, src_w: int, src_h: int) -> CropRect:
    """Move a crop window so it is centred on a detection, clamped to the source."""
    cx, cy = detection.center
    x = round(cx - rect.width / 2)
    y = round(cy - rect.height / 2)
    x = max(0, min(x, src_w - rect.width))
    y = max(0, min(y, src_h - rect.height))
    return CropRect(x, y, rect.width, rect.height)


def best_detection(detections: List[Detection], threshold: float) -> Optional[Detection]:
    """Most confident detection strictly above the threshold"""
    candidates = [d for d in detections if d.confidence > threshold]
    if not candidates:
        return None
    return max(candidates, key=lambda d: (d.confidence, d.area))


def content_preservation(rect: CropRect, detections: List[Detection]) -> Optional[float]:
    """Percentage of the detected subject area that lies inside the crop."""
    total = sum(d.area for d in detections)
    if not total:
        return None
    kept = sum(rect.intersection(d) for d in detections)
    return round(100.0 * kept / total, 1)
