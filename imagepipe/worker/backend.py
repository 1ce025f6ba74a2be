"""
Interfaces the executor consumes: the raster backend that does the pixel
work, the capability probe and the optional subject detector.
"""
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from ..core.models import Capabilities


class OperationFailed(Exception):
    """Raised by a raster backend when an operation cannot be performed"""

    def __init__(self, reason: str, step_order: Optional[int] = None, processor: Optional[str] = None):
        self.reason = reason
        self.step_order = step_order
        self.processor = processor
        super().__init__(reason)

    def __str__(self):
        if self.step_order is not None:
            return f"Step {self.step_order} ({self.processor}) failed: {self.reason}"
        return self.reason


class RasterBackend(Protocol):
    """Pixel operations. Implementations raise OperationFailed on failure."""

    async def resize(self, image: Any, width: int, height: int, algorithm: str) -> Any:
        ...

    async def crop(self, image: Any, x: int, y: int, width: int, height: int) -> Any:
        ...

    async def encode(self, image: Any, format: str, quality: int) -> bytes:
        ...


class CapabilityProbe(Protocol):
    async def detect_capabilities(self) -> Capabilities:
        ...


@dataclass
class Detection:
    """A detected subject in source-image pixel coordinates."""
    x: int
    y: int
    width: int
    height: int
    confidence: float               # 0-100
    label: str = "subject"

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def area(self) -> int:
        return self.width * self.height


class SubjectDetector(Protocol):
    async def detect(self, image: Any, width: int, height: int, mode: str,
                     objects: List[str]) -> List[Detection]:
        ...


class StaticCapabilityProbe:
    """Probe that reports a fixed set of capabilities"""

    def __init__(self, capabilities: Optional[Capabilities] = None):
        self.capabilities = capabilities or Capabilities()

    async def detect_capabilities(self) -> Capabilities:
        return self.capabilities
