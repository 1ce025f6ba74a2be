import pytest
from unittest.mock import Mock, AsyncMock

from imagepipe.config import PipelineConfig, ConfigService
from imagepipe.core.models import SubjectImage, Capabilities
from imagepipe.worker.backend import OperationFailed, Detection, StaticCapabilityProbe


class FakeBackend:
    """Raster backend that records calls and returns tagged bytes."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def _check(self, op):
        if self.fail_on == op:
            raise OperationFailed(f"{op} not supported")

    async def resize(self, image, width, height, algorithm):
        self._check("resize")
        self.calls.append(("resize", width, height, algorithm))
        return f"resized:{width}x{height}".encode()

    async def crop(self, image, x, y, width, height):
        self._check("crop")
        self.calls.append(("crop", x, y, width, height))
        return f"cropped:{x},{y},{width}x{height}".encode()

    async def encode(self, image, format, quality):
        self._check("encode")
        self.calls.append(("encode", format, quality))
        return f"encoded:{format}:{quality}".encode()

    def ops(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def pipeline_config():
    """Default pipeline limits."""
    return PipelineConfig()


@pytest.fixture
def landscape_image():
    """A 1920x1080 opaque JPEG."""
    return SubjectImage(width=1920, height=1080, format="image/jpeg", name="landscape")


@pytest.fixture
def square_image():
    """A 1024x1024 PNG with transparency."""
    return SubjectImage(width=1024, height=1024, format="image/png", has_transparency=True, name="logo")


@pytest.fixture
def tiny_image():
    """A 100x80 PNG."""
    return SubjectImage(width=100, height=80, format="image/png", name="tiny")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_backend():
    """Factory for backends that fail on a given operation."""
    return FakeBackend


@pytest.fixture
def full_capabilities():
    return Capabilities(
        face_detection=True,
        object_detection=True,
        saliency_detection=True,
        entropy_detection=True,
    )


@pytest.fixture
def mock_probe(full_capabilities):
    """Create a mock capability probe."""
    probe = Mock(spec=StaticCapabilityProbe)
    probe.detect_capabilities = AsyncMock(return_value=full_capabilities)
    return probe


@pytest.fixture
def mock_detector():
    """Create a mock subject detector reporting one face on the right side."""
    detector = Mock()
    detector.detect = AsyncMock(return_value=[
        Detection(x=1500, y=200, width=200, height=200, confidence=92, label="face"),
        Detection(x=100, y=100, width=50, height=50, confidence=30, label="face"),
    ])
    return detector


@pytest.fixture
def temp_config_path(tmp_path):
    return tmp_path / "config" / "imagepipe.json"


@pytest.fixture
def config_service(temp_config_path, monkeypatch):
    """Config service backed by a temporary file, with no env overrides."""
    for key in (
        "IMAGEPIPE_MAX_DIMENSION",
        "IMAGEPIPE_MIN_DIMENSION",
        "IMAGEPIPE_MAX_CROP_SIZE",
        "IMAGEPIPE_MAX_FILENAME_LENGTH",
        "IMAGEPIPE_MAX_BATCH_SIZE",
        "IMAGEPIPE_DEFAULT_TASK_NAME",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return ConfigService(str(temp_config_path))
