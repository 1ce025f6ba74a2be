import os
import json
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional
import logging
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PipelineConfig(BaseModel):
    # Dimension limits
    max_dimension: Optional[int] = 10000     # None disables the large-dimension warning
    min_dimension: int = 10
    max_crop_size: int = 10000

    # Naming
    max_filename_length: int = 255

    # Batching
    max_batch_size: int = 50

    # Tasks
    default_task_name: str = "Untitled Task"

    # Logging
    log_level: str = "INFO"


def _parse_optional_int(value: str) -> Optional[int]:
    if value.strip().lower() in ("", "none", "null", "off"):
        return None
    return int(value)


class ConfigService:
    def __init__(self, config_path: Optional[str] = None):
        path = config_path or os.getenv("IMAGEPIPE_CONFIG_PATH")
        self.config_path: Optional[Path] = Path(path) if path else None
        self.config: PipelineConfig = PipelineConfig()
        self._lock = None

    async def load_config(self) -> PipelineConfig:
        """Load configuration from file and environment variables"""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self.config_path and self.config_path.exists():
                try:
                    with open(self.config_path, 'r') as f:
                        data = json.load(f)
                    self.config = PipelineConfig(**data)
                    logger.info(f"Loaded config from {self.config_path}")
                except (OSError, ValueError) as e:
                    logger.error(f"Failed to load config: {e}")

            self._apply_env_overrides()
            return self.config

    async def _save_config_unlocked(self) -> None:
        """Save config without acquiring lock (internal use only)"""
        if not self.config_path:
            return
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                json.dump(self.config.model_dump(), f, indent=2, default=str)
            logger.info(f"Saved config to {self.config_path}")
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    async def save_config(self) -> None:
        """Save current configuration to file"""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            await self._save_config_unlocked()

    async def update_config(self, updates: Dict[str, Any]) -> PipelineConfig:
        """Update configuration with new values"""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            merged = {**self.config.model_dump(), **{k: v for k, v in updates.items() if k in PipelineConfig.model_fields}}
            self.config = PipelineConfig(**merged)
            await self._save_config_unlocked()
            return self.config

    def _apply_env_overrides(self):
        """Apply environment variable overrides to config"""
        env_mapping = {
            "IMAGEPIPE_MAX_DIMENSION": ("max_dimension", _parse_optional_int),
            "IMAGEPIPE_MIN_DIMENSION": ("min_dimension", int),
            "IMAGEPIPE_MAX_CROP_SIZE": ("max_crop_size", int),
            "IMAGEPIPE_MAX_FILENAME_LENGTH": ("max_filename_length", int),
            "IMAGEPIPE_MAX_BATCH_SIZE": ("max_batch_size", int),
            "IMAGEPIPE_DEFAULT_TASK_NAME": "default_task_name",
            "LOG_LEVEL": ("log_level", lambda x: x.upper()),
        }

        for env_key, config_key in env_mapping.items():
            env_value = os.getenv(env_key)
            if env_value is not None:
                if isinstance(config_key, tuple):
                    attr_name, converter = config_key
                    try:
                        setattr(self.config, attr_name, converter(env_value))
                    except ValueError as e:
                        logger.warning(f"Failed to convert env var {env_key}: {e}")
                else:
                    setattr(self.config, config_key, env_value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key"""
        return getattr(self.config, key, default)

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration as dictionary"""
        return self.config.model_dump()


config_service = ConfigService()
