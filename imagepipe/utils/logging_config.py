"""Logging setup shared by the imagepipe API and worker"""

import os
import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024


def _rotating_handler(path: Path, level: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def setup_logging(service_name: str = "imagepipe") -> None:
    """
    Configure the root logger.

    LOG_LEVEL sets the console level. When LOG_DIR is set, ``<service>.log``
    (everything) and ``<service>_errors.log`` are written there as well.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, log_level, logging.INFO))
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating_handler(log_path / f"{service_name}.log", logging.DEBUG, 5))
        root_logger.addHandler(_rotating_handler(log_path / f"{service_name}_errors.log", logging.ERROR, 3))

    # request lines from uvicorn drown out pipeline logs
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured for {service_name} (level {log_level}, files: {log_dir or 'off'})"
    )
