"""Process-wide logging setup.

File handler logs at the configured level; the console only shows
WARNING and above unless configured otherwise.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from odyssea.shared.core.configuration import LoggingConfig

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "google",
    "google.auth",
    "google.api_core",
    "grpc",
)


def _level(name: str, default: int) -> int:
    return _LEVELS.get(name.upper(), default)


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Install file and console handlers on the root logger.

    Calling it twice replaces the handlers instead of duplicating them.

    Args:
        config: Logging section of the system configuration

    Returns:
        The configured root logger
    """
    config = config or LoggingConfig()
    file_level = _level(config.level, logging.INFO)
    console_level = _level(config.console_level, logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(file_level, console_level))
    root_logger.handlers.clear()

    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    ))
    root_logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: file={config.file}, console={logging.getLevelName(console_level)}+"
    )
    return root_logger
