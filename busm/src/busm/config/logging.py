"""Logging configuration for BUSM."""

import logging
import sys
from pathlib import Path
from typing import List, Optional
from .settings import get_settings

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
) -> None:
    """
    Install handlers on the `busm` logger, replacing any from an earlier call.

    Settings supply the level and log file when the arguments are omitted.
    Console output goes to stderr.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for file logging
        format_string: Optional custom format string
    """
    settings = get_settings()
    numeric_level = getattr(logging, (level or settings.log_level).upper())
    log_file_path = log_file or settings.log_file
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, encoding="utf-8"))

    busm_logger = logging.getLogger("busm")
    busm_logger.setLevel(numeric_level)
    busm_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        busm_logger.addHandler(handler)
    busm_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Logger under the `busm` namespace, setting up handlers on first use."""
    if not logging.getLogger("busm").handlers:
        setup_logging()

    if name.startswith("busm"):
        return logging.getLogger(name)
    return logging.getLogger(f"busm.{name}")
