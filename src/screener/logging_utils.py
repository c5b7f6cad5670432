"""Logging setup for command-line runs.

Library modules only create module-level loggers; handlers are installed
here, once, by the entry point.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "screener",
    level: str = "INFO",
    log_dir: str | Path | None = None,
    console: bool = True,
) -> logging.Logger:
    """Configure a logger with a console handler and an optional daily file handler.

    Calling it again for an already configured logger only updates the level.

    :param name: Logger name (package root by default).
    :param level: Level name such as ``"INFO"`` or ``"DEBUG"``.
    :param log_dir: Directory for ``{name}_{YYYYMMDD}.log``; no file when None.
    :param console: Whether to log to stderr.
    :returns: The configured logger.
    :raises ValueError: If ``level`` is not a logging level name.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(log_path / f"{name}_{today}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
