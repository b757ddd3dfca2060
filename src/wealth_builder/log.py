"""Logger setup shared by the scripts and the library."""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "wealth_builder"
LEVEL_ENV_FLAG = "WEALTH_BUILDER_LOG_LEVEL"
CONSOLE_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

def _resolve_level(level: Union[int, str, None]) -> int:
    env_level = os.environ.get(LEVEL_ENV_FLAG)
    if env_level:
        level = env_level
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO

def setup_logging(
    level: Union[int, str, None] = None,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = 1_048_576,
    backup_count: int = 3,
) -> logging.Logger:
    """Configure the package logger; safe to call more than once.

    The environment variable ``WEALTH_BUILDER_LOG_LEVEL`` wins over ``level``.
    A rotating file handler is attached only when ``log_file`` is given.
    """
    resolved = _resolve_level(level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolved)

    console = [h for h in logger.handlers if getattr(h, "_wb_console", False)]
    if console:
        console[0].setLevel(resolved)
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handler.setLevel(resolved)
        handler._wb_console = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        existing = [
            h for h in logger.handlers
            if isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == path.resolve()
        ]
        if not existing:
            fh = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
            fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
            fh.setLevel(resolved)
            logger.addHandler(fh)
    return logger

def get_logger(name: str) -> logging.Logger:
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
