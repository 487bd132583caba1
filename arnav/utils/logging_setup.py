from __future__ import annotations

import logging
import logging.handlers
import os
from typing import Mapping, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Library loggers that flood the console at the navigator's level.
DEFAULT_LOGGER_LEVELS = {"urllib3": "WARNING"}


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    level: str = "INFO",
    to_file: bool = True,
    log_dir: Optional[str] = None,
    filename: str = "arnav.log",
    logger_levels: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Configure root logger with console and optional RotatingFileHandler.

    Args:
        level: Log level name (e.g., "DEBUG", "INFO").
        to_file: If True, write logs to <log_dir>/<filename> with rotation.
        log_dir: Directory for log files; defaults to ./logs.
        filename: Name of the rotating log file.
        logger_levels: Per-logger level overrides, e.g. ``{"arnav.anchors": "DEBUG"}``.
            Merged over :data:`DEFAULT_LOGGER_LEVELS`.

    Returns:
        Path of the log file, or None when logging to console only.
    """
    lvl = _level(level)
    root = logging.getLogger()
    root.setLevel(lvl)

    # Replace handlers so repeated setup (tests, re-entry) does not duplicate output
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    for name, name_level in {**DEFAULT_LOGGER_LEVELS, **(logger_levels or {})}.items():
        logging.getLogger(name).setLevel(_level(name_level))

    if not to_file:
        return None
    log_dir = log_dir or os.path.join(os.getcwd(), "logs")
    os.makedirs(log_dir, exist_ok=True)
    path = os.path.join(log_dir, filename)
    fh = logging.handlers.RotatingFileHandler(path, maxBytes=2 * 1024 * 1024, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)
    return path
