# wheelflow/utils/logger.py
"""
Project logger.

All modules log to children of the "wheelflow" logger. Output goes to stdout
and, when a log directory is given, to a rotating ``wheel.log`` there (the
file name the git backend ignores, so a project directory can hold it).
"""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "wheelflow"
LOG_FILENAME = "wheel.log"

_FMT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_COLORS = (
    (logging.ERROR, "\033[91m"),    # red
    (logging.WARNING, "\033[93m"),  # yellow
    (logging.INFO, "\033[92m"),     # green
)


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' -> logging.DEBUG; unknown or empty names give default."""
    if not name:
        return default
    lvl = logging.getLevelName(str(name).upper())
    return lvl if isinstance(lvl, int) else default


def _env_level() -> int:
    return level_from_name(os.getenv("WHEELFLOW_LOG_LEVEL") or os.getenv("LOG_LEVEL"))


class _ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not sys.stdout.isatty():
            return base
        for threshold, color in _COLORS:
            if record.levelno >= threshold:
                return f"{color}{base}\033[0m"
        return base


def _file_handler(log_dir: str | Path, max_mb: int, backup: int) -> RotatingFileHandler:
    d = Path(log_dir)
    d.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(
        filename=str(d / LOG_FILENAME),
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup,
        encoding="utf-8",
    )
    fh.setFormatter(logging.Formatter(fmt=_FMT, datefmt=_DATEFMT))
    return fh


def init_logger(
    level: int | None = None,
    log_dir: str | Path | None = None,
    file_max_mb: int = 8,
    file_backup: int = 5,
) -> logging.Logger:
    """
    (Re)configure the project logger:
      - colored stream handler to stdout
      - rotating ``wheel.log`` in log_dir, if given
    Level defaults to WHEELFLOW_LOG_LEVEL (or LOG_LEVEL), else INFO.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level())

    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(_ColorFormatter(fmt=_FMT, datefmt=_DATEFMT))
    logger.addHandler(sh)

    if log_dir:
        logger.addHandler(_file_handler(log_dir, file_max_mb, file_backup))
    return logger


log = init_logger()


def get_logger(child: str) -> logging.Logger:
    """wheelflow.<child>"""
    return logging.getLogger(ROOT_LOGGER).getChild(child)
