# Logger helpers shared by the CLI and the GUI launcher.
from __future__ import annotations

import logging
from pathlib import Path

ROOT_LOGGER_NAME = "cardstamp"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_log_file_path: Path | None = None


def get_logger(name: str | None = None) -> logging.Logger:
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level: str = "info") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def setup_file_logging(log_dir: Path, level: str = "info") -> Path | None:
    """Attach a file handler to the package logger; used by the windowed launcher."""
    global _log_file_path
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    path = log_dir / "cardstamp.log"
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger = get_logger()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _log_file_path = path
    return path


def get_log_file_path() -> Path | None:
    return _log_file_path
