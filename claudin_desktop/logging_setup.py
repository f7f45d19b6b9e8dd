"""Logging configuration shared by the CLI and the desktop shell."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "launcher.log"


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Log to stderr and, when given, to ``log_file`` as well.

    A windowed desktop build has no console, so the file is where launch
    failures end up.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as exc:
            logging.getLogger(__name__).warning(
                "Cannot write log file %s: %s", log_file, exc
            )

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True,
    )
