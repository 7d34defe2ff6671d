"""Logging helpers for the collector sink."""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int | None = None, log_paths: list[str] | None = None) -> None:
    """Configure default logging if no handlers are present."""
    root = logging.getLogger()
    if root.handlers:
        return
    if level is None:
        level = logging.getLevelName((os.getenv("COLLECTOR_SINK_LOG_LEVEL") or "INFO").strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    handlers = None
    if log_paths:
        handlers = [logging.StreamHandler()]
        for entry in log_paths:
            path = Path(entry)
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(path, encoding="utf-8"))
    kwargs = {
        "level": level,
        "format": LOG_FORMAT,
        "datefmt": "%Y-%m-%d %H:%M:%S",
    }
    if handlers:
        kwargs["handlers"] = handlers
    logging.basicConfig(**kwargs)
