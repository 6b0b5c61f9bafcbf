"""File logging for the terminal app.

The Textual UI owns stdout/stderr, so log records go to a file instead.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pdv.config import LOG_LEVEL, LOG_PATH

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_file_logging(path: str | None = None, level: str | None = None) -> logging.Handler | None:
    """Attach a file handler to the ``pdv`` logger; returns None if the file cannot be opened."""
    log_path = Path(path or LOG_PATH)
    lvl = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    root = logging.getLogger("pdv")
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        # Logging must never interfere with app flow.
        return None
    handler.setFormatter(logging.Formatter(_FORMAT))
    for existing in list(root.handlers):
        if isinstance(existing, logging.FileHandler):
            root.removeHandler(existing)
            existing.close()
    root.addHandler(handler)
    root.setLevel(lvl)
    return handler
