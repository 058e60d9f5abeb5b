"""Logging helpers shared by the app modules."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured
    root = logging.getLogger()
    if not _configured:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        # httpx logs every request at INFO, which includes the weather API key.
        logging.getLogger("httpx").setLevel(logging.WARNING)
        _configured = True
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
