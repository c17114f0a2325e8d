"""Logging configuration utilities for zagi."""

import logging
import os
from typing import Optional

_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure application-wide logging once.

    Command output goes to stdout, so the default level stays at WARNING and
    records are written to stderr.
    """
    if logging.getLogger().handlers:
        return

    log_level = level or os.getenv("ZAGI_LOG_LEVEL") or os.getenv("LOG_LEVEL", "WARNING")
    logging.basicConfig(level=log_level.upper(), format=_LOG_FORMAT)
