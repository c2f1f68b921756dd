"""Process-wide logging configuration."""

from __future__ import annotations

import logging

from webprobe.config import settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Attach a console handler to the ``webprobe`` logger.

    Safe to call more than once; the handler is only installed the first time.
    """
    logger = logging.getLogger("webprobe")
    logger.setLevel((level or settings.log_level).upper())

    if logger.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
