"""Logging setup shared by the API app factory and the CLI."""

from __future__ import annotations

import logging

from webaudit.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Attach a single stream handler to the ``webaudit`` logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("webaudit")
    logger.setLevel((level or settings.log_level).upper())
    if not any(getattr(h, "_webaudit", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._webaudit = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
