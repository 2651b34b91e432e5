"""Structured logging configuration.

Every module asks for its logger through `get_logger(__name__)` and logs
key/value events (`collection.loaded`, `storage.corrupt_file`, ...).
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

_configured = False


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to `name`.

    The processor chain is installed once per process, unless the host
    application has already configured structlog itself.
    """
    global _configured
    if not _configured and not structlog.is_configured():
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            cache_logger_on_first_use=True,
        )
    _configured = True
    return structlog.get_logger(name)
