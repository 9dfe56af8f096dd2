"""Logging helpers: root configuration, structured extras and timing."""

from __future__ import annotations

import logging
import os
import re
import time
import urllib.parse
from typing import Any, Dict, Optional

from ..constants import Constants

_SECRET_QUERY_KEYS = re.compile(r"(token|auth|key|secret|password)", re.IGNORECASE)


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    The level comes from ``level`` or the ``NPMGOPROXY_LOG_LEVEL`` environment
    variable, defaulting to INFO. Calling this more than once is harmless.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(h, "_npmgoproxy", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        handler._npmgoproxy = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` payload, dropping empty fields."""
    return {k: v for k, v in fields.items() if v is not None}


def redact(value: str) -> str:
    """Replace a secret value with a fixed marker."""
    return "[REDACTED]" if value else value


def safe_url(url: str) -> str:
    """Strip credentials and secret-looking query values from a URL for logs."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "[REDACTED]@" + netloc.rsplit("@", 1)[1]
    query = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
    cleaned = [
        (k, redact(v) if _SECRET_QUERY_KEYS.search(k) else v) for k, v in query
    ]
    return urllib.parse.urlunsplit(
        (parts.scheme, netloc, parts.path, urllib.parse.urlencode(cleaned), parts.fragment)
    )


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, measured to now if still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
