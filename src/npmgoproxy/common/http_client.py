"""Shared HTTP helpers used by the registry client and tarball fetcher.

Encapsulates timeout and connection error handling so callers only ever see
``UpstreamError`` for transport problems. Every request carries an explicit
timeout; nothing here blocks indefinitely on an unresponsive upstream.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

import requests

from ..constants import Constants
from ..exceptions import UpstreamError
from .logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def safe_get(
    url: str,
    *,
    context: str,
    timeout: Optional[float] = None,
    retries: int = 0,
    session: Optional[requests.Session] = None,
    **kwargs: Any,
) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        url: Target URL.
        context: Human-readable source tag for logs (e.g., "npm", "tarball").
        timeout: Seconds before the request is abandoned.
        retries: Extra attempts after a timeout or connection error, with
            exponential backoff. Responses are never retried, whatever the status.
        session: Optional ``requests.Session`` to issue the request on.
        **kwargs: Passed through to ``requests.get``.

    Returns:
        requests.Response: The HTTP response object.

    Raises:
        UpstreamError: On timeout or connection failure after all attempts.
    """
    effective_timeout = timeout if timeout is not None else Constants.REQUEST_TIMEOUT
    getter = session.get if session is not None else requests.get
    safe_target = safe_url(url)
    last_error = ""

    for attempt in range(retries + 1):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action="GET",
                        target=safe_target,
                        context=context,
                        attempt=attempt + 1,
                    ),
                )
            try:
                res = getter(url, timeout=effective_timeout, **kwargs)
            except requests.Timeout:
                last_error = f"timed out after {effective_timeout} seconds"
                logger.warning("%s request to %s %s", context, safe_target, last_error)
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_error = f"connection error: {exc}"
                logger.warning("%s request to %s failed: %s", context, safe_target, exc)
                continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
        return res

    raise UpstreamError(f"{context} request {last_error}")
