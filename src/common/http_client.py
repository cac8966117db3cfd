"""Shared HTTP helpers used by the registry clients.

Encapsulates request/timeout error handling so callers see a single
``FetchError`` for every transport failure instead of ``requests`` exceptions.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.errors import FetchError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def safe_get(
    url: str,
    *,
    context: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        url: Target URL.
        context: Package name the request is made for; used in logs and errors.
        session: Optional session to reuse connections.
        timeout: Seconds before giving up; defaults to ``Constants.REQUEST_TIMEOUT``.
        **kwargs: Passed through to ``requests.get``.

    Raises:
        FetchError: on timeout or any other transport failure.
    """
    safe_target = safe_url(url)
    effective_timeout = Constants.REQUEST_TIMEOUT if timeout is None else timeout
    getter = session.get if session is not None else requests.get
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
                ),
            )
        try:
            res = getter(url, timeout=effective_timeout, **kwargs)
        except requests.Timeout as exc:
            logger.error(
                "%s request timed out after %s seconds",
                context,
                effective_timeout,
            )
            raise FetchError(context, f"timed out after {effective_timeout} seconds") from exc
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error: %s", context, exc)
            raise FetchError(context, f"connection error: {exc}") from exc
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


def get_json(
    url: str,
    *,
    context: str,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any,
) -> Tuple[int, Optional[Any]]:
    """Perform a GET request and parse the JSON body of a 200 response.

    Returns:
        Tuple of (status_code, parsed_json_or_none). The body is only parsed
        for status 200; undecodable JSON yields None.
    """
    res = safe_get(url, context=context, headers=headers, **kwargs)
    if res.status_code != 200:
        return res.status_code, None
    try:
        return res.status_code, json.loads(res.text)
    except json.JSONDecodeError:
        if is_debug_enabled(logger):
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="json_decode_error",
                    target=safe_url(url),
                ),
            )
        return res.status_code, None
