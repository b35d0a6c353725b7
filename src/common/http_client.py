"""HTTP access for registry fetchers.

Failures never raise: a lookup that cannot be completed yields None (or
False for probes) and the caller leaves the affected field empty.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def _attempt(url: str, headers: Optional[Dict[str, str]], attempt: int) -> Optional[requests.Response]:
    target = safe_url(url)
    with Timer() as t:
        try:
            response = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, headers=headers)
        except requests.RequestException as exc:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request exception",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        action="GET",
                        outcome="timeout" if isinstance(exc, requests.Timeout) else "request_exception",
                        attempt=attempt,
                        target=target
                    )
                )
            return None

    if is_debug_enabled(logger):
        logger.debug(
            "HTTP response",
            extra=extra_context(
                event="http_response",
                component="http_client",
                action="GET",
                status_code=response.status_code,
                duration_ms=t.duration_ms(),
                attempt=attempt,
                target=target
            )
        )
    return response


def registry_get(url: str, *, headers: Optional[Dict[str, str]] = None) -> Optional[requests.Response]:
    """GET ``url``, retrying connection failures and server errors.

    Returns:
        The last response received, or None when no attempt got one.
    """
    response = None
    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        current = _attempt(url, headers, attempt)
        if current is not None:
            response = current
            if current.status_code < 500:
                break
    return response


def fetch_json(url: str, *, headers: Optional[Dict[str, str]] = None) -> Optional[Any]:
    """Decoded JSON body of a 200 response, otherwise None with a warning."""
    response = registry_get(url, headers=headers)
    status_code = response.status_code if response is not None else 0
    parsed = None
    if status_code == 200:
        try:
            parsed = response.json()
        except ValueError:
            logger.debug("Response from %s is not JSON", safe_url(url))

    if parsed is None:
        logger.warning(
            "Failed to fetch %s (status %s)",
            safe_url(url),
            status_code,
            extra=extra_context(
                event="degraded",
                component="http_client",
                action="fetch_json",
                status_code=status_code,
                target=safe_url(url)
            )
        )
    return parsed


def succeeds(url: str, *, headers: Optional[Dict[str, str]] = None) -> bool:
    """True when a GET on ``url`` answers with a 2xx status."""
    response = registry_get(url, headers=headers)
    return response is not None and 200 <= response.status_code < 300
