"""Centralized logging helpers.

Every module logs through ``logging.getLogger(__name__)``; this module owns
root configuration plus the small helpers used to attach structured context
to DEBUG traces without leaking credentials.
"""
from __future__ import annotations

import logging
import os
import re
import sys
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from constants import Constants

_SENSITIVE_KEYS = ("token", "access_token", "private_token", "key", "secret", "password")
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE)


def configure_logging(log_file: Optional[str] = None) -> None:
    """Configure the root logger from the NIXDRAFT_LOG_LEVEL environment variable.

    Args:
        log_file: Optional path; when given, a file handler is added with a
            timestamped format.
    """
    level_name = os.environ.get(Constants.LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(stream)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        root.addHandler(file_handler)

    root.setLevel(level)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra=`` mapping for structured log records.

    None values are dropped so formatters never see placeholder keys.
    """
    return {key: value for key, value in fields.items() if value is not None}


def redact(text: str) -> str:
    """Mask bearer tokens in free text."""
    return _BEARER_RE.sub(r"\1***", text)


def safe_url(url: str) -> str:
    """Return ``url`` with credentials and sensitive query values masked."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "***@" + netloc.split("@", 1)[1]
    query = urlencode(
        [
            (k, "***" if k.lower() in _SENSITIVE_KEYS else v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
        ],
        safe="/",
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.monotonic()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)
