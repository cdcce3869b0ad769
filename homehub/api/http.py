"""Shared HTTP session for every outbound call (Spotify, Tailscale).

Retries cover transient failures (connection errors, 429 and 5xx) with
exponential backoff and ``Retry-After``; every request gets a bounded
(connect, read) timeout unless the caller passes one.
"""

import logging
import os
import platform
from threading import RLock
from typing import Any, Optional, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from ..version import get_app_info

TimeoutValue = Union[float, Tuple[float, float]]

_LOGGER = logging.getLogger("spotify.http")
_SESSION_LOCK = RLock()
_SESSION: Optional[requests.Session] = None

RETRY_STATUSES = (429, 500, 502, 503, 504)
MIN_CONNECT_TIMEOUT = 0.5
MIN_READ_TIMEOUT = 1.0


def _env_number(name: str, default, cast=float, minimum=None):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        _LOGGER.warning("http.config.invalid", extra={"variable": name, "value": raw})
        return default
    return value if minimum is None else max(minimum, value)


DEFAULT_TIMEOUT: Tuple[float, float] = (
    _env_number("HOMEHUB_HTTP_CONNECT_TIMEOUT", 4.0, minimum=MIN_CONNECT_TIMEOUT),
    _env_number("HOMEHUB_HTTP_READ_TIMEOUT", 15.0, minimum=MIN_READ_TIMEOUT),
)


def normalize_timeout(value: Optional[TimeoutValue]) -> Tuple[float, float]:
    """``None`` → default; a number applies to both phases; tuples are clamped."""
    if value is None:
        return DEFAULT_TIMEOUT
    if isinstance(value, tuple):
        if len(value) != 2:
            raise ValueError("Timeout tuples must be (connect, read)")
        connect, read = value
    else:
        connect = read = value
    return max(MIN_CONNECT_TIMEOUT, float(connect)), max(MIN_READ_TIMEOUT, float(read))


def _build_retry_configuration() -> Retry:
    return Retry(
        total=_env_number("HOMEHUB_HTTP_RETRY_TOTAL", 3, cast=int),
        connect=_env_number("HOMEHUB_HTTP_RETRY_CONNECT", 2, cast=int),
        read=_env_number("HOMEHUB_HTTP_RETRY_READ", 2, cast=int),
        backoff_factor=_env_number("HOMEHUB_HTTP_BACKOFF_FACTOR", 0.5, minimum=0.0),
        status_forcelist=list(RETRY_STATUSES),
        allowed_methods=["GET", "POST", "PUT"],
        respect_retry_after_header=True,
        raise_on_status=False,
    )


class GatewaySession(requests.Session):
    """``requests.Session`` that never sends a request without a timeout."""

    def request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        try:
            kwargs["timeout"] = normalize_timeout(kwargs.get("timeout"))
        except (TypeError, ValueError):
            kwargs["timeout"] = DEFAULT_TIMEOUT
        return super().request(method, url, *args, **kwargs)


def build_session() -> requests.Session:
    """Create a session with the retrying adapter mounted for http and https."""
    session = GatewaySession()
    adapter = HTTPAdapter(
        max_retries=_build_retry_configuration(),
        pool_connections=_env_number("HOMEHUB_HTTP_POOL_CONNECTIONS", 4, cast=int),
        pool_maxsize=_env_number("HOMEHUB_HTTP_POOL_MAXSIZE", 8, cast=int),
    )
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    session.headers.update({
        "Accept": "application/json",
        "User-Agent": f"{get_app_info()} (Python {platform.python_version()}; Requests {requests.__version__})",
    })
    _LOGGER.debug(
        "http.session.configured",
        extra={"timeout_connect": DEFAULT_TIMEOUT[0], "timeout_read": DEFAULT_TIMEOUT[1]},
    )
    return session


def get_http_session() -> requests.Session:
    """Return the shared HTTP session, creating it if necessary."""
    global _SESSION
    with _SESSION_LOCK:
        if _SESSION is None:
            _SESSION = build_session()
        return _SESSION


def set_http_session(session: Optional[requests.Session]) -> None:
    """Override the shared HTTP session (tests install fakes here)."""
    global _SESSION
    with _SESSION_LOCK:
        _SESSION = session


__all__ = ["DEFAULT_TIMEOUT", "GatewaySession", "build_session", "get_http_session", "normalize_timeout", "set_http_session"]
