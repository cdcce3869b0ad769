#!/usr/bin/env python3
"""
Werkzeug request handler for the debug server.

Phones and laptops on the LAN probe ``https://`` against the plain HTTP
port; the default handler then logs raw TLS bytes. Those request lines are
collapsed into a single debug message here.
"""

from __future__ import annotations

import logging
import string
from typing import Any

from werkzeug.serving import WSGIRequestHandler

_LOGGER = logging.getLogger("http.debug")
_PRINTABLE = frozenset(string.printable)


def is_binary_line(line: Any) -> bool:
    """True when the first bytes of a request line are not printable text."""
    if isinstance(line, bytes):
        line = line.decode("latin1", "ignore")
    if not isinstance(line, str) or not line:
        return False
    return any(ch not in _PRINTABLE for ch in line[:16])


def printable(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if is_binary_line(value):
        return "<binary request line>"
    return "".join(ch if ch in _PRINTABLE else "?" for ch in value)


class TidyRequestHandler(WSGIRequestHandler):
    """Request handler that swallows TLS probes instead of logging their bytes."""

    def handle(self) -> None:
        try:
            super().handle()
        except ValueError:
            if not is_binary_line(getattr(self, "requestline", "")):
                raise
            _LOGGER.debug("http.tls_probe", extra={"client": self.address_string()})
            self.close_connection = True

    def log_request(self, code: int | str = "-", size: int | str = "-") -> None:
        if is_binary_line(self.requestline):
            _LOGGER.debug("http.tls_probe", extra={"client": self.address_string(), "code": code})
            return
        super().log_request(code, size)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003 (werkzeug API)
        super().log_message(format, *(printable(arg) for arg in args))


__all__ = ["TidyRequestHandler", "is_binary_line"]
