"""
Error taxonomy shared by services and blueprints.

Every error carries the HTTP status and the ``error_code`` the API envelope
reports, so services can turn them into ``ServiceResult`` objects without a
lookup table per call site.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for errors surfaced to API callers."""

    status = 500
    error_code = "internal_error"

    def __init__(self, message: str, *, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data


class ConfigurationError(GatewayError):
    """Required configuration is missing or malformed."""

    status = 500
    error_code = "configuration_error"


class AuthError(GatewayError):
    """Token refresh failed or no tokens are stored for an environment."""

    status = 401
    error_code = "auth_required"


class NotFoundError(GatewayError):
    status = 404
    error_code = "not_found"


class ValidationError(GatewayError):
    """Missing or malformed request parameters."""

    status = 400
    error_code = "validation_error"


class InvalidArgumentError(ValidationError):
    error_code = "invalid_argument"


class UnsupportedError(GatewayError):
    """The target device cannot perform the requested operation."""

    status = 409
    error_code = "unsupported"


class APIError(GatewayError):
    """Spotify answered with an unexpected status."""

    status = 502
    error_code = "spotify_api_error"

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message, data={"status": status_code, "body": body})
        self.status_code = status_code
        self.body = body


class TransferError(GatewayError):
    status = 502
    error_code = "transfer_failed"


class CommandError(GatewayError):
    """A local or remote shell command failed."""

    status = 500
    error_code = "command_failed"


__all__ = [
    "GatewayError",
    "ConfigurationError",
    "AuthError",
    "NotFoundError",
    "ValidationError",
    "InvalidArgumentError",
    "UnsupportedError",
    "APIError",
    "TransferError",
    "CommandError",
]
