"""
🛠️ Route Helpers
Response envelope and error mapping shared by every blueprint.

Every JSON answer has the shape::

    {"success": bool, "timestamp": "...Z", "request_id": "<uuid4>",
     "message": str?, "data": any?, "error_code": str?}

with the request id and timestamp repeated in ``X-Request-ID`` and
``X-Response-Timestamp``.
"""

import datetime
import logging
import uuid
from functools import wraps
from typing import Any, Callable, Dict, Optional

from flask import Response, jsonify

from ..errors import (APIError, AuthError, CommandError, ConfigurationError,
                      GatewayError, InvalidArgumentError, NotFoundError,
                      TransferError, UnsupportedError, ValidationError)
from ..services import ServiceResult

logger = logging.getLogger(__name__)

# error_code → HTTP status, derived from the error classes themselves
ERROR_STATUS: Dict[str, int] = {
    error.error_code: error.status
    for error in (
        ConfigurationError, AuthError, NotFoundError, ValidationError, InvalidArgumentError,
        UnsupportedError, APIError, TransferError, CommandError,
    )
}


def _utc_timestamp() -> str:
    now = datetime.datetime.now(tz=datetime.timezone.utc)
    return now.isoformat(timespec="microseconds").replace("+00:00", "Z")


def api_response(
    success: bool,
    *,
    data: Optional[Any] = None,
    message: str = "",
    status: int = 200,
    error_code: Optional[str] = None
) -> Response:
    """Build the envelope response with its correlation headers."""
    envelope: Dict[str, Any] = {
        "success": success,
        "timestamp": _utc_timestamp(),
        "request_id": str(uuid.uuid4()),
    }
    optional = (("message", message), ("data", data), ("error_code", error_code))
    envelope.update({key: value for key, value in optional if value not in (None, "")})

    response = jsonify(envelope)
    response.status_code = status
    response.headers["X-Request-ID"] = envelope["request_id"]
    response.headers["X-Response-Timestamp"] = envelope["timestamp"]
    return response


def api_error(
    message: str,
    *,
    status: int = 400,
    error_code: Optional[str] = None,
    data: Optional[Any] = None,
) -> Response:
    return api_response(False, data=data, message=message, status=status, error_code=error_code)


def gateway_error_response(error: GatewayError) -> Response:
    return api_error(error.message, status=error.status, error_code=error.error_code, data=error.data)


def service_response(result: ServiceResult) -> Response:
    """Envelope for a ``ServiceResult``; unknown error codes answer 500."""
    if result.success:
        return api_response(True, data=result.data, message=result.message or "")

    error_code = result.error_code or "operation_failed"
    return api_error(
        result.message or "Operation failed",
        status=ERROR_STATUS.get(error_code, 500),
        error_code=error_code,
        data=result.data,
    )


def api_error_handler(func: Callable) -> Callable:
    """Keep exceptions escaping a view inside the envelope.

    ``GatewayError`` keeps its own status; anything else is logged with a
    traceback and answered as a 500 ``unhandled_exception``.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GatewayError as e:
            logger.warning(f"{func.__name__} failed: {e.message}", extra={"error_code": e.error_code})
            return gateway_error_response(e)
        except Exception:
            logger.exception(f"Error in {func.__name__}")
            return api_error("An internal error occurred", status=500, error_code="unhandled_exception")
    return wrapper
