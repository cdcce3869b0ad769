"""
🏗️ Service Layer
================

Services sit between the core modules and the Flask blueprints. They never
raise to their callers: every operation returns a ``ServiceResult`` whose
``error_code`` the blueprints map onto an HTTP status.
"""

import logging
from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..errors import GatewayError


@dataclass
class ServiceResult:
    """Outcome of one service operation."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "timestamp": self.timestamp.isoformat()}
        for key in ("data", "message", "error_code"):
            value = getattr(self, key)
            if value is not None and value != "":
                result[key] = value
        return result


class BaseService(ABC):
    """Common lifecycle and error handling for gateway services."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"service.{name}")
        self._initialized = False

    def initialize(self) -> ServiceResult:
        self._initialized = True
        self.logger.info(f"🔧 {self.name} service initialized")
        return self._success_result(message=f"{self.name} service initialized successfully")

    def health_check(self) -> ServiceResult:
        """Subclasses extend this with their own checks."""
        if not self._initialized:
            return self._error_result(f"{self.name} service not initialized", error_code="not_initialized")
        return self._success_result(data={"status": "healthy", "service": self.name})

    def _handle_error(self, error: Exception, operation: str) -> ServiceResult:
        """Turn an exception raised inside ``operation`` into a failed result.

        ``GatewayError`` keeps its code and payload and is logged as a
        warning; anything else is unexpected and logged with its traceback.
        """
        if isinstance(error, GatewayError):
            self.logger.warning(
                f"{self.name}.{operation} failed: {error.message}",
                extra={"error_code": error.error_code},
            )
            return self._error_result(error.message, error_code=error.error_code, data=error.data)

        message = f"Error in {self.name}.{operation}: {error}"
        self.logger.error(message, exc_info=True)
        return self._error_result(message, error_code="operation_failed")

    def _success_result(self, data: Any = None, message: Optional[str] = None) -> ServiceResult:
        return ServiceResult(success=True, data=data, message=message)

    def _error_result(self, message: str, error_code: str = "error", data: Any = None) -> ServiceResult:
        return ServiceResult(success=False, data=data, message=message, error_code=error_code)
