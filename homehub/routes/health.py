"""
🩺 Health Routes Blueprint
Liveness and per-service health checks.
"""

from flask import Blueprint, jsonify

from ..services.service_manager import get_service_manager
from ..version import VERSION
from .helpers import api_error_handler, service_response

health_bp = Blueprint("health", __name__)


@health_bp.route("/healthz")
def healthz():
    """Basic liveness endpoint."""
    return jsonify({"ok": True, "version": str(VERSION)})


@health_bp.route("/health")
@api_error_handler
def health():
    """Health of every service, in the standard envelope."""
    result = get_service_manager().health_check_all()
    return service_response(result)
