"""
🖥️ Management Routes Blueprint
Machine wake/sleep/battery, Just-Notify, grammar review and the lamp.
"""

from flask import Blueprint, request

from ..services.service_manager import get_service
from .helpers import api_error_handler, service_response

manage_bp = Blueprint("manage", __name__, url_prefix="/manage")


@manage_bp.route("/wake")
@api_error_handler
def wake():
    return service_response(get_service("machines").wake(request.args.get("name")))


@manage_bp.route("/sleep")
@api_error_handler
def sleep():
    return service_response(get_service("machines").sleep(request.args.get("name")))


@manage_bp.route("/battery")
@api_error_handler
def battery():
    return service_response(get_service("machines").battery(request.args.get("name")))


@manage_bp.route("/jn", methods=["POST"])
@api_error_handler
def launch_jn():
    payload = request.get_json(silent=True)
    return service_response(get_service("launcher").launch_jn(payload))


@manage_bp.route("/jn/stop")
@api_error_handler
def stop_jn():
    return service_response(get_service("launcher").stop_jn(request.args.get("category")))


@manage_bp.route("/grammar", methods=["POST"])
@api_error_handler
def review_grammar():
    payload = request.get_json(silent=True)
    return service_response(get_service("launcher").review_grammar(payload))


@manage_bp.route("/lamp", methods=["GET", "POST"])
@api_error_handler
def toggle_lamp():
    return service_response(get_service("lamp").toggle())
