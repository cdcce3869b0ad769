"""
🎵 Spotify Routes Blueprint
Login/callback, device listing, playback control, playlists, timers and
playback transfer across environments.

Every route except login/callback first resolves the target environment
(``env``, then ``device_name``, then ``from``) and refreshes its token.
"""

import logging

from flask import Blueprint, g, redirect, request

from ..errors import GatewayError
from ..services.service_manager import get_service
from ..utils.validation import InputValidator
from .helpers import (api_error_handler, gateway_error_response,
                      service_response)

spotify_bp = Blueprint("spotify", __name__, url_prefix="/spotify")
logger = logging.getLogger(__name__)

_UNRESOLVED_ENDPOINTS = {"spotify.login", "spotify.callback"}
DEFAULT_PLAYLIST_VOLUME = 80


@spotify_bp.before_request
def resolve_environment():
    """Pick the environment for this request and refresh its token."""
    if request.endpoint in _UNRESOLVED_ENDPOINTS:
        return None
    try:
        env_name = InputValidator.validate_environment(request.args.get("env")).unwrap()
        device_name = InputValidator.validate_device_name(request.args.get("device_name")).unwrap()
        from_name = InputValidator.validate_device_name(request.args.get("from"), "from").unwrap()
        g.environment = get_service("spotify").prepare_request(env_name, device_name, from_name)
    except GatewayError as e:
        logger.warning(
            "spotify.request.unresolved",
            extra={"endpoint": request.endpoint, "error_code": e.error_code, "error": e.message},
        )
        return gateway_error_response(e)
    return None


@spotify_bp.route("/login")
@api_error_handler
def login():
    result = get_service("spotify").login_url(request.args.get("env"))
    if not result.success:
        return service_response(result)
    return redirect(result.data["url"], code=307)


@spotify_bp.route("/callback")
@api_error_handler
def callback():
    result = get_service("spotify").complete_login(request.args.get("code"))
    return service_response(result)


@spotify_bp.route("/devices")
@api_error_handler
def devices():
    return service_response(get_service("spotify").list_devices(g.environment))


@spotify_bp.route("/play")
@api_error_handler
def play():
    result = get_service("spotify").play(g.environment, request.args.get("device_name"))
    return service_response(result)


@spotify_bp.route("/pause")
@api_error_handler
def pause():
    result = get_service("spotify").pause(g.environment, request.args.get("device_name"))
    return service_response(result)


@spotify_bp.route("/playlist")
@api_error_handler
def playlist():
    uri = InputValidator.validate_context_uri(request.args.get("uri")).unwrap()
    volume = InputValidator.validate_volume(request.args.get("volume", DEFAULT_PLAYLIST_VOLUME)).unwrap()
    result = get_service("spotify").play_playlist(
        g.environment,
        uri,
        volume,
        request.args.get("device_name"),
    )
    return service_response(result)


@spotify_bp.route("/volume")
@api_error_handler
def volume():
    percentage = InputValidator.validate_volume(request.args.get("percentage"), "percentage").unwrap()
    result = get_service("spotify").set_volume(g.environment, percentage, request.args.get("device_name"))
    return service_response(result)


@spotify_bp.route("/schedule")
@api_error_handler
def schedule():
    time_millis = InputValidator.validate_epoch_millis(request.args.get("time_millis")).unwrap()
    result = get_service("spotify").schedule(g.environment, request.args.get("action"), time_millis)
    return service_response(result)


@spotify_bp.route("/transfer")
@api_error_handler
def transfer():
    result = get_service("spotify").transfer(request.args.get("from"), request.args.get("to"))
    return service_response(result)
