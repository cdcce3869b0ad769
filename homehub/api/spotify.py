#!/usr/bin/env python3
"""
🎵 Spotify Web API calls used by the gateway
- OAuth authorize URL, code exchange and token refresh
- Device list, player state and user queue
- Play / pause / volume / shuffle / repeat commands
- Playlist and album track listings

Every function takes the bearer token of the environment it acts for; token
lifetime is managed by ``core.environment``.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import requests

from ..constants import (AUTHORIZE_ENDPOINT, CURRENT_PLAYBACK_ENDPOINT,
                         DEVICES_ENDPOINT, OAUTH_SCOPES, PAUSE_ENDPOINT,
                         PLAY_ENDPOINT, REPEAT_ENDPOINT, SHUFFLE_ENDPOINT,
                         SPOTIFY_API_BASE, TOKEN_ENDPOINT, USER_QUEUE_ENDPOINT,
                         VOLUME_ENDPOINT)
from ..core.models import Device, PlaybackSnapshot, Tokens, Track, UserQueue
from ..errors import APIError, AuthError
from .http import get_http_session

logger = logging.getLogger('spotify')

# Statuses Spotify uses for a command that was taken on board. 202 is the
# documented "accepted" answer; the player endpoints currently reply 204
# (and occasionally 200), so all three count as success.
COMMAND_OK = (200, 202, 204)


def _spotify_request(
    method: str,
    url: str,
    *,
    token: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    headers = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if json is not None:
        headers["Content-Type"] = "application/json"

    request_params: Dict[str, Any] = {
        "headers": headers,
        "params": params,
        "json": json,
        "data": data,
    }
    if timeout is not None:
        request_params["timeout"] = timeout

    try:
        resp = get_http_session().request(method.upper(), url, **request_params)
    except requests.exceptions.RequestException as exc:
        logger.warning(
            "spotify.request.error",
            extra={"method": method.upper(), "url": url, "error": exc.__class__.__name__},
        )
        raise APIError(f"Request to Spotify failed: {exc}", body=str(exc)) from exc

    logger.debug(
        "spotify.request",
        extra={"method": method.upper(), "url": url, "status": resp.status_code},
    )
    return resp


def _expect(resp: requests.Response, ok_statuses: Tuple[int, ...], action: str) -> requests.Response:
    if resp.status_code not in ok_statuses:
        raise APIError(
            f"{action} failed ({resp.status_code})",
            status_code=resp.status_code,
            body=resp.text,
        )
    return resp


def _json_or_none(resp: requests.Response, action: str) -> Optional[Dict[str, Any]]:
    """Decode a 200 body; 204 (no active player) yields ``None``."""
    if resp.status_code == 204:
        return None
    _expect(resp, (200,), action)
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise APIError(f"{action} returned invalid JSON", status_code=resp.status_code, body=resp.text) from exc


def _device_params(device_id: Optional[str]) -> Optional[Dict[str, str]]:
    return {"device_id": device_id} if device_id else None


# 🔑 OAuth
def build_authorize_url(client_id: str, callback_uri: str, scopes=OAUTH_SCOPES) -> str:
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": callback_uri,
        "scope": " ".join(scopes),
    }
    return f"{AUTHORIZE_ENDPOINT}?{urlencode(params)}"


def _token_request(form: Dict[str, str], timeout: float, action: str) -> Dict[str, Any]:
    try:
        resp = _spotify_request('POST', TOKEN_ENDPOINT, data=form, timeout=timeout)
    except APIError as exc:
        raise AuthError(f"{action}: {exc.message}", data=exc.data) from exc

    if resp.status_code != 200:
        raise AuthError(
            f"{action}: bad response ({resp.status_code})",
            data={"status": resp.status_code, "body": resp.text},
        )
    try:
        payload = resp.json()
    except ValueError as exc:
        raise AuthError(f"{action}: invalid token response") from exc
    if not payload.get("access_token"):
        raise AuthError(f"{action}: no access token in response")
    return payload


def exchange_code(client_id: str, client_secret: str, callback_uri: str, code: str, *, timeout: float = 10.0) -> Tokens:
    """Trade an authorization code for the first token pair."""
    payload = _token_request(
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": callback_uri,
            "client_id": client_id,
            "client_secret": client_secret,
        },
        timeout,
        "Token exchange failed",
    )
    return Tokens(
        access_token=payload["access_token"],
        refresh_token=payload.get("refresh_token") or "",
    )


def refresh_access_token(client_id: str, client_secret: str, refresh_token: str, *, timeout: float = 10.0) -> str:
    """Return a fresh access token. The refresh token is not rotated."""
    payload = _token_request(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        },
        timeout,
        "Token refresh failed",
    )
    return payload["access_token"]


# 📱 Player state
def get_devices(token: str) -> List[Device]:
    """Live device list of the account behind ``token``."""
    resp = _spotify_request('GET', DEVICES_ENDPOINT, token=token)
    payload = _json_or_none(resp, "Fetching devices") or {}
    devices = [Device.from_api(item) for item in payload.get("devices", [])]
    logger.debug("spotify.devices", extra={"names": [d.name for d in devices]})
    return devices


def get_current_playback(token: str) -> PlaybackSnapshot:
    resp = _spotify_request('GET', CURRENT_PLAYBACK_ENDPOINT, token=token)
    return PlaybackSnapshot.from_api(_json_or_none(resp, "Fetching playback"))


def get_user_queue(token: str) -> UserQueue:
    resp = _spotify_request('GET', USER_QUEUE_ENDPOINT, token=token)
    return UserQueue.from_api(_json_or_none(resp, "Fetching queue"))


# ▶️ Commands
def start_playback(token: str, device_id: Optional[str] = None, body: Optional[Dict[str, Any]] = None) -> int:
    """Start/resume playback, optionally with a context or URI list body.

    Returns:
        int: The accepted status code

    Raises:
        APIError: If Spotify did not accept the command
    """
    resp = _spotify_request('PUT', PLAY_ENDPOINT, token=token, params=_device_params(device_id), json=body)
    _expect(resp, COMMAND_OK, "Starting playback")
    return resp.status_code


def pause_playback(token: str, device_id: Optional[str] = None) -> int:
    body = {"device_id": device_id} if device_id else None
    resp = _spotify_request('PUT', PAUSE_ENDPOINT, token=token, params=_device_params(device_id), json=body)
    _expect(resp, COMMAND_OK, "Pausing playback")
    return resp.status_code


def set_volume(token: str, volume_percent: int, device_id: Optional[str] = None) -> int:
    params: Dict[str, Any] = {"volume_percent": int(volume_percent)}
    if device_id:
        params["device_id"] = device_id
    resp = _spotify_request('PUT', VOLUME_ENDPOINT, token=token, params=params)
    _expect(resp, COMMAND_OK, "Setting volume")
    return resp.status_code


def set_shuffle(token: str, state: bool, device_id: Optional[str] = None) -> int:
    params: Dict[str, Any] = {"state": "true" if state else "false"}
    if device_id:
        params["device_id"] = device_id
    resp = _spotify_request('PUT', SHUFFLE_ENDPOINT, token=token, params=params)
    _expect(resp, COMMAND_OK, "Setting shuffle")
    return resp.status_code


def set_repeat(token: str, state: str, device_id: Optional[str] = None) -> int:
    params: Dict[str, Any] = {"state": state}
    if device_id:
        params["device_id"] = device_id
    resp = _spotify_request('PUT', REPEAT_ENDPOINT, token=token, params=params)
    _expect(resp, COMMAND_OK, "Setting repeat")
    return resp.status_code


# 📜 Listings
def get_playlist_track_total(token: str, playlist_id: str) -> int:
    resp = _spotify_request(
        'GET',
        f"{SPOTIFY_API_BASE}/playlists/{playlist_id}",
        token=token,
        params={"fields": "tracks.total"},
    )
    payload = _json_or_none(resp, "Fetching playlist") or {}
    return int((payload.get("tracks") or {}).get("total") or 0)


def get_playlist_tracks(token: str, playlist_id: str, offset: int = 0, limit: int = 100) -> Tuple[List[Track], bool]:
    """One page of a playlist. Removed/unavailable entries come back as empty tracks
    so positions stay aligned with the playlist order."""
    resp = _spotify_request(
        'GET',
        f"{SPOTIFY_API_BASE}/playlists/{playlist_id}/tracks",
        token=token,
        params={
            "offset": offset,
            "limit": limit,
            "fields": "items(track(type,name,uri,duration_ms)),next",
        },
    )
    payload = _json_or_none(resp, "Fetching playlist tracks") or {}
    tracks = [Track.from_api(item.get("track")) or Track() for item in payload.get("items", [])]
    return tracks, bool(payload.get("next"))


def get_album_tracks(token: str, album_id: str, offset: int = 0, limit: int = 50) -> Tuple[List[Track], bool]:
    resp = _spotify_request(
        'GET',
        f"{SPOTIFY_API_BASE}/albums/{album_id}/tracks",
        token=token,
        params={"offset": offset, "limit": limit},
    )
    payload = _json_or_none(resp, "Fetching album tracks") or {}
    tracks = [Track.from_api(item) or Track() for item in payload.get("items", [])]
    return tracks, bool(payload.get("next"))


__all__ = [
    "build_authorize_url", "exchange_code", "refresh_access_token",
    "get_devices", "get_current_playback", "get_user_queue",
    "start_playback", "pause_playback", "set_volume", "set_shuffle", "set_repeat",
    "get_playlist_track_total", "get_playlist_tracks", "get_album_tracks",
]
