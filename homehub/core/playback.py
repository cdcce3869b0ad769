"""
Playback commands scoped to a resolved environment and device.

Primary commands (play, pause, volume, playlist start) raise on failure.
Secondary effects (volume preset, shuffle, repeat) are best-effort: they log
and report ``False`` instead of raising.
"""

import logging
import random
from typing import Any, Dict, Optional

from ..api import spotify as spotify_api
from ..constants import REPEAT_STATES
from ..errors import GatewayError, InvalidArgumentError, UnsupportedError
from ..utils.validation import parse_playlist_id
from .devices import resolve_device
from .environment import Environment
from .models import Device
from .scheduler import BackgroundTasks

logger = logging.getLogger("spotify.playback")


def choose_start_offset(total_tracks: int, rng: Optional[random.Random] = None) -> Optional[int]:
    """Uniform random track index in ``[0, total_tracks)``; ``None`` for an empty playlist."""
    if total_tracks <= 0:
        return None
    return (rng or random).randrange(total_tracks)


class PlaybackController:
    """Play/pause/volume/playlist commands for one environment at a time."""

    def __init__(
        self,
        tasks: BackgroundTasks,
        *,
        post_play_delay: float = 5.0,
        rng: Optional[random.Random] = None,
    ):
        self.tasks = tasks
        self.post_play_delay = post_play_delay
        self._rng = rng or random.Random()

    def play(self, env: Environment, device_name: Optional[str] = None) -> Device:
        device = resolve_device(env, device_name)
        spotify_api.start_playback(env.access_token, device.id or None)
        logger.info("playback.play", extra={"env": env.name, "device": device.name})
        return device

    def pause(self, env: Environment, device_name: Optional[str] = None) -> Device:
        device = resolve_device(env, device_name)
        spotify_api.pause_playback(env.access_token, device.id or None)
        logger.info("playback.pause", extra={"env": env.name, "device": device.name})
        return device

    def set_volume(self, env: Environment, percent: int, device_name: Optional[str] = None) -> Device:
        """Set the volume of the target device.

        Raises:
            InvalidArgumentError: If ``percent`` is outside 0-100
            UnsupportedError: If the device cannot report/accept volume
        """
        if not 0 <= int(percent) <= 100:
            raise InvalidArgumentError("volume must be between 0 and 100")
        device = resolve_device(env, device_name)
        if not device.supports_volume:
            raise UnsupportedError(
                f"Device '{device.name}' does not support volume control",
                data={"device": device.name},
            )
        spotify_api.set_volume(env.access_token, int(percent), device.id or None)
        device.volume_percent = int(percent)
        logger.info("playback.volume", extra={"env": env.name, "device": device.name, "volume": int(percent)})
        return device

    def play_playlist(
        self,
        env: Environment,
        context_uri: str,
        volume_percent: Optional[int] = None,
        device_name: Optional[str] = None,
        offset: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Start a playlist at a random track, then enable shuffle and repeat.

        Shuffle and repeat follow after ``post_play_delay`` seconds on a
        background task; their failures are only logged.
        """
        playlist_id = parse_playlist_id(context_uri)
        device = resolve_device(env, device_name)

        body: Dict[str, Any] = {"context_uri": context_uri, "position_ms": 0}
        total = None
        if offset is None:
            total = spotify_api.get_playlist_track_total(env.access_token, playlist_id)
            offset = choose_start_offset(total, self._rng)
        if offset is not None:
            body["offset"] = {"position": offset}

        if volume_percent is not None:
            self._apply_volume(env, device, volume_percent)

        spotify_api.start_playback(env.access_token, device.id or None, body)
        logger.info(
            "playback.playlist.started",
            extra={"env": env.name, "device": device.name, "uri": context_uri, "offset": offset, "total": total},
        )

        device_id = device.id or None
        self.tasks.submit_after(
            self.post_play_delay,
            lambda: self._post_play_effects(env, device_id),
            name="post-play",
        )
        return {"device": device.to_dict(), "offset": offset, "track_total": total}

    def _apply_volume(self, env: Environment, device: Device, volume_percent: int) -> bool:
        if not device.supports_volume:
            logger.info("playback.volume.skipped", extra={"env": env.name, "device": device.name})
            return False
        try:
            spotify_api.set_volume(env.access_token, int(volume_percent), device.id or None)
        except GatewayError as exc:
            logger.warning("playback.volume.failed", extra={"env": env.name, "error": exc.message})
            return False
        device.volume_percent = int(volume_percent)
        return True

    def _post_play_effects(self, env: Environment, device_id: Optional[str]) -> None:
        self.toggle_shuffle(env, True, device_id)
        self.enable_repeat(env, "context", device_id)

    def toggle_shuffle(self, env: Environment, on: bool, device_id: Optional[str] = None) -> bool:
        try:
            spotify_api.set_shuffle(env.access_token, on, device_id)
        except GatewayError as exc:
            logger.warning("playback.shuffle.failed", extra={"env": env.name, "error": exc.message})
            return False
        logger.debug("playback.shuffle", extra={"env": env.name, "state": on})
        return True

    def enable_repeat(self, env: Environment, state: str = "context", device_id: Optional[str] = None) -> bool:
        if state not in REPEAT_STATES:
            logger.warning("playback.repeat.invalid_state", extra={"env": env.name, "state": state})
            return False
        try:
            spotify_api.set_repeat(env.access_token, state, device_id)
        except GatewayError as exc:
            logger.warning("playback.repeat.failed", extra={"env": env.name, "error": exc.message})
            return False
        logger.debug("playback.repeat", extra={"env": env.name, "state": state})
        return True
