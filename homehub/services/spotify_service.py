"""
🎵 Spotify Service - Business Logic for Spotify Integration
==========================================================

Coordinates the environment registry, playback controller, transfer engine
and background tasks for the ``/spotify`` blueprint: login, device listing,
play/pause/volume, playlist start, scheduled alarm/sleep and transfers.
"""

from typing import Any, Callable, Dict, Optional

from . import BaseService, ServiceResult
from ..config import load_config
from ..config_schema import GatewayConfig
from ..core.devices import fetch_devices
from ..core.environment import Environment
from ..core.playback import PlaybackController
from ..core.registry import EnvironmentRegistry
from ..core.scheduler import BackgroundTasks
from ..core.transfer import TransferEngine, describe
from ..errors import ValidationError

SCHEDULE_ACTIONS = ("alarm", "sleep")


class SpotifyService(BaseService):
    """Service for multi-environment Spotify control."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        registry: Optional[EnvironmentRegistry] = None,
        tasks: Optional[BackgroundTasks] = None,
    ):
        super().__init__("spotify")
        self.config = config or load_config()
        self.registry = registry or EnvironmentRegistry()
        self.tasks = tasks or BackgroundTasks()
        self.playback = PlaybackController(self.tasks, post_play_delay=self.config.post_play_delay)
        self.transfers = TransferEngine(self.config.hard_transfer_devices)

    def initialize(self) -> ServiceResult:
        loaded = self.registry.initialize()
        self._initialized = True
        failures = self.registry.failures
        if failures:
            self.logger.warning(
                "⚠️ Some Spotify environments are unavailable",
                extra={"failures": failures},
            )
        self.logger.info(f"🔧 {self.name} service initialized", extra={"environments": loaded})
        return self._success_result(
            data={"environments": loaded, "unavailable": sorted(failures)},
            message=f"{self.name} service initialized successfully",
        )

    # 🔑 Request resolution and login
    def prepare_request(
        self,
        env_name: Optional[str] = None,
        device_name: Optional[str] = None,
        from_name: Optional[str] = None,
    ) -> Environment:
        """Resolve the target environment and refresh its token eagerly.

        Raises:
            GatewayError: Resolution or refresh failures, for the blueprint
                to turn into an error response
        """
        env = self.registry.resolve(env_name, device_name, from_name)
        env.refresh()
        return env

    def login_url(self, env_name: Optional[str]) -> ServiceResult:
        try:
            if not env_name:
                raise ValidationError(
                    "You need to pass the account type as a URL argument: env={account type}. "
                    "It should be either home or main."
                )
            env = self.registry.get(env_name)
            self.registry.set_current(env)
            return self._success_result(data={"url": env.authorize_url(), "env": env.name})
        except Exception as e:
            return self._handle_error(e, "login_url")

    def complete_login(self, code: Optional[str]) -> ServiceResult:
        """Exchange the callback code for the environment chosen at login."""
        try:
            env = self.registry.current
            if env is None:
                raise ValidationError("missing spotify account type (home or main); start at /spotify/login")
            if not code:
                raise ValidationError("missing callback code")
            env.complete_login(code)
            return self._success_result(data={"env": env.name}, message="Login ready!")
        except Exception as e:
            return self._handle_error(e, "complete_login")

    # 📱 Devices and playback
    def list_devices(self, env: Environment) -> ServiceResult:
        try:
            devices = fetch_devices(env)
            return self._success_result(
                data={"env": env.name, "devices": [device.to_dict() for device in devices]},
                message=f"Found {len(devices)} Spotify devices",
            )
        except Exception as e:
            return self._handle_error(e, "list_devices")

    def play(self, env: Environment, device_name: Optional[str] = None) -> ServiceResult:
        try:
            device = self.playback.play(env, device_name)
            return self._success_result(data={"device": device.name}, message="Music playing successfully")
        except Exception as e:
            return self._handle_error(e, "play")

    def pause(self, env: Environment, device_name: Optional[str] = None) -> ServiceResult:
        try:
            device = self.playback.pause(env, device_name)
            return self._success_result(data={"device": device.name}, message="Music paused successfully")
        except Exception as e:
            return self._handle_error(e, "pause")

    def set_volume(self, env: Environment, percent: int, device_name: Optional[str] = None) -> ServiceResult:
        try:
            device = self.playback.set_volume(env, percent, device_name)
            return self._success_result(
                data={"device": device.name, "volume": percent},
                message=f"Volume set to {percent}%",
            )
        except Exception as e:
            return self._handle_error(e, "set_volume")

    def play_playlist(
        self,
        env: Environment,
        uri: str,
        volume: int,
        device_name: Optional[str] = None,
    ) -> ServiceResult:
        try:
            if not device_name and env.default_device is not None:
                device_name = env.default_device.name
            started = self.playback.play_playlist(env, uri, volume, device_name)
            return self._success_result(data=started, message="Playlist started successfully")
        except Exception as e:
            return self._handle_error(e, "play_playlist")

    # ⏰ Timers
    def _scheduled_action(self, action: str, env: Environment) -> Callable[[], Any]:
        """Timer body for ``action``; the token is refreshed when it fires.

        A failed refresh raises ``AuthError`` and the scheduler logs it like
        any other task failure.
        """
        def run_alarm():
            env.refresh()
            return self.playback.play_playlist(
                env,
                self.config.alarm_playlist_uri,
                self.config.alarm_volume,
                env.default_device.name if env.default_device else None,
            )

        def run_sleep():
            env.refresh()
            return self.playback.pause(env)

        return run_alarm if action == "alarm" else run_sleep

    def schedule(self, env: Environment, action: Optional[str], time_millis: int) -> ServiceResult:
        """Run ``alarm`` or ``sleep`` on ``env`` at ``time_millis``.

        A deadline in the past is accepted but never fires.
        """
        try:
            if action not in SCHEDULE_ACTIONS:
                raise ValidationError(
                    f"action must be one of {', '.join(SCHEDULE_ACTIONS)}",
                    data={"field": "action"},
                )
            task_id = self.tasks.schedule_at(time_millis, self._scheduled_action(action, env), name=action)
            return self._success_result(
                data={"action": action, "env": env.name, "time_millis": time_millis, "scheduled": task_id is not None},
                message="Schedule set successfully" if task_id is not None else "Schedule time is in the past; ignored",
            )
        except Exception as e:
            return self._handle_error(e, "schedule")

    # 🔀 Transfers
    def transfer(self, from_name: Optional[str], to_name: Optional[str]) -> ServiceResult:
        try:
            if not from_name or not to_name:
                raise ValidationError("from and to are required")
            source = self.registry.find_by_device(from_name)
            destination = self.registry.find_by_device(to_name)
            outcome = self.transfers.transfer(source, destination, to_name, from_name)
            message, data = describe(outcome)
            data.update({"from_env": source.name, "to_env": destination.name})
            return self._success_result(data=data, message=message)
        except Exception as e:
            return self._handle_error(e, "transfer")

    def health_check(self) -> ServiceResult:
        """Report per-environment token state without calling Spotify."""
        base_health = super().health_check()
        if not base_health.success:
            return base_health

        environments: Dict[str, Any] = {}
        for env in self.registry.environments():
            environments[env.name] = {
                "logged_in": env.tokens is not None,
                "devices": [device.name for device in env.devices],
            }
        failures = self.registry.failures
        for name, error in failures.items():
            environments[name] = {"error": error}

        healthy = bool(environments) and all(state.get("logged_in") for state in environments.values())
        return self._success_result(
            data={
                "service": "spotify",
                "status": "healthy" if healthy else "degraded",
                "environments": environments,
                "pending_tasks": self.tasks.pending,
            },
            message="Spotify service health check completed",
        )
