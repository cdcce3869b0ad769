"""Shared fixtures: an in-memory Spotify account double, environments backed
by temporary token files, and a Flask client wired to test services."""

from pathlib import Path
from typing import Dict, List

import pytest

from homehub.api import spotify as spotify_api
from homehub.app import create_app
from homehub.config_schema import (GatewayConfig, LampConfig, MachineConfig,
                                   SpotifyEnvironmentConfig)
from homehub.core.environment import Environment
from homehub.core.models import (Device, PlaybackContext, PlaybackSnapshot,
                                 Tokens, Track, UserQueue)
from homehub.core.registry import EnvironmentRegistry
from homehub.core.token_store import TokenStore
from homehub.errors import AuthError
from homehub.services.lamp_service import LampService
from homehub.services.launcher_service import LauncherService
from homehub.services.machine_service import MachineService
from homehub.services.service_manager import (ServiceManager,
                                              set_service_manager)
from homehub.services.spotify_service import SpotifyService

MUTATIONS = ("start_playback", "pause_playback", "set_volume", "set_shuffle", "set_repeat")


class FakeSpotify:
    """Stands in for ``homehub.api.spotify``.

    State is keyed by access token; tokens are ``<client_id>-token`` so each
    environment sees its own account. Every call is recorded in ``calls``.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.devices: Dict[str, List[Device]] = {}
        self.playback: Dict[str, PlaybackSnapshot] = {}
        self.queues: Dict[str, UserQueue] = {}
        self.playlists: Dict[str, List[Track]] = {}
        self.albums: Dict[str, List[Track]] = {}
        self.failures: Dict[str, Exception] = {}
        self.rejected_refresh_tokens = set()

    def install(self, monkeypatch) -> "FakeSpotify":
        for name in (
            "refresh_access_token", "exchange_code", "get_devices",
            "get_current_playback", "get_user_queue", "get_playlist_track_total",
            "get_playlist_tracks", "get_album_tracks",
        ) + MUTATIONS:
            monkeypatch.setattr(spotify_api, name, getattr(self, name))
        return self

    def _record(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def mutations(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def calls_to(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    # OAuth
    def refresh_access_token(self, client_id, client_secret, refresh_token, *, timeout=10.0):
        self._record("refresh_access_token", client_id)
        if refresh_token in self.rejected_refresh_tokens:
            raise AuthError("Token refresh failed: bad response (400)")
        return f"{client_id}-token"

    def exchange_code(self, client_id, client_secret, callback_uri, code, *, timeout=10.0):
        self._record("exchange_code", client_id, code)
        return Tokens(access_token=f"{client_id}-token", refresh_token=f"{client_id}-refresh-{code}")

    # Player state
    def get_devices(self, token):
        self._record("get_devices", token)
        return [Device(**vars(device)) for device in self.devices.get(token, [])]

    def get_current_playback(self, token):
        self._record("get_current_playback", token)
        return self.playback.get(token, PlaybackSnapshot())

    def get_user_queue(self, token):
        self._record("get_user_queue", token)
        return self.queues.get(token, UserQueue())

    # Commands
    def start_playback(self, token, device_id=None, body=None):
        self._record("start_playback", token, device_id, body)
        return 204

    def pause_playback(self, token, device_id=None):
        self._record("pause_playback", token, device_id)
        return 204

    def set_volume(self, token, volume_percent, device_id=None):
        self._record("set_volume", token, volume_percent, device_id)
        return 204

    def set_shuffle(self, token, state, device_id=None):
        self._record("set_shuffle", token, state, device_id)
        return 204

    def set_repeat(self, token, state, device_id=None):
        self._record("set_repeat", token, state, device_id)
        return 204

    # Listings
    def get_playlist_track_total(self, token, playlist_id):
        self._record("get_playlist_track_total", token, playlist_id)
        return len(self.playlists.get(playlist_id, []))

    def get_playlist_tracks(self, token, playlist_id, offset=0, limit=100):
        self._record("get_playlist_tracks", token, playlist_id, offset)
        tracks = self.playlists.get(playlist_id, [])
        return tracks[offset:offset + limit], offset + limit < len(tracks)

    def get_album_tracks(self, token, album_id, offset=0, limit=50):
        self._record("get_album_tracks", token, album_id, offset)
        tracks = self.albums.get(album_id, [])
        return tracks[offset:offset + limit], offset + limit < len(tracks)


def token_for(env: Environment) -> str:
    return f"{env.client_id}-token"


def playing_snapshot(
    *,
    track_name: str = "Song A",
    track_uri: str = "spotify:track:a",
    progress_ms: int = 42000,
    context_uri: str = "",
    device: Device = None,
    is_playing: bool = True,
) -> PlaybackSnapshot:
    return PlaybackSnapshot(
        track=Track(type="track", name=track_name, uri=track_uri, duration_ms=180000),
        progress_ms=progress_ms,
        context=PlaybackContext(type="playlist" if context_uri else "", uri=context_uri),
        device=device,
        is_playing=is_playing,
    )


class ImmediateTasks:
    """Background task double that records submissions and runs them on demand."""

    def __init__(self):
        self.submitted = []
        self.scheduled = []
        self.pending = 0

    def submit_after(self, delay_seconds, action, name="delayed"):
        self.submitted.append((delay_seconds, action, name))
        return len(self.submitted)

    def schedule_at(self, epoch_millis, action, name="scheduled"):
        self.scheduled.append((epoch_millis, action, name))
        return len(self.scheduled)

    def run_all(self):
        for _delay, action, _name in self.submitted:
            action()

    def shutdown(self, timeout=2.0):
        pass


@pytest.fixture
def fake_spotify(monkeypatch):
    return FakeSpotify().install(monkeypatch)


@pytest.fixture
def tokens_dir(tmp_path) -> Path:
    path = tmp_path / "tokens"
    path.mkdir()
    return path


@pytest.fixture
def make_env(tokens_dir):
    """Factory for environments with a temporary token file."""

    def _make(name="home", devices=("librespot",), logged_in=True, client_id=None):
        client_id = client_id or f"{name}-client"
        tokens_path = tokens_dir / f".tokens-{name}.txt"
        if logged_in:
            TokenStore(tokens_path).write(
                Tokens(access_token=f"{client_id}-token", refresh_token=f"{client_id}-refresh")
            )
        config = SpotifyEnvironmentConfig(
            name=name,
            client_id=client_id,
            client_secret=f"{name}-secret",
            callback_uri=f"http://localhost:8080/spotify/callback?env={name}",
            devices=list(devices),
            tokens_path=str(tokens_path),
        )
        return Environment(config)

    return _make


@pytest.fixture
def home_env(make_env):
    return make_env("home", devices=("librespot",))


@pytest.fixture
def main_env(make_env):
    return make_env("main", devices=("iPhone", "MacBook Air de Richard"))


@pytest.fixture
def registry(home_env, main_env):
    environments = {"home": home_env, "main": main_env}
    return EnvironmentRegistry(factory=lambda name: environments[name])


@pytest.fixture
def gateway_config(tmp_path) -> GatewayConfig:
    return GatewayConfig(
        tokens_dir=str(tmp_path / "tokens"),
        post_play_delay=0,
        tailscale_api_key="ts-key",
        machines=[
            MachineConfig(
                name="macbook",
                mac_env="MAC_MAC",
                wake_commands=["caffeinate -u -t 1"],
                sleep_commands=["pmset sleepnow"],
                battery_commands=["pmset -g batt"],
            )
        ],
        jn_path=str(tmp_path / "bin" / "jn"),
        jn_log_path=str(tmp_path / "jn.log"),
        neospeller_path=str(tmp_path / "bin" / "neospeller"),
    )


@pytest.fixture
def tasks():
    return ImmediateTasks()


@pytest.fixture
def spotify_service(gateway_config, registry, tasks):
    service = SpotifyService(gateway_config, registry=registry, tasks=tasks)
    service.initialize()
    return service


@pytest.fixture
def app(gateway_config, spotify_service):
    manager = ServiceManager(
        services={
            "spotify": spotify_service,
            "machines": MachineService(gateway_config, ssh=lambda user, host, command: "", runner=lambda argv, **kw: ""),
            "launcher": LauncherService(gateway_config, runner=lambda argv, **kw: "", stop_wait=0),
            "lamp": LampService(LampConfig()),
        }
    )
    app = create_app(manager, configure_logging=False)
    app.config["TESTING"] = True
    yield app
    set_service_manager(None)


@pytest.fixture
def client(app):
    return app.test_client()


def assert_api_envelope(response, expected_success: bool = True):
    """Validate the standard envelope and return its payload."""
    payload = response.get_json()
    assert isinstance(payload, dict), "Response payload must be a JSON object"
    assert payload.get("success") is expected_success
    assert payload.get("timestamp", "").endswith("Z")
    assert payload.get("request_id")
    assert response.headers.get("X-Request-ID") == payload["request_id"]
    if not expected_success:
        assert payload.get("message")
        assert payload.get("error_code")
    return payload


