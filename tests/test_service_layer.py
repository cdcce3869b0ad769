"""Service layer: result objects, error mapping and the Spotify service."""

import logging
import time

import pytest

from homehub.core.models import Device, Track
from homehub.core.registry import EnvironmentRegistry
from homehub.core.scheduler import BackgroundTasks
from homehub.errors import AuthError, NotFoundError
from homehub.services import BaseService, ServiceResult
from homehub.services.service_manager import ServiceManager
from homehub.services.spotify_service import SpotifyService

from conftest import ImmediateTasks, token_for


class TestServiceResult:
    def test_to_dict_skips_empty_fields(self):
        payload = ServiceResult(success=True, data={"a": 1}).to_dict()
        assert payload["success"] is True
        assert payload["data"] == {"a": 1}
        assert "error_code" not in payload

    def test_gateway_errors_keep_their_code(self):
        service = BaseService("sample")
        result = service._handle_error(NotFoundError("gone", data={"id": 1}), "lookup")
        assert (result.success, result.error_code, result.data) == (False, "not_found", {"id": 1})

    def test_unexpected_errors_are_operation_failed(self):
        result = BaseService("sample")._handle_error(RuntimeError("boom"), "lookup")
        assert result.error_code == "operation_failed"


class TestServiceManager:
    def test_uninitialized_service_marks_system_unhealthy(self):
        class Broken(BaseService):
            def initialize(self):
                raise RuntimeError("no hardware")

        manager = ServiceManager(services={"broken": Broken("broken")})
        result = manager.health_check_all()

        assert result.success
        assert result.data["overall_healthy"] is False
        assert result.data["services"]["broken"]["healthy"] is False

    def test_shutdown_stops_background_tasks(self, spotify_service):
        stopped = []
        spotify_service.tasks.shutdown = lambda timeout=2.0: stopped.append(True)

        ServiceManager(services={"spotify": spotify_service}).shutdown()

        assert stopped == [True]


class TestSpotifyService:
    def test_alarm_plays_relax_playlist_on_default_device(self, spotify_service, fake_spotify, home_env, tasks):
        fake_spotify.devices[token_for(home_env)] = [Device(name="librespot", id="lib-1", supports_volume=True)]
        fake_spotify.playlists["0qPA1tBtiCLVHCUfREECnO"] = [Track(name="calm")]

        result = spotify_service.schedule(home_env, "alarm", 4102444800000)
        assert result.success
        (_when, action, name), = tasks.scheduled
        assert name == "alarm"
        fake_spotify.calls.clear()

        action()

        assert fake_spotify.calls[0] == ("refresh_access_token", "home-client")
        assert fake_spotify.calls_to("set_volume") == [("set_volume", token_for(home_env), 60, "lib-1")]
        (_, token, device, body), = fake_spotify.calls_to("start_playback")
        assert (token, device) == (token_for(home_env), "lib-1")
        assert body["context_uri"] == "spotify:playlist:0qPA1tBtiCLVHCUfREECnO"

    def test_sleep_pauses(self, spotify_service, fake_spotify, home_env, tasks):
        fake_spotify.devices[token_for(home_env)] = [Device(name="librespot", id="lib-1", is_active=True)]

        spotify_service.schedule(home_env, "sleep", 4102444800000)
        fake_spotify.calls.clear()
        tasks.scheduled[0][1]()

        assert fake_spotify.calls[0] == ("refresh_access_token", "home-client")
        assert fake_spotify.mutations() == [("pause_playback", token_for(home_env), "lib-1")]

    def test_timer_with_rejected_refresh_token_does_not_play(self, spotify_service, fake_spotify, home_env, tasks):
        fake_spotify.devices[token_for(home_env)] = [Device(name="librespot", id="lib-1", is_active=True)]
        fake_spotify.rejected_refresh_tokens.add("home-client-refresh")

        spotify_service.schedule(home_env, "alarm", 4102444800000)

        with pytest.raises(AuthError):
            tasks.scheduled[0][1]()
        assert fake_spotify.mutations() == []

    def test_failing_timer_is_logged_by_the_scheduler(self, gateway_config, registry, fake_spotify, home_env, caplog):
        fake_spotify.rejected_refresh_tokens.add("home-client-refresh")
        tasks = BackgroundTasks()
        service = SpotifyService(gateway_config, registry=registry, tasks=tasks)
        try:
            deadline = int(time.time() * 1000) + 100
            with caplog.at_level(logging.ERROR, logger="scheduler"):
                service.schedule(home_env, "sleep", deadline)
                time.sleep(0.8)
        finally:
            tasks.shutdown(timeout=1.0)

        assert any(record.getMessage() == "scheduler.task.failed" for record in caplog.records)
        assert fake_spotify.mutations() == []

    def test_past_deadline_is_accepted_but_not_scheduled(self, gateway_config, registry, home_env):
        tasks = BackgroundTasks()
        try:
            service = SpotifyService(gateway_config, registry=registry, tasks=tasks)
            result = service.schedule(home_env, "sleep", 1000)
        finally:
            tasks.shutdown(timeout=1.0)

        assert result.success
        assert result.data["scheduled"] is False

    def test_complete_login_without_chosen_environment(self, spotify_service):
        result = spotify_service.complete_login("code")
        assert result.error_code == "validation_error"

    def test_health_reports_login_state(self, make_env, gateway_config):
        envs = {"home": make_env("home"), "main": make_env("main", logged_in=False)}
        service = SpotifyService(gateway_config, registry=EnvironmentRegistry(factory=envs.__getitem__), tasks=ImmediateTasks())
        service.initialize()

        data = service.health_check().data

        assert data["status"] == "degraded"
        assert data["environments"]["home"]["logged_in"] is True
        assert data["environments"]["main"]["logged_in"] is False
