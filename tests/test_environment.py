"""Environment token lifecycle and the registry that owns environments."""

import pytest

from homehub.config import load_environment_config, reload_config
from homehub.core.models import Device
from homehub.core.registry import EnvironmentRegistry
from homehub.core.token_store import TokenStore
from homehub.errors import (AuthError, ConfigurationError, NotFoundError,
                            ValidationError)

from conftest import token_for


class TestEnvironmentTokens:
    def test_refresh_keeps_refresh_token_and_persists(self, fake_spotify, home_env):
        new_access = home_env.refresh()

        assert new_access == token_for(home_env)
        stored = TokenStore(home_env.token_store.path).read()
        assert stored.access_token == new_access
        assert stored.refresh_token == "home-client-refresh"

    def test_refresh_without_tokens_raises_auth_error(self, fake_spotify, make_env):
        env = make_env("home", logged_in=False)

        with pytest.raises(AuthError):
            env.refresh()
        assert fake_spotify.calls == []

    def test_refresh_picks_up_tokens_written_after_startup(self, fake_spotify, make_env):
        env = make_env("home", logged_in=False)
        make_env("home", logged_in=True)

        assert env.refresh() == "home-client-token"

    def test_rejected_refresh_propagates(self, fake_spotify, home_env):
        fake_spotify.rejected_refresh_tokens.add("home-client-refresh")

        with pytest.raises(AuthError):
            home_env.refresh()

    def test_access_token_requires_login(self, make_env):
        env = make_env("main", logged_in=False)
        with pytest.raises(AuthError):
            env.access_token

    def test_complete_login_stores_new_pair(self, fake_spotify, make_env):
        env = make_env("main", logged_in=False)

        env.complete_login("abc")

        stored = TokenStore(env.token_store.path).read()
        assert stored.refresh_token == "main-client-refresh-abc"
        assert env.access_token == "main-client-token"

    def test_default_device_is_first_configured(self, main_env):
        assert main_env.default_device.name == "iPhone"
        assert main_env.has_device("MacBook Air de Richard")
        assert not main_env.has_device("librespot")


class TestEnvironmentConfig:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch, tmp_path):
        for prefix in ("HOME", "MAIN"):
            for suffix in ("CLIENT_ID", "CLIENT_SECRET", "CALLBACK_URI", "DEVICES"):
                monkeypatch.delenv(f"{prefix}_SP_{suffix}", raising=False)
        monkeypatch.setenv("HOMEHUB_TOKENS_DIR", str(tmp_path))
        reload_config()
        yield
        monkeypatch.delenv("HOMEHUB_TOKENS_DIR", raising=False)
        reload_config()

    def test_missing_credentials_are_listed(self, monkeypatch):
        monkeypatch.setenv("HOME_SP_CLIENT_ID", "id")

        with pytest.raises(ConfigurationError) as excinfo:
            load_environment_config("home")

        assert excinfo.value.data["missing"] == ["HOME_SP_CALLBACK_URI", "HOME_SP_CLIENT_SECRET"]

    def test_unknown_environment_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            load_environment_config("office")

    def test_devices_default_per_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MAIN_SP_CLIENT_ID", "id")
        monkeypatch.setenv("MAIN_SP_CLIENT_SECRET", "secret")
        monkeypatch.setenv("MAIN_SP_CALLBACK_URI", "http://localhost/cb")

        config = load_environment_config("main")

        assert config.devices == ["iPhone", "MacBook Air de Richard"]
        assert config.tokens_path == str(tmp_path / ".tokens-main.txt")

    def test_device_list_from_environment(self, monkeypatch):
        monkeypatch.setenv("HOME_SP_CLIENT_ID", "id")
        monkeypatch.setenv("HOME_SP_CLIENT_SECRET", "secret")
        monkeypatch.setenv("HOME_SP_CALLBACK_URI", "http://localhost/cb")
        monkeypatch.setenv("HOME_SP_DEVICES", "kitchen, ,bedroom")

        assert load_environment_config("home").devices == ["kitchen", "bedroom"]

    def test_one_unconfigured_environment_does_not_block_the_other(self, monkeypatch):
        monkeypatch.setenv("HOME_SP_CLIENT_ID", "id")
        monkeypatch.setenv("HOME_SP_CLIENT_SECRET", "secret")
        monkeypatch.setenv("HOME_SP_CALLBACK_URI", "http://localhost/cb")

        registry = EnvironmentRegistry()

        assert registry.initialize() == ["home"]
        assert "main" in registry.failures
        assert registry.get("home").name == "home"
        with pytest.raises(ConfigurationError):
            registry.get("main")


class TestRegistry:
    def test_get_builds_each_environment_once(self, make_env):
        built = []

        def factory(name):
            built.append(name)
            return make_env(name)

        registry = EnvironmentRegistry(factory=factory)

        first = registry.get("home")
        second = registry.get("home")

        assert first is second
        assert built == ["home"]

    def test_resolve_explicit_name_wins(self, registry):
        env = registry.resolve("main", device_name="librespot")
        assert env.name == "main"
        assert registry.current is env

    def test_resolve_by_device_name(self, registry):
        assert registry.resolve(device_name="iPhone").name == "main"

    def test_resolve_by_transfer_source(self, registry):
        assert registry.resolve(from_name="librespot").name == "home"

    def test_resolve_falls_back_to_current_then_home(self, registry):
        assert registry.resolve().name == "home"

        registry.resolve("main")
        assert registry.resolve().name == "main"

    def test_unknown_device_is_not_found(self, registry):
        with pytest.raises(NotFoundError):
            registry.resolve(device_name="Toaster")

    def test_find_by_device_fetches_when_no_static_list(self, fake_spotify, make_env):
        home = make_env("home", devices=())
        main = make_env("main", devices=("iPhone",))
        fake_spotify.devices[token_for(home)] = [Device(name="Kitchen", id="k1")]
        registry = EnvironmentRegistry(factory={"home": home, "main": main}.__getitem__)

        assert registry.find_by_device("Kitchen") is home
        assert home.has_device("Kitchen")
