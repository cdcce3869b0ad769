"""
Centralized configuration management for homehub
Reads the process environment (optionally seeded from .env files) and
validates it against the pydantic schema.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError as SchemaValidationError

from .config_schema import (GatewayConfig, SpotifyEnvironmentConfig,
                            validate_config_dict)
from .constants import ENVIRONMENT_NAMES
from .errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)


def _get_app_config_dir() -> str:
    """Get application configuration directory path-agnostically"""
    app_name = os.getenv("HOMEHUB_APP_NAME", "homehub")
    return os.path.expanduser(f"~/.{app_name}")


ENV_PATH = os.path.join(_get_app_config_dir(), ".env")

if os.path.exists(ENV_PATH):
    load_dotenv(dotenv_path=ENV_PATH)
# Project-root .env supplies the rest (common in dev setups)
load_dotenv()

DEFAULT_DEVICES: Dict[str, List[str]] = {
    "home": ["librespot"],
    "main": ["iPhone", "MacBook Air de Richard"],
}

DEFAULT_MACHINES: List[Dict[str, Any]] = [
    {
        "name": "macbook",
        "mac_env": "MAC_MAC",
        "wake_commands": ["caffeinate -u -t 1"],
        "sleep_commands": ["pmset sleepnow"],
        "battery_commands": ["pmset -g batt | grep -o '[0-9]\\+%' | sed 's/%//' "],
    },
    {
        "name": "arch-richard",
        "mac_env": "MAC_ARCH",
        "wake_commands": [
            "DISPLAY=:0 xset dpms 0 0 600",
            "DISPLAY=:0 xset dpms force on",
        ],
        "sleep_commands": [
            "DISPLAY=:0 xset dpms 0 0 5",
            "DISPLAY=:0 i3lock -n -c 000000 >/dev/null 2>&1 &",
        ],
        "battery_commands": ["cat /sys/class/power_supply/BAT1/capacity"],
    },
]


def _split_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def _collect_settings() -> Dict[str, Any]:
    """Map environment variables onto GatewayConfig fields, skipping unset ones."""
    raw: Dict[str, Any] = {
        "host": os.getenv("HOMEHUB_HOST"),
        "port": os.getenv("PORT"),
        "debug": _flag("HOMEHUB_DEBUG"),
        "tokens_dir": os.getenv("HOMEHUB_TOKENS_DIR"),
        "hard_transfer_devices": _split_list(os.getenv("HOMEHUB_HARD_TRANSFER_DEVICES")),
        "alarm_playlist_uri": os.getenv("HOMEHUB_ALARM_PLAYLIST_URI"),
        "alarm_volume": os.getenv("HOMEHUB_ALARM_VOLUME"),
        "post_play_delay": os.getenv("HOMEHUB_POST_PLAY_DELAY"),
        "token_timeout": os.getenv("HOMEHUB_TOKEN_TIMEOUT"),
        "tailscale_api_key": os.getenv("TS_API_KEY"),
        "tailnet": os.getenv("TS_TAILNET"),
        "ssh_user": os.getenv("HOMEHUB_SSH_USER"),
        "openai_api_key": os.getenv("OPENAI_API_KEY"),
        "jn_path": os.getenv("HOMEHUB_JN_PATH"),
        "jn_log_path": os.getenv("HOMEHUB_JN_LOG"),
        "neospeller_path": os.getenv("HOMEHUB_NEOSPELLER_PATH"),
    }
    settings = {key: value for key, value in raw.items() if value is not None}

    lamp = {
        "enabled": _flag("HOMEHUB_LAMP_GPIO"),
        "chip": os.getenv("HOMEHUB_LAMP_CHIP"),
        "pin": os.getenv("HOMEHUB_LAMP_PIN"),
    }
    settings["lamp"] = {key: value for key, value in lamp.items() if value is not None}
    settings["machines"] = [dict(machine) for machine in DEFAULT_MACHINES]
    return settings


_CONFIG_LOCK = threading.Lock()
_CONFIG: Optional[GatewayConfig] = None


def load_config() -> GatewayConfig:
    """Load (and cache) the gateway configuration (THREAD-SAFE)."""
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None:
            try:
                _CONFIG = validate_config_dict(_collect_settings())
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
            logger.debug("config.loaded", extra={"config": _CONFIG.to_dict()})
        return _CONFIG


def reload_config() -> GatewayConfig:
    """Drop the cached configuration and read the environment again."""
    global _CONFIG
    with _CONFIG_LOCK:
        _CONFIG = None
    return load_config()


def tokens_file_path(environment: str, tokens_dir: Optional[str] = None) -> str:
    base = tokens_dir if tokens_dir is not None else load_config().tokens_dir
    return str(Path(base) / f".tokens-{environment}.txt")


def load_environment_config(environment: str) -> SpotifyEnvironmentConfig:
    """Build the validated configuration of one Spotify environment.

    Args:
        environment: Symbolic environment name ("home" or "main")

    Raises:
        ValidationError: If the name is not a known environment
        ConfigurationError: If client id, secret or callback URI are missing
    """
    if environment not in ENVIRONMENT_NAMES:
        raise ValidationError(
            f"Unknown environment '{environment}'. It should be either "
            f"{' or '.join(ENVIRONMENT_NAMES)}."
        )

    prefix = f"{environment.upper()}_"
    devices = _split_list(os.getenv(f"{prefix}SP_DEVICES"))
    try:
        return SpotifyEnvironmentConfig(
            name=environment,
            client_id=os.getenv(f"{prefix}SP_CLIENT_ID", ""),
            client_secret=os.getenv(f"{prefix}SP_CLIENT_SECRET", ""),
            callback_uri=os.getenv(f"{prefix}SP_CALLBACK_URI", ""),
            devices=devices if devices is not None else list(DEFAULT_DEVICES.get(environment, [])),
            tokens_path=tokens_file_path(environment),
        )
    except SchemaValidationError as exc:
        missing = sorted({
            f"{prefix}SP_{str(error['loc'][0]).upper()}"
            for error in exc.errors()
            if error.get("loc")
        })
        raise ConfigurationError(
            f"Spotify environment '{environment}' is not configured",
            data={"missing": missing},
        ) from exc
