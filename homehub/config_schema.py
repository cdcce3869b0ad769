"""
Pydantic models for homehub configuration validation

Every value read from the process environment passes through one of these
models before the rest of the gateway sees it.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import (ENVIRONMENT_NAMES, RELAX_PLAYLIST_URI)


class SpotifyEnvironmentConfig(BaseModel):
    """Credentials and static device allowlist of one Spotify identity."""

    name: str = Field(description="Symbolic environment name (home/main)")
    client_id: str = Field(min_length=1, description="OAuth client id")
    client_secret: str = Field(min_length=1, description="OAuth client secret")
    callback_uri: str = Field(min_length=1, description="OAuth redirect URI")
    devices: List[str] = Field(default_factory=list, description="Known device names, first is the default")
    tokens_path: str = Field(description="Flat file holding the access/refresh pair")

    model_config = {
        "str_strip_whitespace": True,
    }

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if v not in ENVIRONMENT_NAMES:
            raise ValueError(f"Unknown environment: {v}. Must be one of {', '.join(ENVIRONMENT_NAMES)}")
        return v

    @field_validator('devices')
    @classmethod
    def drop_blank_devices(cls, v: List[str]) -> List[str]:
        return [name.strip() for name in v if name and name.strip()]


class MachineConfig(BaseModel):
    """A machine reachable over Tailscale + SSH."""

    name: str = Field(min_length=1, description="Tailscale hostname")
    mac_env: str = Field(description="Environment variable holding the MAC address")
    wake_commands: List[str] = Field(default_factory=list)
    sleep_commands: List[str] = Field(default_factory=list)
    battery_commands: List[str] = Field(default_factory=list)


class LampConfig(BaseModel):
    enabled: bool = Field(default=False, description="Drive a real GPIO line instead of dev mode")
    chip: str = Field(default="/dev/gpiochip0")
    pin: int = Field(default=17, ge=0)


class GatewayConfig(BaseModel):
    """Complete gateway configuration schema (Spotify environments load separately)."""

    # Runtime settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    debug: bool = Field(default=False)

    # Spotify behaviour
    tokens_dir: str = Field(default=".tokens", description="Directory of per-environment token files")
    hard_transfer_devices: List[str] = Field(
        default_factory=lambda: ["librespot", "iPhone"],
        description="Destinations that need context+offset transfer instead of a URI queue",
    )
    alarm_playlist_uri: str = Field(default=RELAX_PLAYLIST_URI)
    alarm_volume: int = Field(default=60, ge=0, le=100)
    post_play_delay: float = Field(default=5.0, ge=0, description="Seconds before shuffle/repeat follow a play call")
    token_timeout: float = Field(default=10.0, gt=0)

    # Machines
    tailscale_api_key: Optional[str] = None
    tailnet: str = Field(default="-")
    ssh_user: str = Field(default="richard")
    machines: List[MachineConfig] = Field(default_factory=list)

    # Local tools
    openai_api_key: Optional[str] = None
    jn_path: str = Field(default="~/.local/bin/jn")
    jn_log_path: str = Field(default="/tmp/jn.log")
    neospeller_path: str = Field(default="~/.local/bin/neospeller")

    lamp: LampConfig = Field(default_factory=LampConfig)

    model_config = {
        "str_strip_whitespace": True,
    }

    def machine(self, name: str) -> Optional[MachineConfig]:
        for machine in self.machines:
            if machine.name == name:
                return machine
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Dump without secrets, for diagnostics."""
        return self.model_dump(
            mode='json',
            exclude={'tailscale_api_key', 'openai_api_key'},
        )


def validate_config_dict(config_dict: Dict[str, Any]) -> GatewayConfig:
    """Validate a raw settings dictionary against the schema.

    Raises:
        ValueError: If the settings are invalid, with pydantic's details
    """
    try:
        return GatewayConfig(**config_dict)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {str(e)}")
