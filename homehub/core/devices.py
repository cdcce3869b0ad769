"""
Device resolution: human device names → Spotify device ids.

Ids are volatile, so every lookup fetches the live list and writes the fresh
values back onto the environment's Device records.
"""

import logging
from typing import List, Optional

from ..api import spotify as spotify_api
from ..errors import InvalidArgumentError, NotFoundError
from .environment import Environment
from .models import Device

logger = logging.getLogger("spotify.devices")


def _sync_devices(env: Environment, live: List[Device]) -> None:
    if not env.devices:
        # No static list: adopt whatever the account reports
        env.devices = [Device(**vars(device)) for device in live]
        logger.info("devices.adopted", extra={"env": env.name, "names": [d.name for d in live]})
        return

    by_name = {}
    for device in live:
        by_name.setdefault(device.name, device)

    for known in env.devices:
        current = by_name.get(known.name)
        if current is None:
            known.is_active = False
            continue
        if known.id and known.id != current.id:
            logger.debug("devices.id_rotated", extra={"env": env.name, "device": known.name})
        known.id = current.id
        known.is_active = current.is_active
        known.supports_volume = current.supports_volume
        known.volume_percent = current.volume_percent


def fetch_devices(env: Environment) -> List[Device]:
    """Live device list of ``env``; also refreshes the cached records."""
    live = spotify_api.get_devices(env.access_token)
    _sync_devices(env, live)
    return live


def device_id(env: Environment, name: str) -> str:
    """Resolve ``name`` to its current Spotify id (exact, case-sensitive, first match).

    Raises:
        InvalidArgumentError: If ``name`` is empty (no network call is made)
        NotFoundError: If the account reports no device with that name
    """
    if not name:
        raise InvalidArgumentError("device name is required")

    logger.debug("devices.lookup", extra={"env": env.name, "device": name})
    live = fetch_devices(env)
    for device in live:
        if device.name == name and device.id:
            return device.id

    raise NotFoundError(
        f"Device '{name}' not found in environment '{env.name}'",
        data={"device_name": name, "available": [d.name for d in live]},
    )


def active_device(env: Environment) -> Device:
    """The device Spotify flags as active, else the first configured device.

    The fallback keeps single-speaker environments addressable while Spotify
    reports nothing active; its id may be empty if the device is offline.

    Raises:
        NotFoundError: If nothing is active and no device is configured
    """
    live = fetch_devices(env)
    for device in live:
        if device.is_active:
            return device

    default = env.default_device
    if default is None:
        raise NotFoundError(f"No device available in environment '{env.name}'")
    logger.debug("devices.default_used", extra={"env": env.name, "device": default.name})
    return default


def resolve_device(env: Environment, name: Optional[str] = None) -> Device:
    """Named device when given, otherwise the active/default one."""
    if not name:
        return active_device(env)
    resolved_id = device_id(env, name)
    known = env.find_device(name)
    if known is not None:
        return known
    for device in env.devices:
        if device.id == resolved_id:
            return device
    return Device(name=name, id=resolved_id)
