"""
💻 Machine Service - Wake, sleep and battery queries for home machines
====================================================================

Machines are looked up on the tailnet by hostname, woken with a
Wake-on-LAN packet and then driven over SSH.
"""

import os
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from . import BaseService, ServiceResult
from ..api.http import get_http_session
from ..config import load_config
from ..config_schema import GatewayConfig, MachineConfig
from ..constants import TAILSCALE_API_BASE
from ..errors import (APIError, ConfigurationError, NotFoundError,
                      ValidationError)
from ..utils.commands import run_command, ssh_command


@dataclass
class MachineTarget:
    name: str
    address: str
    mac: str
    user: str
    config: MachineConfig


class MachineService(BaseService):
    """Service for machines reachable over Tailscale + SSH."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        ssh: Callable[[str, str, str], str] = ssh_command,
        runner: Callable[[List[str]], str] = run_command,
    ):
        super().__init__("machines")
        self.config = config or load_config()
        self._ssh = ssh
        self._run = runner

    def _tailscale_address(self, name: str) -> str:
        url = f"{TAILSCALE_API_BASE}/tailnet/{self.config.tailnet}/devices"
        try:
            resp = get_http_session().get(
                url,
                headers={"Authorization": f"Bearer {self.config.tailscale_api_key}"},
            )
        except requests.exceptions.RequestException as exc:
            raise APIError(f"Tailscale request failed: {exc}", body=str(exc)) from exc
        if resp.status_code != 200:
            raise APIError(
                f"Tailscale device listing failed ({resp.status_code})",
                status_code=resp.status_code,
                body=resp.text,
            )

        for device in resp.json().get("devices", []):
            if device.get("hostname") != name:
                continue
            addresses = device.get("addresses") or []
            if addresses and addresses[0]:
                self.logger.debug("Found address for machine", extra={"machine": name})
                return addresses[0]
            self.logger.warning("Machine has no address on the tailnet", extra={"machine": name})

        raise NotFoundError(f"Device not found: {name}", data={"name": name})

    def _target(self, name: Optional[str]) -> MachineTarget:
        if not name:
            raise ValidationError("name is required", data={"field": "name"})
        machine = self.config.machine(name)
        if machine is None:
            raise NotFoundError(f"Unknown machine '{name}'", data={"name": name})

        mac = os.getenv(machine.mac_env, "")
        if not self.config.tailscale_api_key or not mac:
            raise ConfigurationError(
                "Tailscale API key or MAC address not configured",
                data={"missing": [var for var, value in (("TS_API_KEY", self.config.tailscale_api_key), (machine.mac_env, mac)) if not value]},
            )

        return MachineTarget(
            name=name,
            address=self._tailscale_address(name),
            mac=mac,
            user=self.config.ssh_user,
            config=machine,
        )

    def _execute(self, target: MachineTarget, commands: List[str]) -> str:
        """Wake the machine, then run ``commands`` in order; returns the last output."""
        self._run(["wakeonlan", target.mac])
        self.logger.info("Wake-on-LAN packet sent", extra={"machine": target.name})

        last_output = ""
        for command in commands:
            last_output = self._ssh(target.user, target.address, command)
            self.logger.info("Command executed", extra={"machine": target.name, "command": command})
        return last_output

    def wake(self, name: Optional[str]) -> ServiceResult:
        try:
            target = self._target(name)
            self._execute(target, target.config.wake_commands)
            return self._success_result(data={"name": target.name}, message="Command executed successfully")
        except Exception as e:
            return self._handle_error(e, "wake")

    def sleep(self, name: Optional[str]) -> ServiceResult:
        try:
            target = self._target(name)
            self._execute(target, target.config.sleep_commands)
            return self._success_result(data={"name": target.name}, message="Command executed successfully")
        except Exception as e:
            return self._handle_error(e, "sleep")

    def battery(self, name: Optional[str]) -> ServiceResult:
        try:
            target = self._target(name)
            level = self._execute(target, target.config.battery_commands).strip()
            self.logger.info("Battery level read", extra={"machine": target.name, "battery": level})
            return self._success_result(data={"name": target.name, "battery": level})
        except Exception as e:
            return self._handle_error(e, "battery")

    def health_check(self) -> ServiceResult:
        base_health = super().health_check()
        if not base_health.success:
            return base_health
        configured = bool(self.config.tailscale_api_key)
        return self._success_result(
            data={
                "service": self.name,
                "status": "healthy" if configured else "degraded",
                "machines": [machine.name for machine in self.config.machines],
                "tailscale_configured": configured,
            }
        )
