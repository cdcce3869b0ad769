"""
🔧 Service Manager - Central Service Coordination
===============================================

Owns the four gateway services (``spotify``, ``machines``, ``launcher``,
``lamp``) and gives the blueprints one place to look them up.
"""

import logging
from typing import Any, Dict, Optional

from . import BaseService, ServiceResult
from ..config import load_config
from ..config_schema import GatewayConfig
from .lamp_service import LampService
from .launcher_service import LauncherService
from .machine_service import MachineService
from .spotify_service import SpotifyService

# Health states that count against overall health
UNHEALTHY_STATES = frozenset({"degraded", "warning", "error", "failed", "unhealthy"})


def default_services(config: GatewayConfig) -> Dict[str, BaseService]:
    return {
        "spotify": SpotifyService(config),
        "machines": MachineService(config),
        "launcher": LauncherService(config),
        "lamp": LampService(config.lamp),
    }


class ServiceManager:
    """Builds, initializes and health-checks the gateway services."""

    def __init__(self, services: Optional[Dict[str, Any]] = None, config: Optional[GatewayConfig] = None):
        self.logger = logging.getLogger("service_manager")
        if services is None:
            services = default_services(config or load_config())
        self.services: Dict[str, Any] = dict(services)
        self._initialize_all()

    def _initialize_all(self) -> None:
        """Initialize every service; a failing one (no GPIO, no credentials) never blocks the rest."""
        for name, service in self.services.items():
            try:
                result = service.initialize()
            except Exception as e:
                self.logger.error(f"💥 {name} service crashed during initialization: {e}", exc_info=True)
                continue
            if result.success:
                self.logger.info(f"✅ {name} service ready")
            else:
                self.logger.error(
                    f"❌ {name} service initialization failed: {result.message}",
                    extra={"error_code": result.error_code},
                )

    def get_service(self, name: str) -> Optional[Any]:
        return self.services.get(name)

    def shutdown(self) -> None:
        """Cancel the timers and post-play tasks the Spotify service still holds."""
        tasks = getattr(self.services.get("spotify"), "tasks", None)
        if tasks is not None:
            tasks.shutdown()

    @staticmethod
    def _service_health(service: Any) -> Dict[str, Any]:
        health = service.health_check()
        if not health.success:
            return {"healthy": False, "status": {"error": health.message, "error_code": health.error_code}}

        status = health.data if isinstance(health.data, dict) else {"status": "healthy", "details": health.data}
        state = str(status.get("status", "healthy")).lower()
        return {"healthy": state not in UNHEALTHY_STATES, "status": status}

    def health_check_all(self) -> ServiceResult:
        """Aggregate health; individual checks never raise past this point."""
        results: Dict[str, Dict[str, Any]] = {}
        for name, service in self.services.items():
            try:
                results[name] = self._service_health(service)
            except Exception as e:
                self.logger.error(f"Health check of {name} failed: {e}", exc_info=True)
                results[name] = {"healthy": False, "status": {"error": str(e)}}

        healthy = sum(1 for entry in results.values() if entry["healthy"])
        return ServiceResult(
            success=True,
            data={
                "overall_healthy": healthy == len(results),
                "services": results,
                "total_services": len(results),
                "healthy_services": healthy,
            },
            message="Health check completed for all services",
        )


_service_manager: Optional[ServiceManager] = None


def get_service_manager() -> ServiceManager:
    """Process-wide manager, built from the environment on first use."""
    global _service_manager
    if _service_manager is None:
        _service_manager = ServiceManager()
    return _service_manager


def set_service_manager(manager: Optional[ServiceManager]) -> None:
    """Install (or clear with ``None``) the global manager; used by tests."""
    global _service_manager
    _service_manager = manager


def get_service(name: str) -> Optional[Any]:
    return get_service_manager().get_service(name)
