"""
💡 Lamp Service - GPIO-driven lamp toggle
=========================================

With ``lamp.enabled`` the lamp pin is requested as an output line through
libgpiod 2.x at initialization. Without it the service runs in dev mode and
only flips an in-memory flag.
"""

import threading
from typing import Optional

from . import BaseService, ServiceResult
from ..config import load_config
from ..config_schema import LampConfig
from ..errors import ConfigurationError


class LampService(BaseService):
    """Service toggling the lamp relay."""

    def __init__(self, config: Optional[LampConfig] = None):
        super().__init__("lamp")
        self.config = config or load_config().lamp
        self._lock = threading.Lock()
        self._on = False
        self._request = None
        self._levels = None

    @property
    def dev_mode(self) -> bool:
        return not self.config.enabled

    @property
    def is_on(self) -> bool:
        return self._on

    def initialize(self) -> ServiceResult:
        if self.dev_mode:
            return super().initialize()

        import gpiod
        from gpiod.line import Direction, Value

        try:
            self._request = gpiod.request_lines(
                self.config.chip,
                consumer="homehub-lamp",
                config={
                    self.config.pin: gpiod.LineSettings(
                        direction=Direction.OUTPUT,
                        output_value=Value.INACTIVE,
                    )
                },
            )
        except OSError as e:
            self.logger.error(
                f"GPIO initialization failed: {e}",
                extra={"chip": self.config.chip, "pin": self.config.pin},
            )
            return self._error_result("GPIO initialization failed", error_code="gpio_unavailable")

        self._levels = {True: Value.ACTIVE, False: Value.INACTIVE}
        return super().initialize()

    def toggle(self) -> ServiceResult:
        try:
            with self._lock:
                if self.dev_mode:
                    self._on = not self._on
                    return self._success_result(
                        data={"on": self._on, "dev_mode": True},
                        message=f"{'Lamp on' if self._on else 'Lamp off'} (dev mode)",
                    )

                if self._request is None:
                    raise ConfigurationError(f"Raspberry Pi pin {self.config.pin} is not bound")

                target = not self._on
                self._request.set_value(self.config.pin, self._levels[target])
                self._on = target

            self.logger.info("Lamp toggled", extra={"on": target})
            return self._success_result(
                data={"on": target, "dev_mode": False},
                message="Lamp on" if target else "Lamp off",
            )
        except Exception as e:
            return self._handle_error(e, "toggle")

    def health_check(self) -> ServiceResult:
        if self.dev_mode:
            return self._success_result(data={"service": self.name, "status": "healthy", "dev_mode": True})
        if self._request is None:
            return self._success_result(data={"service": self.name, "status": "degraded", "dev_mode": False})
        return super().health_check()
