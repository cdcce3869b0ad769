"""
Process-wide registry of Spotify environments.

At most one ``Environment`` exists per symbolic name. Environments are built
on first reference; one that cannot be built (missing credentials) is
reported without affecting the others. The registry also owns the "current
environment" pointer that a request's resolution step sets.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from ..config import load_config, load_environment_config
from ..constants import DEFAULT_ENVIRONMENT, ENVIRONMENT_NAMES
from ..errors import ConfigurationError, GatewayError, NotFoundError
from .devices import fetch_devices
from .environment import Environment

logger = logging.getLogger("registry")

EnvironmentFactory = Callable[[str], Environment]


def _default_factory(name: str) -> Environment:
    return Environment(load_environment_config(name), token_timeout=load_config().token_timeout)


class EnvironmentRegistry:
    """Deduplicating cache of environments plus the current pointer.

    The map and the pointer are guarded by one re-entrant lock, so concurrent
    requests never construct the same environment twice.
    """

    def __init__(self, factory: Optional[EnvironmentFactory] = None, names=ENVIRONMENT_NAMES):
        self._factory = factory or _default_factory
        self._names = tuple(names)
        self._lock = threading.RLock()
        self._environments: Dict[str, Environment] = {}
        self._failures: Dict[str, str] = {}
        self._current: Optional[str] = None

    def get(self, name: str) -> Environment:
        """Return the environment called ``name``, creating it if absent.

        Raises:
            ValidationError: If ``name`` is not a known environment
            ConfigurationError: If the environment's credentials are missing
        """
        with self._lock:
            env = self._environments.get(name)
            if env is not None:
                return env
            try:
                env = self._factory(name)
            except ConfigurationError as exc:
                self._failures[name] = exc.message
                logger.error("registry.environment.unavailable", extra={"env": name, "error": exc.message})
                raise
            self._environments[name] = env
            self._failures.pop(name, None)
            logger.info("registry.environment.created", extra={"env": name})
            return env

    def initialize(self) -> List[str]:
        """Build every known environment up front; returns the names that loaded."""
        loaded = []
        for name in self._names:
            try:
                self.get(name)
            except ConfigurationError:
                continue
            loaded.append(name)
        return loaded

    def environments(self) -> List[Environment]:
        with self._lock:
            return list(self._environments.values())

    @property
    def failures(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._failures)

    @property
    def current(self) -> Optional[Environment]:
        with self._lock:
            if self._current is None:
                return None
            return self._environments.get(self._current)

    def set_current(self, env: Environment) -> Environment:
        with self._lock:
            self._current = env.name
        return env

    def find_by_device(self, device_name: str) -> Environment:
        """Owning environment of a device name.

        Environments without a static device list fetch their live list first.

        Raises:
            NotFoundError: If no environment knows the device
        """
        for name in self._names:
            try:
                env = self.get(name)
            except ConfigurationError:
                continue
            if not env.devices:
                try:
                    fetch_devices(env)
                except GatewayError as exc:
                    logger.warning(
                        "registry.devices.fetch_failed",
                        extra={"env": name, "error": exc.message},
                    )
                    continue
            if env.has_device(device_name):
                return env

        raise NotFoundError(
            f"No environment found for device '{device_name}'",
            data={"device_name": device_name},
        )

    def resolve(
        self,
        env_name: Optional[str] = None,
        device_name: Optional[str] = None,
        from_name: Optional[str] = None,
    ) -> Environment:
        """Pick the environment a request targets and make it current.

        Precedence: explicit name, then the device name, then the transfer
        source device, then the current pointer, then "home".
        """
        if env_name:
            env = self.get(env_name)
        elif device_name:
            env = self.find_by_device(device_name)
        elif from_name:
            env = self.find_by_device(from_name)
        else:
            with self._lock:
                env = self.current
                if env is None:
                    env = self.get(self._current or DEFAULT_ENVIRONMENT)

        self.set_current(env)
        logger.debug("registry.resolved", extra={"env": env.name})
        return env
