"""
One configured Spotify identity ("home" or "main") with its credentials,
static device list and token state.
"""

import logging
import threading
from typing import List, Optional

from ..api import spotify as spotify_api
from ..config_schema import SpotifyEnvironmentConfig
from ..errors import AuthError
from .models import Device, Tokens
from .token_store import TokenStore

logger = logging.getLogger("registry")


class Environment:
    """A Spotify account and the devices it owns.

    Token fields are guarded by a per-environment lock so a threaded WSGI
    server can refresh one environment while another request reads it.
    """

    def __init__(
        self,
        config: SpotifyEnvironmentConfig,
        *,
        token_store: Optional[TokenStore] = None,
        token_timeout: float = 10.0,
    ):
        self.name = config.name
        self.client_id = config.client_id
        self.client_secret = config.client_secret
        self.callback_uri = config.callback_uri
        self.devices: List[Device] = [Device(name=name) for name in config.devices]
        self.token_store = token_store or TokenStore(config.tokens_path)
        self.token_timeout = token_timeout
        self._lock = threading.RLock()
        self._tokens: Optional[Tokens] = self._load_tokens()

    def __repr__(self) -> str:
        return f"Environment(name={self.name!r}, devices={[d.name for d in self.devices]!r})"

    def _load_tokens(self) -> Optional[Tokens]:
        try:
            return self.token_store.read()
        except AuthError as exc:
            logger.warning("environment.tokens.unavailable", extra={"env": self.name, "error": exc.message})
            return None

    @property
    def tokens(self) -> Optional[Tokens]:
        with self._lock:
            return self._tokens

    @property
    def access_token(self) -> str:
        """Current access token.

        Raises:
            AuthError: If the environment never completed a login
        """
        with self._lock:
            if self._tokens is None or not self._tokens.access_token:
                raise AuthError(f"No access token for environment '{self.name}'; log in first")
            return self._tokens.access_token

    def store_tokens(self, tokens: Tokens) -> None:
        """Keep a freshly issued pair (OAuth callback) in memory and on disk."""
        with self._lock:
            if not tokens.refresh_token and self._tokens is not None:
                tokens = Tokens(access_token=tokens.access_token, refresh_token=self._tokens.refresh_token)
            self._tokens = tokens
            self.token_store.write(tokens)
        logger.info("environment.tokens.stored", extra={"env": self.name})

    def refresh(self) -> str:
        """Trade the durable refresh token for a new access token.

        The refresh token is kept unchanged; the new pair is persisted.

        Raises:
            AuthError: If no refresh token is known or Spotify rejects it
        """
        with self._lock:
            if self._tokens is None:
                # Another process (generate_token.py) may have written the file since startup
                self._tokens = self._load_tokens()
            if self._tokens is None or not self._tokens.refresh_token:
                raise AuthError(f"No refresh token for environment '{self.name}'; log in first")

            access_token = spotify_api.refresh_access_token(
                self.client_id,
                self.client_secret,
                self._tokens.refresh_token,
                timeout=self.token_timeout,
            )
            self._tokens = Tokens(access_token=access_token, refresh_token=self._tokens.refresh_token)
            self.token_store.write(self._tokens)

        logger.info("environment.token.refreshed", extra={"env": self.name})
        return access_token

    def authorize_url(self) -> str:
        return spotify_api.build_authorize_url(self.client_id, self.callback_uri)

    def complete_login(self, code: str) -> Tokens:
        tokens = spotify_api.exchange_code(
            self.client_id,
            self.client_secret,
            self.callback_uri,
            code,
            timeout=self.token_timeout,
        )
        self.store_tokens(tokens)
        return tokens

    def has_device(self, name: str) -> bool:
        return any(device.name == name for device in self.devices)

    def find_device(self, name: str) -> Optional[Device]:
        for device in self.devices:
            if device.name == name:
                return device
        return None

    @property
    def default_device(self) -> Optional[Device]:
        return self.devices[0] if self.devices else None
