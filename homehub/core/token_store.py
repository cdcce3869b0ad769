"""
Per-environment token file.

Two colon-delimited lines, readable by the owner only::

    access_token:<token>
    refresh_token:<token>
"""

import logging
import os
from pathlib import Path
from typing import Union

from ..errors import AuthError
from .models import Tokens

logger = logging.getLogger("spotify.tokens")

_ACCESS_KEY = "access_token"
_REFRESH_KEY = "refresh_token"


class TokenStore:
    """Reads and writes the token pair of one environment."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def write(self, tokens: Tokens) -> None:
        """Persist atomically; the directory is created on first write."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        content = f"{_ACCESS_KEY}:{tokens.access_token}\n{_REFRESH_KEY}:{tokens.refresh_token}\n"

        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)
        logger.debug("tokens.write", extra={"path": str(self.path)})

    def read(self) -> Tokens:
        """Load the pair from disk.

        Raises:
            AuthError: If the file is missing or holds no refresh token
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise AuthError(f"No tokens stored at {self.path}; log in first") from exc

        values = {}
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip()
            if key in (_ACCESS_KEY, _REFRESH_KEY) and key not in values:
                values[key] = value.strip()

        if not values.get(_REFRESH_KEY):
            raise AuthError(f"Error retrieving refresh token from file: {self.path}")

        logger.debug("tokens.read", extra={"path": str(self.path)})
        return Tokens(
            access_token=values.get(_ACCESS_KEY, ""),
            refresh_token=values[_REFRESH_KEY],
        )
