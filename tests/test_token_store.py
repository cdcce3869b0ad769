"""Token file persistence."""

import os
import stat

import pytest

from homehub.core.models import Tokens
from homehub.core.token_store import TokenStore
from homehub.errors import AuthError


class TestTokenStore:
    def test_write_then_read_returns_same_pair(self, tmp_path):
        store = TokenStore(tmp_path / ".tokens-home.txt")
        store.write(Tokens(access_token="A", refresh_token="R"))

        tokens = store.read()

        assert tokens == Tokens(access_token="A", refresh_token="R")

    def test_file_format_is_two_colon_lines(self, tmp_path):
        path = tmp_path / ".tokens-home.txt"
        TokenStore(path).write(Tokens(access_token="A", refresh_token="R"))

        assert path.read_text(encoding="utf-8").splitlines() == ["access_token:A", "refresh_token:R"]

    def test_file_is_owner_only(self, tmp_path):
        path = tmp_path / ".tokens-home.txt"
        TokenStore(path).write(Tokens(access_token="A", refresh_token="R"))

        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode == 0o600

    def test_write_creates_missing_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / ".tokens-main.txt"
        TokenStore(path).write(Tokens(access_token="A", refresh_token="R"))
        assert path.exists()

    def test_missing_file_raises_auth_error(self, tmp_path):
        with pytest.raises(AuthError):
            TokenStore(tmp_path / "absent.txt").read()

    def test_missing_refresh_token_raises_auth_error(self, tmp_path):
        path = tmp_path / ".tokens-home.txt"
        path.write_text("access_token:A\n", encoding="utf-8")

        with pytest.raises(AuthError):
            TokenStore(path).read()

    def test_token_values_may_contain_colons(self, tmp_path):
        path = tmp_path / ".tokens-home.txt"
        path.write_text("access_token:a:b\nrefresh_token:r:s\n", encoding="utf-8")

        tokens = TokenStore(path).read()

        assert tokens.access_token == "a:b"
        assert tokens.refresh_token == "r:s"
