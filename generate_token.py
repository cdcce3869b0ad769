#!/usr/bin/env python3
"""
Spotify token generator for homehub
Runs the OAuth flow for one environment and writes its token file

Usage: python generate_token.py home|main
"""

import sys

from spotipy.oauth2 import SpotifyOAuth

from homehub.config import load_environment_config
from homehub.constants import ENVIRONMENT_NAMES, OAUTH_SCOPES
from homehub.core.models import Tokens
from homehub.core.token_store import TokenStore
from homehub.errors import GatewayError


def generate_tokens(environment: str) -> Tokens:
    """Open the browser for consent and persist the resulting pair."""
    env_config = load_environment_config(environment)

    sp_oauth = SpotifyOAuth(
        client_id=env_config.client_id,
        client_secret=env_config.client_secret,
        redirect_uri=env_config.callback_uri,
        scope=" ".join(OAUTH_SCOPES),
        open_browser=True,
    )

    print(f"🌐 Opening browser for Spotify authorization ({environment})...")
    token_info = sp_oauth.get_access_token(as_dict=True, check_cache=False)
    if not token_info or not token_info.get("refresh_token"):
        raise SystemExit("❌ Token generation failed")

    tokens = Tokens(access_token=token_info["access_token"], refresh_token=token_info["refresh_token"])
    TokenStore(env_config.tokens_path).write(tokens)
    print(f"💾 Tokens written to {env_config.tokens_path}")
    return tokens


def main(argv) -> int:
    if len(argv) != 2 or argv[1] not in ENVIRONMENT_NAMES:
        print(f"Usage: {argv[0]} {'|'.join(ENVIRONMENT_NAMES)}")
        return 2
    print("🎵 Spotify token generator for homehub")
    print("=" * 50)
    try:
        generate_tokens(argv[1])
    except GatewayError as exc:
        print(f"❌ {exc.message}")
        if exc.data:
            print(f"   {exc.data}")
        return 1
    print("🎉 Environment is ready")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
