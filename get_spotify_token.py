#!/usr/bin/env python3
"""
Authorise one Spotify account and store its refresh token for local runs.

Usage:
  python3 get_spotify_token.py <user key> [--tokens-file user_tokens.json]
"""

import argparse
import sys

from dotenv import load_dotenv
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth

from tomorrowify.crosscutting.config import ConfigError, load_settings
from tomorrowify.infrastructure.tokens import JsonFileTokenRepository


def get_spotify_token(user_key: str, tokens_file: str) -> bool:
    """Run the OAuth flow and save the resulting refresh token under ``user_key``."""
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return False

    auth_manager = SpotifyOAuth(
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=settings.redirect_uri,
        scope=settings.get_spotify_scope_string(),
        cache_handler=MemoryCacheHandler(),
    )

    try:
        # Fetching the profile triggers the browser authorisation
        user = spotipy.Spotify(auth_manager=auth_manager).current_user()
    except Exception as e:
        print(f"Authorisation failed: {e}")
        return False

    token_info = auth_manager.cache_handler.get_cached_token()
    if not token_info or not token_info.get('refresh_token'):
        print("Spotify did not return a refresh token")
        return False

    JsonFileTokenRepository(tokens_file).save_token(user_key, token_info['refresh_token'])
    print(f"Authorised Spotify user {user['id']}, refresh token stored as {user_key} in {tokens_file}")
    return True


if __name__ == "__main__":
    load_dotenv()

    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('user_key')
    parser.add_argument('--tokens-file', default='user_tokens.json')
    args = parser.parse_args()

    sys.exit(0 if get_spotify_token(args.user_key, args.tokens_file) else 1)
