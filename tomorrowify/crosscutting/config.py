import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values


TOMORROW_PLAYLIST_DESCRIPTION = (
    "Add tracks here and they will move to your Today playlist tomorrow. "
    "Managed by Tomorrowify."
)
TODAY_PLAYLIST_DESCRIPTION = (
    "Yesterday's Tomorrow tracks, refreshed daily. Managed by Tomorrowify."
)


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for a rotation run."""

    client_id: str
    client_secret: str
    redirect_uri: str = 'http://localhost:8080/callback'
    requests_timeout: int = 15
    retries: int = 0
    max_workers: int = 8
    token_table: str = 'TomorrowifyRefreshTokens'
    tokens_file: Optional[str] = None
    metrics_namespace: str = 'TomorrowifyMetrics'
    tomorrow_playlist: str = 'Tomorrow'
    today_playlist: str = 'Today'
    log_level: str = 'INFO'

    def __repr__(self) -> str:
        return f"Settings({self.summary()!r})"

    def get_spotify_scopes(self) -> list:
        """Get minimal required Spotify scopes."""
        return [
            'playlist-read-private',      # Read private playlists
            'playlist-modify-public',     # Create/modify public playlists
            'playlist-modify-private',    # Create/modify private playlists
        ]

    def get_spotify_scope_string(self) -> str:
        """Get Spotify scopes as space-separated string."""
        return ' '.join(self.get_spotify_scopes())

    def summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        return {
            'has_client_id': bool(self.client_id),
            'has_client_secret': bool(self.client_secret),
            'redirect_uri': self.redirect_uri,
            'requests_timeout': self.requests_timeout,
            'retries': self.retries,
            'max_workers': self.max_workers,
            'token_source': self.tokens_file or f"dynamodb:{self.token_table}",
            'metrics_namespace': self.metrics_namespace,
            'tomorrow_playlist': self.tomorrow_playlist,
            'today_playlist': self.today_playlist,
            'log_level': self.log_level,
        }


def _required(values: Mapping[str, Optional[str]], name: str) -> str:
    value = (values.get(name) or '').strip()
    if not value:
        raise ConfigError(f"{name} not found in environment")
    return value


def _optional(values: Mapping[str, Optional[str]], name: str, default: Optional[str]) -> Optional[str]:
    value = values.get(name)
    if value is None or not str(value).strip():
        return default
    return str(value).strip()


def _integer(values: Mapping[str, Optional[str]], name: str, default: int) -> int:
    raw = _optional(values, name, None)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None,
                  env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment, layered over an optional .env file.

    Values from ``env`` (the process environment by default) win over the file.
    """
    values: Dict[str, Optional[str]] = {}
    if env_file:
        if not os.path.exists(env_file):
            raise ConfigError(f"Env file {env_file} does not exist")
        values.update(dotenv_values(env_file))
    values.update(os.environ if env is None else env)

    return Settings(
        client_id=_required(values, 'SPOTIFY_CLIENT_ID'),
        client_secret=_required(values, 'SPOTIFY_CLIENT_SECRET'),
        redirect_uri=_optional(values, 'SPOTIFY_REDIRECT_URI', Settings.redirect_uri),
        requests_timeout=_integer(values, 'SPOTIFY_REQUESTS_TIMEOUT', Settings.requests_timeout),
        retries=_integer(values, 'SPOTIFY_RETRIES', Settings.retries),
        max_workers=_integer(values, 'TOMORROWIFY_MAX_WORKERS', Settings.max_workers),
        token_table=_optional(values, 'TOMORROWIFY_TOKEN_TABLE', Settings.token_table),
        tokens_file=_optional(values, 'TOMORROWIFY_TOKENS_FILE', None),
        metrics_namespace=_optional(values, 'TOMORROWIFY_METRICS_NAMESPACE', Settings.metrics_namespace),
        tomorrow_playlist=_optional(values, 'TOMORROWIFY_TOMORROW_PLAYLIST', Settings.tomorrow_playlist),
        today_playlist=_optional(values, 'TOMORROWIFY_TODAY_PLAYLIST', Settings.today_playlist),
        log_level=_optional(values, 'LOG_LEVEL', Settings.log_level).upper(),
    )
