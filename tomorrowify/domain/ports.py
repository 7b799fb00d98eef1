from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence

from .entities import MetricTag, Playlist, TrackPage, UserCredential, UserProfile


class TokenRepository(Protocol):
    """Source of stored user credentials."""

    def get_all_tokens(self) -> List[UserCredential]:
        """Return every stored credential."""


class AuthService(Protocol):
    def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a refresh token for a short-lived access token."""


class StreamingProvider(Protocol):
    """Port defining the calls the rotation needs from a streaming provider.

    Implementations map provider payloads into domain entities and provider failures into
    ``ProviderCallError``. Mutation calls accept at most ``MAX_BATCH_SIZE`` uris.
    """

    def current_user(self) -> Optional[UserProfile]:
        """Return the profile of the authenticated user, or None."""

    def list_playlists(self) -> Iterable[Playlist]:
        """Iterate the current user's playlists in provider order."""

    def create_playlist(self, owner_id: str, name: str, description: str) -> Playlist:
        """Create a playlist owned by ``owner_id``."""

    def list_playlist_items(self, playlist_id: str, offset: int = 0) -> TrackPage:
        """Return one page of entries starting at ``offset``."""

    def replace_items(self, playlist_id: str, uris: Sequence[str]) -> None:
        """Replace the whole content of the playlist with ``uris``."""

    def add_items(self, playlist_id: str, uris: Sequence[str]) -> None:
        """Append ``uris`` to the playlist."""

    def remove_items(self, playlist_id: str, uris: Sequence[str]) -> None:
        """Remove every occurrence of ``uris`` from the playlist."""


class ProviderFactory(Protocol):
    def __call__(self, access_token: str) -> StreamingProvider:
        """Build a provider client bound to one user's access token."""


class MetricsSink(Protocol):
    def put_metric(self, namespace: str, name: str, value: float,
                   timestamp: datetime, dimensions: Sequence[MetricTag]) -> None:
        """Send one data point."""
