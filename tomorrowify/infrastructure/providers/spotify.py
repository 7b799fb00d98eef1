import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from tomorrowify.crosscutting.config import Settings
from tomorrowify.domain.entities import MAX_BATCH_SIZE, Playlist, Track, TrackPage, UserProfile
from tomorrowify.domain.errors import ProviderCallError
from tomorrowify.domain.ports import StreamingProvider

logger = logging.getLogger(__name__)

PLAYLIST_PAGE_LIMIT = 50
ITEMS_PAGE_LIMIT = 100
ITEM_FIELDS = 'items(track(id,uri,type,is_local)),next,offset'


class SpotifyAuthService:
    """Exchanges stored refresh tokens for access tokens.

    Every refresh uses its own in-memory token cache, so nothing is written to disk and
    concurrent users never see each other's tokens.
    """

    def __init__(self, client_id: str, client_secret: str,
                 redirect_uri: str = 'http://localhost:8080/callback',
                 scope: str = 'playlist-read-private playlist-modify-public playlist-modify-private',
                 requests_timeout: int = 15):
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret are required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.requests_timeout = requests_timeout

    def _oauth_manager(self) -> SpotifyOAuth:
        return SpotifyOAuth(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            scope=self.scope,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
            requests_timeout=self.requests_timeout,
        )

    def refresh_access_token(self, refresh_token: str) -> str:
        """Return a fresh access token for ``refresh_token``."""
        try:
            token_info = self._oauth_manager().refresh_access_token(refresh_token)
        except SpotifyOauthError as e:
            raise ProviderCallError('refresh_access_token', str(e))
        except spotipy.SpotifyException as e:
            raise ProviderCallError('refresh_access_token', str(e), status=e.http_status)
        except requests.RequestException as e:
            raise ProviderCallError('refresh_access_token', str(e))

        if not token_info or not token_info.get('access_token'):
            raise ProviderCallError('refresh_access_token', 'invalid token response')
        return token_info['access_token']


class SpotifyProvider(StreamingProvider):
    """Spotify streaming provider bound to one user's access token."""

    def __init__(self,
                 access_token: str,
                 requests_timeout: int = 15,
                 retries: int = 0,
                 client: Optional[Any] = None):
        """Initialize Spotify provider.

        Args:
            access_token: Spotify access token
            requests_timeout: Seconds before an HTTP call is abandoned
            retries: Transport retries performed by spotipy (0 disables them)
            client: Prebuilt spotipy client, mainly for tests
        """
        self._client = client or spotipy.Spotify(
            auth=access_token,
            requests_timeout=requests_timeout,
            retries=retries,
            status_retries=retries,
        )

    def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except spotipy.SpotifyException as e:
            logger.error(f"Spotify {operation} failed with status {e.http_status}: {e.msg}")
            raise ProviderCallError(operation, str(e.msg), status=e.http_status)
        except requests.RequestException as e:
            logger.error(f"Spotify {operation} failed: {e}")
            raise ProviderCallError(operation, str(e))

    @staticmethod
    def _check_batch(operation: str, uris: Sequence[str]) -> List[str]:
        batch = list(uris)
        if len(batch) > MAX_BATCH_SIZE:
            raise ValueError(f"{operation} accepts at most {MAX_BATCH_SIZE} uris, got {len(batch)}")
        return batch

    @staticmethod
    def _spotify_playlist_to_domain(data: Dict[str, Any]) -> Playlist:
        return Playlist(
            id=data['id'],
            name=data.get('name') or '',
            owner_id=(data.get('owner') or {}).get('id', ''),
            track_count=(data.get('tracks') or {}).get('total', 0),
        )

    @staticmethod
    def _spotify_item_to_domain(item: Dict[str, Any]) -> Track:
        """Convert a playlist item to a domain Track.

        Episodes, local files and unavailable tracks come back without an id.
        """
        data = (item or {}).get('track')
        if not data:
            return Track()
        if data.get('type', 'track') != 'track' or data.get('is_local'):
            return Track(id=None, uri=data.get('uri'))
        return Track(id=data.get('id'), uri=data.get('uri'))

    def current_user(self) -> Optional[UserProfile]:
        data = self._call('current_user', self._client.current_user)
        if not data or not data.get('id'):
            return None
        return UserProfile(id=data['id'], display_name=data.get('display_name'))

    def list_playlists(self) -> Iterator[Playlist]:
        """Iterate the current user's playlists, following pagination."""
        page = self._call('list_playlists', self._client.current_user_playlists, limit=PLAYLIST_PAGE_LIMIT)
        while page:
            for data in page.get('items') or []:
                if data:
                    yield self._spotify_playlist_to_domain(data)
            page = self._call('list_playlists', self._client.next, page) if page.get('next') else None

    def create_playlist(self, owner_id: str, name: str, description: str) -> Playlist:
        logger.info(f"Creating new playlist: {name}")
        data = self._call(
            'create_playlist',
            self._client.user_playlist_create,
            owner_id,
            name,
            public=False,
            description=description,
        )
        return self._spotify_playlist_to_domain(data)

    def list_playlist_items(self, playlist_id: str, offset: int = 0) -> TrackPage:
        data = self._call(
            'list_playlist_items',
            self._client.playlist_items,
            playlist_id,
            fields=ITEM_FIELDS,
            limit=ITEMS_PAGE_LIMIT,
            offset=offset,
        ) or {}
        raw_items = data.get('items') or []
        items = [self._spotify_item_to_domain(item) for item in raw_items]
        next_offset = offset + len(raw_items) if data.get('next') and raw_items else None
        return TrackPage(items=items, next_offset=next_offset)

    def replace_items(self, playlist_id: str, uris: Sequence[str]) -> None:
        batch = self._check_batch('replace_items', uris)
        self._call('replace_items', self._client.playlist_replace_items, playlist_id, batch)

    def add_items(self, playlist_id: str, uris: Sequence[str]) -> None:
        batch = self._check_batch('add_items', uris)
        self._call('add_items', self._client.playlist_add_items, playlist_id, batch)

    def remove_items(self, playlist_id: str, uris: Sequence[str]) -> None:
        batch = self._check_batch('remove_items', uris)
        self._call(
            'remove_items',
            self._client.playlist_remove_all_occurrences_of_items,
            playlist_id,
            batch,
        )


class SpotifyProviderFactory:
    """Builds one SpotifyProvider per user from shared settings."""

    def __init__(self, settings: Settings):
        self.requests_timeout = settings.requests_timeout
        self.retries = settings.retries

    def __call__(self, access_token: str) -> SpotifyProvider:
        return SpotifyProvider(
            access_token,
            requests_timeout=self.requests_timeout,
            retries=self.retries,
        )
