import logging
from typing import Iterator, List, Optional

from tomorrowify.domain.entities import Playlist, Track
from tomorrowify.domain.ports import StreamingProvider


logger = logging.getLogger(__name__)


class PlaylistResolver:
    """Finds a playlist by exact name, creating it when missing.

    The user's playlist library is listed once, on the first lookup, and every later
    lookup searches that snapshot. Playlists created here are not added to it.
    """

    def __init__(self, provider: StreamingProvider, owner_id: str, log=None):
        self.provider = provider
        self.owner_id = owner_id
        self.log = log or logger
        self._library: Optional[List[Playlist]] = None

    @property
    def library(self) -> List[Playlist]:
        if self._library is None:
            self._library = list(self.provider.list_playlists())
            self.log.debug(f"Loaded {len(self._library)} playlists")
        return self._library

    def find(self, name: str) -> Optional[Playlist]:
        """Return the first playlist named exactly ``name``.

        Duplicate names resolve to the first one in provider order, which the provider
        does not guarantee to be stable across runs.
        """
        for playlist in self.library:
            if playlist.name == name:
                return playlist
        return None

    def resolve(self, name: str, description_on_create: str) -> Playlist:
        playlist = self.find(name)
        if playlist is not None:
            self.log.debug(f"Found existing playlist: {name}")
            return playlist

        self.log.info(f"Playlist {name} not found, creating it")
        return self.provider.create_playlist(self.owner_id, name, description_on_create)


class TrackPager:
    """Walks playlist pagination until the provider reports no further page."""

    def __init__(self, provider: StreamingProvider):
        self.provider = provider

    def fetch_all(self, playlist_id: str) -> Iterator[Track]:
        """Lazily yield every entry of the playlist in page order.

        Single pass: callers needing a count or repeated slicing must materialize it.
        """
        offset: Optional[int] = 0
        while offset is not None:
            page = self.provider.list_playlist_items(playlist_id, offset=offset)
            yield from page.items
            offset = page.next_offset
