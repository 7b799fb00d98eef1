from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class UserCredential:
    """Stored credential for one user: an opaque key plus a long-lived refresh token."""

    key: str
    refresh_token: str

    def __repr__(self) -> str:
        return f"UserCredential(key={self.key!r})"


@dataclass(frozen=True)
class Track:
    """Domain entity representing one entry of a playlist.

    Entries that are not full tracks (episodes, local files, removed tracks) carry no id.
    """

    id: Optional[str] = None
    uri: Optional[str] = None

    @property
    def is_eligible(self) -> bool:
        return bool(self.id) and bool(self.uri)


@dataclass(frozen=True)
class Playlist:
    """Domain entity representing a playlist."""

    id: str
    name: str
    owner_id: str = ""
    track_count: int = 0


@dataclass(frozen=True)
class TrackPage:
    """One page of playlist entries. ``next_offset`` is None on the last page."""

    items: List[Track] = field(default_factory=list)
    next_offset: Optional[int] = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class RotationOutcome:
    """Result of a single rotation pass for one user."""

    moved: int
    batches: int

    @property
    def is_noop(self) -> bool:
        return self.moved == 0

    @classmethod
    def noop(cls) -> "RotationOutcome":
        return cls(moved=0, batches=0)


MetricTag = Tuple[str, str]

# Provider limit on track references per mutation call
MAX_BATCH_SIZE = 100
