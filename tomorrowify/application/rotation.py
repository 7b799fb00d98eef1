import logging
from typing import Iterator, List, Optional, Sequence, TypeVar

from tomorrowify.crosscutting.metrics import MetricsEmitter
from tomorrowify.domain.entities import MAX_BATCH_SIZE, MetricTag, Playlist, RotationOutcome, Track
from tomorrowify.domain.ports import StreamingProvider


logger = logging.getLogger(__name__)

T = TypeVar('T')

TOMORROW_TRACKS_METRIC = 'TomorrowTracks'


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``items`` into consecutive slices of at most ``size`` elements."""
    if size < 1:
        raise ValueError("size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class BatchMover:
    """Moves tracks from a source playlist into a destination playlist.

    The first batch replaces the destination; later batches are appended. Every batch
    written to the destination is removed from the source before the next batch starts,
    so a failure part-way leaves the already moved batches in place and nothing duplicated.
    """

    def __init__(self, provider: StreamingProvider, emitter: MetricsEmitter,
                 batch_size: int = MAX_BATCH_SIZE, log=None):
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self.provider = provider
        self.emitter = emitter
        self.batch_size = batch_size
        self.log = log or logger

    def rotate(self, source: Playlist, destination: Playlist, tracks: Sequence[Track],
               tags: Optional[Sequence[MetricTag]] = None) -> RotationOutcome:
        """Move ``tracks`` from ``source`` to ``destination``.

        Args:
            source: Playlist the tracks are taken from
            destination: Playlist that receives them
            tracks: Materialized, eligible entries of ``source`` in playlist order
            tags: Dimensions attached to the track-count metric

        Returns:
            RotationOutcome with the number of moved tracks and batches
        """
        if not isinstance(tracks, (list, tuple)):
            raise TypeError("tracks must be a materialized list")
        if not tracks:
            self.log.info(f"Nothing to move from {source.name}")
            return RotationOutcome.noop()

        self.emitter.publish(TOMORROW_TRACKS_METRIC, len(tracks), tags or ())

        uris = [track.uri for track in tracks]
        batches = list(chunked(uris, self.batch_size))

        first, remaining = batches[0], batches[1:]
        self.provider.replace_items(destination.id, first)
        self.provider.remove_items(source.id, first)
        self.log.debug(f"Batch 1/{len(batches)}: replaced {destination.name} with {len(first)} tracks")

        for index, batch in enumerate(remaining, start=2):
            self.provider.add_items(destination.id, batch)
            self.provider.remove_items(source.id, batch)
            self.log.debug(f"Batch {index}/{len(batches)}: moved {len(batch)} tracks")

        return RotationOutcome(moved=len(uris), batches=len(batches))
