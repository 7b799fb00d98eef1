from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from tomorrowify.domain.entities import MetricTag
from tomorrowify.domain.ports import MetricsSink


class MetricsEmitter:
    """Publishes single named observations to the metrics sink.

    Sink failures are not handled here; they propagate to the calling worker.
    """

    def __init__(self, sink: MetricsSink, namespace: str = 'TomorrowifyMetrics',
                 clock: Optional[Callable[[], datetime]] = None):
        self.sink = sink
        self.namespace = namespace
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def publish(self, name: str, value: float, tags: Sequence[MetricTag] = ()) -> None:
        """Send one data point stamped with the current UTC time."""
        dimensions = [(str(tag_name), str(tag_value)) for tag_name, tag_value in tags]
        self.sink.put_metric(
            self.namespace,
            name,
            float(value),
            self._clock(),
            dimensions,
        )
