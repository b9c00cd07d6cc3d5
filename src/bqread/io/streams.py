"""
Stream descriptors and the shared stream queue of a read session.

The queue is the only state shared between concurrent pipelines. Every descriptor is
handed out at most once: take_next() pops under a single lock, so no two callers can
receive the same descriptor and none is dropped. Delivery follows the order in which
the service listed the streams; which consumer gets which descriptor is not defined.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from bqread.core.typing import StreamName

__all__ = [
    "StreamDescriptor",
    "StreamQueue",
]


@dataclass(frozen=True)
class StreamDescriptor:
    """
    Opaque name of one partition of a session's rows.

    Attributes:
        name (StreamName): Service-assigned stream name.
        estimated_row_count (int | None): Optional size hint.
    """

    name: StreamName
    estimated_row_count: int | None = None

    def __str__(self) -> str:
        return self.name


class StreamQueue:
    """
    Thread-safe, pop-only queue of not-yet-consumed stream descriptors.

    Example:
        >>> q = StreamQueue([StreamDescriptor(StreamName("s0")), StreamDescriptor(StreamName("s1"))])
        >>> q.take_next().name, q.take_next().name, q.take_next()
        ('s0', 's1', None)
    """

    def __init__(self, streams: Iterable[StreamDescriptor] = ()) -> None:
        self._pending: deque[StreamDescriptor] = deque(streams)
        self._lock = threading.Lock()
        self._taken = 0

    def take_next(self) -> StreamDescriptor | None:
        """
        Hand out the next descriptor, or None once the queue is exhausted.

        Notes:
            A descriptor returned here is never returned again, whether or not its
            reader finishes. Callers that abandon a stream lose its unread rows.
        """
        with self._lock:
            if not self._pending:
                return None
            self._taken += 1
            return self._pending.popleft()

    def remaining(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def taken(self) -> int:
        """Number of descriptors handed out so far."""
        with self._lock:
            return self._taken

    def __len__(self) -> int:
        return self.remaining()

    def __iter__(self) -> Iterator[StreamDescriptor]:
        # Draining iteration: each yielded descriptor is taken from the queue.
        while (stream := self.take_next()) is not None:
            yield stream
