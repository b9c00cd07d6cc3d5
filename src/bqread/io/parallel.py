"""
Concurrent reads of a session's streams.

One worker thread per pipeline; each worker repeatedly takes a descriptor from the
session's StreamQueue (the only shared state) and runs that stream's pipeline to the
end. Decoded batches travel back to the consuming thread through a bounded
queue.Queue channel.

WORKER LOOP
-----------

    worker k:  take_next() -> open pipeline -> put StreamResult(batch) ... -> take_next()
    consumer:  get() -> yield StreamResult ... until every worker signalled done

Failure scope
- A stream error becomes a StreamResult with .error set; the worker moves on to the
  next descriptor and sibling workers are unaffected.
- Anything that is not a StreamError is a bug; it is re-raised in the consumer.

Cancellation
- Closing the result iterator stops workers at their next batch and closes their read
  calls. Taken descriptors are not re-queued; unread rows of those streams are lost.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pyarrow as pa

from bqread.core.errors import StreamError

from .streams import StreamDescriptor

if TYPE_CHECKING:
    from .session import ReadSession

__all__ = [
    "StreamResult",
    "ParallelReader",
    "read_session_parallel",
    "collect_table",
]

logger = logging.getLogger(__name__)

# Poll interval for producers blocked on a full channel.
_PUT_TIMEOUT_S = 0.1


@dataclass(frozen=True)
class StreamResult:
    """
    One item of a parallel read: a batch or the error that ended a stream.

    Attributes:
        stream (StreamDescriptor): Stream the item belongs to.
        batch (pa.RecordBatch | None): Decoded batch, if ok.
        error (StreamError | None): Error that failed the stream, if not ok.
    """

    stream: StreamDescriptor
    batch: pa.RecordBatch | None = None
    error: StreamError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class _Done:
    pass


@dataclass(frozen=True)
class _Crash:
    exc: BaseException


class ParallelReader:
    """
    Iterator of StreamResult items from concurrently read streams.

    Example:
        >>> for result in ParallelReader(session, max_workers=4):  # doctest: +SKIP
        ...     if result.ok:
        ...         handle(result.batch)
    """

    def __init__(self, session: ReadSession, *, max_workers: int | None = None) -> None:
        self.session = session
        self.max_workers = max_workers or session.settings.max_workers
        self._stop: threading.Event | None = None

    def __iter__(self) -> Iterator[StreamResult]:
        workers = max(1, min(self.max_workers, self.session.queue.remaining()))
        channel: queue.Queue[StreamResult | _Done | _Crash] = queue.Queue(
            maxsize=self.session.settings.channel_capacity
        )
        # Each pass gets its own stop flag; workers of a closed pass keep theirs.
        stop = self._stop = threading.Event()
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bqread")
        for _ in range(workers):
            pool.submit(self._work, channel, stop)
        logger.debug("started %d stream workers for session %s", workers, self.session.name)

        finished = 0
        try:
            while finished < workers:
                item = channel.get()
                if isinstance(item, _Done):
                    finished += 1
                elif isinstance(item, _Crash):
                    raise item.exc
                else:
                    yield item
        finally:
            stop.set()
            pool.shutdown(wait=False, cancel_futures=True)

    def close(self) -> None:
        """Ask workers of the current pass to stop at their next batch."""
        if self._stop is not None:
            self._stop.set()

    def _put(self, channel: queue.Queue, item: object, stop: threading.Event) -> bool:
        while not stop.is_set():
            try:
                channel.put(item, timeout=_PUT_TIMEOUT_S)
                return True
            except queue.Full:
                continue
        return False

    def _work(self, channel: queue.Queue, stop: threading.Event) -> None:
        try:
            while not stop.is_set():
                stream = self.session.take_next()
                if stream is None:
                    break
                self._read_stream(channel, stream, stop)
        except BaseException as exc:
            self._put(channel, _Crash(exc), stop)
            return
        self._put(channel, _Done(), stop)

    def _read_stream(self, channel: queue.Queue, stream: StreamDescriptor, stop: threading.Event) -> None:
        pipeline = self.session.open_stream(stream)
        try:
            for batch in pipeline:
                if not self._put(channel, StreamResult(stream, batch=batch), stop):
                    return
        except StreamError as exc:
            logger.warning("stream %s failed: %s", stream.name, exc)
            self._put(channel, StreamResult(stream, error=exc), stop)
        finally:
            pipeline.close()


def read_session_parallel(
    session: ReadSession, *, max_workers: int | None = None
) -> Iterator[StreamResult]:
    """Read the session's remaining streams concurrently. See ParallelReader."""
    return iter(ParallelReader(session, max_workers=max_workers))


def collect_table(session: ReadSession, *, max_workers: int | None = None) -> pa.Table:
    """
    Read every remaining stream concurrently into one pyarrow Table.

    Raises:
        StreamError: The first stream failure, once all other streams have finished.
    """
    batches: list[pa.RecordBatch] = []
    errors: list[StreamError] = []
    for result in read_session_parallel(session, max_workers=max_workers):
        if result.error is not None:
            errors.append(result.error)
        elif result.batch is not None:
            batches.append(result.batch)
    if errors:
        logger.warning("%d of %d streams failed", len(errors), len(session.streams))
        raise errors[0]
    schema = session.arrow_schema
    if schema is None:
        schema = batches[0].schema if batches else pa.schema([])
    return pa.Table.from_batches(batches, schema=schema)
