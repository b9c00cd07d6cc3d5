"""
Row stream reader: the raw-chunk side of one stream pipeline.

A RowStreamReader opens the transport's server-streaming call for one descriptor on the
first pull and yields its chunks one at a time. It is single-use: once exhausted,
failed or closed it yields nothing more. Reading the same stream again needs a new
reader for the same descriptor; the descriptor itself is not consumed by reading.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import Any

from bqread.core.errors import StreamError, StreamReadError

from .streams import StreamDescriptor
from .transport import Transport

__all__ = ["RowStreamReader"]

logger = logging.getLogger(__name__)


class RowStreamReader:
    """
    Lazy iterator of raw byte chunks for one stream.

    Each pull returns the next chunk, ends iteration when the service closes the
    stream normally, or raises StreamReadError when the call fails. At most one chunk
    is held at a time.

    Example:
        >>> with RowStreamReader(transport, stream) as reader:  # doctest: +SKIP
        ...     for chunk in reader:
        ...         reassembler.feed(chunk)
    """

    def __init__(self, transport: Transport, stream: StreamDescriptor) -> None:
        self.stream = stream
        self._transport = transport
        self._upstream: Iterator[Any] | None = None
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._done = False
        self.chunks_read = 0
        self.bytes_read = 0

    @property
    def done(self) -> bool:
        """True once the reader is exhausted, failed or closed."""
        return self._done

    @property
    def cancelled(self) -> bool:
        """True once close() was called, from any thread."""
        return self._cancelled.is_set()

    def _open(self) -> Iterator[Any]:
        logger.debug("opening read call for stream %s", self.stream.name)
        try:
            return iter(self._transport.read_rows(self.stream.name))
        except StreamError:
            raise
        except Exception as exc:
            raise StreamReadError(
                f"failed to open stream: {exc}", stream=self.stream.name, cause=exc
            ) from exc

    def __iter__(self) -> RowStreamReader:
        return self

    def __next__(self) -> bytes:
        if self._done or self._cancelled.is_set():
            self._finish()
            raise StopIteration
        try:
            if self._upstream is None:
                upstream = self._open()
                with self._lock:
                    self._upstream = upstream
            chunk = next(self._upstream)
        except StopIteration:
            logger.debug(
                "stream %s finished: %d chunks, %d bytes",
                self.stream.name,
                self.chunks_read,
                self.bytes_read,
            )
            self._finish()
            raise
        except StreamError:
            self._finish()
            raise
        except Exception as exc:
            self._finish()
            if self._cancelled.is_set():
                # A cancelled call fails its pending read; that is the requested end.
                logger.debug("stream %s cancelled: %s", self.stream.name, exc)
                raise StopIteration from None
            raise StreamReadError(
                f"read failed after {self.chunks_read} chunks: {exc}",
                stream=self.stream.name,
                cause=exc,
            ) from exc
        if self._cancelled.is_set():
            self._finish()
            raise StopIteration
        chunk = bytes(chunk)
        self.chunks_read += 1
        self.bytes_read += len(chunk)
        return chunk

    def _finish(self) -> None:
        self._done = True
        with self._lock:
            upstream, self._upstream = self._upstream, None
        if upstream is None:
            return
        # Generators expose close(); gRPC call iterators expose cancel().
        for name in ("close", "cancel"):
            release = getattr(upstream, name, None)
            if callable(release):
                release()
                break

    def close(self) -> None:
        """
        Close the underlying streaming call. Safe to call more than once, from any thread.

        Notes:
            A call exposing cancel() is cancelled at once, which unblocks a pull waiting
            in another thread. A generator that another thread is currently pulling
            cannot be closed from outside; it is closed by that thread as soon as its
            pending pull returns, and the chunk it returns is dropped.
        """
        if self._cancelled.is_set():
            return
        if not self._done:
            logger.debug("closing stream %s after %d chunks", self.stream.name, self.chunks_read)
        self._cancelled.set()
        with self._lock:
            upstream = self._upstream
        if upstream is None:
            self._done = True
            return
        cancel = getattr(upstream, "cancel", None)
        if callable(cancel):
            cancel()
            return
        close = getattr(upstream, "close", None)
        if callable(close):
            try:
                close()
            except ValueError:
                # "generator already executing": the pulling thread closes it.
                logger.debug("stream %s is being pulled; close deferred to that thread", self.stream.name)
                return
        self._finish()

    def __enter__(self) -> RowStreamReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
