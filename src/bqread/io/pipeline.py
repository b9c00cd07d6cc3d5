"""
Per-stream pipeline: row stream reader -> frame reassembler -> batch decoder.

A StreamPipeline is a lazy, single-use iterator of pyarrow.RecordBatch for one stream.
Pulling the next batch pulls chunks from the network only until one more frame is
complete. Batches come out in the order the service sent them.

Failure scope
- StreamReadError, FrameTooLarge, TruncatedFrame, MalformedFrame and SchemaMissing
  fail this stream only; they are raised from the iterator.
- SchemaMismatch fails the stream by default; with on_schema_mismatch="skip" the batch
  is dropped with a warning and the stream continues.

Cancellation
- close() (or leaving a with-block, or dropping a partially consumed iterator) closes
  the underlying read call. close() may be called from another thread while the
  consumer is blocked on the network; the consumer then sees the end of iteration.
  The stream descriptor is not returned to the session queue;
  rows not yet read from a cancelled stream are lost to this session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import polars as pl
import pyarrow as pa

from bqread.core.errors import SchemaMismatch, SchemaMissing

from .config import ReadSettings
from .decode import BatchDecoder
from .framing import Frame, FrameKind, FrameReassembler
from .reader import RowStreamReader
from .streams import StreamDescriptor

__all__ = ["StreamPipeline"]

logger = logging.getLogger(__name__)


class StreamPipeline:
    """
    Lazy sequence of record batches decoded from one stream.

    Example:
        >>> pipeline = session.next_stream()  # doctest: +SKIP
        >>> with pipeline:  # doctest: +SKIP
        ...     for batch in pipeline:
        ...         print(batch.num_rows)
    """

    def __init__(
        self,
        reader: RowStreamReader,
        *,
        settings: ReadSettings | None = None,
        decoder: BatchDecoder | None = None,
        fallback_schema: pa.Schema | None = None,
    ) -> None:
        self.reader = reader
        self.settings = settings or ReadSettings()
        self.fallback_schema = fallback_schema
        name = reader.stream.name
        self._reassembler = FrameReassembler(self.settings.max_frame_size, stream=name)
        self._decoder = decoder or BatchDecoder(stream=name)
        self._batches: Iterator[pa.RecordBatch] | None = None
        self._closed = False
        self.batches_read = 0
        self.rows_read = 0
        self.batches_skipped = 0

    @property
    def stream(self) -> StreamDescriptor:
        return self.reader.stream

    @property
    def schema(self) -> pa.Schema | None:
        """The stream schema once its schema frame has been decoded."""
        return self._decoder.schema

    def __iter__(self) -> Iterator[pa.RecordBatch]:
        if self._batches is None:
            self._batches = self._run()
        return self._batches

    def _run(self) -> Iterator[pa.RecordBatch]:
        try:
            for chunk in self.reader:
                for frame in self._reassembler.feed(chunk):
                    if self._closed:
                        return
                    if frame.kind is FrameKind.END_OF_STREAM:
                        logger.debug("end-of-stream marker on %s", self.stream.name)
                        return
                    batch = self._decode(frame)
                    if batch is not None:
                        self.batches_read += 1
                        self.rows_read += batch.num_rows
                        yield batch
            if self.reader.cancelled:
                # Ended by close(); a partially buffered frame is expected.
                return
            self._reassembler.finish()
        finally:
            self.reader.close()

    def _decode(self, frame: Frame) -> pa.RecordBatch | None:
        if frame.kind is FrameKind.SCHEMA:
            self._decoder.decode_schema(frame)
            return None
        try:
            return self._decoder.decode_batch(frame)
        except SchemaMissing:
            raise
        except SchemaMismatch as exc:
            if self.settings.on_schema_mismatch != "skip":
                raise
            self.batches_skipped += 1
            logger.warning("skipping batch on %s: %s", self.stream.name, exc)
            return None

    def close(self) -> None:
        """
        Stop the pipeline and close its read call. Unread rows are dropped.

        Safe to call from another thread while a consumer is blocked waiting for the
        next batch; that consumer then sees the end of iteration.
        """
        self._closed = True
        self.reader.close()

    def __enter__(self) -> StreamPipeline:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---------------------------------------------------------------------
    # Collect
    # ---------------------------------------------------------------------
    def to_arrow(self) -> pa.Table:
        """
        Read the remaining batches into a pyarrow Table.

        Notes:
            An empty stream yields an empty table with the fallback (session) schema,
            or with no columns if neither schema is known.
        """
        batches = list(self)
        schema = self.schema or self.fallback_schema or pa.schema([])
        return pa.Table.from_batches(batches, schema=schema)

    def to_polars(self) -> pl.DataFrame:
        """Read the remaining batches into a Polars DataFrame."""
        return pl.from_arrow(self.to_arrow())  # type: ignore[return-value]
