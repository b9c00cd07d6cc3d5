"""
Session negotiation and the ReadSession value.

create_read_session() builds exactly one CreateSessionRequest from a TableReference and
ReadOptions, sends it through the transport and wraps the response in a ReadSession.
It does not retry; a failed call raises TransportError and retry policy is up to the
caller. A response with no streams is a valid, empty session.

Abandoned sessions
- Descriptors never taken from a session's queue are not released by this library.
  The service expires sessions on its own (see ReadSession.expire_time).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property

import polars as pl
import pyarrow as pa

from bqread.core.errors import TransportError
from bqread.core.table import ReadOptions, TableReference
from bqread.core.typing import SessionName

from .config import ReadSettings
from .decode import schema_from_bytes
from .parallel import StreamResult, collect_table, read_session_parallel
from .pipeline import StreamPipeline
from .reader import RowStreamReader
from .streams import StreamDescriptor, StreamQueue
from .transport import CreateSessionRequest, Transport

__all__ = [
    "ReadSession",
    "build_request",
    "create_read_session",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadSession:
    """
    A negotiated read session and the queue of its unconsumed streams.

    Attributes:
        name (SessionName): Service-assigned session name.
        table (TableReference): Table being read.
        streams (tuple[StreamDescriptor, ...]): All streams, in service order.
        serialized_schema (bytes): Encapsulated Arrow schema message for the session.
        transport (Transport): Transport used to open stream reads.
        settings (ReadSettings): Settings applied to pipelines opened from this session.
        estimated_row_count (int | None): Service estimate of rows to be read.
        expire_time (datetime | None): When the service reclaims the session.
        queue (StreamQueue): Streams not yet handed out; the only mutable part.

    Notes:
        Do not construct directly; use create_read_session() or Client.read_session().
    """

    name: SessionName
    table: TableReference
    streams: tuple[StreamDescriptor, ...]
    serialized_schema: bytes
    transport: Transport = field(repr=False)
    settings: ReadSettings = field(default_factory=ReadSettings, repr=False)
    estimated_row_count: int | None = None
    expire_time: datetime | None = None
    queue: StreamQueue = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "queue", StreamQueue(self.streams))

    @cached_property
    def arrow_schema(self) -> pa.Schema | None:
        """Session schema decoded from serialized_schema, or None if the service sent none."""
        if not self.serialized_schema:
            return None
        return schema_from_bytes(self.serialized_schema)

    # ---------------------------------------------------------------------
    # Streams
    # ---------------------------------------------------------------------
    def take_next(self) -> StreamDescriptor | None:
        """Take the next unconsumed stream descriptor, or None when all are taken."""
        return self.queue.take_next()

    def open_stream(self, stream: StreamDescriptor) -> StreamPipeline:
        """
        Open a pipeline for ``stream``.

        Notes:
            Does not touch the queue: re-reading an already taken stream from the start
            is allowed and is how callers retry a failed stream.
        """
        reader = RowStreamReader(self.transport, stream)
        return StreamPipeline(reader, settings=self.settings, fallback_schema=self.arrow_schema)

    def next_stream(self) -> StreamPipeline | None:
        """Take the next stream and open its pipeline. Returns None when all are taken."""
        stream = self.take_next()
        return None if stream is None else self.open_stream(stream)

    def iter_streams(self) -> Iterator[StreamPipeline]:
        """Take and open every remaining stream, one at a time."""
        while (pipeline := self.next_stream()) is not None:
            yield pipeline

    # ---------------------------------------------------------------------
    # Collect
    # ---------------------------------------------------------------------
    def read_parallel(self, max_workers: int | None = None) -> Iterator[StreamResult]:
        """Read the remaining streams concurrently; see bqread.io.parallel."""
        return read_session_parallel(self, max_workers=max_workers)

    def to_arrow(self, max_workers: int | None = None) -> pa.Table:
        """
        Read every remaining stream concurrently into one pyarrow Table.

        Notes:
            Row order across streams is not defined. Sort the result, or request a
            single-stream session, when order matters.

        Raises:
            StreamError: The first stream failure, after all other streams finished.
        """
        return collect_table(self, max_workers=max_workers)

    def to_polars(self, max_workers: int | None = None) -> pl.DataFrame:
        """Read every remaining stream concurrently into one Polars DataFrame."""
        return pl.from_arrow(self.to_arrow(max_workers))  # type: ignore[return-value]


def build_request(
    table: TableReference,
    options: ReadOptions | None = None,
    *,
    settings: ReadSettings | None = None,
) -> CreateSessionRequest:
    """
    Build the session-creation request for ``table``.

    Args:
        table (TableReference): Table to read.
        options (ReadOptions | None): Read options; when None, settings supply the
            default max_stream_count.
        settings (ReadSettings | None): Runtime settings.

    Returns:
        CreateSessionRequest
    """
    settings = settings or ReadSettings()
    if options is None:
        options = ReadOptions(max_stream_count=settings.default_max_stream_count)
    return CreateSessionRequest(
        parent=options.parent_for(table),
        table=table.path,
        max_stream_count=options.max_stream_count,
        selected_fields=options.selected_fields,
        row_restriction=options.row_restriction,
        snapshot_time=options.snapshot_time,
        compression=options.compression,
    )


def create_read_session(
    transport: Transport,
    table: TableReference,
    options: ReadOptions | None = None,
    *,
    settings: ReadSettings | None = None,
) -> ReadSession:
    """
    Negotiate a read session for ``table`` with one create-session call.

    Args:
        transport (Transport): Ready, authenticated transport.
        table (TableReference): Table to read.
        options (ReadOptions | None): Projection, filter, stream count, snapshot.
        settings (ReadSettings | None): Runtime settings for pipelines of this session.

    Returns:
        ReadSession: Possibly with zero streams.

    Raises:
        TransportError: The create-session call failed; the cause is chained.
    """
    settings = settings or ReadSettings()
    request = build_request(table, options, settings=settings)
    try:
        response = transport.create_session(request)
    except Exception as exc:
        raise TransportError(f"failed to create read session for {table}: {exc}", cause=exc) from exc

    logger.info(
        "created read session %s: table=%s, %d streams",
        response.name,
        table,
        len(response.streams),
    )
    return ReadSession(
        name=response.name,
        table=table,
        streams=tuple(response.streams),
        serialized_schema=response.serialized_schema,
        transport=transport,
        settings=settings,
        estimated_row_count=response.estimated_row_count,
        expire_time=response.expire_time,
    )
