"""
Transport boundary consumed by the session negotiator and the row stream readers.

The core never opens channels, acquires credentials or retries. It is handed an object
satisfying the Transport protocol:

- create_session(request) -> SessionResponse (unary)
- read_rows(stream_name) -> iterable of raw byte chunks (server-streaming); the
  iterable may raise mid-iteration.

Chunks carry an Arrow IPC stream for the read stream: one schema message first, then
record batch messages. Chunk boundaries are arbitrary; bqread.io.framing reassembles
them. bqread.io.storage_api provides the BigQuery Storage Read API implementation.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from bqread.core.typing import SessionName

from .streams import StreamDescriptor

__all__ = [
    "CreateSessionRequest",
    "SessionResponse",
    "Transport",
]


@dataclass(frozen=True)
class CreateSessionRequest:
    """
    Session-creation request built by the negotiator.

    Attributes:
        parent (str): ``projects/{id}`` billed for the read.
        table (str): Table path ``projects/{p}/datasets/{d}/tables/{t}``.
        max_stream_count (int): Upper bound on streams; 0 lets the service decide.
        selected_fields (tuple[str, ...]): Column projection.
        row_restriction (str | None): Filter predicate, forwarded verbatim.
        snapshot_time (datetime | None): Snapshot to read; None means now.
        compression (str | None): Requested Arrow buffer compression.
        data_format (str): Always "arrow".
    """

    parent: str
    table: str
    max_stream_count: int = 0
    selected_fields: tuple[str, ...] = ()
    row_restriction: str | None = None
    snapshot_time: datetime | None = None
    compression: str | None = None
    data_format: str = "arrow"


@dataclass(frozen=True)
class SessionResponse:
    """
    Session description returned by the transport.

    Attributes:
        name (SessionName): Service-assigned session name.
        streams (tuple[StreamDescriptor, ...]): Streams in service order; may be empty.
        serialized_schema (bytes): Encapsulated Arrow schema message for the session.
        estimated_row_count (int | None): Service estimate of rows to be read.
        expire_time (datetime | None): When the service reclaims the session.
    """

    name: SessionName
    streams: tuple[StreamDescriptor, ...] = ()
    serialized_schema: bytes = b""
    estimated_row_count: int | None = None
    expire_time: datetime | None = None


@runtime_checkable
class Transport(Protocol):
    """Authenticated RPC channel to the read service."""

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        """Create a read session. Raise on network/auth failure."""
        ...

    def read_rows(self, stream_name: str) -> Iterable[bytes]:
        """Open a server-streaming read and return its chunks lazily."""
        ...
