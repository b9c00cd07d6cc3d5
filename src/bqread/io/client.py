"""
Client facade for bqread.

Binds a transport and ReadSettings, and offers a fluent builder for read sessions:

    client = Client(StorageReadTransport())
    session = (
        client.read_session_builder(TableReference.parse("bigquery-public-data.london_bicycles.cycle_stations"))
        .parent_project_id("my-billing-project")
        .max_stream_count(4)
        .build()
    )
    while (pipeline := client.next_stream(session)) is not None:
        for batch in pipeline:
            ...

Import DAG discipline
- Depends on bqread.core and the bqread.io pipeline modules; does not import
  bqread.io.storage_api, so the pipeline can run over any transport without loading
  the Google client libraries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from bqread.core.table import Compression, ReadOptions, TableReference

from .config import ReadSettings
from .pipeline import StreamPipeline
from .session import ReadSession, create_read_session
from .streams import StreamDescriptor
from .transport import Transport

__all__ = [
    "Client",
    "ReadSessionBuilder",
]


class ReadSessionBuilder:
    """
    Fluent builder for a ReadSession. Each setter returns the builder.

    Notes:
        Values are validated by ReadOptions when build() is called.
    """

    def __init__(self, client: Client, table: TableReference) -> None:
        self._client = client
        self._table = table
        self._opts: dict[str, Any] = {}

    def parent_project_id(self, parent_project_id: str) -> ReadSessionBuilder:
        """Project billed for the session. Defaults to the table's project."""
        self._opts["parent_project_id"] = parent_project_id
        return self

    def max_stream_count(self, max_stream_count: int) -> ReadSessionBuilder:
        """Maximum initial number of streams; 0 lets the service decide (limit 1000)."""
        self._opts["max_stream_count"] = max_stream_count
        return self

    def row_restriction(self, row_restriction: str) -> ReadSessionBuilder:
        """SQL filter similar to a WHERE clause, e.g. ``"int_field > 5"``. No aggregates."""
        self._opts["row_restriction"] = row_restriction
        return self

    def selected_fields(self, selected_fields: list[str] | tuple[str, ...]) -> ReadSessionBuilder:
        """Columns to read; a nested field selects all of its sub-fields."""
        self._opts["selected_fields"] = tuple(selected_fields)
        return self

    def snapshot_time(self, snapshot_time: datetime) -> ReadSessionBuilder:
        """Read the table as of this time."""
        self._opts["snapshot_time"] = snapshot_time
        return self

    def compression(self, compression: Compression) -> ReadSessionBuilder:
        """Arrow buffer compression requested from the service."""
        self._opts["compression"] = compression
        return self

    def options(self) -> ReadOptions:
        if "max_stream_count" not in self._opts:
            self._opts["max_stream_count"] = self._client.settings.default_max_stream_count
        return ReadOptions(**self._opts)

    def build(self) -> ReadSession:
        """Create the session with one call to the service."""
        return self._client.read_session(self._table, self.options())


class Client:
    """
    Facade bound to a transport and ReadSettings.

    Notes:
        The transport must already be authenticated; the client performs no retries.
    """

    def __init__(self, transport: Transport, settings: ReadSettings | None = None) -> None:
        self.transport = transport
        self.settings = settings or ReadSettings()

    def read_session_builder(self, table: TableReference) -> ReadSessionBuilder:
        return ReadSessionBuilder(self, table)

    def read_session(self, table: TableReference, options: ReadOptions | None = None) -> ReadSession:
        """
        Create a read session.

        Raises:
            bqread.core.errors.TransportError: The create-session call failed.
        """
        return create_read_session(self.transport, table, options, settings=self.settings)

    def next_stream(self, session: ReadSession) -> StreamPipeline | None:
        """Take the session's next stream and open its pipeline; None when all are taken."""
        return session.next_stream()

    def read_rows(self, session: ReadSession, stream: StreamDescriptor) -> StreamPipeline:
        """Open a fresh pipeline for ``stream`` without touching the session queue."""
        return session.open_stream(stream)
