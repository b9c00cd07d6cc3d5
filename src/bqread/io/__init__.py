"""
bqread.io — read-session lifecycle and Arrow decode pipeline.

## Responsibilities
- Negotiate read sessions through a caller-supplied transport (session.py).
- Hand out each stream descriptor at most once across concurrent consumers (streams.py).
- Pull raw chunks per stream (reader.py), reassemble them into complete Arrow IPC
  messages (framing.py) and decode those into pyarrow record batches (decode.py).
- Glue the stages into lazy, cancellable per-stream pipelines (pipeline.py) and run
  them concurrently (parallel.py).

## Public API
- Client / ReadSessionBuilder — facade over a transport and ReadSettings.
- ReadSession, create_read_session — session negotiation.
- StreamQueue, StreamDescriptor — stream hand-out.
- RowStreamReader, FrameReassembler, BatchDecoder, StreamPipeline — pipeline stages.
- ReadSettings — configuration (env > TOML > defaults).
- StorageReadTransport (bqread.io.storage_api) — BigQuery Storage Read API transport.

## Examples
```python
from bqread.core.table import TableReference
from bqread.io import Client
from bqread.io.storage_api import StorageReadTransport

client = Client(StorageReadTransport())  # doctest: +SKIP
session = client.read_session_builder(
    TableReference.parse("bigquery-public-data.london_bicycles.cycle_stations")
).build()  # doctest: +SKIP
df = session.to_polars()  # doctest: +SKIP
```
"""

from __future__ import annotations

from .client import Client, ReadSessionBuilder
from .config import ReadSettings
from .decode import BatchDecoder
from .framing import Frame, FrameKind, FrameReassembler
from .parallel import StreamResult
from .pipeline import StreamPipeline
from .reader import RowStreamReader
from .session import ReadSession, create_read_session
from .streams import StreamDescriptor, StreamQueue
from .transport import CreateSessionRequest, SessionResponse, Transport

__all__ = [
    "BatchDecoder",
    "Client",
    "CreateSessionRequest",
    "Frame",
    "FrameKind",
    "FrameReassembler",
    "ReadSession",
    "ReadSessionBuilder",
    "ReadSettings",
    "RowStreamReader",
    "SessionResponse",
    "StreamDescriptor",
    "StreamPipeline",
    "StreamQueue",
    "StreamResult",
    "Transport",
    "create_read_session",
]
