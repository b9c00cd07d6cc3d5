"""Arrow IPC fixtures and a fake transport serving them."""

from __future__ import annotations

import threading
from collections.abc import Iterator

import pyarrow as pa

from bqread.core.typing import SessionName, StreamName
from bqread.io.streams import StreamDescriptor
from bqread.io.transport import CreateSessionRequest, SessionResponse

SESSION_NAME = "projects/p/locations/us/sessions/s1"

END_OF_STREAM = b"\xff\xff\xff\xff\x00\x00\x00\x00"

SCHEMA = pa.schema(
    [
        pa.field("id", pa.int64(), nullable=False),
        pa.field("name", pa.string()),
        pa.field("tags", pa.list_(pa.string())),
        pa.field("point", pa.struct([("x", pa.float64()), ("y", pa.float64())])),
    ]
)

OTHER_SCHEMA = pa.schema([pa.field("a", pa.int32()), pa.field("b", pa.int32())])


def make_batch(start: int, n: int) -> pa.RecordBatch:
    ids = list(range(start, start + n))
    return pa.record_batch(
        [
            pa.array(ids, pa.int64()),
            pa.array([None if i % 3 == 0 else f"row{i}" for i in ids], pa.string()),
            pa.array([[f"t{i}"] * (i % 2) for i in ids], pa.list_(pa.string())),
            pa.array(
                [{"x": float(i), "y": -float(i)} for i in ids],
                pa.struct([("x", pa.float64()), ("y", pa.float64())]),
            ),
        ],
        schema=SCHEMA,
    )


def make_other_batch(n: int) -> pa.RecordBatch:
    return pa.record_batch(
        [pa.array(range(n), pa.int32()), pa.array(range(n), pa.int32())], schema=OTHER_SCHEMA
    )


def schema_message(schema: pa.Schema = SCHEMA) -> bytes:
    return schema.serialize().to_pybytes()


def batch_message(batch: pa.RecordBatch) -> bytes:
    return batch.serialize().to_pybytes()


def ipc_stream(batches: list[pa.RecordBatch], compression: str | None = None) -> bytes:
    """Full IPC stream as pyarrow writes it: schema, batches, end-of-stream marker."""
    sink = pa.BufferOutputStream()
    options = pa.ipc.IpcWriteOptions(compression=compression)
    with pa.ipc.new_stream(sink, SCHEMA, options=options) as writer:
        for batch in batches:
            writer.write_batch(batch)
    return sink.getvalue().to_pybytes()


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


class FakeTransport:
    """In-memory transport: each stream serves a fixed list of chunks."""

    def __init__(
        self,
        streams: dict[str, list[bytes]],
        *,
        serialized_schema: bytes = b"",
        create_error: Exception | None = None,
        read_errors: dict[str, Exception] | None = None,
    ) -> None:
        self.streams = streams
        self.serialized_schema = serialized_schema
        self.create_error = create_error
        self.read_errors = read_errors or {}
        self.requests: list[CreateSessionRequest] = []
        self.opened: list[str] = []
        self.closed: list[str] = []
        self._lock = threading.Lock()

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        self.requests.append(request)
        if self.create_error is not None:
            raise self.create_error
        return SessionResponse(
            name=SessionName(SESSION_NAME),
            streams=tuple(StreamDescriptor(StreamName(n), estimated_row_count=None) for n in self.streams),
            serialized_schema=self.serialized_schema,
        )

    def read_rows(self, stream_name: str) -> Iterator[bytes]:
        with self._lock:
            self.opened.append(stream_name)
        return self._serve(stream_name)

    def _serve(self, stream_name: str) -> Iterator[bytes]:
        try:
            yield from self.streams[stream_name]
            if stream_name in self.read_errors:
                raise self.read_errors[stream_name]
        finally:
            with self._lock:
                self.closed.append(stream_name)


def stream_name(i: int) -> str:
    return f"{SESSION_NAME}/streams/{i}"


def well_formed_streams(
    rows_per_stream: list[int], batch_size: int = 4, *, end_of_stream: bool = True
) -> dict[str, list[bytes]]:
    """One IPC stream per entry, ids contiguous across streams, chunked at 16 bytes."""
    out: dict[str, list[bytes]] = {}
    start = 0
    for i, rows in enumerate(rows_per_stream):
        batches = []
        for off in range(0, rows, batch_size):
            n = min(batch_size, rows - off)
            batches.append(make_batch(start + off, n))
        start += rows
        data = ipc_stream(batches)
        if not end_of_stream:
            data = data[: -len(END_OF_STREAM)]
        out[stream_name(i)] = split_every(data, 16)
    return out
