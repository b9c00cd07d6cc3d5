"""Tests for `bqread.io.reader` raw chunk consumption."""

from __future__ import annotations

import pytest

from bqread.core.errors import StreamReadError
from bqread.core.typing import StreamName
from bqread.io.reader import RowStreamReader
from bqread.io.streams import StreamDescriptor
from tests.test_helpers.arrow_streams import FakeTransport


def _reader(transport: FakeTransport, name: str = "s0") -> RowStreamReader:
    return RowStreamReader(transport, StreamDescriptor(StreamName(name)))


def test_yields_chunks_in_order_then_ends() -> None:
    transport = FakeTransport({"s0": [b"ab", b"", b"cde"]})
    reader = _reader(transport)

    assert list(reader) == [b"ab", b"", b"cde"]
    assert reader.done
    assert reader.bytes_read == 5
    assert transport.closed == ["s0"]


def test_opens_call_lazily() -> None:
    transport = FakeTransport({"s0": [b"x"]})
    reader = _reader(transport)

    assert transport.opened == []
    assert next(reader) == b"x"
    assert transport.opened == ["s0"]


def test_single_use_after_exhaustion() -> None:
    transport = FakeTransport({"s0": [b"x"]})
    reader = _reader(transport)
    list(reader)

    assert list(reader) == []
    assert transport.opened == ["s0"]


def test_mid_stream_failure_raises_stream_read_error() -> None:
    cause = ConnectionResetError("peer reset")
    transport = FakeTransport({"s0": [b"a", b"b"]}, read_errors={"s0": cause})
    reader = _reader(transport)

    assert next(reader) == b"a"
    assert next(reader) == b"b"
    with pytest.raises(StreamReadError) as info:
        next(reader)

    assert info.value.cause is cause
    assert info.value.stream == "s0"
    assert reader.done
    with pytest.raises(StopIteration):
        next(reader)


def test_open_failure_raises_stream_read_error() -> None:
    class Refusing(FakeTransport):
        def read_rows(self, stream_name: str):
            raise PermissionError("denied")

    reader = _reader(Refusing({}))

    with pytest.raises(StreamReadError, match="failed to open stream"):
        next(reader)


def test_close_releases_underlying_call() -> None:
    transport = FakeTransport({"s0": [b"a", b"b", b"c"]})

    with _reader(transport) as reader:
        assert next(reader) == b"a"
        assert transport.closed == []

    assert transport.closed == ["s0"]
    assert list(reader) == []


def test_rereading_a_descriptor_needs_a_new_reader() -> None:
    transport = FakeTransport({"s0": [b"a", b"b"]})
    stream = StreamDescriptor(StreamName("s0"))

    first = list(RowStreamReader(transport, stream))
    second = list(RowStreamReader(transport, stream))

    assert first == second == [b"a", b"b"]
    assert transport.opened == ["s0", "s0"]
