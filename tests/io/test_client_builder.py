"""Tests for `bqread.io.client` facade and session builder."""

from __future__ import annotations

from datetime import datetime, timezone

import pydantic
import pytest

from bqread import Client, ReadSettings, TableReference
from bqread.io.transport import Transport
from tests.test_helpers.arrow_streams import (
    FakeTransport,
    schema_message,
    stream_name,
    well_formed_streams,
)

TABLE = TableReference.parse("projects/p/datasets/d/tables/t")


def test_fake_transport_satisfies_protocol() -> None:
    assert isinstance(FakeTransport({}), Transport)


def test_builder_forwards_every_option() -> None:
    transport = FakeTransport(well_formed_streams([1]))
    snapshot = datetime(2024, 1, 1, tzinfo=timezone.utc)

    (
        Client(transport)
        .read_session_builder(TABLE)
        .parent_project_id("billing")
        .max_stream_count(8)
        .row_restriction("id > 0")
        .selected_fields(["id", "point"])
        .snapshot_time(snapshot)
        .compression("lz4_frame")
        .build()
    )

    (request,) = transport.requests
    assert request.parent == "projects/billing"
    assert request.table == "projects/p/datasets/d/tables/t"
    assert request.max_stream_count == 8
    assert request.row_restriction == "id > 0"
    assert request.selected_fields == ("id", "point")
    assert request.snapshot_time == snapshot
    assert request.compression == "lz4_frame"


def test_builder_defaults_stream_count_from_settings() -> None:
    transport = FakeTransport({})
    client = Client(transport, ReadSettings(default_max_stream_count=5))

    client.read_session_builder(TABLE).build()

    assert transport.requests[0].max_stream_count == 5
    assert transport.requests[0].parent == "projects/p"


def test_builder_rejects_out_of_range_stream_count() -> None:
    transport = FakeTransport({})

    with pytest.raises(pydantic.ValidationError):
        Client(transport).read_session_builder(TABLE).max_stream_count(1001).build()
    assert transport.requests == []


def test_next_stream_and_read_rows() -> None:
    transport = FakeTransport(well_formed_streams([3, 2]), serialized_schema=schema_message())
    client = Client(transport)
    session = client.read_session(TABLE)

    first = client.next_stream(session)
    second = client.next_stream(session)

    assert first is not None and second is not None
    assert first.stream.name == stream_name(0)
    assert first.to_arrow()["id"].to_pylist() == [0, 1, 2]
    assert second.to_arrow()["id"].to_pylist() == [3, 4]
    assert client.next_stream(session) is None

    again = client.read_rows(session, first.stream)
    assert again.to_arrow().num_rows == 3


def test_session_settings_come_from_client() -> None:
    settings = ReadSettings(max_workers=2, on_schema_mismatch="skip")
    client = Client(FakeTransport({}), settings)

    session = client.read_session(TABLE)

    assert session.settings is settings
