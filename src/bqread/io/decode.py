"""
Batch decoder: complete IPC frames to pyarrow schemas and record batches.

Decoding is delegated to pyarrow.ipc, which handles nested types and LZ4_FRAME/ZSTD
body compression. Before handing a batch to pyarrow its declared field-node count is
checked against the schema, so a batch written for another schema fails with
SchemaMismatch instead of decoding into garbage.

Decoding is pure and does no IO; it may run on any thread.
"""

from __future__ import annotations

import pyarrow as pa

from bqread.core.errors import SchemaMismatch, SchemaMissing

from .framing import Frame, FrameKind

__all__ = [
    "BatchDecoder",
    "expected_node_count",
    "schema_from_bytes",
]


def _type_node_count(data_type: pa.DataType) -> int:
    if isinstance(data_type, pa.BaseExtensionType):
        return _type_node_count(data_type.storage_type)
    if pa.types.is_dictionary(data_type):
        # Nodes describe the indices; dictionaries travel in their own messages.
        return 1
    if pa.types.is_map(data_type):
        # map<k, v> is list<entries: struct<key, value>>.
        return 2 + _type_node_count(data_type.key_type) + _type_node_count(data_type.item_type)
    if (
        pa.types.is_list(data_type)
        or pa.types.is_large_list(data_type)
        or pa.types.is_fixed_size_list(data_type)
        or pa.types.is_list_view(data_type)
        or pa.types.is_large_list_view(data_type)
    ):
        return 1 + _type_node_count(data_type.value_type)
    if pa.types.is_run_end_encoded(data_type):
        # Parent node plus run_ends and values children.
        return 1 + _type_node_count(data_type.run_end_type) + _type_node_count(data_type.value_type)
    if pa.types.is_struct(data_type) or pa.types.is_union(data_type):
        return 1 + sum(
            _type_node_count(data_type.field(i).type) for i in range(data_type.num_fields)
        )
    return 1


def expected_node_count(schema: pa.Schema) -> int:
    """Number of IPC field nodes a record batch of ``schema`` declares."""
    return sum(_type_node_count(field.type) for field in schema)


def schema_from_bytes(serialized: bytes, *, stream: str | None = None) -> pa.Schema:
    """
    Decode an encapsulated schema message.

    Raises:
        SchemaMismatch: If the bytes are not a valid schema message.
    """
    try:
        return pa.ipc.read_schema(pa.py_buffer(serialized))
    except (pa.ArrowException, ValueError) as exc:
        raise SchemaMismatch(f"invalid schema message: {exc}", stream=stream) from exc


class BatchDecoder:
    """
    Per-stream decoder holding the stream's schema once it has been decoded.

    Example:
        >>> decoder = BatchDecoder(stream="s0")  # doctest: +SKIP
        >>> decoder.decode_schema(schema_frame)  # doctest: +SKIP
        >>> batch = decoder.decode_batch(batch_frame)  # doctest: +SKIP
    """

    def __init__(self, *, stream: str | None = None) -> None:
        self.stream = stream
        self.schema: pa.Schema | None = None
        self._node_count: int | None = None

    def decode_schema(self, frame: Frame) -> pa.Schema:
        """
        Decode a schema frame and make it the stream schema.

        Raises:
            SchemaMismatch: If the frame is not a schema, cannot be decoded, or a
                different schema was already established for this stream.
        """
        if frame.kind is not FrameKind.SCHEMA:
            raise SchemaMismatch(f"expected a schema frame, got {frame.kind.value}", stream=self.stream)
        schema = schema_from_bytes(frame.data, stream=self.stream)
        if self.schema is not None and not schema.equals(self.schema):
            raise SchemaMismatch("stream sent a second, different schema", stream=self.stream)
        self.schema = schema
        self._node_count = expected_node_count(schema)
        return schema

    def decode_batch(self, frame: Frame, schema: pa.Schema | None = None) -> pa.RecordBatch:
        """
        Decode a record batch frame against ``schema`` or the stream schema.

        Raises:
            SchemaMissing: No schema was given or decoded for this stream.
            SchemaMismatch: The frame is not a record batch, its layout disagrees with
                the schema, or its body cannot be decoded.
        """
        if schema is None:
            schema = self.schema
            node_count = self._node_count
        else:
            node_count = expected_node_count(schema)
        if schema is None:
            raise SchemaMissing("record batch received before the stream schema", stream=self.stream)

        if frame.kind is FrameKind.DICTIONARY_BATCH:
            raise SchemaMismatch("dictionary batches are not supported", stream=self.stream)
        if frame.kind is not FrameKind.RECORD_BATCH:
            raise SchemaMismatch(f"expected a record batch frame, got {frame.kind.value}", stream=self.stream)
        if frame.node_count is not None and frame.node_count != node_count:
            raise SchemaMismatch(
                f"batch declares {frame.node_count} field nodes, schema has {node_count}",
                stream=self.stream,
            )

        try:
            batch = pa.ipc.read_record_batch(pa.py_buffer(frame.data), schema)
            batch.validate(full=True)
        except (pa.ArrowException, ValueError) as exc:
            raise SchemaMismatch(f"undecodable record batch: {exc}", stream=self.stream) from exc
        return batch
