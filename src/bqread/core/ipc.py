"""
Arrow IPC encapsulated-message primitives.

An encapsulated message on the wire is::

    <0xFFFFFFFF continuation><int32 metadata_length><metadata flatbuffer><body>

where the metadata is a flatbuffer ``Message`` table padded to 8 bytes and the body
length is declared inside it (``Message.bodyLength``). Streams written before Arrow
0.15 omit the continuation marker. A metadata length of 0 marks the end of a stream.

This module only peeks at the fields the frame reassembler and decoder need
(header type, body length, row count and field-node count); pyarrow does the actual
decoding. Zero-IO; the prefix is unpacked with struct and the Message table is read
with the flatbuffers runtime.

Flatbuffer layout used here (Message.fbs / Schema.fbs):
    Message     { version: short; header_type: ubyte; header: union; bodyLength: long; ... }
    RecordBatch { length: long; nodes: [FieldNode]; buffers: [Buffer]; ... }
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

import flatbuffers
from flatbuffers.table import Table

from .constants import CONTINUATION_MARKER, LEGACY_PREFIX_SIZE, PREFIX_SIZE

__all__ = [
    "MessageType",
    "MessagePrefix",
    "MessageHeader",
    "read_prefix",
    "read_message_header",
]

# vtable offsets (4 + 2 * field slot).
_MESSAGE_HEADER_TYPE = 6
_MESSAGE_HEADER = 8
_MESSAGE_BODY_LENGTH = 10
_BATCH_LENGTH = 4
_BATCH_NODES = 6


class MessageType(IntEnum):
    """Values of the ``MessageHeader`` union discriminator."""

    NONE = 0
    SCHEMA = 1
    DICTIONARY_BATCH = 2
    RECORD_BATCH = 3
    TENSOR = 4
    SPARSE_TENSOR = 5


@dataclass(frozen=True)
class MessagePrefix:
    """
    Parsed message prefix.

    Attributes:
        size (int): Prefix size in bytes (8, or 4 for legacy streams).
        metadata_length (int): Declared flatbuffer metadata length; 0 marks end of stream.
    """

    size: int
    metadata_length: int

    @property
    def is_end_of_stream(self) -> bool:
        return self.metadata_length == 0


@dataclass(frozen=True)
class MessageHeader:
    """
    Fields read from a ``Message`` flatbuffer.

    Attributes:
        message_type (int): MessageType value (kept as int for unknown future types).
        body_length (int): Declared body length in bytes.
        length (int | None): Row count for record batches.
        node_count (int | None): Number of field nodes for record batches.
    """

    message_type: int
    body_length: int
    length: int | None = None
    node_count: int | None = None


def read_prefix(buf: bytes | bytearray | memoryview) -> MessagePrefix | None:
    """
    Parse the message prefix at the start of ``buf``.

    Returns:
        MessagePrefix | None: None until enough bytes are available.

    Raises:
        ValueError: If the declared metadata length is negative.
    """
    if len(buf) < LEGACY_PREFIX_SIZE:
        return None
    (first,) = struct.unpack_from("<I", buf, 0)
    if first == CONTINUATION_MARKER:
        if len(buf) < PREFIX_SIZE:
            return None
        (metadata_length,) = struct.unpack_from("<i", buf, LEGACY_PREFIX_SIZE)
        size = PREFIX_SIZE
    else:
        (metadata_length,) = struct.unpack_from("<i", buf, 0)
        size = LEGACY_PREFIX_SIZE
    if metadata_length < 0:
        raise ValueError(f"negative metadata length {metadata_length}")
    return MessagePrefix(size=size, metadata_length=metadata_length)


class _Message:
    """Accessors for the ``Message`` table, in the shape flatc generates."""

    __slots__ = ["_tab"]

    @classmethod
    def GetRootAs(cls, buf: bytes, offset: int = 0) -> _Message:
        n = flatbuffers.encode.Get(flatbuffers.packer.uoffset, buf, offset)
        x = cls()
        x.Init(buf, n + offset)
        return x

    def Init(self, buf: bytes, pos: int) -> None:
        self._tab = Table(buf, pos)

    def HeaderType(self) -> int:
        o = flatbuffers.number_types.UOffsetTFlags.py_type(self._tab.Offset(_MESSAGE_HEADER_TYPE))
        if o != 0:
            return self._tab.Get(flatbuffers.number_types.Uint8Flags, o + self._tab.Pos)
        return 0

    def Header(self) -> Table | None:
        o = flatbuffers.number_types.UOffsetTFlags.py_type(self._tab.Offset(_MESSAGE_HEADER))
        if o != 0:
            obj = Table(bytearray(), 0)
            self._tab.Union(obj, o)
            return obj
        return None

    def BodyLength(self) -> int:
        o = flatbuffers.number_types.UOffsetTFlags.py_type(self._tab.Offset(_MESSAGE_BODY_LENGTH))
        if o != 0:
            return self._tab.Get(flatbuffers.number_types.Int64Flags, o + self._tab.Pos)
        return 0


class _RecordBatch:
    """Accessors for the ``RecordBatch`` table (row count and field-node count only)."""

    __slots__ = ["_tab"]

    def Init(self, buf: bytes, pos: int) -> None:
        self._tab = Table(buf, pos)

    def Length(self) -> int:
        o = flatbuffers.number_types.UOffsetTFlags.py_type(self._tab.Offset(_BATCH_LENGTH))
        if o != 0:
            return self._tab.Get(flatbuffers.number_types.Int64Flags, o + self._tab.Pos)
        return 0

    def NodesLength(self) -> int:
        o = flatbuffers.number_types.UOffsetTFlags.py_type(self._tab.Offset(_BATCH_NODES))
        if o != 0:
            return self._tab.VectorLen(o)
        return 0


def read_message_header(metadata: bytes) -> MessageHeader:
    """
    Read header type, body length and, for record batches, row/node counts.

    Args:
        metadata (bytes): The flatbuffer bytes following the prefix.

    Raises:
        ValueError: If the flatbuffer is malformed or the body length is negative.
    """
    try:
        message = _Message.GetRootAs(metadata, 0)
        message_type = message.HeaderType()
        body_length = message.BodyLength()
        length = node_count = None
        if message_type == MessageType.RECORD_BATCH:
            header = message.Header()
            if header is not None:
                batch = _RecordBatch()
                batch.Init(header.Bytes, header.Pos)
                length = batch.Length()
                node_count = batch.NodesLength()
    except (struct.error, IndexError, TypeError) as exc:
        raise ValueError(f"malformed message metadata: {exc}") from exc
    if body_length < 0:
        raise ValueError(f"negative body length {body_length}")
    return MessageHeader(
        message_type=message_type,
        body_length=body_length,
        length=length,
        node_count=node_count,
    )
