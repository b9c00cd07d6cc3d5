"""
Frame reassembly for Arrow IPC streams delivered in arbitrary chunks.

Network reads do not respect message boundaries: one chunk may hold a fraction of a
message, exactly one, or several. FrameReassembler buffers chunks and emits a Frame
only once the complete encapsulated message is buffered.

STATE MACHINE
=============

    AWAITING_LENGTH --(prefix + metadata buffered)--> AWAITING_BODY(frame_length)
    AWAITING_BODY   --(frame_length bytes buffered)--> EMITTING
    EMITTING        --(frame cut off the buffer)-----> AWAITING_LENGTH

The declared length of a frame is prefix + metadata_length + Message.bodyLength, so
the header (prefix and flatbuffer metadata) is what AWAITING_LENGTH waits for.
Surplus bytes stay buffered and are parsed immediately.

EDGE CASES
==========
- A metadata length of 0 is the end-of-stream marker; it is emitted at once as an
  END_OF_STREAM frame. A message with an empty body is emitted as soon as its header
  is complete.
- A declared length above max_frame_size raises FrameTooLarge before buffering it.
- finish() with buffered bytes raises TruncatedFrame; partial frames are never emitted.

Each reassembler owns its buffer and is fed by exactly one stream.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from bqread.core.constants import MAX_FRAME_SIZE
from bqread.core.errors import FrameTooLarge, MalformedFrame, TruncatedFrame
from bqread.core.ipc import MessageHeader, MessageType, read_message_header, read_prefix

__all__ = [
    "Frame",
    "FrameKind",
    "ReassemblerState",
    "FrameReassembler",
    "iter_frames",
]

logger = logging.getLogger(__name__)


class FrameKind(Enum):
    SCHEMA = "schema"
    RECORD_BATCH = "record_batch"
    DICTIONARY_BATCH = "dictionary_batch"
    END_OF_STREAM = "end_of_stream"
    OTHER = "other"


_KIND_BY_TYPE = {
    MessageType.SCHEMA: FrameKind.SCHEMA,
    MessageType.RECORD_BATCH: FrameKind.RECORD_BATCH,
    MessageType.DICTIONARY_BATCH: FrameKind.DICTIONARY_BATCH,
}


class ReassemblerState(Enum):
    AWAITING_LENGTH = "awaiting_length"
    AWAITING_BODY = "awaiting_body"
    EMITTING = "emitting"


@dataclass(frozen=True)
class Frame:
    """
    One complete encapsulated IPC message.

    Attributes:
        kind (FrameKind): Message kind.
        data (bytes): Whole message: prefix, metadata and body.
        metadata_length (int): Declared flatbuffer metadata length.
        body_length (int): Declared body length.
        num_rows (int | None): Row count declared by record batch frames.
        node_count (int | None): Field-node count declared by record batch frames.
    """

    kind: FrameKind
    data: bytes
    metadata_length: int = 0
    body_length: int = 0
    num_rows: int | None = None
    node_count: int | None = None

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class _PendingFrame:
    kind: FrameKind
    length: int
    metadata_length: int
    header: MessageHeader | None


class FrameReassembler:
    """
    Buffer raw chunks and cut them into complete frames.

    Example:
        >>> r = FrameReassembler()
        >>> r.feed(b"\\xff\\xff\\xff\\xff")
        []
        >>> [f.kind.value for f in r.feed(b"\\x00\\x00\\x00\\x00")]
        ['end_of_stream']
        >>> r.finish()
    """

    def __init__(self, max_frame_size: int = MAX_FRAME_SIZE, *, stream: str | None = None) -> None:
        self.max_frame_size = max_frame_size
        self.stream = stream
        self._buffer = bytearray()
        self._pending: _PendingFrame | None = None
        self.state = ReassemblerState.AWAITING_LENGTH
        self.frames_emitted = 0

    @property
    def buffered(self) -> int:
        """Bytes received but not yet emitted."""
        return len(self._buffer)

    def feed(self, chunk: bytes | bytearray | memoryview) -> list[Frame]:
        """
        Append a chunk and return every frame it completes, in order.

        Raises:
            FrameTooLarge: A message declares a length above max_frame_size.
            MalformedFrame: A prefix or metadata block cannot be parsed.
        """
        self._buffer += chunk
        frames: list[Frame] = []
        while (frame := self._next_frame()) is not None:
            frames.append(frame)
        return frames

    def finish(self) -> None:
        """
        Signal end of input.

        Raises:
            TruncatedFrame: Bytes of an incomplete frame are still buffered.
        """
        if self._buffer:
            expected = self._pending.length if self._pending is not None else None
            raise TruncatedFrame(len(self._buffer), expected, stream=self.stream)

    def _next_frame(self) -> Frame | None:
        if self.state is ReassemblerState.AWAITING_LENGTH:
            pending = self._read_header()
            if pending is None:
                return None
            self._pending = pending
            self.state = ReassemblerState.AWAITING_BODY

        pending = self._pending
        if pending is None or len(self._buffer) < pending.length:
            return None

        self.state = ReassemblerState.EMITTING
        data = bytes(self._buffer[: pending.length])
        del self._buffer[: pending.length]
        header = pending.header
        frame = Frame(
            kind=pending.kind,
            data=data,
            metadata_length=pending.metadata_length,
            body_length=header.body_length if header is not None else 0,
            num_rows=header.length if header is not None else None,
            node_count=header.node_count if header is not None else None,
        )
        self._pending = None
        self.state = ReassemblerState.AWAITING_LENGTH
        self.frames_emitted += 1
        return frame

    def _read_header(self) -> _PendingFrame | None:
        try:
            prefix = read_prefix(self._buffer)
        except ValueError as exc:
            raise MalformedFrame(str(exc), stream=self.stream) from exc
        if prefix is None:
            return None
        if prefix.is_end_of_stream:
            return _PendingFrame(FrameKind.END_OF_STREAM, prefix.size, 0, None)

        header_length = prefix.size + prefix.metadata_length
        if header_length > self.max_frame_size:
            raise FrameTooLarge(header_length, self.max_frame_size, stream=self.stream)
        if len(self._buffer) < header_length:
            return None

        metadata = bytes(self._buffer[prefix.size : header_length])
        try:
            header = read_message_header(metadata)
        except ValueError as exc:
            raise MalformedFrame(str(exc), stream=self.stream) from exc

        length = header_length + header.body_length
        if length > self.max_frame_size:
            raise FrameTooLarge(length, self.max_frame_size, stream=self.stream)

        kind = _KIND_BY_TYPE.get(header.message_type, FrameKind.OTHER)
        logger.debug("frame header: kind=%s length=%d stream=%s", kind.value, length, self.stream)
        return _PendingFrame(kind, length, prefix.metadata_length, header)


def iter_frames(
    chunks: Iterable[bytes],
    *,
    max_frame_size: int = MAX_FRAME_SIZE,
    stream: str | None = None,
) -> Iterator[Frame]:
    """
    Reassemble an iterable of chunks into frames, lazily.

    Raises:
        TruncatedFrame: The chunks end inside a frame.
        FrameTooLarge / MalformedFrame: See FrameReassembler.feed.
    """
    reassembler = FrameReassembler(max_frame_size, stream=stream)
    for chunk in chunks:
        yield from reassembler.feed(chunk)
    reassembler.finish()
