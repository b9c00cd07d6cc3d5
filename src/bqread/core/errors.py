"""
Exception types raised by the session lifecycle and decode pipeline.

Purpose
- Provide one exception class per failure kind so callers can tell a failed session
  apart from a failed stream or a single bad batch.
- Errors are scoped to the smallest unit they affect: TransportError fails the session,
  StreamError subclasses fail one stream and never its siblings or the stream queue.

Taxonomy
- TransportError: session creation failed (network/auth); carries the cause.
- StreamReadError: a stream's read call failed mid-stream; carries the cause.
- FrameTooLarge / TruncatedFrame / MalformedFrame: broken IPC framing on one stream.
- SchemaMismatch: a batch disagrees with the stream schema.
- SchemaMissing: a batch arrived before the stream's schema.
- ConfigError: invalid settings.

Notes
- stdlib-only; no side effects. Every StreamError carries the stream name (or None
  when raised outside a pipeline, e.g. by a bare FrameReassembler).

Examples:
    >>> from bqread.core.errors import StreamError, TruncatedFrame
    >>> err = TruncatedFrame(buffered=3, expected=None, stream="s0")
    >>> isinstance(err, StreamError), err.stream
    (True, 's0')
"""

from __future__ import annotations

__all__ = [
    "ReadError",
    "ConfigError",
    "TransportError",
    "StreamError",
    "StreamReadError",
    "FrameError",
    "FrameTooLarge",
    "TruncatedFrame",
    "MalformedFrame",
    "SchemaMismatch",
    "SchemaMissing",
]


class ReadError(Exception):
    """Base class for every error raised by bqread."""


class ConfigError(ReadError, ValueError):
    """
    Raised when read settings are invalid or unsupported.

    Examples:
        - max_frame_size < 1
        - unknown on_schema_mismatch policy
    """


class TransportError(ReadError):
    """
    Raised when the create-session call fails. Fatal to the whole session.

    Attributes:
        cause (BaseException | None): The exception raised by the transport.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class StreamError(ReadError):
    """
    Base class for failures local to one stream.

    Attributes:
        stream (str | None): Name of the failed stream.
    """

    def __init__(self, message: str, *, stream: str | None = None) -> None:
        super().__init__(message)
        self.stream = stream

    def __str__(self) -> str:
        msg = super().__str__()
        return f"{msg} (stream={self.stream})" if self.stream else msg


class StreamReadError(StreamError):
    """
    Raised when a stream's server-streaming call fails to open or fails mid-stream.

    Attributes:
        cause (BaseException | None): The exception raised by the transport.
    """

    def __init__(
        self, message: str, *, stream: str | None = None, cause: BaseException | None = None
    ) -> None:
        super().__init__(message, stream=stream)
        self.cause = cause


class FrameError(StreamError):
    """Base class for IPC framing failures."""


class FrameTooLarge(FrameError):
    """
    Raised when a message declares a length above the configured maximum frame size.

    Attributes:
        declared_length (int): Length declared by the message prefix/metadata.
        max_frame_size (int): Configured upper bound.
    """

    def __init__(self, declared_length: int, max_frame_size: int, *, stream: str | None = None) -> None:
        super().__init__(
            f"declared frame length {declared_length} exceeds max_frame_size {max_frame_size}",
            stream=stream,
        )
        self.declared_length = declared_length
        self.max_frame_size = max_frame_size


class TruncatedFrame(FrameError):
    """
    Raised when a stream ends with a partially buffered frame.

    Attributes:
        buffered (int): Bytes buffered when the stream ended.
        expected (int | None): Declared frame length, or None if the header was incomplete.
    """

    def __init__(self, buffered: int, expected: int | None, *, stream: str | None = None) -> None:
        if expected is None:
            msg = f"stream ended inside a frame header ({buffered} bytes buffered)"
        else:
            msg = f"stream ended inside a frame ({buffered} of {expected} bytes buffered)"
        super().__init__(msg, stream=stream)
        self.buffered = buffered
        self.expected = expected


class MalformedFrame(FrameError):
    """Raised when a message prefix or its metadata cannot be parsed."""


class SchemaMismatch(StreamError):
    """
    Raised when a frame cannot be decoded against the stream schema.

    Notes:
        Fatal to the batch; the pipeline fails the stream unless configured to skip.
    """


class SchemaMissing(SchemaMismatch):
    """Raised when a batch frame is decoded before any schema frame of its stream."""
