"""
bqread core defaults.

Defines framing and concurrency defaults consumed by the bqread.io layer. This
module is zero-IO and uses only the Python standard library.

Notes:
    - ReadSettings (bqread.io.config) sources its defaults from here; change them here.
    - CONTINUATION_MARKER and the prefix sizes follow the Arrow IPC encapsulated
      message format (0xFFFFFFFF marker + int32 little-endian metadata length).
"""

from __future__ import annotations

__all__ = [
    "CONTINUATION_MARKER",
    "PREFIX_SIZE",
    "LEGACY_PREFIX_SIZE",
    "MAX_FRAME_SIZE",
    "MAX_WORKERS",
    "CHANNEL_CAPACITY",
    "MAX_STREAM_COUNT",
    "MAX_STREAM_COUNT_LIMIT",
    "ON_SCHEMA_MISMATCH",
]

# Marker preceding the metadata length in every post-0.15 Arrow IPC message.
CONTINUATION_MARKER: int = 0xFFFFFFFF

# Continuation marker (4 bytes) + metadata length (4 bytes).
PREFIX_SIZE: int = 8

# Pre-0.15 streams carry the metadata length alone.
LEGACY_PREFIX_SIZE: int = 4

# Upper bound for one encapsulated message (prefix + metadata + body).
MAX_FRAME_SIZE: int = 128 * 1024 * 1024

# Default number of concurrent stream pipelines for parallel reads.
MAX_WORKERS: int = 4

# Bounded size of the result channel shared by parallel pipelines.
CHANNEL_CAPACITY: int = 64

# 0 lets the service pick a stream count that yields reasonable throughput.
MAX_STREAM_COUNT: int = 0

# Service-side limit for max_stream_count.
MAX_STREAM_COUNT_LIMIT: int = 1000

# Default policy for batches that disagree with the stream schema.
ON_SCHEMA_MISMATCH: str = "raise"
