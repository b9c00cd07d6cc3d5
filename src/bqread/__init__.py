"""
bqread — lazy Arrow reads from the BigQuery Storage Read API.

Packages
- bqread.core: zero-IO contracts (table references, options, errors, IPC framing).
- bqread.io: session negotiation, stream hand-out and the decode pipeline.
"""

from __future__ import annotations

from bqread.core.errors import (
    ConfigError,
    FrameTooLarge,
    MalformedFrame,
    ReadError,
    SchemaMismatch,
    SchemaMissing,
    StreamError,
    StreamReadError,
    TransportError,
    TruncatedFrame,
)
from bqread.core.table import ReadOptions, TableReference
from bqread.io import Client, ReadSession, ReadSettings, create_read_session

__all__ = [
    "Client",
    "ConfigError",
    "FrameTooLarge",
    "MalformedFrame",
    "ReadError",
    "ReadOptions",
    "ReadSession",
    "ReadSettings",
    "SchemaMismatch",
    "SchemaMissing",
    "StreamError",
    "StreamReadError",
    "TableReference",
    "TransportError",
    "TruncatedFrame",
    "create_read_session",
]
