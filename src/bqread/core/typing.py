"""
Lightweight typing aliases used across bqread.

Provides minimal NewTypes for remote-assigned resource names. This module contains
no runtime logic and is zero-IO.

Examples:
    >>> from bqread.core.typing import StreamName
    >>> StreamName("projects/p/locations/us/sessions/s/streams/0")
    'projects/p/locations/us/sessions/s/streams/0'
"""

from __future__ import annotations

from typing import NewType

__all__ = [
    "SessionName",
    "StreamName",
]

# Opaque names assigned by the service; never parsed beyond the session prefix.
SessionName = NewType("SessionName", str)
StreamName = NewType("StreamName", str)
