"""Reusable services (session persistence)."""

from audioscribe.services.snapshot_writer import SnapshotWriter
from audioscribe.services.state_sink import (
    LocalFileStateSink,
    NullStateSink,
    RedisStateSink,
    SessionSnapshot,
    StateSink,
    get_state_sink,
)

__all__ = [
    "LocalFileStateSink",
    "NullStateSink",
    "RedisStateSink",
    "SessionSnapshot",
    "SnapshotWriter",
    "StateSink",
    "get_state_sink",
]
