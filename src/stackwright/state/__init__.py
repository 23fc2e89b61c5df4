"""State store and run lock."""

from stackwright.state.lock import FileRunLock, LockInfo, MemoryRunLock
from stackwright.state.models import ResourceRecord, StackState
from stackwright.state.store import FileStateStore, MemoryStateStore, StateStore

__all__ = [
    "FileRunLock",
    "FileStateStore",
    "LockInfo",
    "MemoryRunLock",
    "MemoryStateStore",
    "ResourceRecord",
    "StackState",
    "StateStore",
]
