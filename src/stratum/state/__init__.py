"""State store backends."""

from .base import DEFAULT_LOCK_SCOPE, LockInfo, StateMetadata, StateStore
from .dynamodb import DynamoDBStateStore
from .local import LocalStateStore
from .memory import MemoryStateStore

__all__ = [
    "DEFAULT_LOCK_SCOPE",
    "DynamoDBStateStore",
    "LocalStateStore",
    "LockInfo",
    "MemoryStateStore",
    "StateMetadata",
    "StateStore",
]
