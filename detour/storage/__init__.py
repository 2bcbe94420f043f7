"""Detour persistent key-value store package.

    from detour.storage import KeyValueStore, MemoryStore, StorageChange
"""

from detour.storage.memory import MemoryStore
from detour.storage.protocol import (
    ChangeListener,
    KeyValueStore,
    StorageChange,
)

__all__ = [
    "ChangeListener",
    "KeyValueStore",
    "MemoryStore",
    "StorageChange",
]
