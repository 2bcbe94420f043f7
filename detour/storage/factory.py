"""Store factory — backend selection and initialization.

Backend selection:
  1. storage path ":memory:"  → MemoryStore (nothing persisted)
  2. anything else            → SQLiteStore at that path (default)

SQLiteStore.initialize() raises RuntimeError on an incompatible schema
version; the lifespan propagates it and startup is refused.
"""

from __future__ import annotations

from detour.storage.protocol import KeyValueStore
from detour.utils.logger import get_logger

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"


async def create_store(path: str) -> KeyValueStore:
    """Create and initialize the store for ``path``."""
    if path == MEMORY_PATH:
        from detour.storage.memory import MemoryStore

        logger.info("storage_backend_selected", backend="MemoryStore")
        return MemoryStore()

    from detour.storage.sqlite_backend import SQLiteStore

    store = SQLiteStore(db_path=path)
    await store.initialize()
    logger.info("storage_backend_selected", backend="SQLiteStore", db_path=store.db_path)
    return store
