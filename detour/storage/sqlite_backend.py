"""SQLiteStore — aiosqlite-based persistent key-value store.

Uses aiosqlite EXCLUSIVELY. The stdlib sqlite3 synchronous module is
PROHIBITED in detour/storage/ — no blocking I/O on the event loop.

Features:
  - WAL mode: PRAGMA journal_mode=WAL (concurrent reads while writing)
  - Schema version guard: PRAGMA user_version=1 — RuntimeError on mismatch
  - Long-lived connection: opened in initialize(), closed in close()
  - Values stored as JSON text in a single kv table
  - Change notification after each committed write (ChangeNotifier)

Reads and writes are NOT wrapped in a transaction spanning the caller's
read-modify-write. Callers that read, mutate and write back (audit log,
rule commands) accept lost updates under concurrent writers.
"""

from __future__ import annotations

import json
import os
from typing import Any, Iterable, Optional

import aiosqlite

from detour.storage.protocol import ChangeNotifier, changes_for
from detour.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Schema DDL ───────────────────────────────────────────────────────────────

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""

_SCHEMA_VERSION = 1


# ─── SQLiteStore ──────────────────────────────────────────────────────────────


class SQLiteStore(ChangeNotifier):
    """Async SQLite key-value store using aiosqlite exclusively.

    Usage:
        store = SQLiteStore("~/.detour/storage.db")
        await store.initialize()   # raises RuntimeError on schema version mismatch
        await store.set({"loggingEnabled": True})
        values = await store.get(["loggingEnabled"])
        await store.close()
    """

    def __init__(self, db_path: str = "~/.detour/storage.db") -> None:
        super().__init__()
        self._db_path: str = os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the connection, enable WAL mode, and create/verify schema.

        Raises:
            RuntimeError: If PRAGMA user_version is neither 0 nor 1.
        """
        parent_dir = os.path.dirname(self._db_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL;")

        cursor = await self._db.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current_version: int = row[0] if row else 0

        if current_version == 0:
            await self._db.executescript(_CREATE_SCHEMA_SQL)
            await self._db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
            await self._db.commit()
            logger.info(
                "storage_schema_created",
                db_path=self._db_path,
                schema_version=_SCHEMA_VERSION,
            )
        elif current_version == _SCHEMA_VERSION:
            logger.info(
                "storage_schema_ok",
                db_path=self._db_path,
                schema_version=current_version,
            )
        else:
            await self._db.close()
            self._db = None
            raise RuntimeError(
                f"Unsupported storage schema version: {current_version}. "
                f"Delete {self._db_path} to reset."
            )

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.debug("storage_closed", db_path=self._db_path)

    # ── KeyValueStore Protocol Methods ────────────────────────────────────────

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        assert self._db is not None, "Store not initialized — call initialize() first"
        keys = list(keys)
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        cursor = await self._db.execute(
            f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys
        )
        rows = await cursor.fetchall()
        return {row["key"]: json.loads(row["value"]) for row in rows}

    async def set(self, items: dict[str, Any]) -> None:
        assert self._db is not None, "Store not initialized — call initialize() first"
        if not items:
            return
        # Encode first so an unserialisable value fails before anything is written.
        encoded = {key: json.dumps(value) for key, value in items.items()}
        old = await self.get(encoded)
        await self._db.executemany(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            list(encoded.items()),
        )
        await self._db.commit()
        await self._notify(
            changes_for(old, {key: json.loads(value) for key, value in encoded.items()})
        )

    async def remove(self, keys: Iterable[str]) -> None:
        assert self._db is not None, "Store not initialized — call initialize() first"
        keys = list(keys)
        old = await self.get(keys)
        if not old:
            return
        await self._db.executemany("DELETE FROM kv WHERE key = ?", [(key,) for key in old])
        await self._db.commit()
        await self._notify(changes_for(old, {}, removed=old))

    async def health_check(self) -> bool:
        try:
            assert self._db is not None
            await self._db.execute("SELECT 1")
            return True
        except Exception:
            return False
