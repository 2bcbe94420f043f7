"""KeyValueStore Protocol + change notification plumbing.

Detour persists its rule list, logging flag and audit log in an opaque
asynchronous key-value store. Values are JSON-compatible. Every committed
write notifies subscribers with the old and new value of each key touched;
the Reactive Configuration Store is the main subscriber.

Layout:
    protocol.py       — KeyValueStore Protocol + StorageChange + ChangeNotifier
    memory.py         — MemoryStore (in-process, used by tests and ":memory:")
    sqlite_backend.py — SQLiteStore (aiosqlite, WAL mode, PRAGMA version guard)
    factory.py        — create_store() — backend selection by path
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, runtime_checkable

from detour.utils.logger import get_logger

logger = get_logger(__name__)


# ─── StorageChange ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StorageChange:
    """Old and new value of one key after a committed write.

    new_value is None when the key was removed.
    """

    old_value: Any = None
    new_value: Any = None


ChangeListener = Callable[[dict[str, StorageChange]], Awaitable[None]]
Unsubscribe = Callable[[], None]


# ─── KeyValueStore Protocol ──────────────────────────────────────────────────


@runtime_checkable
class KeyValueStore(Protocol):
    """Pluggable persistent store interface.

    Implementations: MemoryStore, SQLiteStore. Selection via create_store().

    All data methods are async suspension points. get() returns only the keys
    that exist; callers apply their own defaults. Values returned are copies —
    mutating them never changes stored state.
    """

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        ...

    async def set(self, items: dict[str, Any]) -> None:
        """Persist items, then notify subscribers with the resulting changes."""
        ...

    async def remove(self, keys: Iterable[str]) -> None:
        ...

    def subscribe(self, listener: ChangeListener) -> Unsubscribe:
        ...

    async def health_check(self) -> bool:
        """Returns True if the store is operational. Must not raise."""
        ...

    async def close(self) -> None:
        ...


# ─── ChangeNotifier ──────────────────────────────────────────────────────────


class ChangeNotifier:
    """Subscriber bookkeeping shared by the store implementations.

    A failing listener is logged and skipped — it never fails the write that
    triggered it and never starves the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def _notify(self, changes: dict[str, StorageChange]) -> None:
        if not changes:
            return
        for listener in list(self._listeners):
            try:
                await listener(changes)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "storage_listener_failed",
                    keys=sorted(changes),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )


def changes_for(
    old: dict[str, Any], items: dict[str, Any], removed: Optional[Iterable[str]] = None
) -> dict[str, StorageChange]:
    """Build the change map for a write of ``items`` (and removal of ``removed``)."""
    changes = {
        key: StorageChange(old_value=old.get(key), new_value=value)
        for key, value in items.items()
    }
    for key in removed or ():
        if key in old:
            changes[key] = StorageChange(old_value=old[key], new_value=None)
    return changes
