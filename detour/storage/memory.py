"""MemoryStore — in-process KeyValueStore.

Same semantics as SQLiteStore (JSON-compatible values, copies on read,
change notification after every write) without any persistence. Used by the
test suite and when ``storage.path`` is ``":memory:"``.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from detour.storage.protocol import ChangeNotifier, changes_for


def _copy(value: Any) -> Any:
    # JSON round-trip: the same value shape SQLiteStore would hand back.
    return json.loads(json.dumps(value))


class MemoryStore(ChangeNotifier):
    """Dict-backed async key-value store."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        super().__init__()
        self._data: dict[str, Any] = {k: _copy(v) for k, v in (initial or {}).items()}

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: _copy(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: dict[str, Any]) -> None:
        encoded = {key: _copy(value) for key, value in items.items()}
        old = {key: self._data.get(key) for key in encoded}
        self._data.update(encoded)
        await self._notify(changes_for(old, {k: _copy(v) for k, v in encoded.items()}))

    async def remove(self, keys: Iterable[str]) -> None:
        keys = [key for key in keys if key in self._data]
        old = {key: self._data.pop(key) for key in keys}
        await self._notify(changes_for(old, {}, removed=keys))

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None
