"""AuditLog — bounded, newest-first record of redirect decisions.

record() is a read-modify-write over the ``seenUrls`` key:

    read list → prepend new SeenEntry → truncate to capacity → write back

NOT atomic against concurrent writers: two overlapping record() calls may
both read before either writes, and one entry is lost.

Call sites on the navigation path MUST NOT await record() inline. The
DecisionEngine schedules it as a background task.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from detour.audit.models import SeenEntry, SourceType, now_ms
from detour.constants import MAX_SEEN, SEEN_URLS_KEY
from detour.engine.config_store import ConfigStore
from detour.storage.protocol import KeyValueStore
from detour.utils.logger import get_logger

logger = get_logger(__name__)


class AuditLog:
    """Append-ordered, size-bounded audit log persisted in the KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        config: ConfigStore,
        capacity: int = MAX_SEEN,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._config = config
        self._capacity = capacity
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._capacity

    async def record(
        self,
        url: str,
        source: SourceType,
        matched_rule: Optional[str] = None,
    ) -> Optional[SeenEntry]:
        """Prepend a SeenEntry. No-op when logging is disabled.

        Returns the stored entry, or None when nothing was written.
        Never raises — a storage failure is logged and dropped.
        """
        if not self._config.logging_enabled:
            return None

        entry = SeenEntry(url=url, source=source, matched_rule=matched_rule, ts=self._clock())
        try:
            seen = await self.list_seen()
            seen.insert(0, entry.to_dict())
            del seen[self._capacity:]
            await self._store.set({SEEN_URLS_KEY: seen})
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "audit_write_failed",
                url=url,
                source=source,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None

        logger.debug("audit_recorded", url=url, source=source, matched_rule=matched_rule)
        return entry

    async def list_seen(self, query: Optional[str] = None) -> list[dict[str, Any]]:
        """Return the persisted log, newest first.

        A non-blank ``query`` keeps only entries whose url, matched rule or
        source contains it, case-insensitively. Order is preserved.
        """
        current = await self._store.get([SEEN_URLS_KEY])
        seen = current.get(SEEN_URLS_KEY)
        if not isinstance(seen, list):
            return []

        q = (query or "").strip().lower()
        if not q:
            return seen
        return [row for row in seen if q in _haystack(row)]

    async def clear(self) -> None:
        await self._store.set({SEEN_URLS_KEY: []})
        logger.info("audit_log_cleared")


def _haystack(row: Any) -> str:
    if not isinstance(row, dict):
        return ""
    return f"{row.get('url', '')} {row.get('matchedRule') or ''} {row.get('source') or ''}".lower()
