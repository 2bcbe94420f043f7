"""Reactive configuration store for Detour.

ConfigStore owns the active CompiledRuleSet and logging flag. Both live in a
single frozen ConfigSnapshot that is replaced atomically, never mutated,
whenever the persistent store reports a change, so a classification always
reads one consistent snapshot.

Lifecycle (driven by the FastAPI lifespan):
  1. ensure_defaults()  — first activation: seed default rules / logging flag
  2. load()             — always: compile whatever is persisted (warm matcher)
  3. start()            — subscribe to store change notifications
  4. stop()             — unsubscribe on shutdown
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Optional

from detour.constants import (
    DEFAULT_LOGGING_ENABLED,
    DEFAULT_RULES,
    LOGGING_ENABLED_KEY,
    RULES_KEY,
)
from detour.rules.compiler import EMPTY_RULE_SET, CompiledRuleSet, compile_rules
from detour.storage.protocol import KeyValueStore, StorageChange, Unsubscribe
from detour.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of the live configuration.

    rule_strings is the persisted list the rules were compiled from, including
    entries that failed to compile.
    """

    rules: CompiledRuleSet = EMPTY_RULE_SET
    rule_strings: tuple[str, ...] = ()
    logging_enabled: bool = DEFAULT_LOGGING_ENABLED

    @property
    def invalid_rule_count(self) -> int:
        return len(self.rule_strings) - len(self.rules)


def _as_rule_list(value: Any) -> Optional[list]:
    return value if isinstance(value, list) else None


def _as_logging_flag(value: Any) -> bool:
    return value if isinstance(value, bool) else DEFAULT_LOGGING_ENABLED


class ConfigStore:
    """Holds the live ConfigSnapshot and keeps it in sync with the store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._snapshot = ConfigSnapshot()
        self._unsubscribe: Optional[Unsubscribe] = None

    # ── Read API (no I/O) ─────────────────────────────────────────────────────

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def rules(self) -> CompiledRuleSet:
        return self._snapshot.rules

    @property
    def logging_enabled(self) -> bool:
        return self._snapshot.logging_enabled

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def ensure_defaults(self) -> None:
        """Seed missing rules and logging flag. Existing values are left alone."""
        current = await self._store.get([RULES_KEY, LOGGING_ENABLED_KEY])
        seed: dict[str, Any] = {}
        if _as_rule_list(current.get(RULES_KEY)) is None:
            seed[RULES_KEY] = list(DEFAULT_RULES)
        if not isinstance(current.get(LOGGING_ENABLED_KEY), bool):
            seed[LOGGING_ENABLED_KEY] = DEFAULT_LOGGING_ENABLED
        if seed:
            logger.info("Seeding default configuration", keys=sorted(seed))
            await self._store.set(seed)

    async def load(self) -> ConfigSnapshot:
        """Compile the persisted rule list (or the defaults if none exists)."""
        current = await self._store.get([RULES_KEY, LOGGING_ENABLED_KEY])
        rule_strings = _as_rule_list(current.get(RULES_KEY))
        if rule_strings is None:
            rule_strings = list(DEFAULT_RULES)
        self._replace(
            rules=compile_rules(rule_strings),
            rule_strings=tuple(rule_strings),
            logging_enabled=_as_logging_flag(current.get(LOGGING_ENABLED_KEY)),
        )
        logger.info(
            "Rules loaded",
            active=len(self._snapshot.rules),
            invalid=self._snapshot.invalid_rule_count,
            logging_enabled=self._snapshot.logging_enabled,
        )
        return self._snapshot

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_changed)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── Change handling ───────────────────────────────────────────────────────

    async def _on_changed(self, changes: dict[str, StorageChange]) -> None:
        if RULES_KEY in changes:
            rule_strings = _as_rule_list(changes[RULES_KEY].new_value) or []
            self._replace(
                rules=compile_rules(rule_strings),
                rule_strings=tuple(rule_strings),
            )
            logger.info(
                "Rules recompiled",
                active=len(self._snapshot.rules),
                invalid=self._snapshot.invalid_rule_count,
            )
        if LOGGING_ENABLED_KEY in changes:
            self._replace(
                logging_enabled=_as_logging_flag(changes[LOGGING_ENABLED_KEY].new_value)
            )
            logger.info("Logging flag changed", logging_enabled=self._snapshot.logging_enabled)

    def _replace(self, **fields: Any) -> None:
        # Single attribute assignment: readers see the old or the new snapshot.
        self._snapshot = dataclasses.replace(self._snapshot, **fields)
