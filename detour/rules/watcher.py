"""Rule file hot-reload for Detour.

When ``rules_file`` is configured, RulesFileWatcher loads it at startup and
follows it with watchfiles. A successful reload writes the list to the
``destinationRules`` key of the store — the ConfigStore then recompiles
through the ordinary change notification, so the file is just one more writer.

Accepted YAML shapes:
  1. Direct list:            ["youtube.com/shorts/*", "/tiktok\\.com/i"]
  2. Mapping with rules key: {rules: [...]}

Invalid YAML or an unreadable file keeps the prior rules (ERROR log, no crash).
"""

from __future__ import annotations

import asyncio
from typing import Optional

import watchfiles
import yaml

from detour.constants import RULES_KEY
from detour.storage.protocol import KeyValueStore
from detour.utils.logger import get_logger

logger = get_logger(__name__)


def parse_rules_raw(raw: object) -> Optional[list[str]]:
    """Extract the rule list from parsed YAML. None when the shape is wrong.

    Non-string entries are skipped with a WARNING. Rule strings are kept
    verbatim — invalid regexes stay in the list so the UI can flag them.
    """
    if isinstance(raw, dict):
        raw = raw.get("rules")
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning(
            "Rules file root is neither a list nor a mapping with 'rules'",
            actual_type=type(raw).__name__,
        )
        return None

    rules: list[str] = []
    for index, item in enumerate(raw):
        if not isinstance(item, str):
            logger.warning(
                "Rule entry is not a string — skipping",
                index=index,
                actual_type=type(item).__name__,
            )
            continue
        rules.append(item)
    return rules


class RulesFileWatcher:
    """Loads a YAML rule file into the store and follows it for changes."""

    def __init__(self, path: str, store: KeyValueStore) -> None:
        self._path = path
        self._store = store

    @property
    def path(self) -> str:
        return self._path

    async def load(self) -> int:
        """Load the file into the store.

        Returns the number of rules written, or -1 if the file could not be
        read or parsed (prior rules unchanged). Never raises.
        """
        try:
            with open(self._path) as fh:
                raw = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            logger.error(
                "Rules reload failed: YAML parse error — keeping prior rules",
                path=self._path,
                error=str(exc),
            )
            return -1
        except OSError as exc:
            logger.error(
                "Rules reload failed: could not read file — keeping prior rules",
                path=self._path,
                error=str(exc),
            )
            return -1

        rules = parse_rules_raw(raw)
        if rules is None:
            return -1
        try:
            await self._store.set({RULES_KEY: rules})
        except Exception as exc:  # noqa: BLE001
            logger.error("Rules reload failed: store write error", path=self._path, error=str(exc))
            return -1
        logger.debug("Rules file loaded", count=len(rules), path=self._path)
        return len(rules)

    async def start(self) -> None:
        """Follow the file with watchfiles.awatch(); run as an asyncio.Task."""
        try:
            logger.info("Rules file watcher started", path=self._path)
            async for _ in watchfiles.awatch(self._path):
                count = await self.load()
                if count >= 0:
                    logger.info("Rules hot-reloaded", count=count, path=self._path)
        except asyncio.CancelledError:
            logger.debug("Rules file watcher cancelled", path=self._path)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Rules file watcher error (watcher stopped)",
                error=str(exc),
                path=self._path,
            )
