"""CommandHandler — executes settings-UI commands against the store.

Rule edits go straight to the persisted ``destinationRules`` list; the
ConfigStore picks them up through the store's change notification, exactly as
it would for an edit made by any other writer.

ADD_RULE / REMOVE_RULE are read-modify-write and not atomic against
concurrent writers (same tradeoff as the audit log).
"""

from __future__ import annotations

from typing import Any, Optional

from detour.audit.log import AuditLog
from detour.commands.messages import (
    AddRule,
    ClearSeen,
    Command,
    ListRules,
    ListSeen,
    RemoveRule,
    SetLogging,
    ValidateRule,
)
from detour.constants import LOGGING_ENABLED_KEY, RULES_KEY
from detour.rules.compiler import validate_rule
from detour.storage.protocol import KeyValueStore
from detour.utils.logger import get_logger

logger = get_logger(__name__)


class CommandHandler:
    def __init__(self, store: KeyValueStore, audit: AuditLog) -> None:
        self._store = store
        self._audit = audit

    async def _rules(self) -> list:
        current = await self._store.get([RULES_KEY])
        rules = current.get(RULES_KEY)
        return rules if isinstance(rules, list) else []

    async def dispatch(self, command: Optional[Command]) -> dict[str, Any]:
        if isinstance(command, AddRule):
            rules = await self._rules()
            rules.append(command.value)
            await self._store.set({RULES_KEY: rules})
            logger.info("Rule added", rule=command.value, total=len(rules))
            return {"ok": True}

        if isinstance(command, RemoveRule):
            rules = await self._rules()
            if command.value in rules:
                rules.remove(command.value)
                await self._store.set({RULES_KEY: rules})
                logger.info("Rule removed", rule=command.value, total=len(rules))
            return {"ok": True}

        if isinstance(command, ListRules):
            return {"rules": await self._rules()}

        if isinstance(command, ListSeen):
            return {"seen": await self._audit.list_seen(command.filter)}

        if isinstance(command, SetLogging):
            await self._store.set({LOGGING_ENABLED_KEY: command.enabled})
            return {"ok": True}

        if isinstance(command, ClearSeen):
            await self._audit.clear()
            return {"ok": True}

        if isinstance(command, ValidateRule):
            ok, error = validate_rule(command.value)
            return {"ok": ok, "error": error}

        return {}
