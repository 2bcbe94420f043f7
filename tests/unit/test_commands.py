"""Tests for settings-UI command parsing and dispatch."""

from __future__ import annotations

import pytest
import pytest_asyncio

from detour.audit.log import AuditLog
from detour.commands.handler import CommandHandler
from detour.commands.messages import (
    AddRule,
    ClearSeen,
    ListRules,
    ListSeen,
    RemoveRule,
    SetLogging,
    ValidateRule,
    parse_command,
)
from detour.constants import LOGGING_ENABLED_KEY, RULES_KEY


# ─── parse_command ────────────────────────────────────────────────────────────


class TestParseCommand:
    def test_add_rule(self):
        assert parse_command({"type": "ADD_RULE", "value": "x"}) == AddRule(type="ADD_RULE", value="x")

    def test_list_rules_ignores_extra_fields(self):
        assert isinstance(parse_command({"type": "LIST_RULES", "extra": 1}), ListRules)

    def test_list_seen_filter(self):
        assert parse_command({"type": "LIST_SEEN", "filter": "tik"}) == ListSeen(type="LIST_SEEN", filter="tik")
        assert parse_command({"type": "LIST_SEEN"}).filter is None

    def test_set_logging(self):
        command = parse_command({"type": "SET_LOGGING", "enabled": False})
        assert command == SetLogging(type="SET_LOGGING", enabled=False)

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "UNKNOWN"},
            {"type": "ADD_RULE"},
            {"type": "ADD_RULE", "value": 42},
            {"type": "REMOVE_RULE", "value": None},
            {"type": "SET_LOGGING", "enabled": "yes"},
            {"type": "LIST_SEEN", "filter": 3},
            {"value": "x"},
            "ADD_RULE",
            None,
            [],
        ],
    )
    def test_unrecognized(self, payload):
        assert parse_command(payload) is None


# ─── CommandHandler ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def handler(store, make_config_store):
    config_store = await make_config_store(store, ["tiktok.com", "instagram.com", "tiktok.com"])
    return CommandHandler(store, AuditLog(store, config_store))


class TestDispatch:
    @pytest.mark.asyncio
    async def test_add_rule_appends(self, handler, store):
        response = await handler.dispatch(AddRule(type="ADD_RULE", value="/reddit/i"))
        assert response == {"ok": True}
        assert (await store.get([RULES_KEY]))[RULES_KEY][-1] == "/reddit/i"

    @pytest.mark.asyncio
    async def test_add_invalid_rule_still_stored(self, handler, store):
        await handler.dispatch(AddRule(type="ADD_RULE", value="("))
        assert "(" in (await store.get([RULES_KEY]))[RULES_KEY]

    @pytest.mark.asyncio
    async def test_remove_first_occurrence_only(self, handler, store):
        response = await handler.dispatch(RemoveRule(type="REMOVE_RULE", value="tiktok.com"))
        assert response == {"ok": True}
        assert (await store.get([RULES_KEY]))[RULES_KEY] == ["instagram.com", "tiktok.com"]

    @pytest.mark.asyncio
    async def test_remove_missing_is_ok(self, handler, store):
        response = await handler.dispatch(RemoveRule(type="REMOVE_RULE", value="nope"))
        assert response == {"ok": True}
        assert len((await store.get([RULES_KEY]))[RULES_KEY]) == 3

    @pytest.mark.asyncio
    async def test_list_rules(self, handler):
        response = await handler.dispatch(ListRules(type="LIST_RULES"))
        assert response == {"rules": ["tiktok.com", "instagram.com", "tiktok.com"]}

    @pytest.mark.asyncio
    async def test_list_rules_when_key_missing(self, handler, store):
        await store.remove([RULES_KEY])
        assert await handler.dispatch(ListRules(type="LIST_RULES")) == {"rules": []}

    @pytest.mark.asyncio
    async def test_list_seen(self, handler):
        await handler._audit.record("https://tiktok.com/@a", "webRequest", "tiktok.com")
        response = await handler.dispatch(parse_command({"type": "LIST_SEEN"}))
        assert [row["url"] for row in response["seen"]] == ["https://tiktok.com/@a"]

    @pytest.mark.asyncio
    async def test_set_logging(self, handler, store):
        await handler.dispatch(SetLogging(type="SET_LOGGING", enabled=False))
        assert (await store.get([LOGGING_ENABLED_KEY]))[LOGGING_ENABLED_KEY] is False

    @pytest.mark.asyncio
    async def test_clear_seen(self, handler):
        await handler._audit.record("https://tiktok.com/@a", "webRequest")
        assert await handler.dispatch(ClearSeen(type="CLEAR_SEEN")) == {"ok": True}
        assert await handler._audit.list_seen() == []

    @pytest.mark.asyncio
    async def test_validate_rule(self, handler):
        assert await handler.dispatch(ValidateRule(type="VALIDATE_RULE", value="tiktok")) == {
            "ok": True,
            "error": None,
        }
        response = await handler.dispatch(ValidateRule(type="VALIDATE_RULE", value="(x"))
        assert response["ok"] is False
        assert response["error"]

    @pytest.mark.asyncio
    async def test_unrecognized_returns_empty(self, handler):
        assert await handler.dispatch(None) == {}


class TestListSeenFilter:
    @pytest_asyncio.fixture
    async def seeded(self, handler):
        await handler._audit.record("https://tiktok.com/@a", "webRequest", "tiktok.com/*")
        await handler._audit.record("https://www.youtube.com/shorts/x", "SPA-historyState")
        await handler._audit.record("https://instagram.com/p/1", "Google-wrapped", "instagram.com")
        return handler

    async def _urls(self, handler, query):
        response = await handler.dispatch(ListSeen(type="LIST_SEEN", filter=query))
        return [row["url"] for row in response["seen"]]

    @pytest.mark.asyncio
    async def test_matches_url(self, seeded):
        assert await self._urls(seeded, "youtube") == ["https://www.youtube.com/shorts/x"]

    @pytest.mark.asyncio
    async def test_matches_rule(self, seeded):
        assert await self._urls(seeded, "com/*") == ["https://tiktok.com/@a"]

    @pytest.mark.asyncio
    async def test_matches_source(self, seeded):
        assert await self._urls(seeded, "spa-") == ["https://www.youtube.com/shorts/x"]

    @pytest.mark.asyncio
    async def test_case_insensitive_and_trimmed(self, seeded):
        assert await self._urls(seeded, "  TIKTOK ") == ["https://tiktok.com/@a"]

    @pytest.mark.asyncio
    async def test_blank_filter_returns_all_newest_first(self, seeded):
        assert await self._urls(seeded, "   ") == [
            "https://instagram.com/p/1",
            "https://www.youtube.com/shorts/x",
            "https://tiktok.com/@a",
        ]

    @pytest.mark.asyncio
    async def test_no_match(self, seeded):
        assert await self._urls(seeded, "reddit") == []
