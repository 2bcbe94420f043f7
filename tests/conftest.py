"""Root test configuration for Detour.

Points the store at ":memory:" for the whole suite so no test touches
~/.detour, and provides the small object graph most unit tests need:
a MemoryStore, a loaded ConfigStore, an AuditLog and a DecisionEngine with a
mocked TabNavigator.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from detour.audit.log import AuditLog
from detour.constants import DEFAULT_SENTINEL_URL, LOGGING_ENABLED_KEY, RULES_KEY
from detour.engine.config_store import ConfigStore
from detour.engine.decision import DecisionEngine
from detour.navigation.tabs import LoggingTabNavigator
from detour.storage.memory import MemoryStore

SENTINEL = DEFAULT_SENTINEL_URL


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep every test away from real config files and on-disk storage."""
    monkeypatch.setenv("DETOUR_STORAGE_PATH", ":memory:")
    monkeypatch.delenv("DETOUR_CONFIG", raising=False)
    monkeypatch.delenv("DETOUR_PORT", raising=False)
    monkeypatch.setattr("detour.config.DEFAULT_CONFIG_PATHS", [])
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


async def _make_config_store(store: MemoryStore, rules: list, logging_enabled: bool = True) -> ConfigStore:
    await store.set({RULES_KEY: rules, LOGGING_ENABLED_KEY: logging_enabled})
    config_store = ConfigStore(store)
    await config_store.load()
    config_store.start()
    return config_store


@pytest.fixture
def navigator() -> AsyncMock:
    return AsyncMock(spec=LoggingTabNavigator)


@pytest.fixture
def build_engine(store: MemoryStore, navigator: AsyncMock):
    """Factory: build_engine(rules, logging_enabled=True) → (engine, config_store, audit)."""

    async def _build(rules: list, logging_enabled: bool = True):
        config_store = await _make_config_store(store, rules, logging_enabled)
        audit = AuditLog(store, config_store)
        engine = DecisionEngine(config_store, audit, navigator, SENTINEL)
        return engine, config_store, audit

    return _build


@pytest.fixture
def make_config_store():
    """Factory: await make_config_store(store, rules, logging_enabled=True) → started ConfigStore."""
    return _make_config_store
