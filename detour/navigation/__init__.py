"""Detour tab navigation port.

Public API:
    TabNavigator          — protocol: async navigate(tab_id, url)
    HttpTabNavigator      — httpx-backed browser bridge client
    LoggingTabNavigator   — no-bridge fallback
    TabNavigationError    — raised on navigation failure
"""
from detour.navigation.tabs import (
    HttpTabNavigator,
    LoggingTabNavigator,
    TabNavigationError,
    TabNavigator,
    create_tab_navigator,
)

__all__ = [
    "HttpTabNavigator",
    "LoggingTabNavigator",
    "TabNavigationError",
    "TabNavigator",
    "create_tab_navigator",
]
