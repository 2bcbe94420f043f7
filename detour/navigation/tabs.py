"""Tab navigation port.

The browser's tab API is an external collaborator. Detour only needs one
primitive from it: point a tab at a URL. Two implementations:

  HttpTabNavigator     — POSTs {"url": ...} to ``{bridge_url}/tabs/{tab_id}``
                         on the browser-side bridge (shared httpx.AsyncClient)
  LoggingTabNavigator  — no bridge configured; logs the intent only and the
                         shim acts on the decision response body instead

Failures surface as TabNavigationError. The DecisionEngine catches it;
a closed tab never breaks the enclosing decision.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

import httpx

from detour.constants import DEFAULT_BRIDGE_TIMEOUT_S
from detour.utils.logger import get_logger

logger = get_logger(__name__)


class TabNavigationError(Exception):
    """Raised when a tab could not be navigated (tab gone, bridge down)."""


@runtime_checkable
class TabNavigator(Protocol):
    async def navigate(self, tab_id: int, url: str) -> None:
        ...

    async def close(self) -> None:
        ...


class LoggingTabNavigator:
    """Navigator used when no browser bridge is configured."""

    async def navigate(self, tab_id: int, url: str) -> None:
        logger.info("Tab navigation requested (no bridge configured)", tab_id=tab_id, url=url)

    async def close(self) -> None:
        return None


class HttpTabNavigator:
    """Drive tab navigation through the browser-side HTTP bridge."""

    def __init__(
        self,
        bridge_url: str,
        timeout_s: float = DEFAULT_BRIDGE_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._bridge_url = bridge_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=False,
        )

    async def navigate(self, tab_id: int, url: str) -> None:
        endpoint = f"{self._bridge_url}/tabs/{tab_id}"
        try:
            response = await self._client.post(endpoint, json={"url": url})
        except httpx.HTTPError as exc:
            raise TabNavigationError(
                f"bridge unreachable for tab {tab_id}: {type(exc).__name__}: {exc}"
            ) from exc
        if response.status_code >= 300:
            raise TabNavigationError(
                f"bridge refused navigation of tab {tab_id}: HTTP {response.status_code}"
            )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def create_tab_navigator(bridge_url: Optional[str], timeout_s: float) -> TabNavigator:
    if bridge_url:
        logger.info("Tab bridge configured", bridge_url=bridge_url, timeout_s=timeout_s)
        return HttpTabNavigator(bridge_url, timeout_s=timeout_s)
    logger.info("No tab bridge configured — navigation intents are logged only")
    return LoggingTabNavigator()
