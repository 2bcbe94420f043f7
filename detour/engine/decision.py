"""Decision engine for Detour navigation events.

Three entry points, one per browser event type, converging on one decision:

  before_request()          — cancelable pre-navigation interception
                              (main_frame requests only)
  history_state_updated()   — SPA pushState/replaceState, top-level frame only
  committed()               — navigation commit, top-level frame only

before_request() protocol:
  AtSentinel                                   → allow
  WrappedRedirect, destination matches a rule  → record "Google-wrapped",
                                                 navigate tab, cancel
  WrappedRedirect, anything else               → allow
  Plain, matches a rule                        → record "webRequest",
                                                 navigate tab, cancel
  otherwise                                    → allow

INVARIANTS:
  - The sentinel check runs before anything else; a URL at the sentinel is
    never redirected, whatever the rules say.
  - NEVER raises to the event source. Any fault degrades to "allow / no
    redirect" and is logged.
  - before_request() never awaits storage or the tab bridge: both side effects
    run as background tasks so the blocking decision returns immediately.
    wait_idle() drains them.
  - Non-top-level frames never trigger an SPA redirect.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine, Optional

from detour.audit.log import AuditLog
from detour.audit.models import SourceType
from detour.classifier.url import (
    AtSentinel,
    Plain,
    WrappedRedirect,
    classify,
    is_at_sentinel,
    is_spa_candidate,
)
from detour.constants import (
    MAIN_FRAME_TYPE,
    SOURCE_GOOGLE_WRAPPED,
    SOURCE_SPA_COMMITTED,
    SOURCE_SPA_HISTORY_STATE,
    SOURCE_WEB_REQUEST,
    TOP_LEVEL_FRAME_ID,
)
from detour.engine.config_store import ConfigStore
from detour.navigation.tabs import TabNavigationError, TabNavigator
from detour.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)


# ─── Events ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BeforeRequestEvent:
    """Cancelable pre-navigation request. tab_id < 0 means no owning tab."""

    url: str
    tab_id: int = -1
    type: str = MAIN_FRAME_TYPE


@dataclass(frozen=True)
class NavigationEvent:
    """Non-cancelable post-navigation event (history-state update or commit)."""

    url: str
    tab_id: int
    frame_id: int


# ─── Decision ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Match:
    """Audit metadata emitted alongside a redirect decision."""

    url: str
    source: SourceType
    matched_rule: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    """Outcome of before_request(). The empty Decision means allow."""

    cancel: bool = False
    redirect_url: Optional[str] = None
    match: Optional[Match] = None

    def to_response(self) -> dict[str, Any]:
        if not self.cancel:
            return {}
        return {"cancel": True, "redirectUrl": self.redirect_url}


ALLOW = Decision()


# ─── DecisionEngine ──────────────────────────────────────────────────────────


class DecisionEngine:
    """Turns navigation events into allow / cancel+redirect decisions."""

    def __init__(
        self,
        config: ConfigStore,
        audit: AuditLog,
        navigator: TabNavigator,
        sentinel_url: str,
    ) -> None:
        self._config = config
        self._audit = audit
        self._navigator = navigator
        self._sentinel_url = sentinel_url
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def sentinel_url(self) -> str:
        return self._sentinel_url

    # ── Pure decision (synchronous, one snapshot) ─────────────────────────────

    def decide(self, url: str) -> Decision:
        """Classify url against the current rule snapshot. No side effects."""
        rules = self._config.rules
        classification = classify(url, self._sentinel_url)

        if isinstance(classification, AtSentinel):
            return ALLOW

        if isinstance(classification, WrappedRedirect):
            destination = classification.destination
            if (
                destination
                and not is_at_sentinel(destination, self._sentinel_url)
                and rules.matches(destination)
            ):
                return self._redirect(
                    Match(
                        url=destination,
                        source=SOURCE_GOOGLE_WRAPPED,
                        matched_rule=rules.first_match(destination),
                    )
                )
            return ALLOW

        if isinstance(classification, Plain) and rules.matches(url):
            return self._redirect(
                Match(url=url, source=SOURCE_WEB_REQUEST, matched_rule=rules.first_match(url))
            )

        return ALLOW

    def _redirect(self, match: Match) -> Decision:
        return Decision(cancel=True, redirect_url=self._sentinel_url, match=match)

    # ── Entry points ──────────────────────────────────────────────────────────

    async def before_request(self, event: BeforeRequestEvent) -> Decision:
        """Blocking interception. Returns without awaiting any side effect."""
        if event.type != MAIN_FRAME_TYPE:
            return ALLOW

        try:
            with PerformanceLogger("navigation decision", logger):
                decision = self.decide(event.url)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Decision failed — allowing navigation",
                url=event.url,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ALLOW

        if decision.match is not None:
            match = decision.match
            logger.info(
                "Navigation diverted",
                url=match.url,
                source=match.source,
                matched_rule=match.matched_rule,
                tab_id=event.tab_id,
            )
            self._spawn(self._audit.record(match.url, match.source, match.matched_rule))
            if event.tab_id >= 0:
                self._spawn(self._navigate(event.tab_id))
        return decision

    async def history_state_updated(self, event: NavigationEvent) -> bool:
        return await self._spa_redirect(event, SOURCE_SPA_HISTORY_STATE)

    async def committed(self, event: NavigationEvent) -> bool:
        return await self._spa_redirect(event, SOURCE_SPA_COMMITTED)

    async def _spa_redirect(self, event: NavigationEvent, source: SourceType) -> bool:
        """React after the fact to a client-side navigation. Returns True if redirected."""
        if event.frame_id != TOP_LEVEL_FRAME_ID:
            return False

        try:
            candidate = is_spa_candidate(event.url, self._config.rules, self._sentinel_url)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "SPA check failed — ignoring navigation",
                url=event.url,
                source=source,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
        if not candidate:
            return False

        logger.info("SPA navigation diverted", url=event.url, source=source, tab_id=event.tab_id)
        # Heuristic catch-all: no specific rule is attributed.
        self._spawn(self._audit.record(event.url, source, None))
        if event.tab_id >= 0:
            await self._navigate(event.tab_id)
        return True

    # ── Side effects ──────────────────────────────────────────────────────────

    async def _navigate(self, tab_id: int) -> None:
        """Point the tab at the sentinel. Failures are logged, never raised."""
        try:
            await self._navigator.navigate(tab_id, self._sentinel_url)
        except TabNavigationError as exc:
            logger.error("Tab navigation failed", tab_id=tab_id, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Tab navigation error",
                tab_id=tab_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for all in-flight background side effects to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
