"""URL classification for Detour.

classify() sorts a candidate navigation URL into exactly one of:

  AtSentinel        — already at Detour's blocked page; short-circuits everything
  WrappedRedirect   — a search-engine redirect/tracking link; carries the
                      unwrapped destination (or None when unresolvable)
  Plain             — anything else; tested directly against the rule set

INVARIANT: nothing in this module raises on malformed input. An unparseable
URL is non-matching; an unresolvable wrapped destination is None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import httpx
import re2  # google-re2. NEVER: import re

from detour.rules.compiler import CompiledRuleSet

# Search-engine redirector endpoints: www|news|maps|encrypted|duck subdomains,
# path root /url or /imgres.
WRAPPED_REDIRECTOR = re2.compile(
    r"(?i)^https?://(?:www|news|maps|encrypted|duck)\.google\.[^/]+/(?:url|imgres)"
)

# Query parameters holding the true destination, in priority order.
DESTINATION_PARAMS: tuple[str, ...] = ("q", "url", "imgurl")


# ─── Classification variants ─────────────────────────────────────────────────


@dataclass(frozen=True)
class AtSentinel:
    url: str


@dataclass(frozen=True)
class WrappedRedirect:
    url: str
    destination: Optional[str]


@dataclass(frozen=True)
class Plain:
    url: str


Classification = Union[AtSentinel, WrappedRedirect, Plain]


# ─── Helpers ─────────────────────────────────────────────────────────────────


def is_at_sentinel(url: str, sentinel: str) -> bool:
    return url.startswith(sentinel)


def _parse(url: str) -> Optional[httpx.URL]:
    try:
        return httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None


def extract_wrapped_destination(url: str) -> Optional[str]:
    """Return the first populated destination parameter, or None.

    Empty parameter values are skipped (``?q=&url=x`` yields ``x``).
    """
    parsed = _parse(url)
    if parsed is None:
        return None
    for name in DESTINATION_PARAMS:
        value = parsed.params.get(name)
        if value:
            return value
    return None


# ─── Public API ──────────────────────────────────────────────────────────────


def classify(url: str, sentinel: str) -> Classification:
    """Classify a navigation URL. The sentinel check always runs first."""
    if is_at_sentinel(url, sentinel):
        return AtSentinel(url=url)
    if WRAPPED_REDIRECTOR.search(url) is not None:
        return WrappedRedirect(url=url, destination=extract_wrapped_destination(url))
    return Plain(url=url)


def is_spa_candidate(url: str, rules: CompiledRuleSet, sentinel: str) -> bool:
    """PLAIN-path check for client-side navigations.

    Wrapped-redirect unwrapping does not apply here. The URL must parse with a
    scheme (no host needed: ``file:///x`` and ``about:blank`` qualify), match
    the rule set, and not be at the sentinel.
    """
    parsed = _parse(url)
    if parsed is None or not parsed.scheme:
        return False
    return rules.matches(url) and not is_at_sentinel(url, sentinel)
