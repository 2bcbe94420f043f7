"""SeenEntry dataclass for the Detour audit log.

One SeenEntry is created per redirect decision and never mutated afterwards.
The persisted wire shape uses the camelCase keys the browser-side UI reads:

    {"url": str, "matchedRule": str | null, "source": str, "ts": int}

``ts`` is epoch milliseconds.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Literal, Optional

SourceType = Literal["webRequest", "Google-wrapped", "SPA-historyState", "SPA-committed"]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SeenEntry:
    """One audit record of a redirect decision."""

    url: str
    """The URL that matched. For wrapped redirects, the unwrapped destination."""
    source: SourceType
    """Classification origin tag."""
    matched_rule: Optional[str] = None
    """Literal rule source that matched. None for the SPA catch-alls."""
    ts: int = 0
    """Creation time, epoch milliseconds."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "matchedRule": self.matched_rule,
            "source": self.source,
            "ts": self.ts,
        }

