"""ULID generation for navigation correlation ids.

Every inbound navigation event is tagged with a ULID that is bound into the
structlog context for the duration of the handler, so all log lines of one
decision share a sortable correlation key.

Uses the `python-ulid` library — do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new 26-character Crockford Base32 ULID string."""
    return str(ULID())
