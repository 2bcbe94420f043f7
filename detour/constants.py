"""Shared constants for Detour.

Storage keys, audit capacity, default rules and classification source tags
are defined here. No magic strings in other modules — import from here.
"""

# ─── Persisted storage keys ──────────────────────────────────────────────────

RULES_KEY: str = "destinationRules"
LOGGING_ENABLED_KEY: str = "loggingEnabled"
SEEN_URLS_KEY: str = "seenUrls"

# ─── Defaults seeded on first activation ─────────────────────────────────────

# Three well-known short-form-video hosts.
DEFAULT_RULES: tuple[str, ...] = (
    "youtube.com/shorts/*",
    "tiktok.com/*",
    "instagram.com/*",
)

DEFAULT_LOGGING_ENABLED: bool = True

# ─── Audit log ───────────────────────────────────────────────────────────────

# Maximum number of Seen Entries kept. Oldest (tail) entries are dropped first.
MAX_SEEN: int = 300

# ─── Classification source tags (persisted in Seen Entry.source) ────────────

SOURCE_WEB_REQUEST: str = "webRequest"
SOURCE_GOOGLE_WRAPPED: str = "Google-wrapped"
SOURCE_SPA_HISTORY_STATE: str = "SPA-historyState"
SOURCE_SPA_COMMITTED: str = "SPA-committed"

# ─── Navigation event filtering ──────────────────────────────────────────────

# Request type forwarded for top-level document loads.
MAIN_FRAME_TYPE: str = "main_frame"

# frameId of the top-level frame in post-navigation events.
TOP_LEVEL_FRAME_ID: int = 0

# ─── Server defaults ─────────────────────────────────────────────────────────

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 4343
# Path of the blocked page served by Detour itself.
SENTINEL_PATH: str = "/blocked"
DEFAULT_SENTINEL_URL: str = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}{SENTINEL_PATH}"
DEFAULT_STORAGE_PATH: str = "~/.detour/storage.db"

# Timeout for the HTTP tab bridge (seconds). Keeps a dead bridge from
# holding an SPA handler open indefinitely.
DEFAULT_BRIDGE_TIMEOUT_S: float = 5.0

# Decisions slower than this are logged at WARNING by PerformanceLogger.
SLOW_DECISION_MS: float = 50.0
