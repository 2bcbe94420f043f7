"""The blocked page — Detour's sentinel destination.

Served at GET /blocked. Every diverted navigation lands here, and any URL that
starts with the sentinel is excluded from classification, so this page can
never itself be redirected.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from detour.constants import SENTINEL_PATH

router = APIRouter(tags=["pages"])

_BLOCKED_HTML = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Blocked by Detour</title>
  <style>
    body { font-family: system-ui, sans-serif; display: grid; place-items: center;
           min-height: 100vh; margin: 0; background: #111; color: #eee; }
    main { text-align: center; max-width: 32rem; }
    p { color: #aaa; }
  </style>
</head>
<body>
  <main>
    <h1>Not now.</h1>
    <p>This page matched one of your Detour rules, so the navigation was diverted here.</p>
  </main>
</body>
</html>
"""


@router.get(SENTINEL_PATH, response_class=HTMLResponse, include_in_schema=False)
async def blocked() -> HTMLResponse:
    return HTMLResponse(_BLOCKED_HTML)
