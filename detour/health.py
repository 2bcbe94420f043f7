"""Health endpoint for Detour.

GET /health returns HTTP 503 until ``app.state.ready`` is set by the lifespan,
then HTTP 200 with the live rule and storage status:

    {
      "status": "ok" | "degraded",
      "rules_active": 3,
      "rules_invalid": 0,
      "logging_enabled": true,
      "storage": "ok" | "error",
      "sentinel_url": "http://127.0.0.1:4343/blocked"
    }

"degraded" means the store failed its health check; navigation decisions
still work from the last compiled snapshot.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "Detour is starting up. Loading rules..."},
        )

    snapshot = request.app.state.config_store.snapshot
    storage_ok = await request.app.state.store.health_check()

    return {
        "status": "ok" if storage_ok else "degraded",
        "rules_active": len(snapshot.rules),
        "rules_invalid": snapshot.invalid_rule_count,
        "logging_enabled": snapshot.logging_enabled,
        "storage": "ok" if storage_ok else "error",
        "sentinel_url": request.app.state.config.sentinel_url,
    }
