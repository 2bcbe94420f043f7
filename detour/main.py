"""Detour FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan — @asynccontextmanager startup/shutdown sequence
  - /        route — service discovery root
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()                → app.state.config
  2. create_store()               → app.state.store
  3. ConfigStore.ensure_defaults()   (first activation: seed rules + logging flag)
  4. ConfigStore.load() + start() → app.state.config_store (warm matcher, live updates)
  5. RulesFileWatcher             → initial load + watcher task (if rules_file set)
  6. create_tab_navigator()       → app.state.navigator
  7. AuditLog / DecisionEngine / CommandHandler wiring
  8. app.state.ready = True

Shutdown sequence (reverse):
  ready = False → stop watcher → drain engine background tasks →
  unsubscribe config store → close navigator → close store
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from detour import __version__
from detour.audit.log import AuditLog
from detour.commands.handler import CommandHandler
from detour.commands.router import router as messages_router
from detour.config import Config, load_config
from detour.constants import SENTINEL_PATH
from detour.engine.config_store import ConfigStore
from detour.engine.decision import DecisionEngine
from detour.engine.router import router as events_router
from detour.health import router as health_router
from detour.navigation.tabs import create_tab_navigator
from detour.pages import router as pages_router
from detour.rules.watcher import RulesFileWatcher
from detour.storage.factory import create_store
from detour.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "Detour is starting up. Loading rules..."},
        )


@root_router.get("/")
async def root() -> dict[str, str]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "Detour",
        "version": __version__,
        "health": "/health",
        "blocked": SENTINEL_PATH,
        "events": "/events",
        "messages": "/messages",
    }


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Detour starting up...")

    # ── Step 1: configuration (SystemExit on invalid config) ──────────────────
    config: Config = load_config()
    app.state.config = config

    # ── Step 2: persistent store (RuntimeError on schema mismatch) ────────────
    store = await create_store(config.storage.path)
    app.state.store = store

    # ── Steps 3-4: seed defaults, compile, subscribe ──────────────────────────
    config_store = ConfigStore(store)
    await config_store.ensure_defaults()
    await config_store.load()
    config_store.start()
    app.state.config_store = config_store

    # ── Step 5: optional rule file + watcher ──────────────────────────────────
    watcher_task: Optional[asyncio.Task[None]] = None
    if config.rules_file:
        watcher = RulesFileWatcher(config.rules_file, store)
        count = await watcher.load()
        logger.info("Rules file loaded", path=config.rules_file, count=count)
        watcher_task = asyncio.create_task(watcher.start())
    else:
        logger.debug("Rules file watcher disabled (no rules_file configured)")

    # ── Step 6: tab navigation port ───────────────────────────────────────────
    navigator = create_tab_navigator(config.bridge.url, config.bridge.timeout_s)
    app.state.navigator = navigator

    # ── Step 7: engine wiring ─────────────────────────────────────────────────
    audit = AuditLog(store, config_store)
    engine = DecisionEngine(config_store, audit, navigator, config.sentinel_url)
    app.state.audit_log = audit
    app.state.engine = engine
    app.state.command_handler = CommandHandler(store, audit)

    # ── Step 8: ready ─────────────────────────────────────────────────────────
    app.state.ready = True
    logger.info(
        "Detour ready.",
        rules_active=len(config_store.rules),
        sentinel_url=config.sentinel_url,
    )

    yield

    logger.info("Detour shutting down...")
    app.state.ready = False

    if watcher_task is not None and not watcher_task.done():
        watcher_task.cancel()
        try:
            await watcher_task
        except asyncio.CancelledError:
            pass

    # Let pending audit writes and tab navigations settle before closing the store.
    await engine.wait_idle()
    config_store.stop()

    try:
        await navigator.close()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Tab navigator close error (non-fatal)", error=str(exc))

    await store.close()
    logger.info("Detour shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the Detour FastAPI application.

    Call this directly in tests to get an isolated app instance.
    """
    application = FastAPI(
        title="Detour",
        description="Rule-based navigation diversion with a bounded audit trail",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # /health returns 503 for anything arriving before startup completes.
    application.state.ready = False

    application.include_router(root_router)
    application.include_router(health_router)
    application.include_router(pages_router)
    application.include_router(events_router, dependencies=[Depends(require_ready)])
    application.include_router(messages_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


app = create_app()
