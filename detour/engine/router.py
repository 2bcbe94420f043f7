"""Navigation event endpoints.

The browser shim forwards three event types here:

    POST /events/before-request          {url, tabId, type}     → {} | {cancel, redirectUrl}
    POST /events/history-state-updated   {url, tabId, frameId}  → {redirected}
    POST /events/committed               {url, tabId, frameId}  → {redirected}

before-request is on the browser's blocking path: the response is the
decision and is returned before any storage write or tab navigation settles.
Each request is tagged with a ULID navigation_id for log correlation.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from detour.constants import MAIN_FRAME_TYPE
from detour.engine.decision import BeforeRequestEvent, DecisionEngine, NavigationEvent
from detour.utils.logger import navigation_context
from detour.utils.ulid import generate_ulid

router = APIRouter(prefix="/events", tags=["events"])


# ─── Request Models ───────────────────────────────────────────────────────────


class BeforeRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    tab_id: int = Field(default=-1, alias="tabId")
    type: str = MAIN_FRAME_TYPE


class NavigationBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    tab_id: int = Field(alias="tabId")
    frame_id: int = Field(alias="frameId")


def _engine(request: Request) -> DecisionEngine:
    return request.app.state.engine


# ─── Routes ───────────────────────────────────────────────────────────────────


@router.post("/before-request")
async def before_request(body: BeforeRequestBody, request: Request) -> dict[str, Any]:
    with navigation_context(generate_ulid()):
        decision = await _engine(request).before_request(
            BeforeRequestEvent(url=body.url, tab_id=body.tab_id, type=body.type)
        )
    return decision.to_response()


@router.post("/history-state-updated")
async def history_state_updated(body: NavigationBody, request: Request) -> dict[str, Any]:
    with navigation_context(generate_ulid()):
        redirected = await _engine(request).history_state_updated(
            NavigationEvent(url=body.url, tab_id=body.tab_id, frame_id=body.frame_id)
        )
    return {"redirected": redirected}


@router.post("/committed")
async def committed(body: NavigationBody, request: Request) -> dict[str, Any]:
    with navigation_context(generate_ulid()):
        redirected = await _engine(request).committed(
            NavigationEvent(url=body.url, tab_id=body.tab_id, frame_id=body.frame_id)
        )
    return {"redirected": redirected}
