"""POST /messages — settings-UI command endpoint.

The raw JSON body is the message. Unparseable JSON and unrecognized messages
both answer ``{}`` with HTTP 200, mirroring a message channel with no
error surface of its own.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from detour.commands.handler import CommandHandler
from detour.commands.messages import parse_command
from detour.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["messages"])


@router.post("/messages")
async def messages(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    command = parse_command(payload)
    if command is None:
        logger.debug("Unrecognized message", payload_type=type(payload).__name__)

    handler: CommandHandler = request.app.state.command_handler
    return await handler.dispatch(command)
