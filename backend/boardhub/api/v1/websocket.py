"""WebSocket endpoints for realtime board and inbox refreshes."""

import json
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from boardhub.api.v1.auth import get_profile_for_token
from boardhub.db.session import async_session_factory
from boardhub.services.access_control import get_board_role
from boardhub.services.realtime import manager

router = APIRouter(prefix="/ws", tags=["websocket"])
logger = structlog.get_logger()

CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403


async def _authenticate(token: str, board_id: UUID | None = None) -> tuple[str | None, int | None]:
    """Return (user_id, None) on success or (None, close_code)."""
    async with async_session_factory() as db:
        profile = await get_profile_for_token(db, token)
        if profile is None:
            return None, CLOSE_UNAUTHORIZED
        user_id = profile.id
        role = await get_board_role(db, board_id, user_id) if board_id else None
        await db.commit()

    if board_id and role is None:
        return None, CLOSE_FORBIDDEN
    return str(user_id), None


async def _serve(websocket: WebSocket, user_id: str, board_id: str | None) -> None:
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except ValueError:
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.debug("websocket_disconnected", user_id=user_id, board_id=board_id)
    finally:
        manager.disconnect(websocket, user_id, board_id=board_id)


@router.websocket("/boards/{board_id}")
async def board_updates(
    websocket: WebSocket,
    board_id: UUID,
    token: str = Query(...),
):
    """
    Subscribe to refresh signals for one board.

    Sends ``{"type": "refresh", "board_id": ..., "tables": [...]}`` shortly
    after any committed change to the board's lists, tasks, comments or
    activity. Requires board membership.
    """
    user_id, close_code = await _authenticate(token, board_id)
    if close_code:
        await websocket.close(code=close_code)
        return

    await manager.connect(websocket, user_id, board_id=str(board_id))
    logger.debug("websocket_connected", user_id=user_id, board_id=str(board_id))
    await _serve(websocket, user_id, str(board_id))


@router.websocket("/inbox")
async def inbox_updates(
    websocket: WebSocket,
    token: str = Query(...),
):
    """Subscribe to ``{"type": "inbox_refresh"}`` when a notification is queued for you."""
    user_id, close_code = await _authenticate(token)
    if close_code:
        await websocket.close(code=close_code)
        return

    await manager.connect(websocket, user_id)
    logger.debug("websocket_connected", user_id=user_id)
    await _serve(websocket, user_id, None)
