"""Bulk position endpoints used after a drag on the board.

Both endpoints answer ``{"ok": true}`` or ``{"error": "..."}``: 401 without
a session, 400 for anything else that goes wrong. Items that do not belong
to the board are skipped, and later items win over earlier ones with the
same id. Each item is committed on its own, so a storage failure keeps
the items written before it.
"""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import OptionalUser
from boardhub.db.session import get_db_session
from boardhub.models.board import Board, BoardList, Task
from boardhub.services.access_control import can_edit_board_content, get_board_role

router = APIRouter()
logger = structlog.get_logger()


class ListMove(BaseModel):
    """New position for a list."""

    id: UUID
    position: int


class TaskMove(BaseModel):
    """New list and position for a task."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    list_id: UUID = Field(alias="listId")
    position: int


class MoveResult(BaseModel):
    ok: bool = True


_list_moves = TypeAdapter(list[ListMove])
_task_moves = TypeAdapter(list[TaskMove])


def _error(message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> ORJSONResponse:
    return ORJSONResponse(status_code=status_code, content={"error": message})


async def _read_updates(request: Request) -> list[Any]:
    """Return the raw ``updates`` array; anything that is not a list counts as empty."""
    body = await request.json()
    updates = body.get("updates") if isinstance(body, dict) else None
    return updates if isinstance(updates, list) else []


async def _check_can_edit(db: AsyncSession, board_id: UUID, user_id: UUID) -> str | None:
    """Return an error message when the user may not reorder this board."""
    result = await db.execute(select(Board.id).where(Board.id == board_id))
    if result.scalar_one_or_none() is None:
        return "Board not found"
    if not can_edit_board_content(await get_board_role(db, board_id, user_id)):
        return "You do not have permission to edit this board"
    return None


@router.post("/{board_id}/lists/move", response_model=MoveResult)
async def move_lists(
    board_id: UUID,
    request: Request,
    current_user: OptionalUser,
    db: AsyncSession = Depends(get_db_session),
):
    """Persist list positions after a column drag."""
    if current_user is None:
        return _error("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    try:
        updates = _list_moves.validate_python(await _read_updates(request))
    except ValueError as exc:
        # ValidationError and JSON decode errors
        return _error(_describe(exc))
    if not updates:
        return MoveResult()

    error = await _check_can_edit(db, board_id, current_user.id)
    if error:
        return _error(error)

    result = await db.execute(
        select(BoardList).where(
            BoardList.board_id == board_id,
            BoardList.id.in_([item.id for item in updates]),
        )
    )
    lists = {board_list.id: board_list for board_list in result.scalars().all()}

    for item in updates:
        board_list = lists.get(item.id)
        if board_list is None:
            continue
        board_list.position = item.position
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("List move failed", list_id=str(item.id), error=str(exc))
            return _error("Could not save list positions")

    logger.info("Lists moved", board_id=str(board_id), count=len(updates))
    return MoveResult()


@router.post("/{board_id}/tasks/move", response_model=MoveResult)
async def move_tasks(
    board_id: UUID,
    request: Request,
    current_user: OptionalUser,
    db: AsyncSession = Depends(get_db_session),
):
    """Persist task lists and positions after a card drag."""
    if current_user is None:
        return _error("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    try:
        updates = _task_moves.validate_python(await _read_updates(request))
    except ValueError as exc:
        return _error(_describe(exc))
    if not updates:
        return MoveResult()

    error = await _check_can_edit(db, board_id, current_user.id)
    if error:
        return _error(error)

    target_list_ids = {item.list_id for item in updates}
    result = await db.execute(
        select(BoardList.id).where(
            BoardList.board_id == board_id,
            BoardList.id.in_(list(target_list_ids)),
        )
    )
    if target_list_ids - set(result.scalars().all()):
        return _error("List not found on this board")

    result = await db.execute(
        select(Task).where(
            Task.board_id == board_id,
            Task.id.in_([item.id for item in updates]),
        )
    )
    tasks = {task.id: task for task in result.scalars().all()}

    for item in updates:
        task = tasks.get(item.id)
        if task is None:
            continue
        task.list_id = item.list_id
        task.position = item.position
        task.updated_by = current_user.id
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Task move failed", task_id=str(item.id), error=str(exc))
            return _error("Could not save task positions")

    logger.info("Tasks moved", board_id=str(board_id), count=len(updates))
    return MoveResult()


def _describe(exc: ValueError) -> str:
    if isinstance(exc, ValidationError):
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return f"Invalid update at {location}: {first['msg']}"
    return "Invalid JSON body"
