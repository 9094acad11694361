"""Task endpoints."""

from datetime import date, datetime, time, timezone
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser
from boardhub.config import get_settings
from boardhub.db.base import utcnow
from boardhub.db.session import get_db_session
from boardhub.models.board import BoardList, Task, TASK_PRIORITIES
from boardhub.services.access_control import check_board_access, is_owner_role
from boardhub.services.activity import log_task_activity
from boardhub.services.notification import NotificationService
from boardhub.services.ordering import next_position
from boardhub.utils.text import display_name

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


# Request/Response Models
class TaskCreate(BaseModel):
    """Create a new task at the bottom of a list."""

    list_id: UUID
    title: str = Field(..., max_length=180)
    description: str | None = None


class TaskUpdate(BaseModel):
    """Replace a task's editable fields.

    Unknown priorities fall back to ``medium``; any status other than
    ``done`` is stored as ``todo``.
    """

    title: str = Field(..., max_length=180)
    description: str | None = None
    due_date: date | None = None
    priority: str | None = None
    status: str | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_due_date(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class TaskResponse(BaseModel):
    """Task response."""

    id: UUID
    board_id: UUID
    list_id: UUID
    title: str
    description: str | None
    due_date: datetime | None
    priority: str
    status: str
    completed_at: datetime | None
    position: int
    created_by: UUID
    updated_by: UUID | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def normalize_priority(value: str | None) -> str:
    value = (value or "").strip()
    return value if value in TASK_PRIORITIES else "medium"


def normalize_status(value: str | None) -> str:
    return "done" if (value or "").strip() == "done" else "todo"


def due_date_at_midnight(value: date | None) -> datetime | None:
    """Calendar due dates are stored as midnight UTC."""
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def task_title_or_default(task: Task | None) -> str:
    if task is None:
        return "Task"
    return task.title.strip() or "Task"


def _clean_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Task title is required",
        )
    return title


async def get_task_on_board(db: AsyncSession, board_id: UUID, task_id: UUID) -> Task:
    """Load a task scoped to its board or raise 404."""
    result = await db.execute(
        select(Task).where(Task.id == task_id, Task.board_id == board_id)
    )
    task = result.scalar_one_or_none()
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found",
        )
    return task


@router.post(
    "/{board_id}/tasks",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    board_id: UUID,
    task_data: TaskCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Create a new task at the end of a list."""
    await check_board_access(db, board_id, current_user.id, "member")
    title = _clean_title(task_data.title)

    result = await db.execute(
        select(BoardList.id).where(
            BoardList.id == task_data.list_id,
            BoardList.board_id == board_id,
        )
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="List not found",
        )

    # Get max position within the list
    max_pos_result = await db.execute(
        select(func.max(Task.position)).where(Task.list_id == task_data.list_id)
    )
    max_position = max_pos_result.scalar()

    task = Task(
        board_id=board_id,
        list_id=task_data.list_id,
        title=title,
        description=(task_data.description or "").strip() or None,
        position=next_position(max_position, settings.position_stride),
        created_by=current_user.id,
        updated_by=current_user.id,
    )
    db.add(task)
    await db.flush()

    await log_task_activity(
        db, board_id, task.id, current_user.id, "task.created", {"title": title}
    )
    await NotificationService(db).fan_out_to_board(
        board_id,
        current_user.id,
        "task.created",
        {
            "task_id": str(task.id),
            "task_title": title,
            "actor_name": display_name(current_user.full_name, current_user.email),
        },
    )
    await db.commit()

    logger.info(
        "Task created",
        task_id=str(task.id),
        board_id=str(board_id),
        position=task.position,
    )
    return task


@router.patch("/{board_id}/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    board_id: UUID,
    task_id: UUID,
    task_data: TaskUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Task:
    """Update a task's details."""
    await check_board_access(db, board_id, current_user.id, "member")
    title = _clean_title(task_data.title)
    task = await get_task_on_board(db, board_id, task_id)

    priority = normalize_priority(task_data.priority)
    task_status = normalize_status(task_data.status)

    task.title = title
    task.description = (task_data.description or "").strip() or None
    task.due_date = due_date_at_midnight(task_data.due_date)
    task.priority = priority
    task.status = task_status
    task.completed_at = utcnow() if task_status == "done" else None
    task.updated_by = current_user.id

    await log_task_activity(
        db,
        board_id,
        task.id,
        current_user.id,
        "task.updated",
        {"title": title, "priority": priority, "status": task_status},
    )
    await NotificationService(db).fan_out_to_board(
        board_id,
        current_user.id,
        "task.updated",
        {
            "task_id": str(task.id),
            "task_title": title,
            "priority": priority,
            "status": task_status,
            "actor_name": display_name(current_user.full_name, current_user.email),
        },
    )
    await db.commit()

    logger.info("Task updated", task_id=str(task_id), status=task_status)
    return task


@router.delete("/{board_id}/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    board_id: UUID,
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a task. Allowed for the board owner and the task's creator."""
    _, role = await check_board_access(db, board_id, current_user.id)
    task = await get_task_on_board(db, board_id, task_id)

    if not is_owner_role(role) and task.created_by != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the board owner or the task creator can delete this task",
        )

    await db.delete(task)
    await db.commit()

    logger.info("Task deleted", task_id=str(task_id))
