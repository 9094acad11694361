"""Task activity logging."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.models.activity import TaskActivity

logger = structlog.get_logger()


async def log_task_activity(
    db: AsyncSession,
    board_id: UUID,
    task_id: UUID,
    actor_id: UUID,
    action_type: str,
    meta: dict[str, Any] | None = None,
) -> TaskActivity:
    """Add an activity row to the session; the caller's commit persists it."""
    activity = TaskActivity(
        board_id=board_id,
        task_id=task_id,
        actor_id=actor_id,
        action_type=action_type,
        meta_json=meta or {},
    )
    db.add(activity)
    logger.debug(
        "task_activity_logged",
        task_id=str(task_id),
        action_type=action_type,
    )
    return activity
