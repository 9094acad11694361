"""Notification inbox endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser
from boardhub.config import get_settings
from boardhub.db.base import utcnow
from boardhub.db.session import get_db_session
from boardhub.models.activity import NotificationEvent
from boardhub.models.board import Board
from boardhub.services.notification import present_notification

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class InboxItem(BaseModel):
    """A queued notification rendered for the inbox."""

    id: UUID
    event_type: str
    board_id: UUID | None
    message: str
    meta: str
    href: str | None
    queued_at: datetime


@router.get("", response_model=list[InboxItem])
async def list_inbox(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[InboxItem]:
    """Most recent queued notifications for the current user."""
    result = await db.execute(
        select(NotificationEvent, Board.name)
        .outerjoin(Board, Board.id == NotificationEvent.board_id)
        .where(
            NotificationEvent.user_id == current_user.id,
            NotificationEvent.status == "queued",
        )
        .order_by(NotificationEvent.queued_at.desc())
        .limit(settings.notification_inbox_limit)
    )

    items = []
    for event, board_name in result.all():
        if event.board_id is None:
            board_name = "General"
        present = present_notification(
            event.event_type, event.board_id, board_name or "Board", event.payload
        )
        items.append(
            InboxItem(
                id=event.id,
                event_type=event.event_type,
                board_id=event.board_id,
                message=present.message,
                meta=present.meta,
                href=present.href,
                queued_at=event.queued_at,
            )
        )
    return items


@router.post("/{notification_id}/dismiss", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_notification(
    notification_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Mark one of the current user's notifications as sent."""
    result = await db.execute(
        select(NotificationEvent).where(
            NotificationEvent.id == notification_id,
            NotificationEvent.user_id == current_user.id,
        )
    )
    event = result.scalar_one_or_none()
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )

    event.status = "sent"
    event.sent_at = utcnow()
    await db.commit()

    logger.info("Notification dismissed", notification_id=str(notification_id))
