"""Notification service for queueing inbox events and presenting them."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.config import get_settings
from boardhub.models.activity import NotificationEvent
from boardhub.models.board import BoardMember

logger = structlog.get_logger()
settings = get_settings()


class NotificationService:
    """Service for queueing notification events.

    Events are added to the caller's session and persisted by the caller's
    commit, together with the mutation that caused them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def queue(
        self,
        user_id: UUID,
        board_id: UUID | None,
        event_type: str,
        payload: dict[str, Any],
        sender_id: UUID | None = None,
    ) -> NotificationEvent | None:
        """
        Queue a notification for one recipient.

        Args:
            user_id: The recipient user's ID
            board_id: Board the event belongs to, if any
            event_type: Type of event (e.g., 'task.created')
            payload: Display data (actor_name, task_title, ...)
            sender_id: Optional actor; users are never notified about their own actions

        Returns:
            Queued NotificationEvent or None if skipped
        """
        if sender_id and sender_id == user_id:
            logger.debug(
                "skipping_self_notification",
                user_id=str(user_id),
                event_type=event_type,
            )
            return None

        event = NotificationEvent(
            user_id=user_id,
            board_id=board_id,
            event_type=event_type,
            payload=payload,
            status="queued",
        )
        self.db.add(event)
        return event

    async def fan_out_to_board(
        self,
        board_id: UUID,
        sender_id: UUID,
        event_type: str,
        payload: dict[str, Any],
    ) -> list[NotificationEvent]:
        """
        Queue one event per board member other than the sender.

        Returns:
            List of queued events (empty when the sender is the only member)
        """
        result = await self.db.execute(
            select(BoardMember.user_id).where(
                BoardMember.board_id == board_id,
                BoardMember.user_id != sender_id,
            )
        )
        recipients = list(result.scalars().all())

        events = []
        for user_id in recipients:
            event = await self.queue(user_id, board_id, event_type, payload, sender_id=sender_id)
            if event:
                events.append(event)

        logger.info(
            "notifications_queued",
            board_id=str(board_id),
            event_type=event_type,
            count=len(events),
        )
        return events


@dataclass
class NotificationPresentation:
    message: str
    meta: str
    href: str | None


def _payload_str(payload: dict[str, Any] | None, key: str) -> str:
    value = (payload or {}).get(key)
    return value.strip() if isinstance(value, str) else ""


def present_notification(
    event_type: str,
    board_id: UUID | None,
    board_name: str,
    payload: dict[str, Any] | None,
) -> NotificationPresentation:
    """Build the inbox message, meta line and link for a queued event."""
    actor_name = _payload_str(payload, "actor_name") or "Someone"
    task_id = _payload_str(payload, "task_id")
    task_title = _payload_str(payload, "task_title") or "task"
    comment_preview = _payload_str(payload, "comment_preview")
    email = _payload_str(payload, "email")
    role = _payload_str(payload, "role")
    emoji = _payload_str(payload, "emoji")

    base = settings.app_base_path
    href = None
    if board_id:
        href = f"{base}/boards/{board_id}"
        if task_id:
            href = f"{href}?task={task_id}"

    quoted_preview = f' - "{comment_preview}"' if comment_preview else ""
    role_suffix = f" - {role}" if role else ""

    if event_type == "comment.reacted":
        return NotificationPresentation(
            message=f"{actor_name} reacted to your comment",
            meta=f"{board_name} - {task_title}" + (f" - {emoji}" if emoji else ""),
            href=href,
        )
    if event_type == "comment.reply_received":
        return NotificationPresentation(
            message=f"{actor_name} replied to your comment",
            meta=f"{board_name} - {task_title}{quoted_preview}",
            href=href,
        )
    if event_type in ("comment.added", "comment.reply_added"):
        return NotificationPresentation(
            message=f"{actor_name} added a comment",
            meta=f"{board_name} - {task_title}{quoted_preview}",
            href=href,
        )
    if event_type in ("comment.updated", "comment.deleted"):
        verb = "updated" if event_type == "comment.updated" else "deleted"
        return NotificationPresentation(
            message=f"{actor_name} {verb} a comment",
            meta=f"{board_name} - {task_title}",
            href=href,
        )
    if event_type in ("task.created", "task.updated"):
        verb = "created" if event_type == "task.created" else "updated"
        return NotificationPresentation(
            message=f"{actor_name} {verb} a card",
            meta=f"{board_name} - {task_title}",
            href=href,
        )
    if event_type in ("invitation.sent", "invitation.updated"):
        verb = "invited" if event_type == "invitation.sent" else "updated invite for"
        return NotificationPresentation(
            message=f"{actor_name} {verb} {email or 'a user'}",
            meta=f"{board_name}{role_suffix}",
            href=href,
        )
    if event_type == "invitation.accepted":
        return NotificationPresentation(
            message=f"{actor_name} accepted an invitation",
            meta=board_name,
            href=href,
        )
    if event_type == "membership.role_updated":
        return NotificationPresentation(
            message="Your board role was updated",
            meta=f"{board_name}{role_suffix}",
            href=href,
        )
    if event_type == "membership.removed":
        return NotificationPresentation(
            message="You were removed from a board",
            meta=board_name,
            href=base if board_id else None,
        )

    return NotificationPresentation(
        message=event_type.replace(".", " "),
        meta=board_name,
        href=href,
    )
