"""Task comment and reaction endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser
from boardhub.api.v1.tasks import get_task_on_board, task_title_or_default
from boardhub.config import get_settings
from boardhub.db.session import get_db_session
from boardhub.models.collaboration import Comment, CommentReaction
from boardhub.models.user import Profile
from boardhub.services.access_control import check_board_access, is_owner_role
from boardhub.services.activity import log_task_activity
from boardhub.services.notification import NotificationService
from boardhub.utils.text import display_name, preview, profile_name

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class CommentCreate(BaseModel):
    """Create a comment or a reply."""

    content: str
    parent_comment_id: UUID | None = None


class CommentUpdate(BaseModel):
    """Update comment content."""

    content: str


class CommentResponse(BaseModel):
    """Comment response."""

    id: UUID
    board_id: UUID
    task_id: UUID
    parent_comment_id: UUID | None
    author_id: UUID
    author_name: str | None = None
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReactionToggle(BaseModel):
    """Toggle an emoji reaction."""

    emoji: str = Field(..., min_length=1, max_length=50)


class ReactionResponse(BaseModel):
    """Comment reaction."""

    id: UUID
    comment_id: UUID
    user_id: UUID
    emoji: str

    class Config:
        from_attributes = True


class ReactionToggleResponse(BaseModel):
    """Outcome of a reaction toggle."""

    comment_id: UUID
    emoji: str
    reacted: bool


def _clean_content(content: str) -> str:
    content = content.strip()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Comment content is required",
        )
    return content


def _actor_name(user: Profile) -> str:
    return display_name(user.full_name, user.email)


async def _author_name(db: AsyncSession, comment: Comment, current_user: Profile) -> str:
    """Name shown on the comment thread for the comment's author."""
    if comment.author_id == current_user.id:
        author = current_user
    else:
        author = await db.get(Profile, comment.author_id)
    return profile_name(author.full_name if author else None)


async def _get_comment(db: AsyncSession, board_id: UUID, task_id: UUID, comment_id: UUID) -> Comment:
    result = await db.execute(
        select(Comment).where(
            Comment.id == comment_id,
            Comment.task_id == task_id,
            Comment.board_id == board_id,
        )
    )
    comment = result.scalar_one_or_none()
    if not comment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found",
        )
    return comment


def _require_owner_or_author(role: str, comment: Comment, user_id: UUID) -> None:
    if not is_owner_role(role) and comment.author_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the board owner or the comment author can change this comment",
        )


@router.post(
    "/{board_id}/tasks/{task_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    board_id: UUID,
    task_id: UUID,
    comment_data: CommentCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> CommentResponse:
    """Add a comment to a task, optionally as a reply."""
    await check_board_access(db, board_id, current_user.id, "member")
    content = _clean_content(comment_data.content)
    task = await get_task_on_board(db, board_id, task_id)

    parent = None
    if comment_data.parent_comment_id:
        result = await db.execute(
            select(Comment).where(Comment.id == comment_data.parent_comment_id)
        )
        parent = result.scalar_one_or_none()
        if not parent or parent.task_id != task_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent comment must belong to the same task",
            )

    comment = Comment(
        board_id=board_id,
        task_id=task_id,
        parent_comment_id=parent.id if parent else None,
        author_id=current_user.id,
        content=content,
    )
    db.add(comment)
    await db.flush()

    action_type = "comment.reply_added" if parent else "comment.added"
    await log_task_activity(
        db, board_id, task_id, current_user.id, action_type, {"comment_id": str(comment.id)}
    )

    payload = {
        "task_id": str(task_id),
        "task_title": task_title_or_default(task),
        "comment_id": str(comment.id),
        "comment_preview": preview(content, settings.comment_preview_length),
        "actor_name": _actor_name(current_user),
    }
    notifications = NotificationService(db)
    await notifications.fan_out_to_board(board_id, current_user.id, action_type, payload)
    if parent:
        await notifications.queue(
            parent.author_id,
            board_id,
            "comment.reply_received",
            payload,
            sender_id=current_user.id,
        )
    await db.commit()

    logger.info(
        "Task comment created",
        task_id=str(task_id),
        comment_id=str(comment.id),
        is_reply=parent is not None,
    )

    response = CommentResponse.model_validate(comment)
    response.author_name = _actor_name(current_user)
    return response


@router.patch(
    "/{board_id}/tasks/{task_id}/comments/{comment_id}",
    response_model=CommentResponse,
)
async def update_comment(
    board_id: UUID,
    task_id: UUID,
    comment_id: UUID,
    comment_data: CommentUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> CommentResponse:
    """Edit a comment. Allowed for the board owner and the author."""
    _, role = await check_board_access(db, board_id, current_user.id)
    content = _clean_content(comment_data.content)
    task = await get_task_on_board(db, board_id, task_id)
    comment = await _get_comment(db, board_id, task_id, comment_id)
    _require_owner_or_author(role, comment, current_user.id)

    comment.content = content

    await log_task_activity(
        db, board_id, task_id, current_user.id, "comment.updated", {"comment_id": str(comment.id)}
    )
    await NotificationService(db).fan_out_to_board(
        board_id,
        current_user.id,
        "comment.updated",
        {
            "task_id": str(task_id),
            "task_title": task_title_or_default(task),
            "comment_id": str(comment.id),
            "comment_preview": preview(content, settings.comment_preview_length),
            "actor_name": _actor_name(current_user),
        },
    )
    await db.commit()

    logger.info("Task comment updated", comment_id=str(comment_id))
    response = CommentResponse.model_validate(comment)
    response.author_name = await _author_name(db, comment, current_user)
    return response


@router.delete(
    "/{board_id}/tasks/{task_id}/comments/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_comment(
    board_id: UUID,
    task_id: UUID,
    comment_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a comment and its replies. Allowed for the board owner and the author."""
    _, role = await check_board_access(db, board_id, current_user.id)
    task = await get_task_on_board(db, board_id, task_id)
    comment = await _get_comment(db, board_id, task_id, comment_id)
    _require_owner_or_author(role, comment, current_user.id)

    await db.delete(comment)

    await log_task_activity(
        db, board_id, task_id, current_user.id, "comment.deleted", {"comment_id": str(comment_id)}
    )
    await NotificationService(db).fan_out_to_board(
        board_id,
        current_user.id,
        "comment.deleted",
        {
            "task_id": str(task_id),
            "task_title": task_title_or_default(task),
            "comment_id": str(comment_id),
            "actor_name": _actor_name(current_user),
        },
    )
    await db.commit()

    logger.info("Task comment deleted", comment_id=str(comment_id))


@router.post(
    "/{board_id}/tasks/{task_id}/comments/{comment_id}/reactions",
    response_model=ReactionToggleResponse,
)
async def toggle_comment_reaction(
    board_id: UUID,
    task_id: UUID,
    comment_id: UUID,
    reaction_data: ReactionToggle,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ReactionToggleResponse:
    """Add the emoji reaction if absent, remove it if present."""
    await check_board_access(db, board_id, current_user.id, "member")
    emoji = reaction_data.emoji.strip()
    if not emoji:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Emoji is required",
        )
    task = await get_task_on_board(db, board_id, task_id)
    comment = await _get_comment(db, board_id, task_id, comment_id)

    result = await db.execute(
        select(CommentReaction).where(
            CommentReaction.comment_id == comment_id,
            CommentReaction.user_id == current_user.id,
            CommentReaction.emoji == emoji,
        )
    )
    existing = result.scalar_one_or_none()

    if existing:
        await db.delete(existing)
        reacted = False
    else:
        db.add(CommentReaction(comment_id=comment_id, user_id=current_user.id, emoji=emoji))
        reacted = True

    await log_task_activity(
        db,
        board_id,
        task_id,
        current_user.id,
        "comment.reaction_toggled",
        {"comment_id": str(comment_id), "emoji": emoji},
    )
    if reacted:
        await NotificationService(db).queue(
            comment.author_id,
            board_id,
            "comment.reacted",
            {
                "task_id": str(task_id),
                "task_title": task_title_or_default(task),
                "comment_id": str(comment_id),
                "comment_preview": preview(comment.content, settings.comment_preview_length),
                "actor_name": _actor_name(current_user),
                "emoji": emoji,
            },
            sender_id=current_user.id,
        )
    await db.commit()

    logger.info(
        "Comment reaction toggled",
        comment_id=str(comment_id),
        emoji=emoji,
        reacted=reacted,
    )
    return ReactionToggleResponse(comment_id=comment_id, emoji=emoji, reacted=reacted)
