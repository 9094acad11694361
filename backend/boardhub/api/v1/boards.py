"""Board and list endpoints."""

from collections import defaultdict
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser
from boardhub.api.v1.comments import CommentResponse, ReactionResponse
from boardhub.api.v1.members import (
    ActionResult,
    InvitationResponse,
    MemberResponse,
    action_result,
)
from boardhub.api.v1.tasks import TaskResponse
from boardhub.config import get_settings
from boardhub.db.session import get_db_session
from boardhub.models.activity import TaskActivity
from boardhub.models.board import Board, BoardList, BoardMember, Task
from boardhub.models.collaboration import Comment, CommentReaction, Invitation
from boardhub.models.user import Profile
from boardhub.services.access_control import (
    can_edit_board_content,
    check_board_access,
    is_board_owner,
    is_owner_role,
)
from boardhub.services.ordering import next_position
from boardhub.utils.text import profile_name

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class BoardResponse(BaseModel):
    """Board response."""

    id: UUID
    workspace_id: UUID
    name: str
    description: str | None
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BoardUpdate(BaseModel):
    """Edit board details."""

    name: str = Field(default="", max_length=120)
    description: str | None = None


class ListCreate(BaseModel):
    """Create a list at the right end of the board."""

    name: str = Field(..., max_length=120)


class ListResponse(BaseModel):
    """List response."""

    id: UUID
    board_id: UUID
    name: str
    position: int
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityResponse(BaseModel):
    """Task activity entry."""

    id: UUID
    task_id: UUID
    actor_id: UUID
    actor_name: str
    action_type: str
    meta: dict[str, Any]
    created_at: datetime


class BoardView(BaseModel):
    """Everything the board page renders."""

    board: BoardResponse
    role: str
    is_owner: bool
    can_edit: bool
    can_manage_people: bool
    lists: list[ListResponse]
    tasks: list[TaskResponse]
    members: list[MemberResponse]
    pending_invitations: list[InvitationResponse]
    comments_by_task: dict[str, list[CommentResponse]]
    reactions_by_comment: dict[str, list[ReactionResponse]]
    activities_by_task: dict[str, list[ActivityResponse]]
    focused_task_id: UUID | None
    reaction_emojis: list[str]


async def _profile_names(db: AsyncSession, user_ids: set[UUID]) -> dict[UUID, Profile]:
    if not user_ids:
        return {}
    result = await db.execute(select(Profile).where(Profile.id.in_(list(user_ids))))
    return {profile.id: profile for profile in result.scalars().all()}


@router.get("/{board_id}", response_model=BoardView)
async def get_board(
    board_id: UUID,
    current_user: CurrentUser,
    task: UUID | None = Query(None, description="Task to focus when the board opens"),
    db: AsyncSession = Depends(get_db_session),
) -> BoardView:
    """Load the full board view for a member."""
    board, role = await check_board_access(db, board_id, current_user.id)

    lists = (
        await db.execute(
            select(BoardList)
            .where(BoardList.board_id == board_id)
            .order_by(BoardList.position, BoardList.created_at)
        )
    ).scalars().all()
    tasks = (
        await db.execute(
            select(Task)
            .where(Task.board_id == board_id)
            .order_by(Task.position, Task.created_at)
        )
    ).scalars().all()
    members = (
        await db.execute(
            select(BoardMember)
            .where(BoardMember.board_id == board_id)
            .order_by(BoardMember.created_at)
        )
    ).scalars().all()
    invitations = (
        await db.execute(
            select(Invitation)
            .where(Invitation.board_id == board_id, Invitation.status == "pending")
            .order_by(Invitation.created_at.desc())
        )
    ).scalars().all()
    comments = (
        await db.execute(
            select(Comment)
            .where(Comment.board_id == board_id)
            .order_by(Comment.created_at)
        )
    ).scalars().all()
    comment_ids = [comment.id for comment in comments]
    reactions = []
    if comment_ids:
        reactions = (
            await db.execute(
                select(CommentReaction)
                .where(CommentReaction.comment_id.in_(comment_ids))
                .order_by(CommentReaction.created_at)
            )
        ).scalars().all()
    activities = (
        await db.execute(
            select(TaskActivity)
            .where(TaskActivity.board_id == board_id)
            .order_by(TaskActivity.created_at.desc())
        )
    ).scalars().all()

    profiles = await _profile_names(
        db,
        {m.user_id for m in members}
        | {c.author_id for c in comments}
        | {a.actor_id for a in activities},
    )

    def name_of(user_id: UUID) -> str:
        profile = profiles.get(user_id)
        return profile_name(profile.full_name if profile else None)

    comments_by_task: dict[str, list[CommentResponse]] = defaultdict(list)
    for comment in comments:
        item = CommentResponse.model_validate(comment)
        item.author_name = name_of(comment.author_id)
        comments_by_task[str(comment.task_id)].append(item)

    reactions_by_comment: dict[str, list[ReactionResponse]] = defaultdict(list)
    for reaction in reactions:
        reactions_by_comment[str(reaction.comment_id)].append(
            ReactionResponse.model_validate(reaction)
        )

    activities_by_task: dict[str, list[ActivityResponse]] = defaultdict(list)
    for activity in activities:
        activities_by_task[str(activity.task_id)].append(
            ActivityResponse(
                id=activity.id,
                task_id=activity.task_id,
                actor_id=activity.actor_id,
                actor_name=name_of(activity.actor_id),
                action_type=activity.action_type,
                meta=activity.meta_json or {},
                created_at=activity.created_at,
            )
        )

    task_ids = {t.id for t in tasks}
    is_owner = is_owner_role(role)

    return BoardView(
        board=BoardResponse.model_validate(board),
        role=role,
        is_owner=is_owner,
        can_edit=can_edit_board_content(role),
        can_manage_people=is_owner,
        lists=[ListResponse.model_validate(item) for item in lists],
        tasks=[TaskResponse.model_validate(item) for item in tasks],
        members=[
            MemberResponse(
                user_id=m.user_id,
                role=m.role,
                name=name_of(m.user_id),
                email=profiles[m.user_id].email if m.user_id in profiles else "",
                created_at=m.created_at,
            )
            for m in members
        ],
        pending_invitations=[InvitationResponse.model_validate(i) for i in invitations],
        comments_by_task=dict(comments_by_task),
        reactions_by_comment=dict(reactions_by_comment),
        activities_by_task=dict(activities_by_task),
        focused_task_id=task if task in task_ids else None,
        reaction_emojis=settings.reaction_emojis,
    )


@router.patch("/{board_id}", response_model=ActionResult)
async def update_board(
    board_id: UUID,
    board_data: BoardUpdate,
    response: Response,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ActionResult:
    """Edit the board name and description (owner only)."""
    name = board_data.name.strip()
    if not name:
        return action_result(response, status.HTTP_400_BAD_REQUEST, False, "Board name is required.")

    result = await db.execute(select(Board).where(Board.id == board_id))
    board = result.scalar_one_or_none()
    if not board:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Board not found",
        )
    if not await is_board_owner(db, board_id, current_user.id):
        return action_result(
            response, status.HTTP_403_FORBIDDEN, False, "Only board owner can edit board details."
        )

    board.name = name
    board.description = (board_data.description or "").strip() or None
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Board update failed", board_id=str(board_id), error=str(exc))
        return action_result(
            response,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            False,
            "Could not save board changes. Please try again.",
        )

    logger.info("Board updated", board_id=str(board_id))
    return ActionResult(ok=True, message="Board details updated.")


@router.delete("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_board(
    board_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a board and everything on it (owner only)."""
    board, _ = await check_board_access(db, board_id, current_user.id, "owner")

    await db.delete(board)
    await db.commit()

    logger.info("Board deleted", board_id=str(board_id))


@router.post(
    "/{board_id}/lists",
    response_model=ListResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_list(
    board_id: UUID,
    list_data: ListCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> BoardList:
    """Append a list to the board."""
    await check_board_access(db, board_id, current_user.id, "member")
    name = list_data.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="List name is required",
        )

    max_pos_result = await db.execute(
        select(func.max(BoardList.position)).where(BoardList.board_id == board_id)
    )
    board_list = BoardList(
        board_id=board_id,
        name=name,
        position=next_position(max_pos_result.scalar(), settings.position_stride),
        created_by=current_user.id,
    )
    db.add(board_list)
    await db.commit()

    logger.info("List created", list_id=str(board_list.id), board_id=str(board_id))
    return board_list


@router.delete("/{board_id}/lists/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_list(
    board_id: UUID,
    list_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a list and its tasks (owner only)."""
    await check_board_access(db, board_id, current_user.id, "owner")
    result = await db.execute(
        select(BoardList).where(BoardList.id == list_id, BoardList.board_id == board_id)
    )
    board_list = result.scalar_one_or_none()
    if not board_list:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="List not found",
        )

    await db.delete(board_list)
    await db.commit()

    logger.info("List deleted", list_id=str(list_id))
