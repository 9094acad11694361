"""Board membership and invitation endpoints."""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser
from boardhub.config import get_settings
from boardhub.db.base import ensure_aware, utcnow
from boardhub.db.session import get_db_session
from boardhub.models.board import Board, BoardMember, INVITABLE_ROLES
from boardhub.models.collaboration import Invitation
from boardhub.models.user import Profile
from boardhub.services.access_control import (
    check_board_access,
    get_board_role,
    is_board_owner,
    is_owner_role,
)
from boardhub.services.notification import NotificationService
from boardhub.utils.text import (
    display_name,
    fallback_name_from_email,
    normalize_email,
    profile_name,
)

router = APIRouter()
invitations_router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class ActionResult(BaseModel):
    """Outcome message for form-style actions."""

    ok: bool
    message: str


class MemberResponse(BaseModel):
    """Board member with display name."""

    user_id: UUID
    role: str
    name: str
    email: str
    created_at: datetime


class InvitationResponse(BaseModel):
    """Board invitation."""

    id: UUID
    board_id: UUID
    email: str
    role: str
    status: str
    invited_by: UUID
    expires_at: datetime
    accepted_by: UUID | None
    accepted_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class InviteRequest(BaseModel):
    """Invite someone to a board by email."""

    email: str = ""
    role: str = ""


class RoleUpdate(BaseModel):
    """Change a member's role."""

    role: str


def read_board_role(value: str | None) -> str | None:
    """Only member and viewer can be granted; owner is never assignable."""
    value = (value or "").strip()
    return value if value in INVITABLE_ROLES else None


def action_result(response: Response, status_code: int, ok: bool, message: str) -> ActionResult:
    response.status_code = status_code
    return ActionResult(ok=ok, message=message)


async def _get_board(db: AsyncSession, board_id: UUID) -> Board:
    result = await db.execute(select(Board).where(Board.id == board_id))
    board = result.scalar_one_or_none()
    if not board:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Board not found",
        )
    return board


async def _get_member(db: AsyncSession, board_id: UUID, user_id: UUID) -> BoardMember:
    result = await db.execute(
        select(BoardMember).where(
            BoardMember.board_id == board_id,
            BoardMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found",
        )
    return member


@router.post("/{board_id}/invitations", response_model=ActionResult)
async def invite_member(
    board_id: UUID,
    invite_data: InviteRequest,
    response: Response,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ActionResult:
    """Invite an email address to a board, refreshing any pending invitation."""
    email = normalize_email(invite_data.email)
    role = read_board_role(invite_data.role)
    if not email or not role:
        return action_result(response, status.HTTP_400_BAD_REQUEST, False, "Email and role are required.")

    await _get_board(db, board_id)
    if not await is_board_owner(db, board_id, current_user.id):
        return action_result(
            response, status.HTTP_403_FORBIDDEN, False, "Only board owner can invite members."
        )

    expires_at = utcnow() + timedelta(days=settings.invitation_expire_days)
    token = str(uuid4())
    notifications = NotificationService(db)
    payload = {
        "email": email,
        "role": role,
        "actor_name": display_name(current_user.full_name, current_user.email),
    }

    result = await db.execute(
        select(Invitation).where(
            Invitation.board_id == board_id,
            Invitation.email == email,
            Invitation.status == "pending",
        )
    )
    existing = result.scalar_one_or_none()

    if existing:
        existing.role = role
        existing.expires_at = expires_at
        existing.token = token
        try:
            await notifications.fan_out_to_board(
                board_id, current_user.id, "invitation.updated", payload
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Invitation update failed", board_id=str(board_id), error=str(exc))
            return action_result(
                response,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                False,
                "Could not update existing invitation.",
            )

        logger.info("Invitation updated", invitation_id=str(existing.id), role=role)
        return ActionResult(ok=True, message="Existing invitation updated.")

    invitation = Invitation(
        board_id=board_id,
        email=email,
        role=role,
        status="pending",
        token=token,
        invited_by=current_user.id,
        expires_at=expires_at,
    )
    db.add(invitation)
    try:
        await notifications.fan_out_to_board(board_id, current_user.id, "invitation.sent", payload)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Invitation create failed", board_id=str(board_id), error=str(exc))
        return action_result(
            response,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            False,
            "Could not create invitation. Please try again.",
        )

    logger.info("Invitation sent", invitation_id=str(invitation.id), role=role)
    return ActionResult(ok=True, message="Invitation sent.")


@router.patch("/{board_id}/members/{user_id}", response_model=MemberResponse)
async def update_member_role(
    board_id: UUID,
    user_id: UUID,
    role_data: RoleUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MemberResponse:
    """Change a non-owner member's role."""
    role = read_board_role(role_data.role)
    if not role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role must be member or viewer",
        )
    await check_board_access(db, board_id, current_user.id, "owner")
    member = await _get_member(db, board_id, user_id)
    if is_owner_role(member.role):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The board owner's role cannot be changed",
        )

    member.role = role
    await NotificationService(db).queue(
        user_id,
        board_id,
        "membership.role_updated",
        {"role": role, "actor_name": display_name(current_user.full_name, current_user.email)},
        sender_id=current_user.id,
    )
    await db.commit()

    logger.info("Member role updated", board_id=str(board_id), user_id=str(user_id), role=role)

    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one()
    return MemberResponse(
        user_id=user_id,
        role=member.role,
        name=profile_name(profile.full_name),
        email=profile.email,
        created_at=member.created_at,
    )


@router.delete("/{board_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    board_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Remove a non-owner member from the board."""
    await check_board_access(db, board_id, current_user.id, "owner")
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot remove yourself",
        )
    member = await _get_member(db, board_id, user_id)
    if is_owner_role(member.role):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The board owner cannot be removed",
        )

    await NotificationService(db).queue(
        user_id,
        board_id,
        "membership.removed",
        {"actor_name": display_name(current_user.full_name, current_user.email)},
        sender_id=current_user.id,
    )
    await db.delete(member)
    await db.commit()

    logger.info("Member removed", board_id=str(board_id), user_id=str(user_id))


@router.delete(
    "/{board_id}/invitations/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def revoke_invitation(
    board_id: UUID,
    invitation_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Withdraw an invitation."""
    await check_board_access(db, board_id, current_user.id, "owner")
    result = await db.execute(
        select(Invitation).where(
            Invitation.id == invitation_id,
            Invitation.board_id == board_id,
        )
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invitation not found",
        )

    await db.delete(invitation)
    await db.commit()

    logger.info("Invitation revoked", invitation_id=str(invitation_id))


@invitations_router.post("/{invitation_id}/accept", response_model=InvitationResponse)
async def accept_invitation(
    invitation_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Invitation:
    """Accept a pending invitation addressed to the current user's email."""
    result = await db.execute(select(Invitation).where(Invitation.id == invitation_id))
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invitation not found",
        )
    if invitation.status != "pending":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invitation is no longer pending",
        )
    if normalize_email(invitation.email) != normalize_email(current_user.email):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invitation was sent to a different email",
        )
    now = utcnow()
    if ensure_aware(invitation.expires_at) <= now:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Invitation has expired",
        )

    if await get_board_role(db, invitation.board_id, current_user.id) is None:
        db.add(
            BoardMember(
                board_id=invitation.board_id,
                user_id=current_user.id,
                role=invitation.role,
                added_by=invitation.invited_by,
            )
        )

    invitation.status = "accepted"
    invitation.accepted_by = current_user.id
    invitation.accepted_at = now

    await NotificationService(db).queue(
        invitation.invited_by,
        invitation.board_id,
        "invitation.accepted",
        {
            "invitation_id": str(invitation.id),
            "accepted_by": str(current_user.id),
            "actor_name": fallback_name_from_email(current_user.email),
        },
        sender_id=current_user.id,
    )
    await db.commit()

    logger.info(
        "Invitation accepted",
        invitation_id=str(invitation_id),
        board_id=str(invitation.board_id),
        user_id=str(current_user.id),
    )
    return invitation
