"""Workspace endpoints and the home overview."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser
from boardhub.api.v1.boards import BoardResponse
from boardhub.api.v1.members import InvitationResponse
from boardhub.db.base import utcnow
from boardhub.db.session import get_db_session
from boardhub.models.board import Board, BoardMember
from boardhub.models.collaboration import Invitation
from boardhub.models.workspace import Workspace
from boardhub.utils.text import normalize_email

router = APIRouter()
home_router = APIRouter()
logger = structlog.get_logger()


class WorkspaceCreate(BaseModel):
    """Create a workspace."""

    name: str = Field(..., max_length=120)


class WorkspaceResponse(BaseModel):
    """Workspace response."""

    id: UUID
    name: str
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class BoardCreate(BaseModel):
    """Create a board in a workspace."""

    name: str = Field(..., max_length=120)
    description: str | None = None


class PendingInvitation(InvitationResponse):
    """Invitation addressed to the current user, with the board's name."""

    board_name: str


class HomeResponse(BaseModel):
    """Workspaces, boards and invitations for the landing page."""

    workspaces: list[WorkspaceResponse]
    selected_workspace_id: UUID | None
    boards: list[BoardResponse]
    shared_boards: list[BoardResponse]
    pending_invitations: list[PendingInvitation]


def _clean_name(name: str, label: str) -> str:
    name = name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{label} name is required",
        )
    return name


@router.post("", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    workspace_data: WorkspaceCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Workspace:
    """Create a workspace owned by the current user."""
    workspace = Workspace(
        name=_clean_name(workspace_data.name, "Workspace"),
        created_by=current_user.id,
    )
    db.add(workspace)
    await db.commit()

    logger.info("Workspace created", workspace_id=str(workspace.id))
    return workspace


@router.get("", response_model=list[WorkspaceResponse])
async def list_workspaces(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[Workspace]:
    """List the current user's workspaces, newest first."""
    result = await db.execute(
        select(Workspace)
        .where(Workspace.created_by == current_user.id)
        .order_by(Workspace.created_at.desc())
    )
    return list(result.scalars().all())


@router.post(
    "/{workspace_id}/boards",
    response_model=BoardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_board(
    workspace_id: UUID,
    board_data: BoardCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Board:
    """Create a board; the creator becomes its owner."""
    result = await db.execute(select(Workspace).where(Workspace.id == workspace_id))
    workspace = result.scalar_one_or_none()
    if not workspace:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found",
        )
    if workspace.created_by != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the workspace owner can create boards",
        )

    board = Board(
        workspace_id=workspace_id,
        name=_clean_name(board_data.name, "Board"),
        description=(board_data.description or "").strip() or None,
        created_by=current_user.id,
    )
    db.add(board)
    await db.flush()

    db.add(
        BoardMember(
            board_id=board.id,
            user_id=current_user.id,
            role="owner",
            added_by=current_user.id,
        )
    )
    await db.commit()

    logger.info("Board created", board_id=str(board.id), workspace_id=str(workspace_id))
    return board


@home_router.get("/home", response_model=HomeResponse)
async def home(
    current_user: CurrentUser,
    workspace: UUID | None = Query(None, description="Workspace to select"),
    db: AsyncSession = Depends(get_db_session),
) -> HomeResponse:
    """Landing page data: own workspaces, shared boards and pending invitations."""
    result = await db.execute(
        select(Workspace)
        .where(Workspace.created_by == current_user.id)
        .order_by(Workspace.created_at.desc())
    )
    workspaces = list(result.scalars().all())
    own_ids = {w.id for w in workspaces}

    selected_id = None
    if workspace in own_ids:
        selected_id = workspace
    elif workspaces:
        selected_id = workspaces[0].id

    boards: list[Board] = []
    if selected_id:
        result = await db.execute(
            select(Board)
            .where(Board.workspace_id == selected_id)
            .order_by(Board.updated_at.desc())
        )
        boards = list(result.scalars().all())

    shared_query = (
        select(Board)
        .join(BoardMember, BoardMember.board_id == Board.id)
        .where(BoardMember.user_id == current_user.id)
        .order_by(Board.updated_at.desc())
    )
    if own_ids:
        shared_query = shared_query.where(Board.workspace_id.not_in(list(own_ids)))
    result = await db.execute(shared_query)
    shared_boards = list(result.scalars().all())

    result = await db.execute(
        select(Invitation, Board.name)
        .join(Board, Board.id == Invitation.board_id)
        .where(
            Invitation.email == normalize_email(current_user.email),
            Invitation.status == "pending",
            Invitation.expires_at > utcnow(),
        )
        .order_by(Invitation.created_at.desc())
    )
    invitations = [
        PendingInvitation(
            **InvitationResponse.model_validate(invitation).model_dump(),
            board_name=board_name,
        )
        for invitation, board_name in result.all()
    ]

    return HomeResponse(
        workspaces=[WorkspaceResponse.model_validate(w) for w in workspaces],
        selected_workspace_id=selected_id,
        boards=[BoardResponse.model_validate(b) for b in boards],
        shared_boards=[BoardResponse.model_validate(b) for b in shared_boards],
        pending_invitations=invitations,
    )
