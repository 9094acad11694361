"""Board access control service.

Board roles form a simple hierarchy:
- owner: everything, including board settings and people management
- member: can edit board content (lists, tasks, comments, reactions, moves)
- viewer: read-only
"""

from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.models.board import Board, BoardMember

logger = structlog.get_logger()


# Role hierarchy for permission checking (higher = more permissions)
ROLE_HIERARCHY = {"owner": 3, "member": 2, "viewer": 1}


def has_sufficient_role(user_role: str | None, required_role: str) -> bool:
    """Check if user_role meets or exceeds required_role."""
    if user_role is None:
        return False
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


def can_edit_board_content(role: str | None) -> bool:
    return has_sufficient_role(role, "member")


def is_owner_role(role: str | None) -> bool:
    return role == "owner"


async def get_board_role(db: AsyncSession, board_id: UUID, user_id: UUID) -> str | None:
    """Return the user's role on a board, or None if not a member."""
    result = await db.execute(
        select(BoardMember.role).where(
            BoardMember.board_id == board_id,
            BoardMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def is_board_owner(db: AsyncSession, board_id: UUID, user_id: UUID) -> bool:
    return is_owner_role(await get_board_role(db, board_id, user_id))


async def check_board_access(
    db: AsyncSession,
    board_id: UUID,
    user_id: UUID,
    required_role: str | None = None,
) -> tuple[Board, str]:
    """
    Single-query access check for a board.

    Returns:
        Tuple of (Board, role) if access granted

    Raises:
        HTTPException 404 if board not found
        HTTPException 403 if not a member or insufficient role
    """
    result = await db.execute(
        select(Board, BoardMember.role)
        .outerjoin(
            BoardMember,
            and_(
                BoardMember.board_id == Board.id,
                BoardMember.user_id == user_id,
            ),
        )
        .where(Board.id == board_id)
    )
    row = result.first()

    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Board not found",
        )

    board, role = row
    if role is None:
        logger.info("board_access_denied", board_id=str(board_id), user_id=str(user_id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    if required_role and not has_sufficient_role(role, required_role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Requires {required_role} role or higher",
        )

    return board, role
