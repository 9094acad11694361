"""Profile endpoints."""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.api.v1.auth import CurrentUser, ProfileResponse
from boardhub.db.session import get_db_session
from boardhub.models.user import Profile

router = APIRouter()
logger = structlog.get_logger()


class ProfileUpdate(BaseModel):
    """Update the display name."""

    full_name: str = Field(default="", max_length=120)


@router.get("", response_model=ProfileResponse)
async def get_profile(current_user: CurrentUser) -> Profile:
    """Get the current user's profile."""
    return current_user


@router.patch("", response_model=ProfileResponse)
async def update_profile_name(
    data: ProfileUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Profile:
    """Set the display name; a blank name clears it."""
    current_user.full_name = data.full_name.strip() or None
    await db.commit()

    logger.info("Profile name updated", user_id=str(current_user.id))
    return current_user
