"""Authentication against the hosted identity provider's access tokens."""

from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.config import get_settings
from boardhub.db.session import get_db_session
from boardhub.models.user import Profile
from boardhub.utils.text import normalize_email

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


class ProfileResponse(BaseModel):
    """Authenticated user's profile."""

    id: UUID
    email: str
    full_name: str | None
    created_at: datetime

    class Config:
        from_attributes = True


def create_access_token(
    user_id: UUID,
    email: str,
    full_name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create an access token shaped like the identity provider's."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    to_encode = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.jwt_audience,
        "exp": expire,
        "user_metadata": {"full_name": full_name} if full_name else {},
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict:
    """Verify a bearer token and return its claims.

    Raises:
        JWTError if the signature, audience or expiry is invalid
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )


async def _email_owner(db: AsyncSession, email: str) -> UUID | None:
    result = await db.execute(select(Profile.id).where(Profile.email == email))
    return result.scalar_one_or_none()


async def get_profile_for_token(db: AsyncSession, token: str) -> Profile | None:
    """Resolve a token to a profile, provisioning the profile on first sight."""
    try:
        payload = decode_access_token(token)
        user_id = UUID(payload["sub"])
    except (JWTError, KeyError, ValueError):
        return None

    email = normalize_email(payload.get("email"))
    if not email:
        return None

    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    email_owner = await _email_owner(db, email)

    if profile is None:
        # Emails are unique; a new account reusing one is refused, not merged
        if email_owner is not None:
            logger.warning(
                "Profile email already in use",
                user_id=str(user_id),
                owner_id=str(email_owner),
            )
            return None

        metadata = payload.get("user_metadata") or {}
        full_name = metadata.get("full_name") if isinstance(metadata, dict) else None
        profile = Profile(
            id=user_id,
            email=email,
            full_name=(full_name or "").strip() or None,
        )
        db.add(profile)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("Profile provisioning failed", user_id=str(user_id), error=str(exc))
            return None
        logger.info("Created profile", user_id=str(user_id))
    elif profile.email != email:
        if email_owner is None:
            profile.email = email
        else:
            logger.warning(
                "Profile email change skipped",
                user_id=str(user_id),
                owner_id=str(email_owner),
            )

    return profile


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> Profile:
    """Get the current authenticated user from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    profile = await get_profile_for_token(db, credentials.credentials)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return profile


async def get_current_user_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> Profile | None:
    """Get the current user if authenticated, otherwise None."""
    if not credentials:
        return None
    return await get_profile_for_token(db, credentials.credentials)


# Type alias for dependency injection
CurrentUser = Annotated[Profile, Depends(get_current_user)]
OptionalUser = Annotated[Profile | None, Depends(get_current_user_optional)]


@router.get("/me", response_model=ProfileResponse)
async def get_me(current_user: CurrentUser) -> Profile:
    """Return the authenticated user's profile."""
    return current_user
