"""Invitation housekeeping."""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boardhub.db.base import utcnow
from boardhub.models.collaboration import Invitation

logger = structlog.get_logger()


async def expire_stale_invitations(db: AsyncSession, now: datetime | None = None) -> int:
    """Mark pending invitations past their expiry as ``expired``.

    Returns:
        Number of invitations expired
    """
    now = now or utcnow()
    result = await db.execute(
        select(Invitation).where(
            Invitation.status == "pending",
            Invitation.expires_at <= now,
        )
    )
    invitations = list(result.scalars().all())
    for invitation in invitations:
        invitation.status = "expired"
    await db.commit()

    if invitations:
        logger.info("invitations_expired", count=len(invitations))
    return len(invitations)
