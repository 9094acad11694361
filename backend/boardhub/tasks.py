"""Celery background tasks."""

import asyncio

import structlog

from boardhub.worker import celery_app

logger = structlog.get_logger()


@celery_app.task(bind=True, name="boardhub.tasks.expire_stale_invitations")
def expire_stale_invitations(self) -> dict:
    """
    Periodic sweep that expires pending invitations past ``expires_at``.

    Scheduled by the beat entry in ``boardhub.worker``. Acceptance also
    rejects expired invitations on its own, so the sweep only keeps the
    pending lists tidy.
    """
    async def _process():
        from boardhub.db.session import async_session_factory
        from boardhub.services.invitations import expire_stale_invitations as expire

        async with async_session_factory() as db:
            return await expire(db)

    try:
        expired = asyncio.run(_process())
        logger.info("invitation_sweep_completed", expired=expired)
        return {"status": "success", "expired": expired}
    except Exception as e:
        logger.error("invitation_sweep_failed", error=str(e))
        return {"status": "error", "error": str(e)}
