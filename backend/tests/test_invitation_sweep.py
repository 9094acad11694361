from datetime import timedelta
from uuid import UUID

from sqlalchemy import select, update

from boardhub.db.base import utcnow
from boardhub.models.collaboration import Invitation
from boardhub.services.invitations import expire_stale_invitations


def test_sweep_expires_only_stale_pending_invitations(api, run_db, alice):
    board = api.create_board(alice)
    api.invite(alice, board["id"], "old@example.com", "member")
    api.invite(alice, board["id"], "fresh@example.com", "viewer")

    async def _age_one(db):
        await db.execute(
            update(Invitation)
            .where(Invitation.email == "old@example.com")
            .values(expires_at=utcnow() - timedelta(days=1))
        )
        await db.commit()

    run_db(_age_one)

    assert run_db(expire_stale_invitations) == 1
    assert run_db(expire_stale_invitations) == 0

    async def _statuses(db):
        result = await db.execute(
            select(Invitation.email, Invitation.status).where(Invitation.board_id == UUID(board["id"]))
        )
        return dict(result.all())

    assert run_db(_statuses) == {"old@example.com": "expired", "fresh@example.com": "pending"}
    pending = api.board_view(alice, board["id"])["pending_invitations"]
    assert [i["email"] for i in pending] == ["fresh@example.com"]


def test_sweep_accepts_explicit_clock(api, run_db, alice):
    board = api.create_board(alice)
    api.invite(alice, board["id"], "later@example.com", "member")

    async def _sweep_in_future(db):
        return await expire_stale_invitations(db, now=utcnow() + timedelta(days=30))

    assert run_db(_sweep_in_future) == 1


def test_celery_task_runs_the_sweep(api, run_db, alice):
    from boardhub.tasks import expire_stale_invitations as sweep_task

    board = api.create_board(alice)
    api.invite(alice, board["id"], "old@example.com", "member")

    async def _age(db):
        await db.execute(update(Invitation).values(expires_at=utcnow() - timedelta(hours=1)))
        await db.commit()

    run_db(_age)

    result = sweep_task.apply().get()

    assert result == {"status": "success", "expired": 1}
