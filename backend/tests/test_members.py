from datetime import timedelta
from uuid import UUID

from sqlalchemy import select, update

from boardhub.db.base import utcnow
from boardhub.models.activity import NotificationEvent
from boardhub.models.collaboration import Invitation

API = "/api/v1"


def test_invite_validates_input_and_ownership(api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)

    response = api.invite(alice, board["id"], "  ", "member")
    assert response.status_code == 400
    assert response.json() == {"ok": False, "message": "Email and role are required."}

    response = api.invite(alice, board["id"], "dave@example.com", "owner")
    assert response.status_code == 400
    assert response.json()["message"] == "Email and role are required."

    response = api.invite(bob, board["id"], "dave@example.com", "member")
    assert response.status_code == 403
    assert response.json() == {"ok": False, "message": "Only board owner can invite members."}


def test_reinvite_updates_pending_invitation(api, alice):
    board = api.create_board(alice)

    response = api.invite(alice, board["id"], "Dave@Example.com", "member")
    assert response.json() == {"ok": True, "message": "Invitation sent."}

    response = api.invite(alice, board["id"], "dave@example.com", "viewer")
    assert response.json() == {"ok": True, "message": "Existing invitation updated."}

    pending = api.board_view(alice, board["id"])["pending_invitations"]
    assert [(i["email"], i["role"]) for i in pending] == [("dave@example.com", "viewer")]


def test_invitations_are_announced_to_other_members(api, run_db, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)

    api.invite(alice, board["id"], "Dave@Example.com", "member")
    api.invite(alice, board["id"], "dave@example.com", "viewer")

    inbox = {item["event_type"]: item for item in api.inbox(bob)}
    assert inbox["invitation.sent"]["message"] == "Alice Archer invited dave@example.com"
    assert inbox["invitation.sent"]["meta"] == "Roadmap - member"
    assert inbox["invitation.updated"]["message"] == "Alice Archer updated invite for dave@example.com"
    assert inbox["invitation.updated"]["meta"] == "Roadmap - viewer"
    alice_events = {item["event_type"] for item in api.inbox(alice)}
    assert not alice_events & {"invitation.sent", "invitation.updated"}

    async def _payloads(db):
        result = await db.execute(
            select(NotificationEvent.event_type, NotificationEvent.payload).where(
                NotificationEvent.user_id == bob.id,
                NotificationEvent.event_type.in_(["invitation.sent", "invitation.updated"]),
            )
        )
        return dict(result.all())

    payloads = run_db(_payloads)
    assert payloads["invitation.sent"] == {
        "email": "dave@example.com",
        "role": "member",
        "actor_name": "Alice Archer",
    }
    assert payloads["invitation.updated"]["role"] == "viewer"


def test_accepting_invitation_grants_role_and_notifies_inviter(client, api, alice, carol):
    board = api.create_board(alice)
    api.invite(alice, board["id"], carol.email, "viewer")
    invitation = api.pending_invitations(carol)[0]

    response = client.post(f"{API}/invitations/{invitation['id']}/accept", headers=carol.headers)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "accepted"
    assert data["accepted_by"] == str(carol.id)
    assert api.board_view(carol, board["id"])["role"] == "viewer"
    assert api.pending_invitations(carol) == []

    accepted = api.inbox(alice)[0]
    assert accepted["event_type"] == "invitation.accepted"
    assert accepted["message"] == "carol accepted an invitation"
    assert accepted["href"] == f"/app/boards/{board['id']}"

    response = client.post(f"{API}/invitations/{invitation['id']}/accept", headers=carol.headers)
    assert response.status_code == 400


def test_invitation_for_other_email_is_forbidden(client, api, alice, bob):
    board = api.create_board(alice)
    api.invite(alice, board["id"], "someone@example.com", "member")
    invitation = api.board_view(alice, board["id"])["pending_invitations"][0]

    response = client.post(f"{API}/invitations/{invitation['id']}/accept", headers=bob.headers)

    assert response.status_code == 403


def test_expired_invitation_cannot_be_accepted(client, api, run_db, alice, bob):
    board = api.create_board(alice)
    api.invite(alice, board["id"], bob.email, "member")
    invitation = api.pending_invitations(bob)[0]

    async def _expire(db):
        await db.execute(
            update(Invitation)
            .where(Invitation.board_id == UUID(board["id"]))
            .values(expires_at=utcnow() - timedelta(minutes=1))
        )
        await db.commit()

    run_db(_expire)

    assert api.pending_invitations(bob) == []
    response = client.post(f"{API}/invitations/{invitation['id']}/accept", headers=bob.headers)
    assert response.status_code == 410
    assert response.json()["detail"] == "Invitation has expired"


def test_owner_changes_member_role(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)

    response = client.patch(
        f"{API}/boards/{board['id']}/members/{bob.id}", json={"role": "viewer"}, headers=alice.headers
    )

    assert response.status_code == 200
    assert response.json()["role"] == "viewer"
    assert response.json()["name"] == "Bob Baker"
    assert api.board_view(bob, board["id"])["can_edit"] is False
    updated = api.inbox(bob)[0]
    assert updated["event_type"] == "membership.role_updated"
    assert updated["message"] == "Your board role was updated"
    assert updated["meta"] == "Roadmap - viewer"


def test_owner_role_cannot_be_changed_or_granted(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)

    response = client.patch(
        f"{API}/boards/{board['id']}/members/{bob.id}", json={"role": "owner"}, headers=alice.headers
    )
    assert response.status_code == 400

    response = client.patch(
        f"{API}/boards/{board['id']}/members/{alice.id}", json={"role": "viewer"}, headers=alice.headers
    )
    assert response.status_code == 400

    response = client.patch(
        f"{API}/boards/{board['id']}/members/{alice.id}", json={"role": "viewer"}, headers=bob.headers
    )
    assert response.status_code == 403


def test_owner_removes_member(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)

    response = client.delete(f"{API}/boards/{board['id']}/members/{alice.id}", headers=alice.headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "You cannot remove yourself"

    response = client.delete(f"{API}/boards/{board['id']}/members/{bob.id}", headers=alice.headers)
    assert response.status_code == 204

    assert client.get(f"{API}/boards/{board['id']}", headers=bob.headers).status_code == 403
    removed = api.inbox(bob)[0]
    assert removed["event_type"] == "membership.removed"
    assert removed["message"] == "You were removed from a board"
    assert removed["href"] == "/app"


def test_owner_revokes_invitation(client, api, alice, bob):
    board = api.create_board(alice)
    api.invite(alice, board["id"], bob.email, "member")
    invitation = api.pending_invitations(bob)[0]

    response = client.delete(
        f"{API}/boards/{board['id']}/invitations/{invitation['id']}", headers=bob.headers
    )
    assert response.status_code == 403

    response = client.delete(
        f"{API}/boards/{board['id']}/invitations/{invitation['id']}", headers=alice.headers
    )
    assert response.status_code == 204
    assert api.pending_invitations(bob) == []
    assert api.board_view(alice, board["id"])["pending_invitations"] == []
