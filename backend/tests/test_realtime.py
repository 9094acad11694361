import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from boardhub.api.v1.websocket import _serve
from boardhub.main import app
from boardhub.models import CommentReaction, Task
from boardhub.services.realtime import (
    BOARD_TABLES,
    ConnectionManager,
    RefreshDebouncer,
    _channel_for,
    manager,
)

API = "/api/v1"


def test_debouncer_coalesces_bursts_per_key():
    calls = []

    async def _callback(key, tables):
        calls.append((key, tables))

    async def _scenario():
        debouncer = RefreshDebouncer(0.02, _callback)
        debouncer.schedule("b1", {"tasks"})
        debouncer.schedule("b1", {"task_activity"})
        debouncer.schedule("b2", {"lists"})
        assert debouncer.pending("b1") == {"tasks", "task_activity"}
        await asyncio.sleep(0.1)
        debouncer.schedule("b1", {"comments"})
        await asyncio.sleep(0.1)

    asyncio.run(_scenario())

    assert sorted(calls, key=lambda call: call[0])[:2] == [
        ("b1", {"tasks", "task_activity"}),
        ("b1", {"comments"}),
    ]
    assert ("b2", {"lists"}) in calls
    assert len(calls) == 3


def test_cancel_all_drops_pending_refreshes():
    calls = []

    async def _callback(key, tables):
        calls.append(key)

    async def _scenario():
        debouncer = RefreshDebouncer(0.02, _callback)
        debouncer.schedule("b1", {"tasks"})
        debouncer.cancel_all()
        await asyncio.sleep(0.05)
        assert debouncer.pending("b1") == set()

    asyncio.run(_scenario())

    assert calls == []


def test_failed_send_drops_connection():
    class _Broken:
        async def send_json(self, message):
            raise RuntimeError("gone")

    connections = ConnectionManager()
    broken = _Broken()
    connections.board_connections["b1"] = {broken}

    asyncio.run(connections.broadcast_to_board("b1", {"type": "refresh"}))

    assert not connections.has_board_subscribers("b1")


def test_board_subscribers_receive_refresh_after_commit(api, alice):
    board = api.create_board(alice)
    todo = api.create_list(alice, board["id"])

    with TestClient(app) as live:
        with live.websocket_connect(f"{API}/ws/boards/{board['id']}?token={alice.token}") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
            assert manager.has_board_subscribers(board["id"])

            for title in ("One", "Two"):
                response = live.post(
                    f"{API}/boards/{board['id']}/tasks",
                    json={"list_id": todo["id"], "title": title},
                    headers=alice.headers,
                )
                assert response.status_code == 201

            message = ws.receive_json()

    assert message["type"] == "refresh"
    assert message["board_id"] == board["id"]
    assert {"tasks", "task_activity"} <= set(message["tables"])
    assert not manager.has_board_subscribers(board["id"])


def test_board_channel_requires_membership(api, alice, bob):
    board = api.create_board(alice)

    with TestClient(app) as live:
        with pytest.raises(WebSocketDisconnect) as exc:
            with live.websocket_connect(f"{API}/ws/boards/{board['id']}?token={bob.token}"):
                pass
        assert exc.value.code == 4403

        with pytest.raises(WebSocketDisconnect) as exc:
            with live.websocket_connect(f"{API}/ws/inbox?token=garbage"):
                pass
        assert exc.value.code == 4401


def test_inbox_subscribers_are_told_to_refresh(api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)
    todo = api.create_list(alice, board["id"])

    with TestClient(app) as live:
        with live.websocket_connect(f"{API}/ws/inbox?token={bob.token}") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            live.post(
                f"{API}/boards/{board['id']}/tasks",
                json={"list_id": todo["id"], "title": "Heads up"},
                headers=alice.headers,
            )

            assert ws.receive_json() == {"type": "inbox_refresh"}


def test_debouncer_restarts_timer_left_on_a_closed_loop():
    calls = []

    async def _callback(key, tables):
        calls.append((key, tables))

    debouncer = RefreshDebouncer(60, _callback)

    async def _abandoned():
        debouncer.schedule("b1", {"tasks"})

    async def _next_loop():
        debouncer.delay = 0.02
        debouncer.schedule("b1", {"lists"})
        await asyncio.sleep(0.1)

    asyncio.run(_abandoned())
    asyncio.run(_next_loop())

    assert calls == [("b1", {"tasks", "lists"})]


def test_reaction_rows_do_not_map_to_a_board_channel():
    reaction = CommentReaction(comment_id=uuid4(), user_id=uuid4(), emoji="+1")
    task = Task(board_id=uuid4(), list_id=uuid4(), title="Ship", position=0)

    assert "comment_reactions" not in BOARD_TABLES
    assert _channel_for(reaction) is None
    assert _channel_for(task) == ("board", str(task.board_id), "tasks")


def test_connection_is_released_when_serving_fails():
    class _Socket:
        async def accept(self):
            pass

        async def receive_text(self):
            raise RuntimeError("unexpected frame")

    socket = _Socket()

    async def _scenario():
        await manager.connect(socket, "u1", board_id="b-errored")
        assert manager.has_board_subscribers("b-errored")
        await _serve(socket, "u1", "b-errored")

    with pytest.raises(RuntimeError):
        asyncio.run(_scenario())

    assert not manager.has_board_subscribers("b-errored")
