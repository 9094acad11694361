from uuid import uuid4

API = "/api/v1"


def test_lists_are_appended_one_stride_apart(api, alice):
    board = api.create_board(alice)

    todo = api.create_list(alice, board["id"], "Todo")
    doing = api.create_list(alice, board["id"], "  Doing  ")

    assert todo["position"] == 1000
    assert doing["position"] == 2000
    assert doing["name"] == "Doing"
    view = api.board_view(alice, board["id"])
    assert [item["name"] for item in view["lists"]] == ["Todo", "Doing"]


def test_list_name_is_required(client, api, alice):
    board = api.create_board(alice)

    response = client.post(f"{API}/boards/{board['id']}/lists", json={"name": " "}, headers=alice.headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "List name is required"


def test_non_member_cannot_open_board(client, api, alice, bob):
    board = api.create_board(alice)

    response = client.get(f"{API}/boards/{board['id']}", headers=bob.headers)
    assert response.status_code == 403

    response = client.get(f"{API}/boards/{uuid4()}", headers=bob.headers)
    assert response.status_code == 404


def test_viewer_sees_board_read_only(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob, "viewer")

    view = api.board_view(bob, board["id"])
    assert view["role"] == "viewer"
    assert view["can_edit"] is False
    assert view["can_manage_people"] is False

    response = client.post(f"{API}/boards/{board['id']}/lists", json={"name": "Nope"}, headers=bob.headers)
    assert response.status_code == 403


def test_board_view_groups_comments_and_activity(api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)
    todo = api.create_list(alice, board["id"])
    task = api.create_task(alice, board["id"], todo["id"], "Ship it")
    comment = api.create_comment(bob, board["id"], task["id"], "Looks good")

    view = api.board_view(alice, board["id"], task=task["id"])

    assert view["focused_task_id"] == task["id"]
    assert [c["content"] for c in view["comments_by_task"][task["id"]]] == ["Looks good"]
    assert view["comments_by_task"][task["id"]][0]["author_name"] == "Bob Baker"
    actions = [a["action_type"] for a in view["activities_by_task"][task["id"]]]
    assert actions == ["comment.added", "task.created"]
    assert view["reactions_by_comment"] == {}
    assert comment["parent_comment_id"] is None
    assert view["reaction_emojis"] == ["👍", "❤️", "🎉", "👀"]


def test_focus_on_unknown_task_is_ignored(api, alice):
    board = api.create_board(alice)

    view = api.board_view(alice, board["id"], task=str(uuid4()))

    assert view["focused_task_id"] is None


def test_owner_updates_board_details(client, api, alice):
    board = api.create_board(alice)

    response = client.patch(
        f"{API}/boards/{board['id']}",
        json={"name": "  Renamed ", "description": "  "},
        headers=alice.headers,
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "message": "Board details updated."}
    updated = api.board_view(alice, board["id"])["board"]
    assert updated["name"] == "Renamed"
    assert updated["description"] is None


def test_board_update_failures_are_reported_as_messages(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)

    response = client.patch(f"{API}/boards/{board['id']}", json={"name": ""}, headers=alice.headers)
    assert response.status_code == 400
    assert response.json() == {"ok": False, "message": "Board name is required."}

    response = client.patch(f"{API}/boards/{board['id']}", json={"name": "Mine"}, headers=bob.headers)
    assert response.status_code == 403
    assert response.json() == {"ok": False, "message": "Only board owner can edit board details."}


def test_only_owner_deletes_board(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)
    todo = api.create_list(alice, board["id"])
    api.create_task(alice, board["id"], todo["id"])

    response = client.delete(f"{API}/boards/{board['id']}", headers=bob.headers)
    assert response.status_code == 403

    response = client.delete(f"{API}/boards/{board['id']}", headers=alice.headers)
    assert response.status_code == 204
    assert client.get(f"{API}/boards/{board['id']}", headers=alice.headers).status_code == 404


def test_deleting_list_removes_its_tasks(client, api, alice, bob):
    board = api.create_board(alice)
    api.add_member(alice, board["id"], bob)
    todo = api.create_list(alice, board["id"], "Todo")
    done = api.create_list(alice, board["id"], "Done")
    api.create_task(alice, board["id"], todo["id"], "Gone soon")
    kept = api.create_task(alice, board["id"], done["id"], "Stays")

    response = client.delete(f"{API}/boards/{board['id']}/lists/{todo['id']}", headers=bob.headers)
    assert response.status_code == 403

    response = client.delete(f"{API}/boards/{board['id']}/lists/{todo['id']}", headers=alice.headers)
    assert response.status_code == 204

    view = api.board_view(alice, board["id"])
    assert [item["id"] for item in view["lists"]] == [done["id"]]
    assert [t["id"] for t in view["tasks"]] == [kept["id"]]
