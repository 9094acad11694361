API = "/api/v1"


def _setup(api, owner, member):
    board = api.create_board(owner)
    api.add_member(owner, board["id"], member)
    todo = api.create_list(owner, board["id"])
    task = api.create_task(owner, board["id"], todo["id"], "Review copy")
    return board, task


def _comments_url(board, task):
    return f"{API}/boards/{board['id']}/tasks/{task['id']}/comments"


def test_comment_requires_content(client, api, alice, bob):
    board, task = _setup(api, alice, bob)

    response = client.post(_comments_url(board, task), json={"content": "  "}, headers=bob.headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Comment content is required"


def test_reply_notifies_parent_author(api, alice, bob):
    board, task = _setup(api, alice, bob)
    parent = api.create_comment(alice, board["id"], task["id"], "Can you check the intro?")

    reply = api.create_comment(bob, board["id"], task["id"], "Done, see v2", parent["id"])

    assert reply["parent_comment_id"] == parent["id"]
    assert reply["author_name"] == "Bob Baker"
    types = [item["event_type"] for item in api.inbox(alice)]
    assert "comment.reply_received" in types
    assert "comment.reply_added" in types
    received = next(i for i in api.inbox(alice) if i["event_type"] == "comment.reply_received")
    assert received["message"] == "Bob Baker replied to your comment"
    assert received["meta"] == 'Roadmap - Review copy - "Done, see v2"'


def test_reply_must_target_comment_on_same_task(client, api, alice, bob):
    board, task = _setup(api, alice, bob)
    todo_id = task["list_id"]
    other_task = api.create_task(alice, board["id"], todo_id, "Other")
    parent = api.create_comment(alice, board["id"], other_task["id"], "Elsewhere")

    response = client.post(
        _comments_url(board, task),
        json={"content": "Wrong thread", "parent_comment_id": parent["id"]},
        headers=bob.headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Parent comment must belong to the same task"


def test_long_comment_preview_is_truncated(api, alice, bob):
    board, task = _setup(api, alice, bob)

    api.create_comment(bob, board["id"], task["id"], "x" * 250)

    added = next(i for i in api.inbox(alice) if i["event_type"] == "comment.added")
    assert added["meta"] == f'Roadmap - Review copy - "{"x" * 100}"'


def test_comment_edit_and_delete_permissions(client, api, alice, bob, carol):
    board, task = _setup(api, alice, bob)
    api.add_member(alice, board["id"], carol)
    comment = api.create_comment(bob, board["id"], task["id"], "Original")
    url = f"{_comments_url(board, task)}/{comment['id']}"

    response = client.patch(url, json={"content": "Hijacked"}, headers=carol.headers)
    assert response.status_code == 403

    response = client.patch(url, json={"content": " Edited "}, headers=bob.headers)
    assert response.status_code == 200
    assert response.json()["content"] == "Edited"

    response = client.delete(url, headers=carol.headers)
    assert response.status_code == 403

    response = client.delete(url, headers=alice.headers)
    assert response.status_code == 204
    assert api.board_view(alice, board["id"])["comments_by_task"] == {}


def test_deleting_comment_removes_replies(client, api, alice, bob):
    board, task = _setup(api, alice, bob)
    parent = api.create_comment(alice, board["id"], task["id"], "Thread")
    api.create_comment(bob, board["id"], task["id"], "Reply", parent["id"])

    response = client.delete(f"{_comments_url(board, task)}/{parent['id']}", headers=alice.headers)

    assert response.status_code == 204
    assert api.board_view(alice, board["id"])["comments_by_task"] == {}


def test_reaction_toggles_on_and_off(client, api, alice, bob):
    board, task = _setup(api, alice, bob)
    comment = api.create_comment(alice, board["id"], task["id"], "Shipped!")
    url = f"{_comments_url(board, task)}/{comment['id']}/reactions"

    response = client.post(url, json={"emoji": "🎉"}, headers=bob.headers)
    assert response.status_code == 200
    assert response.json() == {"comment_id": comment["id"], "emoji": "🎉", "reacted": True}

    reactions = api.board_view(alice, board["id"])["reactions_by_comment"][comment["id"]]
    assert [(r["user_id"], r["emoji"]) for r in reactions] == [(str(bob.id), "🎉")]
    reacted = next(i for i in api.inbox(alice) if i["event_type"] == "comment.reacted")
    assert reacted["message"] == "Bob Baker reacted to your comment"
    assert reacted["meta"] == "Roadmap - Review copy - 🎉"

    response = client.post(url, json={"emoji": "🎉"}, headers=bob.headers)
    assert response.json()["reacted"] is False
    assert api.board_view(alice, board["id"])["reactions_by_comment"] == {}

    activity = api.board_view(alice, board["id"])["activities_by_task"][task["id"]]
    toggles = [a for a in activity if a["action_type"] == "comment.reaction_toggled"]
    assert len(toggles) == 2


def test_reacting_to_own_comment_does_not_notify(client, api, alice, bob):
    board, task = _setup(api, alice, bob)
    comment = api.create_comment(alice, board["id"], task["id"], "Mine")

    client.post(
        f"{_comments_url(board, task)}/{comment['id']}/reactions",
        json={"emoji": "👍"},
        headers=alice.headers,
    )

    assert all(i["event_type"] != "comment.reacted" for i in api.inbox(alice))


def test_comment_edit_and_delete_are_logged_and_fanned_out(client, api, alice, bob):
    board, task = _setup(api, alice, bob)
    comment = api.create_comment(bob, board["id"], task["id"], "First draft")
    url = f"{_comments_url(board, task)}/{comment['id']}"

    response = client.patch(url, json={"content": "Second draft"}, headers=bob.headers)
    assert response.status_code == 200
    assert response.json()["author_name"] == "Bob Baker"

    response = client.patch(url, json={"content": "Owner tidy-up"}, headers=alice.headers)
    assert response.json()["author_name"] == "Bob Baker"

    assert client.delete(url, headers=bob.headers).status_code == 204

    activity = api.board_view(alice, board["id"])["activities_by_task"][task["id"]]
    actions = [a["action_type"] for a in activity]
    assert actions.count("comment.updated") == 2
    assert "comment.deleted" in actions

    inbox = {item["event_type"]: item for item in api.inbox(alice)}
    assert inbox["comment.updated"]["message"] == "Bob Baker updated a comment"
    assert inbox["comment.updated"]["meta"] == "Roadmap - Review copy"
    assert inbox["comment.deleted"]["message"] == "Bob Baker deleted a comment"
    bob_events = [item["event_type"] for item in api.inbox(bob)]
    assert bob_events.count("comment.updated") == 1
    assert "comment.deleted" not in bob_events
