from datetime import datetime

import pytest

from services import todo_routes

NOW = datetime(2024, 5, 15, 12, 0)


@pytest.fixture
def alice(create_user, token_for):
    user_id = create_user("alice")
    return user_id, token_for(user_id)


@pytest.fixture
def bob(create_user, token_for):
    user_id = create_user("bob", first_name="Bob", last_name="Jones")
    return user_id, token_for(user_id, "Bob", "Jones")


def test_add_todo_defaults_priority_and_returns_fresh_token(api, alice, fetch_todo):
    user_id, token = alice
    body = api("/api/addtodo", token=token, userId=user_id, title="  Buy milk ").get_json()
    assert body["error"] == ""
    assert body["jwtToken"] and body["jwtToken"] != token
    todo = fetch_todo(body["id"])
    assert todo["title"] == "Buy milk"
    assert todo["priority"] == "Low"
    assert todo["completed"] is False
    assert todo["userId"] == user_id


@pytest.mark.parametrize("raw,expected", [("HIGH", "High"), ("medium", "Medium"), ("urgent", "Low")])
def test_add_todo_normalizes_priority(api, alice, fetch_todo, raw, expected):
    user_id, token = alice
    todo_id = api("/api/addtodo", token=token, userId=user_id, title="T", priority=raw).get_json()["id"]
    assert fetch_todo(todo_id)["priority"] == expected


def test_add_todo_with_dates(api, alice, fetch_todo):
    user_id, token = alice
    todo_id = api(
        "/api/addtodo",
        token=token,
        userId=user_id,
        title="Meeting",
        startDate="2024-05-20T09:00:00",
        dueDate="2024-05-20T10:00:00",
    ).get_json()["id"]
    todo = fetch_todo(todo_id)
    assert todo["startDate"] == "2024-05-20T09:00:00"
    assert todo["dueDate"] == "2024-05-20T10:00:00"


def test_add_todo_rejects_due_before_start(api, alice):
    user_id, token = alice
    resp = api(
        "/api/addtodo",
        token=token,
        userId=user_id,
        title="Backwards",
        startDate="2024-05-20T10:00:00",
        dueDate="2024-05-20T09:00:00",
    )
    assert resp.status_code == 400


def test_add_todo_requires_title(api, alice):
    user_id, token = alice
    resp = api("/api/addtodo", token=token, userId=user_id, title="   ")
    assert resp.status_code == 400
    assert resp.get_json()["id"] is None


def test_add_todo_for_another_user_is_forbidden(api, alice, bob):
    _, token = alice
    bob_id, _ = bob
    resp = api("/api/addtodo", token=token, userId=bob_id, title="Sneaky")
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Not authorized for this user"


def test_get_todos_only_returns_own_newest_first(api, alice, bob, create_todo):
    alice_id, token = alice
    bob_id, _ = bob
    create_todo(alice_id, "old", created_at=datetime(2024, 1, 1))
    create_todo(alice_id, "new", created_at=datetime(2024, 3, 1))
    create_todo(bob_id, "bobs", created_at=datetime(2024, 4, 1))
    body = api("/api/gettodos", token=token, userId=alice_id).get_json()
    assert [t["title"] for t in body["results"]] == ["new", "old"]
    assert body["error"] == ""


def test_get_todos_accepts_string_user_id(api, alice, create_todo):
    user_id, token = alice
    create_todo(user_id, "one")
    body = api("/api/gettodos", token=token, userId=str(user_id)).get_json()
    assert len(body["results"]) == 1


def test_get_todos_for_another_user_is_forbidden(api, alice, bob):
    _, token = alice
    bob_id, _ = bob
    assert api("/api/gettodos", token=token, userId=bob_id).status_code == 403


def test_edit_todo_updates_fields(api, alice, create_todo, fetch_todo):
    user_id, token = alice
    todo_id = create_todo(user_id, "Draft", due_date=datetime(2024, 5, 1, 9))
    body = api(
        "/api/edittodo",
        token=token,
        id=todo_id,
        title="Final",
        description="  notes ",
        priority="high",
        dueDate=None,
    ).get_json()
    assert body["modifiedCount"] == 1
    todo = fetch_todo(todo_id)
    assert todo["title"] == "Final"
    assert todo["description"] == "notes"
    assert todo["priority"] == "High"
    assert todo["dueDate"] is None


def test_edit_todo_same_values_is_idempotent(api, alice, create_todo, fetch_todo):
    user_id, token = alice
    todo_id = create_todo(user_id, "Draft")
    first = api("/api/edittodo", token=token, id=str(todo_id), dueDate="2024-06-01T08:30:00").get_json()
    second = api("/api/edittodo", token=token, id=todo_id, dueDate="2024-06-01T08:30:00").get_json()
    assert (first["modifiedCount"], second["modifiedCount"]) == (1, 0)
    assert second["error"] == ""
    assert fetch_todo(todo_id)["dueDate"] == "2024-06-01T08:30:00"


def test_edit_todo_completion_stamps_completed_at(api, alice, create_todo, fetch_todo, monkeypatch):
    monkeypatch.setattr(todo_routes, "_now", lambda: NOW)
    user_id, token = alice
    todo_id = create_todo(user_id)
    api("/api/edittodo", token=token, id=todo_id, completed=True)
    assert fetch_todo(todo_id)["completedAt"] == NOW.isoformat()
    api("/api/edittodo", token=token, id=todo_id, completed=False)
    assert fetch_todo(todo_id)["completedAt"] is None


def test_edit_todo_validation(api, alice, create_todo):
    user_id, token = alice
    todo_id = create_todo(user_id)
    bad_date = api("/api/edittodo", token=token, id=todo_id, dueDate="someday")
    assert bad_date.status_code == 400
    assert bad_date.get_json()["error"] == "dueDate is invalid"
    nothing = api("/api/edittodo", token=token, id=todo_id)
    assert nothing.get_json()["error"] == "no fields to update"
    assert api("/api/edittodo", token=token, id="abc", title="x").get_json()["error"] == "invalid id format"
    assert api("/api/edittodo", token=token, title="x").status_code == 400


def test_other_users_todos_are_forbidden(api, alice, bob, create_todo, fetch_todo):
    _, token = alice
    bob_id, _ = bob
    todo_id = create_todo(bob_id, "Bob's")
    assert api("/api/edittodo", token=token, id=todo_id, title="Mine").status_code == 403
    assert api("/api/check", token=token, id=todo_id).status_code == 403
    assert api("/api/next-day", token=token, id=todo_id).status_code == 403
    deleted = api("/api/deletetodo", token=token, id=todo_id)
    assert deleted.status_code == 403
    assert deleted.get_json()["deletedCount"] == 0
    assert fetch_todo(todo_id)["title"] == "Bob's"


def test_delete_todo(api, alice, create_todo, fetch_todo):
    user_id, token = alice
    todo_id = create_todo(user_id)
    body = api("/api/deletetodo", token=token, id=todo_id).get_json()
    assert body["deletedCount"] == 1
    assert fetch_todo(todo_id) is None


def test_check_toggles_completion(api, alice, create_todo, fetch_todo, monkeypatch):
    monkeypatch.setattr(todo_routes, "_now", lambda: NOW)
    user_id, token = alice
    todo_id = create_todo(user_id)

    body = api("/api/check", token=token, id=todo_id).get_json()
    assert body["newStatus"] is True
    assert fetch_todo(todo_id)["completedAt"] == NOW.isoformat()

    body = api("/api/check", token=token, id=todo_id).get_json()
    assert body["newStatus"] is False
    todo = fetch_todo(todo_id)
    assert todo["completed"] is False
    assert todo["completedAt"] is None


def test_check_bulk_counts_real_changes(api, alice, bob, create_todo, fetch_todo):
    alice_id, token = alice
    bob_id, _ = bob
    open_id = create_todo(alice_id, "open")
    done_id = create_todo(alice_id, "done", completed=True, completed_at=datetime(2024, 5, 1))
    bobs_id = create_todo(bob_id, "bobs")

    body = api("/api/check-bulk", token=token, ids=[open_id, str(done_id), bobs_id, "junk", open_id], completed=True).get_json()
    assert body["modifiedCount"] == 1
    assert fetch_todo(open_id)["completedAt"] is not None
    assert fetch_todo(done_id)["completedAt"] == "2024-05-01T00:00:00"
    assert fetch_todo(bobs_id)["completed"] is False


def test_check_bulk_validation(api, alice):
    _, token = alice
    assert api("/api/check-bulk", token=token, ids="1", completed=True).status_code == 400
    assert api("/api/check-bulk", token=token, ids=[1], completed="yes").status_code == 400
    assert api("/api/check-bulk", token=token, ids=["x"], completed=True).get_json()["error"] == "no valid ids"


def test_next_day_moves_existing_due_date(api, alice, create_todo, fetch_todo):
    user_id, token = alice
    todo_id = create_todo(user_id, due_date=datetime(2024, 2, 28, 17, 30))
    body = api("/api/next-day", token=token, id=todo_id).get_json()
    assert body["newDueDate"] == "2024-02-29T17:30:00"
    assert fetch_todo(todo_id)["dueDate"] == "2024-02-29T17:30:00"


def test_next_day_without_due_date_uses_end_of_tomorrow(api, alice, create_todo, monkeypatch):
    monkeypatch.setattr(todo_routes, "_now", lambda: NOW)
    user_id, token = alice
    todo_id = create_todo(user_id)
    body = api("/api/next-day", token=token, id=todo_id).get_json()
    assert body["modifiedCount"] == 1
    assert body["newDueDate"] == "2024-05-16T23:59:59.999000"


def test_add_and_edit_reject_out_of_range_dates(api, alice, create_todo):
    user_id, token = alice
    edge = "9999-12-31T23:00:00-05:00"
    added = api("/api/addtodo", token=token, userId=user_id, title="Far", dueDate=edge)
    assert added.status_code == 400
    todo_id = create_todo(user_id)
    edited = api("/api/edittodo", token=token, id=todo_id, dueDate=edge)
    assert edited.status_code == 400
    assert edited.get_json()["error"] == "dueDate is invalid"


def test_edit_todo_rejects_due_before_stored_start(api, alice, create_todo, fetch_todo):
    user_id, token = alice
    todo_id = create_todo(user_id, start_date=datetime(2024, 5, 20, 9), due_date=datetime(2024, 5, 20, 10))
    resp = api("/api/edittodo", token=token, id=todo_id, dueDate="2024-05-20T08:00:00")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "dueDate must not be before startDate"
    assert fetch_todo(todo_id)["dueDate"] == "2024-05-20T10:00:00"

    moved = api("/api/edittodo", token=token, id=todo_id, startDate="2024-05-20T07:00:00", dueDate="2024-05-20T08:00:00")
    assert moved.get_json()["modifiedCount"] == 1
