# -*- coding: utf-8 -*-
import pytest

from client.errors import Conflict, NetworkFailure, NotAuthenticated, NotFound, RequestRejected
from client.memory_store import InMemoryRecordStore, matches, sort_records


@pytest.fixture
def store(memory_store):
    memory_store.create_user("alice@example.com", "alice", "Passw0rd!x")
    memory_store.create_user("bob@example.com", "bob", "Passw0rd!x")
    memory_store.sign_in("alice@example.com", "Passw0rd!x")
    return memory_store


def test_simulated_latency_sleeps_per_call():
    slept = []
    store = InMemoryRecordStore(latency_ms=350, sleep=slept.append)

    store.select("categories")
    store.count("categories")

    assert slept == [0.35, 0.35]


def test_sign_in_rejects_bad_password(store):
    with pytest.raises(NotAuthenticated):
        store.sign_in("alice@example.com", "wrong")


def test_writes_require_identity(store):
    store.sign_out()
    assert store.current_identity() is None
    with pytest.raises(NotAuthenticated):
        store.insert("repair_posts", {"item_name": "Switch"})


def test_owner_field_forced_to_identity(store):
    alice = store.current_identity()

    post = store.insert("repair_posts", {"item_name": "Switch", "user_id": 999})

    assert post["user_id"] == alice["id"]


def test_filters_order_and_paging(store):
    for name in ("Kindle", "Switch", "kobo"):
        store.insert("repair_posts", {"item_name": name, "success": name != "Switch"})

    assert [p["item_name"] for p in store.select("repair_posts", order=[("item_name", False)])] == [
        "Kindle", "kobo", "Switch"]
    assert [p["item_name"] for p in store.select("repair_posts", filters={"item_name": ("ilike", "k*")})] == [
        "kobo", "Kindle"]
    assert store.count("repair_posts", {"success": False}) == 1
    assert store.count("repair_posts", {"category_id": None}) == 3
    assert len(store.select("repair_posts", limit=2, offset=2)) == 1
    assert [p["item_name"] for p in store.select("repair_posts", search="SWI")] == ["Switch"]


def test_unknown_filter_field_rejected(store):
    store.insert("repair_posts", {"item_name": "Switch"})
    with pytest.raises(RequestRejected):
        store.select("repair_posts", filters={"nope": 1})


def test_unique_relation_conflict(store):
    post = store.insert("repair_posts", {"item_name": "Switch"})
    store.insert("votes", {"repair_post_id": post["id"]})

    with pytest.raises(Conflict):
        store.insert("votes", {"repair_post_id": post["id"]})


def test_comment_delete_cascades_replies(store):
    post = store.insert("repair_posts", {"item_name": "Switch"})
    a = store.insert("comments", {"repair_post_id": post["id"], "content": "A"})
    b = store.insert("comments", {"repair_post_id": post["id"], "content": "B", "parent_id": a["id"]})
    store.insert("comments", {"repair_post_id": post["id"], "content": "C", "parent_id": b["id"]})

    store.delete("comments", a["id"])

    assert store.count("comments") == 0
    with pytest.raises(NotFound):
        store.delete("comments", a["id"])


def test_notifications_are_private(store):
    post = store.insert("repair_posts", {"item_name": "Switch"})
    store.sign_in("bob@example.com", "Passw0rd!x")
    store.insert("votes", {"repair_post_id": post["id"]})

    assert store.select("notifications") == []
    store.sign_in("alice@example.com", "Passw0rd!x")
    assert [n["type"] for n in store.select("notifications")] == ["vote"]


def test_reports_admin_only(store):
    store.insert("reports", {"target_type": "post", "target_id": 1, "reason": "spam"})
    with pytest.raises(RequestRejected) as exc:
        store.select("reports")
    assert exc.value.status == 403


def test_offline_and_failing_operations(store):
    store.fail_operations.add("count")
    with pytest.raises(NetworkFailure):
        store.count("repair_posts")
    assert store.select("repair_posts") == []

    store.offline = True
    with pytest.raises(NetworkFailure):
        store.select("repair_posts")


def test_upload_round_trip(store):
    url = store.upload("avatars", "1/me.png", b"\x89PNG")
    assert url == "memory://avatars/1/me.png"
    assert store.download(url) == b"\x89PNG"

    with pytest.raises(RequestRejected) as exc:
        store.upload("avatars", "2/me.png", b"\x89PNG")
    assert exc.value.status == 403


def test_matches_and_sort_helpers():
    rows = [
        {"id": 1, "created_at": "2025-03-01T10:00:00+00:00", "parent_id": None},
        {"id": 2, "created_at": "2025-03-01T09:00:00Z", "parent_id": 1},
        {"id": 3, "created_at": "2025-03-01T10:00:00+00:00", "parent_id": 1},
    ]

    assert [r["id"] for r in sort_records(rows, [("created_at", True)])] == [1, 3, 2]
    assert [r["id"] for r in rows if matches(r, {"parent_id": ("in", [1])})] == [2, 3]
    assert [r["id"] for r in rows if matches(r, {"created_at": ("lt", "2025-03-01T10:00:00+00:00")})] == [2]
