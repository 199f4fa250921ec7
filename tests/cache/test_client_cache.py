# -*- coding: utf-8 -*-
import pytest

from client.cache import ClientCache
from client.errors import NetworkFailure, NotFound, RequestRejected
from client.toggles import ToggleState


@pytest.fixture
def store(memory_store):
    memory_store.create_user("admin@example.com", "admin", "Admin123!x", is_admin=True)
    memory_store.create_user("alice@example.com", "alice", "Passw0rd!x")
    memory_store.create_user("bob@example.com", "bob", "Passw0rd!x")
    memory_store.sign_in("alice@example.com", "Passw0rd!x")
    return memory_store


@pytest.fixture
def cache(store):
    c = ClientCache(store)
    c.refresh()
    return c


def test_refresh_loads_every_collection(store, cache):
    store.insert("repair_posts", {"item_name": "ThinkPad X1"})
    store.insert("guides", {"item_name": "ThinkPad X1", "guide_content": "拆机步骤"})

    errors = cache.refresh()

    assert all(e is None for e in errors.values())
    assert [p["item_name"] for p in cache.posts] == ["ThinkPad X1"]
    assert len(cache.guides) == 1
    assert [u["username"] for u in cache.users] == ["admin", "alice", "bob"]


def test_refresh_keeps_old_data_when_one_collection_fails(store, cache):
    cache.create_post({"item_name": "iPad Air"})
    store.fail_operations.add("select")

    errors = cache.refresh()

    assert isinstance(errors["posts"], NetworkFailure)
    assert [p["item_name"] for p in cache.posts] == ["iPad Air"]


def test_create_post_prepends_after_confirmation(cache):
    first = cache.create_post({"item_name": "Switch"})
    second = cache.create_post({"item_name": "Steam Deck"})

    assert [p["id"] for p in cache.posts] == [second["id"], first["id"]]
    assert second["vote_count"] == 0


def test_failed_create_leaves_cache_untouched(store, cache):
    cache.create_post({"item_name": "Switch"})
    snapshot = list(cache.posts)
    store.offline = True

    with pytest.raises(NetworkFailure):
        cache.create_post({"item_name": "Steam Deck"})
    assert cache.posts == snapshot


def test_update_replaces_record_in_place(store, cache):
    post = cache.create_post({"item_name": "Switch"})
    cache.create_post({"item_name": "Steam Deck"})

    cache.update_post(post["id"], {"success": False})

    assert cache.find("posts", post["id"])["success"] is False
    assert [p["item_name"] for p in cache.posts] == ["Steam Deck", "Switch"]

    store.fail_operations.add("update")
    with pytest.raises(NetworkFailure):
        cache.update_post(post["id"], {"success": True})
    assert cache.find("posts", post["id"])["success"] is False


def test_update_of_others_post_rejected(store, cache):
    post = cache.create_post({"item_name": "Switch"})
    store.sign_in("bob@example.com", "Passw0rd!x")

    with pytest.raises(RequestRejected) as exc:
        cache.update_post(post["id"], {"item_name": "hijacked"})
    assert exc.value.status == 403
    assert cache.find("posts", post["id"])["item_name"] == "Switch"


def test_delete_post_cleans_up_relations(store, cache):
    post = cache.create_post({"item_name": "Switch"})
    root = cache.create_comment(post["id"], "先检查电池")
    cache.create_comment(post["id"], "同意", parent_id=root["id"])
    store.insert("votes", {"repair_post_id": post["id"]})
    store.insert("bookmarks", {"repair_post_id": post["id"]})
    # 其他用户的点赞和评论也由帖子作者清理
    store.sign_in("bob@example.com", "Passw0rd!x")
    store.insert("votes", {"repair_post_id": post["id"]})
    store.insert("comments", {"repair_post_id": post["id"], "content": "bob 的评论"})
    store.sign_in("alice@example.com", "Passw0rd!x")

    cache.delete_post(post["id"])

    assert cache.posts == []
    assert post["id"] not in cache.comments
    assert store.raw("comments") == {}
    assert store.raw("votes") == {}
    assert store.raw("bookmarks") == {}
    assert store.raw("repair_posts") == {}


def test_delete_post_failure_keeps_post_in_cache(store, cache):
    post = cache.create_post({"item_name": "Switch"})
    store.fail_operations.add("delete")

    with pytest.raises(NetworkFailure):
        cache.delete_post(post["id"])
    assert cache.find("posts", post["id"]) is not None


def test_create_comment_appends_and_bumps_count(store, cache):
    post = cache.create_post({"item_name": "Switch"})
    cache.load_comments(post["id"])

    comment = cache.create_comment(post["id"], "换个摇杆")

    assert cache.comments[post["id"]] == [comment]
    assert cache.find("posts", post["id"])["comment_count"] == 1
    assert [n.id for n in cache.thread(post["id"])] == [comment["id"]]


def test_reply_parent_must_belong_to_loaded_post(store, cache):
    a = cache.create_post({"item_name": "Switch"})
    b = cache.create_post({"item_name": "Steam Deck"})
    foreign = cache.create_comment(b["id"], "另一帖的评论")
    cache.load_comments(a["id"])
    store.calls.clear()

    with pytest.raises(RequestRejected):
        cache.create_comment(a["id"], "回复", parent_id=foreign["id"])
    assert "insert" not in store.calls
    assert cache.comments[a["id"]] == []


def test_reply_parent_checked_by_store_when_not_loaded(store, cache):
    a = cache.create_post({"item_name": "Switch"})
    b = cache.create_post({"item_name": "Steam Deck"})
    foreign = cache.create_comment(b["id"], "另一帖的评论")
    cache.comments.clear()

    with pytest.raises(RequestRejected):
        cache.create_comment(a["id"], "回复", parent_id=foreign["id"])
    with pytest.raises(NotFound):
        cache.create_comment(a["id"], "回复", parent_id=9999)


def test_delete_comment_removes_subtree(store, cache):
    post = cache.create_post({"item_name": "Switch"})
    cache.load_comments(post["id"])
    a = cache.create_comment(post["id"], "A")
    b = cache.create_comment(post["id"], "B", parent_id=a["id"])
    cache.create_comment(post["id"], "C", parent_id=b["id"])
    d = cache.create_comment(post["id"], "D")

    cache.delete_comment(post["id"], a["id"])

    assert [c["id"] for c in cache.comments[post["id"]]] == [d["id"]]
    assert [n.id for n in cache.thread(post["id"])] == [d["id"]]
    assert cache.find("posts", post["id"])["comment_count"] == 1
    assert set(store.raw("comments")) == {d["id"]}


def test_delete_unloaded_comment_rereads_count(store, cache):
    post = store.insert("repair_posts", {"item_name": "Switch"})
    root = store.insert("comments", {"repair_post_id": post["id"], "content": "A"})
    reply = store.insert("comments", {"repair_post_id": post["id"], "content": "B", "parent_id": root["id"]})
    store.insert("comments", {"repair_post_id": post["id"], "content": "C", "parent_id": reply["id"]})
    cache.refresh()
    assert cache.find("posts", post["id"])["comment_count"] == 3
    assert post["id"] not in cache.comments

    cache.delete_comment(post["id"], root["id"])

    assert cache.find("posts", post["id"])["comment_count"] == 0


def test_note_vote_writes_confirmed_count(cache):
    post = cache.create_post({"item_name": "Switch"})

    cache.note_vote(post["id"], ToggleState(active=True, count=7))
    cache.note_bookmark(post["id"], ToggleState(active=True))

    cached = cache.find("posts", post["id"])
    assert (cached["vote_count"], cached["user_has_voted"], cached["user_has_bookmarked"]) == (7, True, True)


def test_categories_admin_only_and_sorted(store, cache):
    with pytest.raises(RequestRejected):
        cache.create_category({"name": "手机"})

    store.sign_in("admin@example.com", "Admin123!x")
    cache.create_category({"name": "笔记本"})
    cache.create_category({"name": "Audio"})

    assert [c["name"] for c in cache.categories] == ["Audio", "笔记本"]


def test_guide_lifecycle(store, cache):
    guide = cache.create_guide({"item_name": "Pixel 6", "guide_content": "更换电池"})

    cache.update_guide(guide["id"], {"guide_content": "更换电池与后盖胶"})
    assert cache.find("guides", guide["id"])["guide_content"] == "更换电池与后盖胶"

    cache.delete_guide(guide["id"])
    assert cache.guides == []


def test_category_update_and_delete_by_admin(store, cache):
    store.sign_in("admin@example.com", "Admin123!x")
    category = cache.create_category({"name": "相机"})

    cache.update_category(category["id"], {"icon": "camera"})
    assert cache.find("categories", category["id"])["icon"] == "camera"

    store.sign_in("alice@example.com", "Passw0rd!x")
    with pytest.raises(RequestRejected):
        cache.delete_category(category["id"])
    assert cache.find("categories", category["id"]) is not None

    store.sign_in("admin@example.com", "Admin123!x")
    cache.delete_category(category["id"])
    assert cache.categories == []


def test_update_comment_replaces_loaded_comment(cache):
    post = cache.create_post({"item_name": "AirPods"})
    comment = cache.create_comment(post["id"], "左耳无声")

    updated = cache.update_comment(post["id"], comment["id"], "左耳无声，已清理滤网")

    assert updated["content"] == "左耳无声，已清理滤网"
    assert [c["content"] for c in cache.comments[post["id"]]] == ["左耳无声，已清理滤网"]


def test_update_profile(store, cache):
    alice = store.current_identity()

    cache.update_profile(alice["id"], {"bio": "业余维修"})

    assert cache.find("users", alice["id"])["bio"] == "业余维修"


def test_clear(cache):
    cache.create_post({"item_name": "Switch"})
    cache.clear()
    assert cache.posts == [] and cache.users == [] and cache.comments == {}
