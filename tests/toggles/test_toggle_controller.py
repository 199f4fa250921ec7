# -*- coding: utf-8 -*-
import random

import pytest

from client.errors import NetworkFailure, NotAuthenticated, RequestRejected, ToggleInFlight
from client.memory_store import InMemoryRecordStore
from client.toggles import BOOKMARK, FOLLOW, VOTE, ToggleController, ToggleState


def _seed(store):
    """作者 + 一篇帖子 + 若干登录过的用户，最后以 viewer 身份登录。"""
    owner = store.create_user("owner@example.com", "owner", "Passw0rd!x")
    store.sign_in("owner@example.com", "Passw0rd!x")
    post = store.insert("repair_posts", {"item_name": "Pixel 6"})
    viewer = store.create_user("viewer@example.com", "viewer", "Passw0rd!x")
    store.sign_in("viewer@example.com", "Passw0rd!x")
    return owner, viewer, post


@pytest.fixture
def seeded(memory_store):
    owner, viewer, post = _seed(memory_store)
    return memory_store, owner, viewer, post


def test_toggle_alternates_and_recounts(seeded):
    store, _, viewer, post = seeded
    votes = ToggleController(store, VOTE)

    first = votes.toggle(viewer["id"], post["id"])
    second = votes.toggle(viewer["id"], post["id"])
    third = votes.toggle(viewer["id"], post["id"])

    assert first == ToggleState(active=True, count=1)
    assert second == ToggleState(active=False, count=0)
    assert third == ToggleState(active=True, count=1)
    assert votes.displayed(viewer["id"], post["id"]) == third


def test_count_comes_from_backend_not_local_arithmetic(seeded):
    store, _, viewer, post = seeded
    # 其他会话先点了 3 个赞
    for i in range(3):
        store.create_user(f"u{i}@example.com", f"u{i}", "Passw0rd!x")
        store.sign_in(f"u{i}@example.com", "Passw0rd!x")
        store.insert("votes", {"repair_post_id": post["id"]})
    store.sign_in("viewer@example.com", "Passw0rd!x")
    votes = ToggleController(store, VOTE)

    assert votes.load(viewer["id"], post["id"]) == ToggleState(active=False, count=3)
    assert votes.toggle(viewer["id"], post["id"]).count == 4

    # 后端在两次操作之间又少了 2 个赞
    others = [v for v in store.raw("votes").values() if v["user_id"] != viewer["id"]][:2]
    for v in others:
        store.raw("votes").pop(v["id"])
    assert votes.toggle(viewer["id"], post["id"]) == ToggleState(active=False, count=1)


@pytest.mark.parametrize("seed", [0, 1, 7, 42])
def test_count_matches_distinct_actors_in_any_order(seeded, seed):
    """N 个用户各点一次赞、其中 M 个再取消，计数依次为 N 与 N-M，与先后顺序无关。"""
    store, _, _, post = seeded
    rng = random.Random(seed)
    votes = ToggleController(store, VOTE)
    emails = []
    for i in range(6):
        store.create_user(f"fan{i}@example.com", f"fan{i}", "Passw0rd!x")
        emails.append(f"fan{i}@example.com")

    def toggle_as(email):
        user = store.sign_in(email, "Passw0rd!x")
        return votes.toggle(user["id"], post["id"])

    rng.shuffle(emails)
    states = [toggle_as(e) for e in emails]
    assert all(s.active for s in states)
    assert votes.recount(post["id"]) == 6

    leaving = rng.sample(emails, 4)
    rng.shuffle(leaving)
    states = [toggle_as(e) for e in leaving]
    assert not any(s.active for s in states)
    assert votes.recount(post["id"]) == 2


def test_bookmark_has_no_count(seeded):
    store, _, viewer, post = seeded
    bookmarks = ToggleController(store, BOOKMARK)

    assert bookmarks.toggle(viewer["id"], post["id"]) == ToggleState(active=True, count=None)
    assert store.count("bookmarks", {"repair_post_id": post["id"]}) == 1


def test_offline_failure_leaves_displayed_state(seeded):
    store, _, viewer, post = seeded
    votes = ToggleController(store, VOTE)
    before = votes.load(viewer["id"], post["id"])

    store.offline = True
    with pytest.raises(NetworkFailure):
        votes.toggle(viewer["id"], post["id"])

    assert votes.displayed(viewer["id"], post["id"]) == before
    assert not votes.in_flight(viewer["id"], post["id"])
    store.offline = False
    assert store.count("votes") == 0


def test_failed_recount_surfaces_error_without_retry(seeded):
    store, _, viewer, post = seeded
    votes = ToggleController(store, VOTE)
    before = votes.load(viewer["id"], post["id"])
    store.fail_operations.add("count")
    store.calls.clear()

    with pytest.raises(NetworkFailure):
        votes.toggle(viewer["id"], post["id"])

    assert votes.displayed(viewer["id"], post["id"]) == before
    assert store.calls.count("insert") == 1
    assert store.calls.count("count") == 1
    store.fail_operations.clear()
    assert store.count("votes", {"repair_post_id": post["id"]}) == 1


class ReentrantStore(InMemoryRecordStore):
    """在查询途中再次触发同一个 toggle，模拟用户连点。"""

    def __init__(self):
        super().__init__(latency_ms=0)
        self.controller = None
        self.nested_errors = []
        self._armed = False

    def select(self, collection, *args, **kwargs):
        if self._armed:
            self._armed = False
            try:
                self.controller.toggle(self.nested_actor, self.nested_target)
            except ToggleInFlight as e:
                self.nested_errors.append(e)
        return super().select(collection, *args, **kwargs)


def test_reentrant_toggle_rejected_without_backend_call():
    store = ReentrantStore()
    _, viewer, post = _seed(store)
    votes = ToggleController(store, VOTE)
    store.controller = votes
    store.nested_actor, store.nested_target = viewer["id"], post["id"]
    store._armed = True
    store.calls.clear()

    state = votes.toggle(viewer["id"], post["id"])

    assert state.active is True
    assert len(store.nested_errors) == 1
    assert store.calls.count("insert") == 1
    assert store.count("votes") == 1
    assert not votes.in_flight(viewer["id"], post["id"])


def test_in_flight_is_per_pair():
    store = ReentrantStore()
    _, viewer, post = _seed(store)
    other = store.insert("repair_posts", {"item_name": "Galaxy S21"})
    votes = ToggleController(store, VOTE)
    store.controller = votes
    # 嵌套调用针对另一篇帖子，应正常完成
    store.nested_actor, store.nested_target = viewer["id"], other["id"]
    store._armed = True

    votes.toggle(viewer["id"], post["id"])

    assert store.nested_errors == []
    assert store.count("votes") == 2


class StaleReadStore(InMemoryRecordStore):
    """查询结果落后于后端：用来制造插入冲突、删除时记录已消失的情况。"""

    def __init__(self):
        super().__init__(latency_ms=0)
        self.hide_next = False
        self.vanish_next = False

    def select(self, collection, *args, **kwargs):
        rows = super().select(collection, *args, **kwargs)
        if self.hide_next:
            self.hide_next = False
            return []
        if self.vanish_next and rows:
            self.vanish_next = False
            for row in rows:
                self.raw(collection).pop(row["id"], None)
        return rows


def test_conflict_on_insert_treated_as_active():
    store = StaleReadStore()
    _, viewer, post = _seed(store)
    store.insert("votes", {"repair_post_id": post["id"]})
    votes = ToggleController(store, VOTE)
    store.hide_next = True

    assert votes.toggle(viewer["id"], post["id"]) == ToggleState(active=True, count=1)


def test_not_found_on_delete_treated_as_inactive():
    store = StaleReadStore()
    _, viewer, post = _seed(store)
    store.insert("bookmarks", {"repair_post_id": post["id"]})
    bookmarks = ToggleController(store, BOOKMARK)
    store.vanish_next = True

    assert bookmarks.toggle(viewer["id"], post["id"]) == ToggleState(active=False)


def test_follow_rejects_self_before_backend(seeded):
    store, owner, viewer, _ = seeded
    follows = ToggleController(store, FOLLOW)
    store.calls.clear()

    with pytest.raises(RequestRejected):
        follows.toggle(viewer["id"], viewer["id"])
    assert store.calls == []

    assert follows.toggle(viewer["id"], owner["id"]).active is True
    notes = [n for n in store.raw("notifications").values() if n["type"] == "follow"]
    assert [n["user_id"] for n in notes] == [owner["id"]]


def test_anonymous_toggle_requires_sign_in(seeded):
    store, _, _, post = seeded
    votes = ToggleController(store, VOTE)

    with pytest.raises(NotAuthenticated):
        votes.toggle(None, post["id"])
    assert votes.fetch(None, post["id"]) == ToggleState(active=False, count=0)
