# -*- coding: utf-8 -*-
import random

import pytest

from client.threads import (
    DROPPED,
    ROOT,
    ThreadNode,
    bucket_sizes,
    build_thread,
    descendant_ids,
    find_node,
    flatten,
    remove_subtree,
)


def _c(cid, parent=None, ts="2025-03-01T10:00:00+00:00", post=1):
    return {"id": cid, "repair_post_id": post, "parent_id": parent, "content": f"c{cid}", "created_at": ts}


def _ids(forest):
    return [(depth, c["id"]) for depth, c in flatten(forest)]


@pytest.fixture
def sample():
    return [
        _c(1, ts="2025-03-01T10:00:00+00:00"),
        _c(2, parent=1, ts="2025-03-01T10:05:00+00:00"),
        _c(3, parent=2, ts="2025-03-01T10:06:00+00:00"),
        _c(4, ts="2025-03-01T09:00:00+00:00"),
        _c(5, parent=1, ts="2025-03-01T10:01:00+00:00"),
        _c(6, parent=4, ts="2025-03-01T11:00:00Z"),
    ]


def test_builds_chronological_forest(sample):
    forest = build_thread(sample)

    assert [n.id for n in forest] == [4, 1]
    assert _ids(forest) == [(0, 4), (1, 6), (0, 1), (1, 5), (1, 2), (2, 3)]


def test_every_comment_lands_in_exactly_one_bucket(sample):
    sizes = bucket_sizes(sample + [_c(9, parent=999)])

    assert sum(sizes.values()) == len(sample) + 1
    assert sizes[ROOT] == 3
    assert sizes[1] == 2


def test_order_independent_of_input(sample):
    expected = build_thread(sample)
    rng = random.Random(7)
    for _ in range(20):
        shuffled = list(sample)
        rng.shuffle(shuffled)
        assert build_thread(shuffled) == expected


def test_input_not_mutated(sample):
    snapshot = [dict(c) for c in sample]
    build_thread(sample)
    assert sample == snapshot


def test_identical_timestamps_tie_break_by_id():
    ts = "2025-03-01T10:00:00+00:00"
    comments = [_c(12, ts=ts), _c(3, ts=ts), _c(7, ts=ts), _c(5, parent=7, ts=ts), _c(4, parent=7, ts=ts)]

    assert _ids(build_thread(comments)) == [(0, 3), (0, 7), (1, 4), (1, 5), (0, 12)]


def test_malformed_timestamps_sort_first_instead_of_raising():
    comments = [_c(1), _c(2, ts="not-a-date"), _c(3, parent=1, ts="昨天"), _c(4, parent=1), _c(5, ts=None)]

    assert _ids(build_thread(comments)) == [(0, 2), (0, 5), (0, 1), (1, 3), (1, 4)]


def test_orphan_promoted_to_root_by_default():
    comments = [_c(1), _c(2, parent=42, ts="2025-03-01T10:01:00+00:00"), _c(3, parent=2, ts="2025-03-01T10:02:00+00:00")]

    forest = build_thread(comments)

    assert [n.id for n in forest] == [1, 2]
    assert find_node(forest, 3).depth == 1


def test_orphan_dropped_with_drop_policy():
    comments = [_c(1), _c(2, parent=42), _c(3, parent=2)]

    forest = build_thread(comments, orphans="drop")

    assert _ids(forest) == [(0, 1)]
    assert bucket_sizes(comments, orphans="drop")[DROPPED] == 1


def test_unknown_orphan_policy_rejected():
    with pytest.raises(ValueError):
        build_thread([_c(1)], orphans="keep")


def test_mixed_posts_rejected():
    with pytest.raises(ValueError):
        build_thread([_c(1, post=1), _c(2, post=2)])


def test_cycle_does_not_loop_and_is_promoted_at_smallest_key():
    comments = [
        _c(1),
        _c(2, parent=3, ts="2025-03-01T10:01:00+00:00"),
        _c(3, parent=2, ts="2025-03-01T10:02:00+00:00"),
    ]

    forest = build_thread(comments)

    assert _ids(forest) == [(0, 1), (0, 2), (1, 3)]


def test_self_parent_is_treated_as_cycle():
    forest = build_thread([_c(1, parent=1)])
    assert _ids(forest) == [(0, 1)]


def test_deep_chain_does_not_hit_recursion_limit():
    comments = [_c(1)] + [_c(i, parent=i - 1) for i in range(2, 5001)]

    flat = flatten(build_thread(comments))

    assert len(flat) == 5000
    assert flat[-1] == (4999, comments[-1])


def test_cascade_removes_descendants_by_ancestry(sample):
    # A(1) <- B(2) <- C(3)，删除 A 后 B、C 都不再渲染
    remaining = remove_subtree(sample, 1)

    assert {c["id"] for c in remaining} == {4, 6}
    assert descendant_ids(sample, 1) == {2, 3, 5}
    assert _ids(build_thread(remaining)) == [(0, 4), (1, 6)]


def test_empty_input():
    assert build_thread([]) == []
    assert isinstance(build_thread([_c(1)])[0], ThreadNode)
