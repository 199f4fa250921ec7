# -*- coding: utf-8 -*-
from datetime import datetime, timedelta, timezone

from client.badges import award_badges, badges_for
from client.feed import filter_posts, highlight_match, trending

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _post(pid, votes=0, days_ago=0, **extra):
    created = (NOW - timedelta(days=days_ago)).isoformat()
    post = {"id": pid, "vote_count": votes, "created_at": created, "user_id": 1,
            "item_name": "iPhone 12", "issue_description": "", "repair_steps": "", "success": True}
    post.update(extra)
    return post


def test_trending_orders_by_votes_within_window():
    posts = [
        _post(1, votes=3, days_ago=1),
        _post(2, votes=9, days_ago=8),
        _post(3, votes=5, days_ago=2),
        _post(4, votes=3, days_ago=0),
    ]

    assert [p["id"] for p in trending(posts, now=NOW)] == [3, 4, 1]


def test_trending_limit():
    posts = [_post(i, votes=i) for i in range(1, 20)]
    assert [p["id"] for p in trending(posts, now=NOW, limit=3)] == [19, 18, 17]


def test_filter_posts_by_text_and_fields():
    posts = [
        _post(1, item_name="MacBook Pro", issue_description="键盘失灵"),
        _post(2, item_name="iPhone 12", repair_steps="更换 Battery", user_id=2),
        _post(3, item_name="iPhone 12", success=False),
    ]

    assert [p["id"] for p in filter_posts(posts, "battery")] == [2]
    assert [p["id"] for p in filter_posts(posts, item_name="iPhone 12")] == [2, 3]
    assert [p["id"] for p in filter_posts(posts, success=False)] == [3]
    assert [p["id"] for p in filter_posts(posts, "键盘", user_id=1)] == [1]
    assert filter_posts(posts, "  ") == posts


def test_highlight_match_is_case_insensitive():
    assert highlight_match("Replace the Battery, battery again", "BATTERY") == [
        ("Replace the ", False),
        ("Battery", True),
        (", ", False),
        ("battery", True),
        (" again", False),
    ]
    assert highlight_match("a+b", "+") == [("a", False), ("+", True), ("b", False)]
    assert highlight_match("text", "") == [("text", False)]
    assert highlight_match("", "x") == []


def test_award_badges_thresholds():
    posts = [{"user_id": 1}] * 5 + [{"user_id": 2}]
    comments = [{"user_id": 2}] * 10

    assert award_badges(1, posts, comments) == ["first-repair", "contributor"]
    assert award_badges(2, posts, comments) == ["first-repair", "helpful"]
    assert award_badges(3, posts, comments) == []
    assert [b.name for b in badges_for(["helpful", "unknown"])] == ["Helpful"]
