# client/badges.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    desc: str
    variant: str


BADGES = (
    Badge("first-repair", "First Repair", "Posted your first repair", "default"),
    Badge("contributor", "Contributor", "5+ repairs", "secondary"),
    Badge("helpful", "Helpful", "10+ comments", "outline"),
)

BADGE_BY_ID = {b.id: b for b in BADGES}


def award_badges(user_id, posts: Iterable[dict], comments: Iterable[dict]) -> List[str]:
    """根据发帖数与评论数计算用户应获得的徽章 id，顺序与 BADGES 一致。"""
    post_count = sum(1 for p in posts if p.get("user_id") == user_id)
    comment_count = sum(1 for c in comments if c.get("user_id") == user_id)
    earned = []
    if post_count >= 1:
        earned.append("first-repair")
    if post_count >= 5:
        earned.append("contributor")
    if comment_count >= 10:
        earned.append("helpful")
    return earned


def badges_for(ids: Iterable[str]) -> List[Badge]:
    return [BADGE_BY_ID[i] for i in ids if i in BADGE_BY_ID]
