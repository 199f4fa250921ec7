# client/feed.py
"""信息流：本地筛选、热门榜、搜索高亮。"""
from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from utils.datetime_helpers import ensure_utc, parse_iso, utcnow

TRENDING_DAYS = 7
TRENDING_LIMIT = 10


def filter_posts(posts: Iterable[dict], text: str = "", item_name: Optional[str] = None,
                 user_id=None, success: Optional[bool] = None) -> List[dict]:
    """按设备名、作者、结果过滤，再在 设备名/故障描述/维修步骤 中做不区分大小写的包含匹配。"""
    needle = (text or "").strip().lower()
    result = []
    for post in posts:
        if item_name and post.get("item_name") != item_name:
            continue
        if user_id is not None and post.get("user_id") != user_id:
            continue
        if success is not None and bool(post.get("success")) != success:
            continue
        if needle:
            hay = " ".join(
                post.get(k) or "" for k in ("item_name", "issue_description", "repair_steps")
            ).lower()
            if needle not in hay:
                continue
        result.append(post)
    return result


def trending(posts: Iterable[dict], now: Optional[datetime] = None,
             days: int = TRENDING_DAYS, limit: int = TRENDING_LIMIT) -> List[dict]:
    """最近 days 天内的帖子按点赞数倒序取前 limit 条；票数相同时较新的在前。"""
    now = ensure_utc(now) if now else utcnow()
    since = now - timedelta(days=days)
    recent = [p for p in posts if parse_iso(p.get("created_at")) and parse_iso(p["created_at"]) >= since]
    recent.sort(key=lambda p: (p.get("vote_count") or 0, parse_iso(p["created_at"]), p["id"]), reverse=True)
    return recent[:limit]


def highlight_match(text: str, query: str) -> List[Tuple[str, bool]]:
    """
    把 text 切成 (片段, 是否命中) 列表，命中部分不区分大小写。
    query 为空时整段返回未命中。
    """
    if not text:
        return []
    query = (query or "").strip()
    if not query:
        return [(text, False)]
    segments: List[Tuple[str, bool]] = []
    pos = 0
    for m in re.finditer(re.escape(query), text, flags=re.IGNORECASE):
        if m.start() > pos:
            segments.append((text[pos:m.start()], False))
        segments.append((m.group(0), True))
        pos = m.end()
    if pos < len(text):
        segments.append((text[pos:], False))
    return segments
