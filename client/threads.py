# client/threads.py
"""
评论线程重建：把某个帖子的平铺评论还原成可渲染的森林。

- 一次遍历按 parent_id 分桶，再从根桶开始深度优先展开（显式栈，不递归）
- 根与兄弟节点都按 (created_at, id) 升序，时间相同时按 id 决定先后
- 深度不设上限
- 父评论不在输入中的"孤儿"：默认提升为根（promote），也可选择丢弃（drop）
- 环不会导致死循环：每个节点只访问一次，无法从任何根到达的环在其最小键处被提升为根
- 纯函数，不修改输入；相同输入得到相同输出
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from utils.datetime_helpers import parse_iso

ORPHANS_PROMOTE = "promote"
ORPHANS_DROP = "drop"

# 分桶时使用的两个合成键
ROOT = "__root__"
DROPPED = "__dropped__"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ThreadNode:
    comment: dict
    depth: int
    children: List["ThreadNode"] = field(default_factory=list)

    @property
    def id(self):
        return self.comment["id"]


def sort_key(comment: dict) -> Tuple[datetime, Hashable]:
    created = comment.get("created_at")
    if isinstance(created, str):
        try:
            created = parse_iso(created)
        except ValueError:
            # 时间格式坏掉的评论排到同级最前，不影响建树
            created = None
    elif isinstance(created, datetime):
        created = created if created.tzinfo else created.replace(tzinfo=timezone.utc)
    else:
        created = None
    return (created or _EPOCH, comment["id"])


def _check_input(comments: Sequence[dict]) -> Dict[Hashable, dict]:
    by_id: Dict[Hashable, dict] = {}
    posts = set()
    for c in comments:
        if c["id"] in by_id:
            raise ValueError(f"重复的评论 id: {c['id']}")
        by_id[c["id"]] = c
        posts.add(c.get("repair_post_id"))
    if len(posts) > 1:
        raise ValueError(f"评论来自多个帖子: {sorted(posts, key=str)}")
    return by_id


def partition(comments: Sequence[dict], orphans: str = ORPHANS_PROMOTE) -> Dict[Hashable, List[dict]]:
    """
    按父评论分桶，每条评论恰好落入一个桶：
    ROOT（根或被提升的孤儿）、父评论 id、或 DROPPED（被丢弃的孤儿）。
    桶内按 (created_at, id) 排序。
    """
    if orphans not in (ORPHANS_PROMOTE, ORPHANS_DROP):
        raise ValueError(f"未知的孤儿策略: {orphans}")
    by_id = _check_input(comments)
    buckets: Dict[Hashable, List[dict]] = {ROOT: []}
    for c in comments:
        parent = c.get("parent_id")
        if parent is None:
            key = ROOT
        elif parent not in by_id:
            key = ROOT if orphans == ORPHANS_PROMOTE else DROPPED
        else:
            key = parent
        buckets.setdefault(key, []).append(c)
    for items in buckets.values():
        items.sort(key=sort_key)
    return buckets


def bucket_sizes(comments: Sequence[dict], orphans: str = ORPHANS_PROMOTE) -> Dict[Hashable, int]:
    return {key: len(items) for key, items in partition(comments, orphans).items()}


def _expand(roots: Sequence[dict], buckets: Dict[Hashable, List[dict]], visited: Set[Hashable]) -> List[ThreadNode]:
    forest: List[ThreadNode] = []
    # 栈元素：(评论, 深度, 挂载到的 children 列表)
    stack = [(c, 0, forest) for c in reversed(roots)]
    while stack:
        comment, depth, siblings = stack.pop()
        if comment["id"] in visited:
            continue
        visited.add(comment["id"])
        node = ThreadNode(comment=comment, depth=depth)
        siblings.append(node)
        for child in reversed(buckets.get(comment["id"], ())):
            stack.append((child, depth + 1, node.children))
    return forest


def build_thread(comments: Sequence[dict], orphans: str = ORPHANS_PROMOTE) -> List[ThreadNode]:
    """平铺评论 -> 有序森林。"""
    buckets = partition(comments, orphans)
    visited: Set[Hashable] = set()
    forest = _expand(buckets[ROOT], buckets, visited)

    # 剩下未访问的节点只可能挂在环上（或挂在被丢弃的孤儿下面）
    reachable_from_dropped: Set[Hashable] = set()
    if orphans == ORPHANS_DROP:
        _expand(buckets.get(DROPPED, ()), buckets, reachable_from_dropped)

    leftovers = [
        c for c in comments
        if c["id"] not in visited and c["id"] not in reachable_from_dropped
    ]
    if leftovers and orphans == ORPHANS_PROMOTE:
        for c in sorted(leftovers, key=sort_key):
            if c["id"] not in visited:
                forest.extend(_expand([c], buckets, visited))
        forest.sort(key=lambda n: sort_key(n.comment))
    return forest


def flatten(forest: Iterable[ThreadNode]) -> List[Tuple[int, dict]]:
    """按渲染顺序（先序）展开为 (depth, comment) 列表。"""
    result: List[Tuple[int, dict]] = []
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        result.append((node.depth, node.comment))
        stack.extend(reversed(node.children))
    return result


def descendant_ids(comments: Sequence[dict], comment_id: Hashable) -> Set[Hashable]:
    """沿祖先链能到达 comment_id 的所有评论（不含自身）。"""
    children: Dict[Hashable, List[Hashable]] = {}
    for c in comments:
        children.setdefault(c.get("parent_id"), []).append(c["id"])
    result: Set[Hashable] = set()
    frontier = [comment_id]
    while frontier:
        current = frontier.pop()
        for child in children.get(current, ()):
            if child not in result and child != comment_id:
                result.add(child)
                frontier.append(child)
    return result


def remove_subtree(comments: Sequence[dict], comment_id: Hashable) -> List[dict]:
    """返回删除 comment_id 及其全部后代之后的新列表。"""
    removed = descendant_ids(comments, comment_id) | {comment_id}
    return [c for c in comments if c["id"] not in removed]


def find_node(forest: Iterable[ThreadNode], comment_id: Hashable) -> Optional[ThreadNode]:
    stack = list(forest)
    while stack:
        node = stack.pop()
        if node.id == comment_id:
            return node
        stack.extend(node.children)
    return None
