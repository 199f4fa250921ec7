# client/cache.py
"""
ClientCache：展示层持有的本地数据镜像。

每个写入入口都遵循同一顺序：
  1. 同步调用 RecordStore，等待完成
  2. 成功后对本地集合做对应变换（新建插到最前 / 替换 / 过滤掉）
  3. 失败时本地集合保持不变，错误原样抛出

不做"确认前"的乐观更新，也没有轮询或订阅；其他会话的修改不会自动同步，
refresh() 整体重新加载是唯一的同步手段。
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from client.errors import ClientError, RequestRejected
from client.record_store import RecordStore, delete_quietly, select_all
from client.threads import ORPHANS_PROMOTE, ThreadNode, build_thread, remove_subtree
from client.toggles import ToggleState

logger = logging.getLogger(__name__)

# 本地属性 -> (集合, 排序)
COLLECTIONS = {
    "posts": ("repair_posts", [("created_at", True), ("id", True)]),
    "guides": ("guides", [("created_at", True), ("id", True)]),
    "categories": ("categories", [("name", False), ("id", False)]),
    "users": ("profiles", [("username", False), ("id", False)]),
}

COMMENT_ORDER = [("created_at", False), ("id", False)]


class ClientCache:

    def __init__(self, store: RecordStore):
        self.store = store
        self.posts: List[dict] = []
        self.guides: List[dict] = []
        self.categories: List[dict] = []
        self.users: List[dict] = []
        self.comments: Dict[int, List[dict]] = {}

    # ------------------------------------------------------------------
    # 加载
    # ------------------------------------------------------------------
    def refresh(self) -> Dict[str, Optional[ClientError]]:
        """全部重新加载；各集合相互独立，某个失败只记录日志并保留旧数据。"""
        errors: Dict[str, Optional[ClientError]] = {}
        for attr, (collection, order) in COLLECTIONS.items():
            try:
                setattr(self, attr, select_all(self.store, collection, order=order))
                errors[attr] = None
            except ClientError as e:
                logger.warning(f"加载 {collection} 失败: {e.message}")
                errors[attr] = e
        self.comments.clear()
        return errors

    def clear(self):
        for attr in COLLECTIONS:
            setattr(self, attr, [])
        self.comments.clear()

    def fetch_comments(self, post_id: int) -> List[dict]:
        return select_all(self.store, "comments", filters={"repair_post_id": post_id}, order=COMMENT_ORDER)

    def put_comments(self, post_id: int, comments: List[dict]) -> List[dict]:
        self.comments[post_id] = list(comments)
        return self.comments[post_id]

    def load_comments(self, post_id: int) -> List[dict]:
        return self.put_comments(post_id, self.fetch_comments(post_id))

    def thread(self, post_id: int, orphans: str = ORPHANS_PROMOTE) -> List[ThreadNode]:
        return build_thread(self.comments.get(post_id, []), orphans=orphans)

    def find(self, attr: str, record_id) -> Optional[dict]:
        return next((r for r in getattr(self, attr) if r["id"] == record_id), None)

    # ------------------------------------------------------------------
    # 通用的"确认后再改本地"
    # ------------------------------------------------------------------
    def _create(self, attr: str, values: dict) -> dict:
        collection = COLLECTIONS[attr][0]
        record = self.store.insert(collection, values)
        setattr(self, attr, [record] + getattr(self, attr))
        return record

    def _update(self, attr: str, record_id, patch: dict) -> dict:
        collection = COLLECTIONS[attr][0]
        record = self.store.update(collection, record_id, patch)
        setattr(self, attr, [record if r["id"] == record_id else r for r in getattr(self, attr)])
        return record

    def _delete(self, attr: str, record_id) -> None:
        collection = COLLECTIONS[attr][0]
        self.store.delete(collection, record_id)
        setattr(self, attr, [r for r in getattr(self, attr) if r["id"] != record_id])

    # ------------------------------------------------------------------
    # 帖子
    # ------------------------------------------------------------------
    def create_post(self, values: dict) -> dict:
        return self._create("posts", values)

    def update_post(self, post_id: int, patch: dict) -> dict:
        return self._update("posts", post_id, patch)

    def delete_post(self, post_id: int) -> None:
        """
        删除帖子前先清理其评论、点赞、收藏（后端不保证级联）。
        中途失败时本地数据不变，已删除的关联记录不会恢复。
        """
        comments = self.fetch_comments(post_id)
        # 只删根（含被提升的孤儿），回复由后端级联删除
        for node in build_thread(comments, orphans=ORPHANS_PROMOTE):
            delete_quietly(self.store, "comments", node.id)
        for collection in ("votes", "bookmarks"):
            for relation in select_all(self.store, collection, filters={"repair_post_id": post_id}):
                delete_quietly(self.store, collection, relation["id"])
        self._delete("posts", post_id)
        self.comments.pop(post_id, None)

    def note_vote(self, post_id: int, state: ToggleState) -> None:
        """点赞确认后把最新计数写回本地帖子。"""
        def apply(post):
            if post["id"] != post_id:
                return post
            return dict(post, vote_count=state.count, user_has_voted=state.active)
        self.posts = [apply(p) for p in self.posts]

    def note_bookmark(self, post_id: int, state: ToggleState) -> None:
        self.posts = [
            dict(p, user_has_bookmarked=state.active) if p["id"] == post_id else p
            for p in self.posts
        ]

    # ------------------------------------------------------------------
    # 评论
    # ------------------------------------------------------------------
    def create_comment(self, post_id: int, content: str, parent_id: Optional[int] = None) -> dict:
        if parent_id is not None:
            known = self.comments.get(post_id)
            if known is not None and not any(c["id"] == parent_id for c in known):
                raise RequestRejected("父评论不属于同一帖子", 400)
        record = self.store.insert("comments", {
            "repair_post_id": post_id,
            "content": content,
            "parent_id": parent_id,
        })
        self.comments[post_id] = self.comments.get(post_id, []) + [record]
        self._bump_comment_count(post_id, 1)
        return record

    def update_comment(self, post_id: int, comment_id: int, content: str) -> dict:
        record = self.store.update("comments", comment_id, {"content": content})
        if post_id in self.comments:
            self.comments[post_id] = [record if c["id"] == comment_id else c for c in self.comments[post_id]]
        return record

    def delete_comment(self, post_id: int, comment_id: int) -> None:
        self.store.delete("comments", comment_id)
        before = self.comments.get(post_id, [])
        after = remove_subtree(before, comment_id)
        self.comments[post_id] = after
        removed = len(before) - len(after)
        if removed:
            self._bump_comment_count(post_id, -removed)
            return
        # 本地不知道子树大小（后端已级联删除回复），回读计数
        try:
            total = self.store.count("comments", {"repair_post_id": post_id})
        except ClientError as e:
            logger.warning(f"评论计数回读失败 post={post_id}: {e.message}")
            return
        self._set_comment_count(post_id, total)

    def _set_comment_count(self, post_id: int, total: int) -> None:
        self.posts = [
            dict(p, comment_count=total) if p["id"] == post_id and "comment_count" in p else p
            for p in self.posts
        ]

    def _bump_comment_count(self, post_id: int, delta: int) -> None:
        def apply(post):
            if post["id"] != post_id or "comment_count" not in post:
                return post
            return dict(post, comment_count=max(post["comment_count"] + delta, 0))
        self.posts = [apply(p) for p in self.posts]

    # ------------------------------------------------------------------
    # 指南 / 分类
    # ------------------------------------------------------------------
    def create_guide(self, values: dict) -> dict:
        return self._create("guides", values)

    def update_guide(self, guide_id: int, patch: dict) -> dict:
        return self._update("guides", guide_id, patch)

    def delete_guide(self, guide_id: int) -> None:
        self._delete("guides", guide_id)

    def create_category(self, values: dict) -> dict:
        record = self.store.insert("categories", values)
        self.categories = sorted(self.categories + [record], key=lambda c: (c["name"], c["id"]))
        return record

    def update_category(self, category_id: int, patch: dict) -> dict:
        return self._update("categories", category_id, patch)

    def delete_category(self, category_id: int) -> None:
        self._delete("categories", category_id)

    def update_profile(self, user_id: int, patch: dict) -> dict:
        record = self.store.update("profiles", user_id, patch)
        self.users = [record if u["id"] == user_id else u for u in self.users]
        return record


