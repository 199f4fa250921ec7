# client/views.py
from __future__ import annotations

import logging
from typing import List, Optional

from client.context import SessionContext, notice_level
from client.errors import ClientError, NotFound
from client.threads import ThreadNode, build_thread
from client.toggles import ToggleState

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_LOADING = "loading"
STATE_READY = "ready"
STATE_NOT_FOUND = "not_found"
STATE_ERROR = "error"


class PostDetailView:
    """
    帖子详情页的数据加载：帖子、点赞/收藏状态、评论线程。

    close() 之后 cancelled 为 True，每次后端调用返回后都会检查该标志，
    已关闭的视图不再写入任何结果。在途请求本身无法取消。
    """

    def __init__(self, context: SessionContext, post_id: int):
        self.context = context
        self.post_id = post_id
        self.cancelled = False
        self.state = STATE_IDLE
        self.post: Optional[dict] = None
        self.vote: Optional[ToggleState] = None
        self.bookmark: Optional[ToggleState] = None
        self.thread: List[ThreadNode] = []
        self.error: Optional[ClientError] = None

    def close(self) -> None:
        self.cancelled = True

    def load(self) -> bool:
        """返回 True 表示结果已应用；视图已关闭或加载失败返回 False。"""
        if self.cancelled:
            return False
        self.state = STATE_LOADING
        ctx = self.context
        store = ctx.store
        actor = ctx.actor_id
        try:
            post = store.get("repair_posts", self.post_id)
            if self.cancelled:
                return False
            self.post = post

            vote = ctx.votes.fetch(actor, self.post_id)
            if self.cancelled:
                return False
            self.vote = ctx.votes.remember(actor, self.post_id, vote)

            bookmark = ctx.bookmarks.fetch(actor, self.post_id)
            if self.cancelled:
                return False
            self.bookmark = ctx.bookmarks.remember(actor, self.post_id, bookmark)

            comments = ctx.cache.fetch_comments(self.post_id)
            if self.cancelled:
                return False
            ctx.cache.put_comments(self.post_id, comments)
            self.thread = build_thread(comments)
        except NotFound as e:
            if self.cancelled:
                return False
            self.state = STATE_NOT_FOUND
            self.error = e
            return False
        except ClientError as e:
            if self.cancelled:
                return False
            logger.warning(f"详情加载失败 post={self.post_id}: {e.message}")
            self.state = STATE_ERROR
            self.error = e
            ctx.notify(notice_level(e), e.message)
            return False

        self.state = STATE_READY
        self.error = None
        return True

    def _rebuild(self) -> None:
        if not self.cancelled:
            self.thread = self.context.cache.thread(self.post_id)

    def toggle_vote(self) -> bool:
        result = self.context.dispatch(self.context.toggle_vote, self.post_id)
        if result.ok and not self.cancelled:
            self.vote = result.value
        return result.ok

    def toggle_bookmark(self) -> bool:
        result = self.context.dispatch(self.context.toggle_bookmark, self.post_id)
        if result.ok and not self.cancelled:
            self.bookmark = result.value
        return result.ok

    def add_comment(self, content: str, parent_id: Optional[int] = None) -> bool:
        result = self.context.dispatch(
            self.context.add_comment, self.post_id, content, parent_id, success_message="评论已发布"
        )
        if result.ok:
            self._rebuild()
        return result.ok

    def delete_comment(self, comment_id: int) -> bool:
        result = self.context.dispatch(
            self.context.delete_comment, self.post_id, comment_id, success_message="评论已删除"
        )
        if result.ok:
            self._rebuild()
        return result.ok
