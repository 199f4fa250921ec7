# client/context.py
"""
SessionContext：替代全局状态的显式会话上下文。

生命周期：
- initialize()：解析当前身份，已登录则加载数据
- sign_in() / sign_up()：建立身份并加载数据
- sign_out()：拆除，清空缓存与开关状态（即使后端调用失败也会清空）

所有用户动作通过 dispatch() 执行：RecordStore 的失败在这里被捕获并转成提示，
不会继续向外抛出，也不会自动重试。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from client.cache import ClientCache
from client.errors import (
    ClientError,
    Conflict,
    NetworkFailure,
    NotAuthenticated,
    NotFound,
    ToggleInFlight,
)
from client.record_store import RecordStore
from client.toggles import BOOKMARK, FOLLOW, VOTE, ToggleController, ToggleState

logger = logging.getLogger(__name__)

LEVEL_INFO = "info"
LEVEL_SUCCESS = "success"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"

Notifier = Callable[[str, str], None]


def _log_notifier(level: str, message: str) -> None:
    logger.info(f"[{level}] {message}")


def notice_level(error: ClientError) -> str:
    if isinstance(error, NetworkFailure):
        return LEVEL_ERROR
    if isinstance(error, (NotFound, Conflict, ToggleInFlight)):
        return LEVEL_INFO
    return LEVEL_WARNING


@dataclass
class ActionResult:
    ok: bool
    value: Any = None
    error: Optional[ClientError] = None


class SessionContext:

    def __init__(self, store: RecordStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or _log_notifier
        self.identity: Optional[dict] = None
        self.cache = ClientCache(store)
        self.votes = ToggleController(store, VOTE)
        self.bookmarks = ToggleController(store, BOOKMARK)
        self.follows = ToggleController(store, FOLLOW)

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------
    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    @property
    def actor_id(self):
        return self.identity["id"] if self.identity else None

    def _start(self, identity: dict) -> dict:
        self.identity = identity
        self.cache.refresh()
        logger.info(f"会话已建立 user={identity.get('id')}")
        return identity

    def initialize(self) -> Optional[dict]:
        identity = self.store.current_identity()
        if identity is None:
            self.identity = None
            return None
        return self._start(identity)

    def sign_in(self, email: str, password: str) -> dict:
        return self._start(self.store.sign_in(email, password))

    def sign_up(self, email: str, username: str, password: str) -> dict:
        return self._start(self.store.sign_up(email, username, password))

    def teardown(self) -> None:
        self.identity = None
        self.cache.clear()
        for controller in (self.votes, self.bookmarks, self.follows):
            controller.reset()

    def sign_out(self) -> None:
        try:
            self.store.sign_out()
        finally:
            self.teardown()

    def require_identity(self) -> dict:
        if self.identity is None:
            raise NotAuthenticated()
        return self.identity

    # ------------------------------------------------------------------
    # 动作分发
    # ------------------------------------------------------------------
    def notify(self, level: str, message: str) -> None:
        self.notifier(level, message)

    def dispatch(self, action: Callable[..., Any], *args, success_message: Optional[str] = None,
                 **kwargs) -> ActionResult:
        try:
            value = action(*args, **kwargs)
        except ClientError as e:
            logger.info(f"动作失败 action={getattr(action, '__name__', action)} kind={e.kind} message={e.message}")
            self.notify(notice_level(e), e.message)
            return ActionResult(ok=False, error=e)
        if success_message:
            self.notify(LEVEL_SUCCESS, success_message)
        return ActionResult(ok=True, value=value)

    # ------------------------------------------------------------------
    # 常用动作（均需登录）
    # ------------------------------------------------------------------
    def toggle_vote(self, post_id: int) -> ToggleState:
        actor = self.require_identity()["id"]
        state = self.votes.toggle(actor, post_id)
        self.cache.note_vote(post_id, state)
        return state

    def toggle_bookmark(self, post_id: int) -> ToggleState:
        actor = self.require_identity()["id"]
        state = self.bookmarks.toggle(actor, post_id)
        self.cache.note_bookmark(post_id, state)
        return state

    def toggle_follow(self, user_id: int) -> ToggleState:
        actor = self.require_identity()["id"]
        return self.follows.toggle(actor, user_id)

    def create_post(self, values: dict) -> dict:
        self.require_identity()
        return self.cache.create_post(values)

    def delete_post(self, post_id: int) -> None:
        self.require_identity()
        self.cache.delete_post(post_id)

    def add_comment(self, post_id: int, content: str, parent_id: Optional[int] = None) -> dict:
        self.require_identity()
        return self.cache.create_comment(post_id, content, parent_id)

    def delete_comment(self, post_id: int, comment_id: int) -> None:
        self.require_identity()
        self.cache.delete_comment(post_id, comment_id)

    def report(self, target_type: str, target_id: int, reason: str, description: Optional[str] = None) -> dict:
        self.require_identity()
        return self.store.insert("reports", {
            "target_type": target_type,
            "target_id": target_id,
            "reason": reason,
            "description": description,
        })

    def notifications(self, unread_only: bool = False) -> list:
        self.require_identity()
        filters = {"is_read": False} if unread_only else None
        return self.store.select("notifications", filters=filters)

    def mark_notification_read(self, notification_id: int) -> dict:
        self.require_identity()
        return self.store.update("notifications", notification_id, {"is_read": True})
