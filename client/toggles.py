# client/toggles.py
"""
开关控制器：点赞 / 收藏 / 关注。

toggle(actor, target)：
  关系存在 -> 删除；不存在 -> 创建；然后重新查询计数（仅点赞计数）。
  只有在后端确认之后才更新显示状态；失败时显示状态保持不变并抛出错误，不自动重试。
  同一 (actor, target) 同时只允许一个请求在途，重入时抛 ToggleInFlight 且不访问后端。
  插入遇到 Conflict（并发重复点击）按"已生效"处理；删除遇到 NotFound 按"已取消"处理。
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Hashable, Optional, Set, Tuple

from client.errors import Conflict, NotAuthenticated, NotFound, RequestRejected, ToggleInFlight
from client.record_store import RecordStore, find_one

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleKind:
    name: str
    collection: str
    actor_field: str
    target_field: str
    counted: bool = False
    allow_self: bool = True


VOTE = ToggleKind("vote", "votes", "user_id", "repair_post_id", counted=True)
BOOKMARK = ToggleKind("bookmark", "bookmarks", "user_id", "repair_post_id")
FOLLOW = ToggleKind("follow", "follows", "follower_id", "following_id", allow_self=False)


@dataclass(frozen=True)
class ToggleState:
    active: bool
    count: Optional[int] = None


class ToggleController:

    def __init__(self, store: RecordStore, kind: ToggleKind):
        self.store = store
        self.kind = kind
        self._displayed: Dict[Tuple[Hashable, Hashable], ToggleState] = {}
        self._in_flight: Set[Tuple[Hashable, Hashable]] = set()
        self._lock = threading.Lock()

    def _filters(self, actor, target) -> dict:
        return {self.kind.actor_field: actor, self.kind.target_field: target}

    def recount(self, target) -> Optional[int]:
        """每次都向后端重新计数，不在本地加减。"""
        if not self.kind.counted:
            return None
        return self.store.count(self.kind.collection, {self.kind.target_field: target})

    def fetch(self, actor, target) -> ToggleState:
        """读取后端当前状态，不修改显示状态。"""
        active = False
        if actor is not None:
            active = find_one(self.store, self.kind.collection, self._filters(actor, target)) is not None
        return ToggleState(active=active, count=self.recount(target))

    def remember(self, actor, target, state: ToggleState) -> ToggleState:
        self._displayed[(actor, target)] = state
        return state

    def load(self, actor, target) -> ToggleState:
        return self.remember(actor, target, self.fetch(actor, target))

    def displayed(self, actor, target) -> Optional[ToggleState]:
        return self._displayed.get((actor, target))

    def in_flight(self, actor, target) -> bool:
        return (actor, target) in self._in_flight

    def reset(self):
        self._displayed.clear()

    def _acquire(self, key):
        with self._lock:
            if key in self._in_flight:
                raise ToggleInFlight()
            self._in_flight.add(key)

    def _release(self, key):
        with self._lock:
            self._in_flight.discard(key)

    def toggle(self, actor, target) -> ToggleState:
        if actor is None:
            raise NotAuthenticated()
        if not self.kind.allow_self and actor == target:
            raise RequestRejected(f"不能{self.kind.name}自己")

        key = (actor, target)
        self._acquire(key)
        try:
            existing = find_one(self.store, self.kind.collection, self._filters(actor, target))
            if existing is not None:
                try:
                    self.store.delete(self.kind.collection, existing["id"])
                except NotFound:
                    logger.info(f"{self.kind.name} 关系已被删除 actor={actor} target={target}")
                active = False
            else:
                try:
                    self.store.insert(self.kind.collection, self._filters(actor, target))
                except Conflict:
                    logger.info(f"{self.kind.name} 关系已存在，按已生效处理 actor={actor} target={target}")
                active = True
            state = ToggleState(active=active, count=self.recount(target))
            self._displayed[key] = state
            return state
        finally:
            self._release(key)
