# -*- coding: utf-8 -*-
"""
客户端数据层：RecordStore 接口与实现、评论线程、开关控制器、本地缓存、会话上下文。
"""

from .errors import (
    ClientError,
    Conflict,
    NetworkFailure,
    NotAuthenticated,
    NotFound,
    RequestRejected,
    ToggleInFlight,
)
from .record_store import RecordStore, RestRecordStore
from .memory_store import InMemoryRecordStore
from .threads import ThreadNode, build_thread, flatten
from .toggles import BOOKMARK, FOLLOW, VOTE, ToggleController, ToggleState
from .cache import ClientCache
from .context import ActionResult, SessionContext
from .views import PostDetailView

__all__ = [
    "ClientError", "Conflict", "NetworkFailure", "NotAuthenticated", "NotFound",
    "RequestRejected", "ToggleInFlight",
    "RecordStore", "RestRecordStore", "InMemoryRecordStore",
    "ThreadNode", "build_thread", "flatten",
    "ToggleController", "ToggleState", "VOTE", "BOOKMARK", "FOLLOW",
    "ClientCache", "SessionContext", "ActionResult", "PostDetailView",
]
