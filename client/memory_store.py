# client/memory_store.py
"""
InMemoryRecordStore：无需后端的 RecordStore 实现（本地开发、演示、单元测试）。

- 与服务端相同的过滤/排序语义，开关关系唯一约束（Conflict），评论回复级联删除
- 模拟网络延迟 latency_ms（默认取 SIMULATED_LATENCY_MS）
- offline=True 时所有调用抛 NetworkFailure；fail_operations 可让指定操作失败
"""
from __future__ import annotations

import fnmatch
import itertools
import logging
import time
from copy import deepcopy
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from werkzeug.security import check_password_hash, generate_password_hash

from client.errors import Conflict, NetworkFailure, NotAuthenticated, NotFound, RequestRejected
from client.record_store import Filters, Order, RecordStore
from config.settings import ClientConfig
from utils.datetime_helpers import datetime_to_iso, parse_iso, utcnow

logger = logging.getLogger(__name__)

# 集合 -> 所有者字段
OWNER_FIELDS = {
    "profiles": "id",
    "categories": None,
    "repair_posts": "user_id",
    "comments": "user_id",
    "guides": "user_id",
    "votes": "user_id",
    "bookmarks": "user_id",
    "follows": "follower_id",
    "reports": "reporter_id",
    "notifications": "user_id",
}

UNIQUE_RELATIONS = {
    "votes": ("user_id", "repair_post_id"),
    "bookmarks": ("user_id", "repair_post_id"),
    "follows": ("follower_id", "following_id"),
}

# 帖子作者可删除指向自己帖子的这些记录
POST_OWNER_DELETE = ("comments", "votes", "bookmarks")

SEARCHABLE = {
    "profiles": ("username",),
    "categories": ("name",),
    "repair_posts": ("item_name", "issue_description"),
    "comments": ("content",),
    "guides": ("item_name", "guide_content"),
}

# 插入时未提供的字段取默认值，保证过滤时字段齐全
FIELD_DEFAULTS = {
    "categories": {"icon": None},
    "repair_posts": {
        "category_id": None,
        "issue_description": None,
        "repair_steps": None,
        "success": True,
        "images": [],
    },
    "comments": {"parent_id": None},
    "reports": {"description": None, "status": "open"},
}

DEFAULT_ORDER = {
    "categories": [("name", False)],
    "comments": [("created_at", False)],
}


def _sortable(value):
    # None 排在最前；时间字符串按时间比较
    if value is None:
        return (0, "")
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        try:
            return (2, parse_iso(value).timestamp())
        except ValueError:
            return (3, value.lower())
    return (3, str(value))


def _ilike(value, pattern) -> bool:
    if value is None:
        return False
    return fnmatch.fnmatchcase(str(value).lower(), str(pattern).lower())


def _compare(value, op: str, expected) -> bool:
    if op == "eq":
        return value == expected
    if op == "neq":
        return value != expected
    if op == "in":
        return value in list(expected)
    if op == "is":
        return value is expected if expected is None else bool(value) is bool(expected)
    if op == "ilike":
        return _ilike(value, expected)
    if value is None:
        return False
    left, right = _sortable(value), _sortable(expected)
    if op == "gt":
        return left > right
    if op == "gte":
        return left >= right
    if op == "lt":
        return left < right
    if op == "lte":
        return left <= right
    raise RequestRejected(f"不支持的过滤操作: {op}", 400)


def matches(record: dict, filters: Optional[Filters]) -> bool:
    for field, cond in (filters or {}).items():
        if field not in record:
            raise RequestRejected(f"未知字段: {field}", 400)
        if isinstance(cond, tuple):
            op, expected = cond
        elif cond is None:
            op, expected = "is", None
        else:
            op, expected = "eq", cond
        if not _compare(record.get(field), op, expected):
            return False
    return True


def sort_records(records: List[dict], order: Order) -> List[dict]:
    result = sorted(records, key=lambda r: r["id"])
    # 多字段排序：从最后一个字段开始做稳定排序
    for field, is_desc in reversed(list(order)):
        result.sort(key=lambda r: _sortable(r.get(field)), reverse=is_desc)
    return result


class InMemoryRecordStore(RecordStore):

    def __init__(self, latency_ms: Optional[int] = None, clock: Optional[Callable] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.latency_ms = ClientConfig.SIMULATED_LATENCY_MS if latency_ms is None else latency_ms
        self.clock = clock or utcnow
        self._sleep = sleep
        self.offline = False
        self.fail_operations: Set[str] = set()
        self.calls: List[str] = []
        self._tables: Dict[str, Dict[int, dict]] = {name: {} for name in OWNER_FIELDS}
        self._ids = {name: itertools.count(1) for name in OWNER_FIELDS}
        self._passwords: Dict[int, str] = {}
        self._objects: Dict[str, bytes] = {}
        self._identity_id: Optional[int] = None

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------
    def _call(self, operation: str):
        self.calls.append(operation)
        if self.latency_ms:
            self._sleep(self.latency_ms / 1000.0)
        if self.offline or operation in self.fail_operations:
            logger.warning(f"模拟网络故障 operation={operation}")
            raise NetworkFailure()

    def _table(self, collection: str) -> Dict[int, dict]:
        table = self._tables.get(collection)
        if table is None:
            raise NotFound(f"未知集合: {collection}", 404)
        return table

    def _now(self) -> str:
        return datetime_to_iso(self.clock())

    def _identity(self) -> Optional[dict]:
        if self._identity_id is None:
            return None
        return self._tables["profiles"].get(self._identity_id)

    def _require_writer(self) -> dict:
        user = self._identity()
        if user is None:
            raise NotAuthenticated()
        if user.get("is_banned"):
            raise RequestRejected("账号已被封禁，无法执行该操作", 403)
        return user

    def _add(self, collection: str, values: dict) -> dict:
        now = self._now()
        record = dict(values, id=next(self._ids[collection]), created_at=now, updated_at=now)
        self._table(collection)[record["id"]] = record
        return record

    def _enrich_posts(self, posts: Iterable[dict]) -> List[dict]:
        viewer = self._identity_id
        votes = list(self._tables["votes"].values())
        bookmarks = list(self._tables["bookmarks"].values())
        comments = list(self._tables["comments"].values())
        result = []
        for post in posts:
            pid = post["id"]
            item = dict(post)
            item["vote_count"] = sum(1 for v in votes if v["repair_post_id"] == pid)
            item["comment_count"] = sum(1 for c in comments if c["repair_post_id"] == pid)
            item["user_has_voted"] = any(v["repair_post_id"] == pid and v["user_id"] == viewer for v in votes)
            item["user_has_bookmarked"] = any(
                b["repair_post_id"] == pid and b["user_id"] == viewer for b in bookmarks
            )
            result.append(item)
        return result

    def _out(self, collection: str, records: List[dict]) -> List[dict]:
        records = [deepcopy(r) for r in records]
        if collection == "repair_posts":
            return self._enrich_posts(records)
        return records

    def _visible(self, collection: str) -> List[dict]:
        rows = list(self._table(collection).values())
        if collection == "notifications":
            user = self._identity()
            if user is None:
                raise NotAuthenticated()
            rows = [r for r in rows if r["user_id"] == user["id"]]
        elif collection == "reports":
            user = self._identity()
            if user is None:
                raise NotAuthenticated()
            if not user.get("is_admin"):
                raise RequestRejected("需要管理员权限", 403)
        return rows

    def _can_modify(self, collection: str, record: dict, user: dict, deleting: bool) -> bool:
        if user.get("is_admin"):
            return True
        if collection in ("categories", "reports"):
            return False
        owner_field = OWNER_FIELDS[collection]
        if record.get(owner_field) == user["id"]:
            return True
        if deleting and collection in POST_OWNER_DELETE:
            post = self._tables["repair_posts"].get(record["repair_post_id"])
            return post is not None and post["user_id"] == user["id"]
        return False

    def _notify(self, recipient_id, actor_id, ntype: str, post_id=None):
        if recipient_id is None or recipient_id == actor_id:
            return
        self._add("notifications", {
            "user_id": recipient_id,
            "actor_id": actor_id,
            "type": ntype,
            "repair_post_id": post_id,
            "is_read": False,
        })

    def _validate_insert(self, collection: str, values: dict, user: dict):
        posts = self._tables["repair_posts"]
        if collection in ("comments", "votes", "bookmarks"):
            if values.get("repair_post_id") not in posts:
                raise NotFound("帖子不存在", 404)
        if collection == "comments":
            if not (values.get("content") or "").strip():
                raise RequestRejected("content 不能为空", 400)
            parent_id = values.get("parent_id")
            if parent_id is not None:
                parent = self._tables["comments"].get(parent_id)
                if parent is None:
                    raise NotFound("父评论不存在", 404)
                if parent["repair_post_id"] != values["repair_post_id"]:
                    raise RequestRejected("父评论不属于同一帖子", 400)
        elif collection == "follows":
            if values.get("following_id") == user["id"]:
                raise RequestRejected("不能关注自己", 400)
            if values.get("following_id") not in self._tables["profiles"]:
                raise NotFound("用户不存在", 404)
        elif collection == "repair_posts":
            if not (values.get("item_name") or "").strip():
                raise RequestRejected("item_name 不能为空", 400)
        elif collection == "categories":
            if any(c["name"] == values.get("name") for c in self._tables["categories"].values()):
                raise Conflict("分类已存在", 409)

        unique = UNIQUE_RELATIONS.get(collection)
        if unique:
            for existing in self._tables[collection].values():
                if all(existing.get(f) == values.get(f) for f in unique):
                    raise Conflict("关系已存在", 409)

    def _after_insert(self, collection: str, record: dict):
        posts = self._tables["repair_posts"]
        if collection == "votes":
            post = posts.get(record["repair_post_id"])
            self._notify(post and post["user_id"], record["user_id"], "vote", record["repair_post_id"])
        elif collection == "comments":
            parent = self._tables["comments"].get(record.get("parent_id"))
            if parent:
                self._notify(parent["user_id"], record["user_id"], "reply", record["repair_post_id"])
            else:
                post = posts.get(record["repair_post_id"])
                self._notify(post and post["user_id"], record["user_id"], "comment", record["repair_post_id"])
        elif collection == "follows":
            self._notify(record["following_id"], record["follower_id"], "follow")

    def _descendants(self, comment_id: int) -> List[int]:
        comments = self._tables["comments"]
        result, frontier, seen = [], [comment_id], {comment_id}
        while frontier:
            children = [c["id"] for c in comments.values() if c.get("parent_id") in frontier and c["id"] not in seen]
            seen.update(children)
            result.extend(children)
            frontier = children
        return result

    # ------------------------------------------------------------------
    # 认证
    # ------------------------------------------------------------------
    def create_user(self, email: str, username: str, password: str, is_admin: bool = False) -> dict:
        """直接写入用户（初始化数据用，不经过模拟网络）。"""
        email = email.strip().lower()
        profiles = self._tables["profiles"]
        if any(p["email"] == email for p in profiles.values()):
            raise Conflict("邮箱已注册", 409)
        if any(p["username"] == username for p in profiles.values()):
            raise Conflict("用户名已存在", 409)
        user = self._add("profiles", {
            "username": username,
            "email": email,
            "bio": None,
            "avatar_url": None,
            "is_admin": is_admin,
            "is_banned": False,
        })
        self._passwords[user["id"]] = generate_password_hash(password)
        return deepcopy(user)

    def sign_up(self, email: str, username: str, password: str) -> dict:
        self._call("sign_up")
        if not email or not username or not password:
            raise RequestRejected("邮箱、用户名和密码必填", 400)
        user = self.create_user(email, username, password)
        self._identity_id = user["id"]
        return user

    def sign_in(self, email: str, password: str) -> dict:
        self._call("sign_in")
        email = (email or "").strip().lower()
        user = next((p for p in self._tables["profiles"].values() if p["email"] == email), None)
        if user is None or not check_password_hash(self._passwords[user["id"]], password or ""):
            raise NotAuthenticated("邮箱或密码错误", 401)
        if user.get("is_banned"):
            raise RequestRejected("账号已被封禁", 403)
        self._identity_id = user["id"]
        return deepcopy(user)

    def sign_out(self) -> None:
        self._call("sign_out")
        self._identity_id = None

    def current_identity(self) -> Optional[dict]:
        self._call("current_identity")
        user = self._identity()
        return deepcopy(user) if user else None

    # ------------------------------------------------------------------
    # 通用集合
    # ------------------------------------------------------------------
    def insert(self, collection: str, record: dict) -> dict:
        self._call("insert")
        self._table(collection)
        user = self._require_writer()
        if collection in ("profiles", "notifications"):
            raise RequestRejected(f"{collection} 不允许直接创建", 403)
        if collection == "categories" and not user.get("is_admin"):
            raise RequestRejected("需要管理员权限", 403)
        values = {k: v for k, v in record.items() if k not in ("id", "created_at", "updated_at")}
        owner_field = OWNER_FIELDS[collection]
        if owner_field:
            values[owner_field] = user["id"]
        for key, default in FIELD_DEFAULTS.get(collection, {}).items():
            values.setdefault(key, deepcopy(default))
        self._validate_insert(collection, values, user)
        created = self._add(collection, values)
        self._after_insert(collection, created)
        return self._out(collection, [created])[0]

    def select(self, collection: str, filters: Optional[Filters] = None, order: Optional[Order] = None,
               limit: Optional[int] = None, offset: int = 0, search: Optional[str] = None) -> List[dict]:
        self._call("select")
        rows = [r for r in self._visible(collection) if matches(r, filters)]
        if search:
            fields = SEARCHABLE.get(collection, ())
            needle = search.lower()
            rows = [r for r in rows if any(needle in str(r.get(f) or "").lower() for f in fields)]
        order = order or DEFAULT_ORDER.get(collection) or [("created_at", True), ("id", True)]
        rows = sort_records(rows, order)
        if offset:
            rows = rows[offset:]
        if limit:
            rows = rows[:limit]
        return self._out(collection, rows)

    def get(self, collection: str, record_id: int) -> dict:
        self._call("get")
        for row in self._visible(collection):
            if row["id"] == record_id:
                return self._out(collection, [row])[0]
        raise NotFound("记录不存在", 404)

    def update(self, collection: str, record_id: int, patch: dict) -> dict:
        self._call("update")
        user = self._require_writer()
        record = self._table(collection).get(record_id)
        if record is None:
            raise NotFound("记录不存在", 404)
        if not self._can_modify(collection, record, user, deleting=False):
            raise RequestRejected("只能修改自己的内容", 403)
        owner_field = OWNER_FIELDS[collection]
        for key, value in patch.items():
            if key in ("id", "created_at", "updated_at", owner_field):
                continue
            if key not in record:
                raise RequestRejected(f"未知字段: {key}", 400)
            record[key] = value
        record["updated_at"] = self._now()
        return self._out(collection, [record])[0]

    def delete(self, collection: str, record_id: int) -> None:
        self._call("delete")
        user = self._require_writer()
        if collection == "profiles":
            raise RequestRejected("profiles 不允许删除", 403)
        table = self._table(collection)
        record = table.get(record_id)
        if record is None:
            raise NotFound("记录不存在", 404)
        if not self._can_modify(collection, record, user, deleting=True):
            raise RequestRejected("只能删除自己的内容", 403)
        if collection == "comments":
            for rid in reversed(self._descendants(record_id)):
                table.pop(rid, None)
        table.pop(record_id)

    def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        self._call("count")
        return sum(1 for r in self._visible(collection) if matches(r, filters))

    # ------------------------------------------------------------------
    # 对象存储
    # ------------------------------------------------------------------
    def upload(self, bucket: str, path: str, data: bytes) -> str:
        self._call("upload")
        user = self._require_writer()
        path = path.lstrip("/")
        if not user.get("is_admin") and not path.startswith(f"{user['id']}/"):
            raise RequestRejected("只能上传到自己的目录", 403)
        key = f"{bucket}/{path}"
        self._objects[key] = bytes(data)
        return f"memory://{key}"

    def download(self, url: str) -> Optional[bytes]:
        return self._objects.get(url.replace("memory://", "", 1))

    def raw(self, collection: str) -> Dict[int, Any]:
        """测试辅助：直接读取底层表（不经过模拟网络）。"""
        return self._table(collection)
