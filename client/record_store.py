# client/record_store.py
"""
RecordStore：客户端访问后端的唯一接口（认证、通用集合、对象存储）。

过滤条件写法（两个实现一致）::

    {"repair_post_id": 3}                 # 等值
    {"parent_id": None}                   # is null
    {"item_name": ("ilike", "*iphone*")}  # 模糊匹配
    {"id": ("in", [1, 2, 3])}
    {"created_at": ("gte", "2025-01-01T00:00:00+00:00")}

排序写法：[("created_at", True), ("id", True)]，第二项表示是否倒序。
"""
from __future__ import annotations

import abc
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from client.errors import ClientError, NetworkFailure, NotFound, error_for_status
from config.settings import ClientConfig

logger = logging.getLogger(__name__)

Filters = Dict[str, Any]
Order = Sequence[Tuple[str, bool]]


class RecordStore(abc.ABC):

    # ---- 认证 ----
    @abc.abstractmethod
    def sign_up(self, email: str, username: str, password: str) -> dict: ...

    @abc.abstractmethod
    def sign_in(self, email: str, password: str) -> dict: ...

    @abc.abstractmethod
    def sign_out(self) -> None: ...

    @abc.abstractmethod
    def current_identity(self) -> Optional[dict]: ...

    # ---- 通用集合 ----
    @abc.abstractmethod
    def insert(self, collection: str, record: dict) -> dict: ...

    @abc.abstractmethod
    def select(self, collection: str, filters: Optional[Filters] = None, order: Optional[Order] = None,
               limit: Optional[int] = None, offset: int = 0, search: Optional[str] = None) -> List[dict]: ...

    @abc.abstractmethod
    def get(self, collection: str, record_id: int) -> dict: ...

    @abc.abstractmethod
    def update(self, collection: str, record_id: int, patch: dict) -> dict: ...

    @abc.abstractmethod
    def delete(self, collection: str, record_id: int) -> None: ...

    @abc.abstractmethod
    def count(self, collection: str, filters: Optional[Filters] = None) -> int: ...

    # ---- 对象存储 ----
    @abc.abstractmethod
    def upload(self, bucket: str, path: str, data: bytes) -> str: ...


def _format_scalar(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_filters(filters: Optional[Filters]) -> List[Tuple[str, str]]:
    """过滤条件 -> 查询参数（field=op.value）。"""
    params = []
    for field, cond in (filters or {}).items():
        if isinstance(cond, tuple):
            op, value = cond
            if op == "in":
                encoded = "in.(" + ",".join(_format_scalar(v) for v in value) + ")"
            elif op == "is":
                encoded = "is." + ("null" if value is None else _format_scalar(value))
            else:
                encoded = f"{op}.{_format_scalar(value)}"
        elif cond is None:
            encoded = "is.null"
        else:
            encoded = f"eq.{_format_scalar(cond)}"
        params.append((field, encoded))
    return params


def encode_order(order: Optional[Order]) -> Optional[str]:
    if not order:
        return None
    return ",".join(f"{field}.{'desc' if is_desc else 'asc'}" for field, is_desc in order)


class RestRecordStore(RecordStore):
    """
    基于 requests 的 RecordStore 实现，对接本仓库的 Flask 服务。
    - 每个请求带网络超时（API_TIMEOUT），超时/连接失败统一为 NetworkFailure
    - 非 2xx 响应按状态码映射为 NotAuthenticated / NotFound / Conflict / RequestRejected / NetworkFailure
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or ClientConfig.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else ClientConfig.API_TIMEOUT
        self.session = session or requests.Session()
        self.token: Optional[str] = None

    def set_token(self, token: Optional[str]):
        self.token = token
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} 请求失败: {e}")
            raise NetworkFailure(str(e)) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if 200 <= resp.status_code < 300:
            return body.get("data")

        err = error_for_status(resp.status_code, body.get("message"), body.get("data"))
        log = logger.warning if err.transient else logger.info
        log(f"{method} {path} -> {resp.status_code} {err.message}")
        raise err

    # ---- 认证 ----
    def _start_session(self, data: dict) -> dict:
        self.set_token(data["token"])
        return data["user"]

    def sign_up(self, email: str, username: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/sign-up",
                             json={"email": email, "username": username, "password": password})
        return self._start_session(data)

    def sign_in(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/sign-in", json={"email": email, "password": password})
        return self._start_session(data)

    def sign_out(self) -> None:
        try:
            if self.token:
                self._request("POST", "/api/auth/sign-out")
        finally:
            self.set_token(None)

    def current_identity(self) -> Optional[dict]:
        if not self.token:
            return None
        return self._request("GET", "/api/auth/me")

    # ---- 通用集合 ----
    def insert(self, collection: str, record: dict) -> dict:
        return self._request("POST", f"/api/records/{collection}", json=record)

    def select(self, collection: str, filters: Optional[Filters] = None, order: Optional[Order] = None,
               limit: Optional[int] = None, offset: int = 0, search: Optional[str] = None) -> List[dict]:
        params = encode_filters(filters)
        order_param = encode_order(order)
        if order_param:
            params.append(("order", order_param))
        if limit:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))
        if search:
            params.append(("search", search))
        return self._request("GET", f"/api/records/{collection}", params=params) or []

    def get(self, collection: str, record_id: int) -> dict:
        return self._request("GET", f"/api/records/{collection}/{record_id}")

    def update(self, collection: str, record_id: int, patch: dict) -> dict:
        return self._request("PATCH", f"/api/records/{collection}/{record_id}", json=patch)

    def delete(self, collection: str, record_id: int) -> None:
        self._request("DELETE", f"/api/records/{collection}/{record_id}")

    def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        data = self._request("GET", f"/api/records/{collection}/count", params=encode_filters(filters))
        return int(data["count"])

    # ---- 对象存储 ----
    def upload(self, bucket: str, path: str, data: bytes) -> str:
        filename = path.rsplit("/", 1)[-1]
        result = self._request(
            "POST",
            f"/api/storage/{bucket}",
            files={"file": (filename, data)},
            data={"path": path},
        )
        return result["url"]


def find_one(store: RecordStore, collection: str, filters: Filters) -> Optional[dict]:
    rows = store.select(collection, filters=filters, limit=1)
    return rows[0] if rows else None


def select_all(store: RecordStore, collection: str, filters: Optional[Filters] = None,
               order: Optional[Order] = None, page_size: Optional[int] = None) -> List[dict]:
    """
    按 offset 逐页拉取，直到返回不足一页。服务端对单次查询有条数上限，
    需要完整集合时（评论树、删除清理、全量刷新）必须走这里。
    排序末尾补 id，保证翻页稳定。
    """
    page_size = page_size or ClientConfig.PAGE_SIZE
    order = list(order or [("created_at", False)])
    if not any(f == "id" for f, _ in order):
        order.append(("id", False))
    rows: List[dict] = []
    while True:
        page = store.select(collection, filters=filters, order=order, limit=page_size, offset=len(rows))
        rows.extend(page)
        if len(page) < page_size:
            return rows


def delete_quietly(store: RecordStore, collection: str, record_id: int) -> bool:
    """删除记录；记录已不存在时视为成功（返回 False）。"""
    try:
        store.delete(collection, record_id)
    except NotFound:
        return False
    return True


__all__ = [
    "RecordStore",
    "RestRecordStore",
    "ClientError",
    "encode_filters",
    "encode_order",
    "find_one",
    "select_all",
    "delete_quietly",
]
