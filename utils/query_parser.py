# -*- coding: utf-8 -*-
"""Query string parsing for the generic records API.

语法（与客户端 RestRecordStore 的编码保持一致）：

- ``?field=value``            等值过滤（等价于 ``eq.value``）
- ``?field=op.value``         op ∈ eq / neq / gt / gte / lt / lte / ilike / in / is
- ``?field=in.(1,2,3)``       集合过滤
- ``?field=is.null``          空值过滤（也支持 ``is.true`` / ``is.false``）
- ``?field=ilike.*abc*``      模糊匹配，``*`` 视为通配符
- ``order=created_at.desc,id.asc``
- ``limit`` / ``offset`` / ``search``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from utils.exceptions import BizError

OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "ilike", "in", "is")
RESERVED_PARAMS = ("order", "limit", "offset", "search")


@dataclass
class FilterClause:
    field: str
    op: str
    value: Any


@dataclass
class RecordQuery:
    filters: List[FilterClause] = field(default_factory=list)
    order: List[Tuple[str, bool]] = field(default_factory=list)
    limit: Optional[int] = None
    offset: int = 0
    search: Optional[str] = None


def _parse_filter_value(name: str, raw: str) -> FilterClause:
    op, sep, rest = raw.partition(".")
    if not sep or op not in OPERATORS:
        return FilterClause(name, "eq", raw)
    if op == "in":
        inner = rest.strip()
        if not (inner.startswith("(") and inner.endswith(")")):
            raise BizError(f"过滤条件 {name} 的 in 语法错误", 400)
        items = [item.strip() for item in inner[1:-1].split(",") if item.strip()]
        return FilterClause(name, "in", items)
    if op == "is":
        token = rest.strip().lower()
        if token not in ("null", "true", "false"):
            raise BizError(f"过滤条件 {name} 的 is 只支持 null/true/false", 400)
        return FilterClause(name, "is", token)
    if op == "ilike":
        return FilterClause(name, "ilike", rest.replace("*", "%"))
    return FilterClause(name, op, rest)


def parse_order(raw: Optional[str]) -> List[Tuple[str, bool]]:
    order: List[Tuple[str, bool]] = []
    if not raw:
        return order
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, direction = part.partition(".")
        direction = (direction or "asc").lower()
        if direction not in ("asc", "desc"):
            raise BizError(f"排序方向非法: {part}", 400)
        order.append((name, direction == "desc"))
    return order


def _parse_int(raw, name: str, minimum: int = 0) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise BizError(f"{name} 必须为整数", 400)
    if value < minimum:
        raise BizError(f"{name} 不能小于 {minimum}", 400)
    return value


def parse_record_query(args) -> RecordQuery:
    """把 request.args（MultiDict）解析为 RecordQuery。"""
    query = RecordQuery(
        order=parse_order(args.get("order")),
        limit=_parse_int(args.get("limit"), "limit", minimum=1),
        offset=_parse_int(args.get("offset"), "offset") or 0,
        search=(args.get("search") or "").strip() or None,
    )
    for name in args.keys():
        if name in RESERVED_PARAMS:
            continue
        for raw in args.getlist(name):
            query.filters.append(_parse_filter_value(name, raw))
    return query
