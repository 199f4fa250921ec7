# -*- coding: utf-8 -*-
"""Datetime helpers.

数据库中的 ``datetime`` 一律视为 UTC（无时区信息）。接口层统一输出
带 ``+00:00`` 偏移的 ISO 字符串，客户端再用 :func:`parse_iso` 解析回来。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def ensure_utc(dt: datetime) -> datetime:
    """将给定 ``datetime`` 统一转换为带 UTC 时区的对象。"""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def datetime_to_iso(dt: Optional[datetime]) -> Optional[str]:
    """将 ``datetime`` 格式化为 UTC ISO 字符串；``None`` 原样返回。"""

    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def parse_iso(value) -> Optional[datetime]:
    """解析 ISO 字符串（兼容结尾 ``Z``），返回带 UTC 时区的 ``datetime``。

    :param value: ISO 字符串、``datetime`` 或 ``None``。
    :raises ValueError: 字符串无法解析时。
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))
