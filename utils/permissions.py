from __future__ import annotations

from typing import Optional

from flask import g

from constants.roles import SystemRole
from utils.exceptions import BizError


def is_admin(user=None) -> bool:
    user = user if user is not None else getattr(g, "current_user", None)
    return SystemRole.of(user) is SystemRole.ADMIN


def assert_admin(user=None):
    if not is_admin(user):
        raise BizError("需要管理员权限", 403)


def assert_can_write(user) -> None:
    """写操作前置校验：必须登录且未被封禁。"""
    if user is None:
        raise BizError("请先登录", 401)
    if getattr(user, "is_banned", False):
        raise BizError("账号已被封禁，无法执行该操作", 403)


def is_owner(user, owner_id: Optional[int]) -> bool:
    return user is not None and owner_id is not None and int(owner_id) == int(user.id)
