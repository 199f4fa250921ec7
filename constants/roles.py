from __future__ import annotations

from enum import Enum


class SystemRole(str, Enum):
    """
    社区内的系统角色（由 user.is_admin 推导）：
    - ADMIN：可删除任意内容、维护分类、封禁用户、处理举报
    - MEMBER：普通注册用户，只能修改自己的内容
    """

    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def of(cls, user) -> "SystemRole":
        if user is not None and getattr(user, "is_admin", False):
            return cls.ADMIN
        return cls.MEMBER
