# -*- coding: utf-8 -*-
"""
__init__.py
--------------------------------------------------------------------
汇总导入所有模型，使得：
- Flask-Migrate/Alembic 自动检测模型。
- 外部模块可简化引用：from models import RepairPost, Comment
注意：
- 避免循环导入：各模型仅在这里集中 import。
"""

from .mixins import TimestampMixin
from .user import User
from .repair_post import Category, RepairPost, Guide
from .comment import Comment
from .relation import Vote, Bookmark, Follow
from .moderation import Report, Notification

__all__ = [
    "TimestampMixin",
    "User", "Category", "RepairPost", "Guide", "Comment",
    "Vote", "Bookmark", "Follow", "Report", "Notification",
]
