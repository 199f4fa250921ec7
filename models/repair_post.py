# -*- coding: utf-8 -*-
"""
repair_post.py
--------------------------------------------------------------------
维修帖与分类：
- RepairPost: 用户发布的一次维修记录（设备、故障描述、步骤、是否成功、图片 URL 列表）。
- Category: 管理员维护的设备分类。
说明：
- vote_count / comment_count 不落库，查询时由 RecordRepository 分组统计后附加。
- 删除帖子前由调用方清理其评论、点赞、收藏（存储层不保证级联）。
"""

from extensions.database import db
from .mixins import TimestampMixin, COMMON_TABLE_ARGS


class Category(TimestampMixin, db.Model):
    __tablename__ = "category"
    __table_args__ = (COMMON_TABLE_ARGS,)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    icon = db.Column(db.String(64))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            **self.timestamps(),
        }


class RepairPost(TimestampMixin, db.Model):
    __tablename__ = "repair_post"
    __table_args__ = (
        db.Index("ix_repair_post_user", "user_id"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id", ondelete="SET NULL"))
    item_name = db.Column(db.String(128), nullable=False)
    issue_description = db.Column(db.Text)
    repair_steps = db.Column(db.Text)
    success = db.Column(db.Boolean, nullable=False, default=True, server_default="1")
    images = db.Column(db.JSON)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "category_id": self.category_id,
            "item_name": self.item_name,
            "issue_description": self.issue_description,
            "repair_steps": self.repair_steps,
            "success": bool(self.success),
            "images": list(self.images or []),
            **self.timestamps(),
        }


class Guide(TimestampMixin, db.Model):
    __tablename__ = "guide"
    __table_args__ = (COMMON_TABLE_ARGS,)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    item_name = db.Column(db.String(128), nullable=False)
    guide_content = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "item_name": self.item_name,
            "guide_content": self.guide_content,
            **self.timestamps(),
        }
