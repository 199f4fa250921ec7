# -*- coding: utf-8 -*-
"""
moderation.py
--------------------------------------------------------------------
举报与通知：
- Report: 用户对帖子/评论/用户的举报，仅管理员可查看与处理（status: open / resolved / dismissed）。
- Notification: 点赞、评论、关注发生时写给目标所有者的站内通知，仅接收人可见。
与 Comment 的设计类似，举报目标通过 target_type + target_id 指向任意实体。
"""

from extensions.database import db
from .mixins import TimestampMixin, COMMON_TABLE_ARGS


class Report(TimestampMixin, db.Model):
    __tablename__ = "report"
    __table_args__ = (
        db.Index("ix_report_target", "target_type", "target_id"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    target_type = db.Column(db.String(16), nullable=False)  # post / comment / user
    target_id = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(32), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(16), nullable=False, default="open", server_default="open")

    def to_dict(self):
        return {
            "id": self.id,
            "reporter_id": self.reporter_id,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "reason": self.reason,
            "description": self.description,
            "status": self.status,
            **self.timestamps(),
        }


class Notification(TimestampMixin, db.Model):
    __tablename__ = "notification"
    __table_args__ = (
        db.Index("ix_notification_user_read", "user_id", "is_read"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"))
    type = db.Column(db.String(16), nullable=False)  # vote / comment / reply / follow
    repair_post_id = db.Column(db.Integer, db.ForeignKey("repair_post.id", ondelete="CASCADE"))
    is_read = db.Column(db.Boolean, nullable=False, default=False, server_default="0")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "actor_id": self.actor_id,
            "type": self.type,
            "repair_post_id": self.repair_post_id,
            "is_read": bool(self.is_read),
            **self.timestamps(),
        }
