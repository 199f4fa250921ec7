# -*- coding: utf-8 -*-
"""
relation.py
--------------------------------------------------------------------
开关型关系（只表示"存在/不存在"，没有其他状态）：
- Vote:     用户 -> 维修帖 的点赞
- Bookmark: 用户 -> 维修帖 的收藏
- Follow:   用户 -> 用户 的关注
约束：
- 每个 (actor, target) 至多一条，由唯一约束兜底，重复插入返回 409。
- 取消时物理删除，不做软删除。
"""

from extensions.database import db
from .mixins import TimestampMixin, COMMON_TABLE_ARGS


class Vote(TimestampMixin, db.Model):
    __tablename__ = "vote"
    __table_args__ = (
        db.UniqueConstraint("user_id", "repair_post_id", name="uq_vote_user_post"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    repair_post_id = db.Column(
        db.Integer, db.ForeignKey("repair_post.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "repair_post_id": self.repair_post_id,
            **self.timestamps(),
        }


class Bookmark(TimestampMixin, db.Model):
    __tablename__ = "bookmark"
    __table_args__ = (
        db.UniqueConstraint("user_id", "repair_post_id", name="uq_bookmark_user_post"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    repair_post_id = db.Column(
        db.Integer, db.ForeignKey("repair_post.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "repair_post_id": self.repair_post_id,
            **self.timestamps(),
        }


class Follow(TimestampMixin, db.Model):
    __tablename__ = "follow"
    __table_args__ = (
        db.UniqueConstraint("follower_id", "following_id", name="uq_follow_pair"),
        COMMON_TABLE_ARGS,
    )

    id = db.Column(db.Integer, primary_key=True)
    follower_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    following_id = db.Column(
        db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def to_dict(self):
        return {
            "id": self.id,
            "follower_id": self.follower_id,
            "following_id": self.following_id,
            **self.timestamps(),
        }
