# -*- coding: utf-8 -*-
"""
user.py
--------------------------------------------------------------------
用户实体（对外集合名 profiles）。
说明：
- 通过 sign-up 创建，不允许经通用集合接口插入或删除。
- is_admin 决定管理员能力；is_banned 的用户不能登录、不能写入任何集合。
- password_version 在改密时递增，旧 token 随之失效。
"""

from datetime import datetime
from extensions.database import db
from .mixins import TimestampMixin, COMMON_TABLE_ARGS


class User(TimestampMixin, db.Model):
    __tablename__ = "user"
    __table_args__ = (COMMON_TABLE_ARGS,)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    bio = db.Column(db.Text)
    avatar_url = db.Column(db.String(512))
    is_admin = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    is_banned = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    password_version = db.Column(db.Integer, nullable=False, default=1, server_default="1")
    password_updated_at = db.Column(db.DateTime)

    def __repr__(self):
        return f"<User id={self.id} username={self.username} admin={self.is_admin}>"

    def touch_password_time(self):
        self.password_updated_at = datetime.utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "bio": self.bio,
            "avatar_url": self.avatar_url,
            "is_admin": bool(self.is_admin),
            "is_banned": bool(self.is_banned),
            **self.timestamps(),
        }
