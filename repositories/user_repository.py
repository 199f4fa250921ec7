# repositories/user_repository.py
from __future__ import annotations
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models.user import User
from extensions.database import db


class UserRepository:
    """
    用户（profiles）的仓储层。
    说明：
    - 不做业务规则判断（如密码策略、封禁判断），仅做纯粹的持久化读写。
    - 默认所有写操作不自动 commit，由上层显式调用 commit()。
    """

    @staticmethod
    def find_by_id(user_id) -> Optional[User]:
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def find_by_email(email: str) -> Optional[User]:
        if not email:
            return None
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return db.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def find_by_username(username: str) -> Optional[User]:
        return User.query.filter_by(username=username).first()

    @staticmethod
    def exists_username(username: str) -> bool:
        return db.session.query(User.query.filter(User.username == username).exists()).scalar()

    @staticmethod
    def exists_email(email: str) -> bool:
        q = User.query.filter(func.lower(User.email) == email.strip().lower())
        return db.session.query(q.exists()).scalar()

    @staticmethod
    def add(user: User):
        db.session.add(user)

    @staticmethod
    def set_banned(user: User, banned: bool) -> User:
        user.is_banned = bool(banned)
        db.session.flush()
        return user

    @staticmethod
    def commit():
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def rollback():
        db.session.rollback()
