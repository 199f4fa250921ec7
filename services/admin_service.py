# services/admin_service.py
import logging
from datetime import timedelta

from sqlalchemy import func, select

from constants.moderation import ReportStatus
from extensions.database import db
from models import Category, Comment, Guide, RepairPost, Report, User
from repositories.record_repository import RecordRepository
from repositories.user_repository import UserRepository
from utils.datetime_helpers import utcnow
from utils.exceptions import BizError, not_found

logger = logging.getLogger(__name__)

STATS_DAYS = 14


class AdminService:

    @staticmethod
    def _posts_per_day(days: int):
        today = utcnow().date()
        start = today - timedelta(days=days - 1)
        since = utcnow().replace(tzinfo=None) - timedelta(days=days)
        counts = {
            str(day): cnt for day, cnt in RecordRepository.count_created_since(RepairPost, since)
        }
        return [
            {"date": str(start + timedelta(days=i)), "count": counts.get(str(start + timedelta(days=i)), 0)}
            for i in range(days)
        ]

    @staticmethod
    def _posts_per_category():
        rows = db.session.execute(
            select(Category.id, Category.name, func.count(RepairPost.id))
            .select_from(Category)
            .outerjoin(RepairPost, RepairPost.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(Category.name)
        ).all()
        return [{"category_id": cid, "name": name, "count": cnt} for cid, name, cnt in rows]

    @staticmethod
    def stats() -> dict:
        open_reports = RecordRepository.count(Report, [Report.status == ReportStatus.OPEN.value])
        return {
            "users": RecordRepository.count(User, []),
            "banned_users": RecordRepository.count(User, [User.is_banned.is_(True)]),
            "posts": RecordRepository.count(RepairPost, []),
            "guides": RecordRepository.count(Guide, []),
            "comments": RecordRepository.count(Comment, []),
            "open_reports": open_reports,
            "posts_per_day": AdminService._posts_per_day(STATS_DAYS),
            "posts_per_category": AdminService._posts_per_category(),
        }

    @staticmethod
    def set_banned(actor, target_user_id: int, banned: bool) -> User:
        target = UserRepository.find_by_id(target_user_id)
        if not target:
            raise not_found("用户")
        if target.id == actor.id:
            raise BizError("不能封禁自己", code=400)
        if target.is_banned == bool(banned):
            return target
        UserRepository.set_banned(target, banned)
        UserRepository.commit()
        logger.info(f"用户封禁状态变更 target={target.id} banned={bool(banned)} by={actor.id}")
        return target
