# services/notification_service.py
import logging

from constants.moderation import NotificationType
from models import Comment, Notification, RepairPost
from repositories.record_repository import RecordRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """
    点赞/评论/关注写入后，给目标所有者生成站内通知。
    - 自己对自己的操作不通知
    - 只 flush，随调用方的事务一起提交
    """

    @staticmethod
    def _create(recipient_id, actor_id, ntype: NotificationType, repair_post_id=None):
        if recipient_id is None or recipient_id == actor_id:
            return None
        note = RecordRepository.create(Notification, {
            "user_id": recipient_id,
            "actor_id": actor_id,
            "type": ntype.value,
            "repair_post_id": repair_post_id,
        })
        logger.info(f"通知已生成 type={ntype.value} to={recipient_id} actor={actor_id}")
        return note

    @staticmethod
    def on_vote(vote):
        post = RecordRepository.get_by_id(RepairPost, vote.repair_post_id)
        if post:
            NotificationService._create(post.user_id, vote.user_id, NotificationType.VOTE, post.id)

    @staticmethod
    def on_comment(comment):
        # 回复通知父评论作者，否则通知帖子作者
        if comment.parent_id:
            parent = RecordRepository.get_by_id(Comment, comment.parent_id)
            if parent:
                NotificationService._create(
                    parent.user_id, comment.user_id, NotificationType.REPLY, comment.repair_post_id
                )
                return
        post = RecordRepository.get_by_id(RepairPost, comment.repair_post_id)
        if post:
            NotificationService._create(post.user_id, comment.user_id, NotificationType.COMMENT, post.id)

    @staticmethod
    def on_follow(follow):
        NotificationService._create(follow.following_id, follow.follower_id, NotificationType.FOLLOW)

    HOOKS = {
        "votes": "on_vote",
        "comments": "on_comment",
        "follows": "on_follow",
    }

    @classmethod
    def after_insert(cls, collection: str, record):
        hook = cls.HOOKS.get(collection)
        if hook:
            getattr(cls, hook)(record)
