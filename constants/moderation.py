# -*- coding: utf-8 -*-
"""constants/moderation.py
--------------------------------------------------------------------
举报、通知相关的枚举常量。

- 举报原因与原型中的下拉选项保持一致。
- 举报状态：open（待处理）/ resolved（已处理）/ dismissed（驳回）。
- 为便于服务层校验，提供 values() 及 validate_* 辅助函数。
"""

from enum import Enum

from utils.exceptions import BizError


class ReportTargetType(Enum):
    POST = "post"
    COMMENT = "comment"
    USER = "user"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


class ReportReason(Enum):
    SPAM = "spam"
    INAPPROPRIATE = "inappropriate"
    HARASSMENT = "harassment"
    MISINFORMATION = "misinformation"
    OTHER = "other"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


class ReportStatus(Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


class NotificationType(Enum):
    VOTE = "vote"
    COMMENT = "comment"
    REPLY = "reply"
    FOLLOW = "follow"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


def validate_report_payload(payload: dict) -> None:
    target_type = payload.get("target_type")
    if target_type not in ReportTargetType.values():
        raise BizError(f"非法举报对象类型: {target_type}", 400)
    reason = payload.get("reason")
    if reason not in ReportReason.values():
        raise BizError(f"非法举报原因: {reason}", 400)


def validate_report_status(status) -> None:
    if status is not None and status not in ReportStatus.values():
        raise BizError(f"非法举报状态: {status}", 400)
