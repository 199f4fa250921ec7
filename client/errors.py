# client/errors.py
"""
客户端错误分类。

RecordStore 的所有失败都在调用点被转换为下列类型之一，由
SessionContext.dispatch 统一转成用户提示，不会向外抛出：

- NotAuthenticated：缺少身份，提示"请先登录"
- NotFound：目标记录不存在，视图显示为空/未找到
- Conflict：重复的开关关系（并发点击），按"已生效"处理
- NetworkFailure：网络或服务端临时故障，可关闭的提示，不自动重试
- RequestRejected：参数校验/权限不足/限流
- ToggleInFlight：同一 (actor, target) 的开关请求仍在进行
"""
from __future__ import annotations

from typing import Any, Optional


class ClientError(Exception):
    kind = "error"
    transient = False
    default_message = "操作失败"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, data: Any = None):
        self.message = message or self.default_message
        self.status = status
        self.data = data
        super().__init__(self.message)

    def __repr__(self):
        return f"<{type(self).__name__} status={self.status} message={self.message!r}>"


class NotAuthenticated(ClientError):
    kind = "not_authenticated"
    default_message = "请先登录"


class NotFound(ClientError):
    kind = "not_found"
    default_message = "内容不存在"


class Conflict(ClientError):
    kind = "conflict"
    default_message = "记录已存在"


class NetworkFailure(ClientError):
    kind = "network"
    transient = True
    default_message = "网络异常，请稍后重试"


class RequestRejected(ClientError):
    kind = "rejected"
    default_message = "请求被拒绝"


class ToggleInFlight(ClientError):
    kind = "in_flight"
    default_message = "操作进行中，请稍候"


def error_for_status(status: int, message: Optional[str] = None, data: Any = None) -> ClientError:
    """把 HTTP 状态码映射为客户端错误类型。"""
    if status == 401:
        return NotAuthenticated(message, status, data)
    if status == 404:
        return NotFound(message, status, data)
    if status == 409:
        return Conflict(message, status, data)
    if status >= 500:
        return NetworkFailure(message, status, data)
    return RequestRejected(message, status, data)
