from typing import Any, Optional
from werkzeug.exceptions import HTTPException


class BizError(HTTPException):
    code: int  # HTTP 状态码
    message: str  # 业务提示
    data: Optional[Any]  # 附加数据

    def __init__(self, message: str = "业务异常", code: int = 400, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(description=message)

    def __repr__(self):
        return f"<BizError code={self.code} message={self.message!r}>"


def not_found(what: str = "记录") -> BizError:
    return BizError(f"{what}不存在", 404)


def forbidden(message: str = "无权限执行该操作") -> BizError:
    return BizError(message, 403)


def conflict(message: str = "记录已存在") -> BizError:
    return BizError(message, 409)
