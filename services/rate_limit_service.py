# services/rate_limit_service.py
import logging

from repositories.rate_limit_repository import RateLimitRepository
from utils.exceptions import BizError

logger = logging.getLogger(__name__)


class SignInRateLimiter:
    """按邮箱统计登录失败次数，达到上限后在窗口期内拒绝登录（429）。"""

    def __init__(self, email: str, fail_limit: int, block_seconds: int):
        self.key = f"signin:fail:{(email or '').strip().lower()}"
        self.fail_limit = fail_limit
        self.block_seconds = block_seconds

    def ensure_not_blocked(self):
        count = RateLimitRepository.get_count(self.key)
        if count >= self.fail_limit:
            ttl = RateLimitRepository.seconds_left(self.key)
            raise BizError(message=f"尝试过多，请 {ttl} 秒后重试", code=429, data={"retry_after": ttl})

    def record_failure(self) -> int:
        new_count = RateLimitRepository.incr_with_window(self.key, self.block_seconds)
        if new_count >= self.fail_limit:
            logger.warning(f"登录失败次数达到上限 key={self.key} count={new_count}")
        return new_count

    def clear(self):
        RateLimitRepository.clear(self.key)
