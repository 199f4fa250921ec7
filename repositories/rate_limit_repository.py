# repositories/rate_limit_repository.py
from extensions.redis_client import get_redis


class RateLimitRepository:
    """基于 Redis 计数器的失败次数记录，窗口从第一次失败开始计时。"""

    @staticmethod
    def get_count(key: str) -> int:
        v = get_redis().get(key)
        return int(v) if v else 0

    @staticmethod
    def incr_with_window(key: str, window_seconds: int) -> int:
        r = get_redis()
        pipe = r.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        # ttl < 0：新建 key 或无过期时间
        if ttl is None or int(ttl) < 0:
            r.expire(key, window_seconds)
        return int(count)

    @staticmethod
    def seconds_left(key: str) -> int:
        ttl = get_redis().ttl(key)
        return max(int(ttl or 0), 0)

    @staticmethod
    def clear(key: str):
        get_redis().delete(key)
