import logging
import threading
import time

from fastapi import HTTPException, Request, status
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"


class RateLimiter:
    """Fixed-window request counter.

    Counts live in redis when a client is configured so every worker shares
    them; otherwise (or while redis is failing) they are kept in process.
    """

    def __init__(self, redis_client: Redis | None):
        self.redis_client = redis_client
        self._local: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def _hit_redis(self, key: str, window_seconds: int) -> tuple[int, int]:
        count = self.redis_client.incr(key)
        if count == 1:
            self.redis_client.expire(key, window_seconds)
        ttl = self.redis_client.ttl(key)
        return int(count), ttl if ttl and ttl > 0 else window_seconds

    def _hit_local(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = time.monotonic()
        with self._lock:
            count, started = self._local.get(key, (0, now))
            if now - started >= window_seconds:
                count, started = 0, now
            count += 1
            self._local[key] = (count, started)
        return count, max(1, int(started + window_seconds - now))

    def hit(self, key: str, limit: int, window_seconds: int) -> None:
        """Count one request against ``key``; raise 429 once ``limit`` is exceeded."""
        if limit <= 0:
            return
        key = f"{KEY_PREFIX}:{key}"
        if self.redis_client is not None:
            try:
                count, retry_after = self._hit_redis(key, window_seconds)
            except RedisError:
                logger.warning("Rate limit store unavailable, counting locally", exc_info=True)
                count, retry_after = self._hit_local(key, window_seconds)
        else:
            count, retry_after = self._hit_local(key, window_seconds)

        if count > limit:
            logger.info("Rate limit exceeded for %s", key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers={"Retry-After": str(retry_after)},
            )


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("Rate limiter is not configured on application state")
    return limiter
