import redis
import redis.asyncio as aioredis
from redis import Redis

from app.core.config import get_settings


def create_redis_client() -> Redis:
    settings = get_settings()
    return redis.from_url(settings.redis_url)


def create_async_redis_client() -> aioredis.Redis:
    settings = get_settings()
    return aioredis.from_url(settings.redis_url)
