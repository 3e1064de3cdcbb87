import logging
from typing import Optional
from aiocache import Cache

from lms_backend.settings import BackendSettings, settings

logger = logging.getLogger(__name__)

_redis_cache: Optional[Cache] = None


async def get_redis_client(config: BackendSettings = settings) -> Cache:
    """Shared aiocache Redis client, created on first use"""
    global _redis_cache
    if _redis_cache is None:
        logger.info(f"Connecting rule cache to redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
        _redis_cache = Cache(
            Cache.REDIS,
            endpoint=config.REDIS_HOST,
            port=config.REDIS_PORT,
            password=config.REDIS_PASSWORD if config.REDIS_PASSWORD else None,
            pool_max_size=10,
            db=config.REDIS_DB
        )
    return _redis_cache
