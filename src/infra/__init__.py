"""
Инфраструктурный слой.
Работа с внешним key-value хранилищем (Redis).
"""

from src.infra.redis_client import RedisClient, RedisPipeline, get_redis, init_redis, close_redis

__all__ = [
    "RedisClient",
    "RedisPipeline",
    "get_redis",
    "init_redis",
    "close_redis",
]
