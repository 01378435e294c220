import logging
from typing import Optional

import redis
from redis.connection import ConnectionPool

from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client shared by the OTP store and rate limiter when STORE_BACKEND=redis"""

    _client: Optional[redis.Redis] = None
    _pool: Optional[ConnectionPool] = None
    _is_available: bool = False

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """Get or create Redis client instance with connection pooling"""
        if cls._client is None:
            try:
                cls._pool = ConnectionPool(
                    host=settings.REDIS_HOST,
                    port=settings.REDIS_PORT,
                    password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                    db=settings.REDIS_DB,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                    retry_on_timeout=True,
                    max_connections=20,
                    health_check_interval=15,
                )

                cls._client = redis.Redis(connection_pool=cls._pool)

                cls._client.ping()
                cls._is_available = True
                logger.info("Redis connected (%s:%s)", settings.REDIS_HOST, settings.REDIS_PORT)
            except Exception as e:
                logger.error("Redis connection failed: %s", e)
                cls._client = None
                cls._pool = None
                cls._is_available = False
                raise

        return cls._client

    @classmethod
    def is_available(cls) -> bool:
        """Check if Redis is available"""
        return cls._is_available

    @classmethod
    def close(cls):
        """Close Redis connection"""
        if cls._client:
            cls._client.close()
            cls._client = None
        if cls._pool:
            cls._pool.disconnect()
            cls._pool = None
        cls._is_available = False
        logger.info("Redis connection closed")


class CacheKeys:
    """Redis cache key patterns"""

    @staticmethod
    def otp(phone: str) -> str:
        """OTP record key"""
        return f"otp:{phone}"

    @staticmethod
    def otp_attempts(phone: str) -> str:
        """OTP attempts counter key"""
        return f"otp:attempts:{phone}"

    @staticmethod
    def rate_limit(identifier: str, action: str) -> str:
        """Rate limiting key"""
        return f"rate_limit:{action}:{identifier}"
