from redis import Redis
from redis.exceptions import RedisError

from natours.config import Settings
from natours.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Connectivity checks must not hold a health request open.
CONNECT_TIMEOUT_SECONDS = 2


def redis_from_settings(settings: Settings) -> Redis | None:
    """Client for ``REDIS_URL``, or ``None`` when the service runs without redis."""
    if not settings.redis_url:
        return None
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=CONNECT_TIMEOUT_SECONDS,
        socket_timeout=CONNECT_TIMEOUT_SECONDS,
    )


def ping_redis(client: Redis | None) -> bool:
    if client is None:
        return False
    try:
        return bool(client.ping())
    except RedisError as exc:
        logger.warning("redis_unavailable", error=str(exc))
        return False
