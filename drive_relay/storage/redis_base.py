# drive_relay/storage/redis_base.py
import logging
import redis.asyncio as aioredis

from ..settings import Settings

logger = logging.getLogger(__name__)


async def create_redis_client(settings: Settings) -> aioredis.Redis:
    """
    Build and ping a Redis client from settings.

    Raises:
        redis.RedisError: If the server cannot be reached
    """
    connection_params = {
        "host": settings.redis_host,
        "port": settings.redis_port,
        "db": settings.redis_db,
        "decode_responses": False,  # Keep as bytes for explicit encoding control
    }
    if settings.redis_password:
        connection_params["password"] = settings.redis_password
    if settings.redis_ssl:
        connection_params["ssl"] = True

    logger.info(f"Connecting to Redis at {settings.redis_host}:{settings.redis_port}, DB: {settings.redis_db}")
    client = aioredis.Redis(**connection_params)
    try:
        await client.ping()
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}", exc_info=True)
        await client.aclose()
        raise
    logger.info("Successfully connected to Redis and pinged.")
    return client
