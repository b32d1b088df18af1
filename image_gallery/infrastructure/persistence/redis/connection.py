"""
Redis Connection Pool Management.

Provides one shared asyncio connection pool for Redis with health checks and
connect retry. Used by RedisAnnotationStateStore and RedisImageRepository.

Business Rules:
    - Max connections: 10 (REDIS_MAX_CONNECTIONS)
    - Connection timeout: 5s (REDIS_TIMEOUT)
    - Retry attempts: 3 (REDIS_RETRY_ATTEMPTS), exponential backoff 1s, 2s, 4s
    - Decode responses: True (return strings not bytes)

Error Handling:
    - ConnectionError / TimeoutError: Log and retry with exponential backoff
    - RedisError: Raised after all retries exhausted
    - Health check failure: Return False (don't raise exception)

Examples:
    >>> client = await get_redis_client()
    >>> await client.set("key", "value")
    >>> if await health_check():
    ...     print("Redis is healthy")
    >>> await close_connections()
"""

import asyncio
import logging
import os
from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError

logger = logging.getLogger(__name__)

# Shared pool, created lazily on the running event loop
_redis_pool: Optional[ConnectionPool] = None


def _get_pool(
    host: Optional[str],
    port: Optional[int],
    db: Optional[int],
    max_connections: Optional[int],
    timeout: Optional[int],
) -> ConnectionPool:
    global _redis_pool

    if _redis_pool is None:
        redis_host = host or os.getenv("REDIS_HOST", "localhost")
        redis_port = port or int(os.getenv("REDIS_PORT", "6379"))
        redis_db = db if db is not None else int(os.getenv("REDIS_DB", "0"))
        max_conn = max_connections or int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))
        conn_timeout = timeout or int(os.getenv("REDIS_TIMEOUT", "5"))

        logger.info(
            f"Creating Redis connection pool: "
            f"host={redis_host}, port={redis_port}, db={redis_db}, "
            f"max_connections={max_conn}, timeout={conn_timeout}s"
        )
        _redis_pool = ConnectionPool(
            host=redis_host,
            port=redis_port,
            db=redis_db,
            password=os.getenv("REDIS_PASSWORD") or None,
            max_connections=max_conn,
            socket_timeout=conn_timeout,
            socket_connect_timeout=conn_timeout,
            socket_keepalive=True,
            decode_responses=True,
        )
    return _redis_pool


async def get_redis_client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    max_connections: Optional[int] = None,
    timeout: Optional[int] = None,
) -> Redis:
    """
    Get an asyncio Redis client backed by the shared pool.

    The pool is created on first call and reused afterwards. The connection
    is verified with PING, retried with exponential backoff.

    Args:
        host: Redis hostname (default from env: REDIS_HOST or "localhost")
        port: Redis port (default from env: REDIS_PORT or 6379)
        db: Redis database number (default from env: REDIS_DB or 0)
        max_connections: Max pool size (default from env: REDIS_MAX_CONNECTIONS or 10)
        timeout: Connection timeout in seconds (default from env: REDIS_TIMEOUT or 5)

    Returns:
        Redis client instance with connection pool

    Raises:
        RedisError: If connection fails after all retry attempts
    """
    pool = _get_pool(host, port, db, max_connections, timeout)
    client = Redis(connection_pool=pool)

    retry_attempts = int(os.getenv("REDIS_RETRY_ATTEMPTS", "3"))
    backoff_base = 1
    last_error: Optional[Exception] = None

    for attempt in range(retry_attempts):
        try:
            await client.ping()
            logger.debug(f"Redis connection established (attempt {attempt + 1})")
            return client

        except (ConnectionError, TimeoutError) as e:
            last_error = e
            if attempt < retry_attempts - 1:
                delay = backoff_base * (2**attempt)
                logger.warning(
                    f"Redis connection failed (attempt {attempt + 1}/{retry_attempts}): {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"Redis connection failed after {retry_attempts} attempts: {e}"
                )

    raise RedisError(
        f"Failed to connect to Redis after {retry_attempts} attempts. "
        f"Last error: {last_error}"
    )


async def health_check(client: Optional[Redis] = None) -> bool:
    """
    Check Redis health with PING.

    Returns:
        True if Redis answered PING, False otherwise (never raises)
    """
    try:
        if client is None:
            client = Redis(connection_pool=_get_pool(None, None, None, None, None))

        if await client.ping():
            logger.debug("Redis health check: OK")
            return True

        logger.warning("Redis health check: PING returned False")
        return False

    except RedisError as e:
        logger.warning(f"Redis health check failed: {e}")
        return False

    except Exception as e:
        logger.error(f"Unexpected error in Redis health check: {e}")
        return False


async def close_connections() -> None:
    """
    Disconnect the shared pool and reset it (safe to call multiple times).

    Called from the FastAPI lifespan on shutdown.
    """
    global _redis_pool

    if _redis_pool is None:
        logger.debug("Redis connection pool already closed or not initialized")
        return

    logger.info("Closing Redis connection pool")
    try:
        await _redis_pool.disconnect()
    except Exception as e:
        logger.error(f"Error closing Redis connection pool: {e}")
    finally:
        _redis_pool = None
        logger.info("Redis connection pool closed")
