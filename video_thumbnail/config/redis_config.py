"""Centralized Redis/Valkey connection configuration.

The API side that dispatches jobs and the worker that runs them must agree on
these settings, so both import them from here.
"""

import os

from arq.connections import RedisSettings

# Redis/Valkey connection settings
REDIS_HOST = os.getenv("REDIS_HOST", "valkey")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_DB = int(os.getenv("REDIS_DB", 0))

# Build Redis URL for arq
REDIS_URL = f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"

# Queue consumed by the thumbnail worker
THUMBNAIL_QUEUE = os.getenv("THUMBNAIL_QUEUE", "thumbnail_jobs")

# Create RedisSettings object for arq
REDIS_SETTINGS = RedisSettings(
    host=REDIS_HOST,
    port=REDIS_PORT,
    database=REDIS_DB,
)


def get_redis_url() -> str:
    """Get Redis connection URL.

    Returns:
        Redis URL in format: redis://host:port/db
    """
    return REDIS_URL


def get_redis_settings() -> RedisSettings:
    """Get RedisSettings object for arq."""
    return REDIS_SETTINGS
