"""Thumbnail Worker - arq worker for thumbnail jobs from the Redis queue.

This worker:
1. Consumes regenerate_thumbnails and ingest_video jobs from thumbnail_jobs
2. Runs ffmpeg through the bounded process runner
3. Persists job progress and thumbnail flags through SQLAlchemy
4. Reconciles expired jobs every 5 minutes
"""

import logging
import os

from arq import cron

from .logging_config import setup_logging

# Set up logging immediately when the module is imported, BEFORE any other imports
setup_logging(service="video-thumbnail-worker")

# Now import everything else that might use logging
from .config.redis_config import REDIS_SETTINGS, THUMBNAIL_QUEUE  # noqa: E402
from .config.settings import load_settings  # noqa: E402
from .database.connection import get_db  # noqa: E402
from .database.migrations import run_migrations  # noqa: E402
from .services.container import build_services  # noqa: E402

logger = logging.getLogger(__name__)

RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "true").lower() == "true"
RESYNC_FLAGS = os.getenv("RECONCILE_RESYNC_FLAGS", "false").lower() == "true"


async def startup(ctx):
    """Initialize the thumbnail worker on startup."""
    logger.info("🚀 THUMBNAIL WORKER STARTUP")

    if RUN_MIGRATIONS:
        logger.info("1️⃣ Running database migrations...")
        run_migrations()
        logger.info("✅ Migrations complete")

    logger.info("2️⃣ Loading settings...")
    settings = load_settings()
    logger.info(
        f"✅ Settings loaded (ffmpeg={settings.ffmpeg_path}, "
        f"default_frame={settings.default_frame_percent}%)"
    )

    logger.info("3️⃣ Building services...")
    session = next(get_db())
    ctx["session"] = session
    ctx["services"] = build_services(settings, session, redis_pool=ctx.get("redis"))
    logger.info("✅ THUMBNAIL WORKER STARTUP COMPLETE")


async def shutdown(ctx):
    """Clean up the thumbnail worker on shutdown."""
    logger.info("🛑 THUMBNAIL WORKER SHUTTING DOWN...")
    if "session" in ctx:
        ctx["session"].close()
    logger.info("✅ THUMBNAIL WORKER SHUTDOWN COMPLETE")


async def regenerate_thumbnails(ctx, job_id: str) -> dict:
    """Run a batch regeneration job."""
    services = ctx["services"]
    logger.info(f"Starting batch thumbnail job {job_id}")
    try:
        return services.regenerate_job.perform(job_id)
    except Exception as e:
        logger.error(f"Batch thumbnail job {job_id} failed: {e}", exc_info=True)
        services.session.rollback()
        raise


async def ingest_video(ctx, media_id: str) -> bool:
    """Create default thumbnails for a newly ingested video."""
    services = ctx["services"]
    return services.ingest.handle_ingest(media_id)


async def reconcile_jobs(ctx) -> dict:
    """Periodic reconciliation task (runs every 5 minutes)."""
    logger.info("🔄 Running reconciliation task...")
    try:
        services = ctx["services"]
        stats = await services.reconciler.run(resync_flags=RESYNC_FLAGS)
        logger.info("✅ Reconciliation complete")
        return stats
    except Exception as e:
        logger.error(f"❌ Reconciliation failed: {e}", exc_info=True)
        return {"error": str(e)}


class App:
    """arq worker settings for the thumbnail worker."""

    # Queue configuration - worker consumes from thumbnail_jobs queue
    queue_name = THUMBNAIL_QUEUE

    # Redis connection settings (centralized in redis_config.py)
    redis_settings = REDIS_SETTINGS

    # Job configuration
    max_jobs = int(os.getenv("WORKER_MAX_JOBS", "1"))
    job_timeout = int(os.getenv("WORKER_JOB_TIMEOUT", "3600"))  # 1 hour
    max_tries = 1  # Retries are handled by RetryingDispatchStrategy

    # Startup and shutdown
    on_startup = startup
    on_shutdown = shutdown

    functions = [regenerate_thumbnails, ingest_video]

    # Runs at minutes: 0, 5, 10, ..., 55
    cron_jobs = [
        cron(reconcile_jobs, minute=set(range(0, 60, 5))),
    ]

    # Logging
    log_level = logging.INFO

    # Worker identification
    worker_name = f"thumbnail-worker-{os.getenv('HOSTNAME', 'unknown')}"


# Export for arq
functions = [regenerate_thumbnails, ingest_video]
