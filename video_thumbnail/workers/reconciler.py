"""Reconciler for thumbnail job state and thumbnail consistency flags.

This module implements the Reconciler class that:
1. Finds active jobs that stopped making progress and whose arq job is gone
2. Hands those jobs to RetryingDispatchStrategy.handle_expired
3. Optionally re-synchronizes the has-thumbnails flag of every supported video
4. Runs periodically (every 5 minutes via arq cron)
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from arq.jobs import Job as ArqJob
from arq.jobs import JobStatus as ArqJobStatus

from ..config.redis_config import THUMBNAIL_QUEUE
from ..domain.models import JobStatus, ThumbnailJob
from ..repositories.interfaces import JobRepository, MediaRepository
from ..services.thumbnail_synchronizer import ThumbnailSynchronizer
from .dispatch_strategy import RetryingDispatchStrategy

logger = logging.getLogger(__name__)

# Jobs not updated for this long are considered expired (in seconds)
JOB_EXPIRY_SECONDS = 300

# arq states in which the job is still owned by the queue or a worker
LIVE_QUEUE_STATES = (
    ArqJobStatus.deferred,
    ArqJobStatus.queued,
    ArqJobStatus.in_progress,
)


class Reconciler:
    """Periodic sweep over thumbnail jobs and media flags.

    One failing job or media item is logged and recorded in the returned
    statistics; it never stops the rest of the sweep.
    """

    def __init__(
        self,
        job_repository: JobRepository,
        strategy: RetryingDispatchStrategy,
        redis=None,
        media_repository: MediaRepository | None = None,
        synchronizer: ThumbnailSynchronizer | None = None,
        supported_formats=(),
        expiry_seconds: int = JOB_EXPIRY_SECONDS,
        queue_name: str = THUMBNAIL_QUEUE,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize Reconciler.

        Args:
            job_repository: Source of thumbnail job records
            strategy: Dispatch strategy that recovers or fails expired jobs
            redis: arq Redis pool used to look up queue state (optional)
            media_repository: Needed only for flag re-synchronization
            synchronizer: Needed only for flag re-synchronization
            supported_formats: MIME types whose flags are re-synchronized
            expiry_seconds: Idle time after which an active job is expired
            queue_name: arq queue the thumbnail jobs are sent to
            now: Clock, replaceable in tests
        """
        self.job_repository = job_repository
        self.strategy = strategy
        self.redis = redis
        self.media_repository = media_repository
        self.synchronizer = synchronizer
        self.supported_formats = tuple(supported_formats)
        self.expiry_seconds = expiry_seconds
        self.queue_name = queue_name
        self.now = now

    async def run(self, resync_flags: bool = False) -> dict:
        """Run all reconciliation checks.

        Returns:
            Dictionary with reconciliation statistics
        """
        stats = {
            "jobs_checked": 0,
            "jobs_recovered": 0,
            "jobs_failed": 0,
            "media_checked": 0,
            "flags_set": 0,
            "errors": [],
        }

        logger.info("Starting reconciliation run")

        try:
            job_stats = await self._sweep_expired_jobs(stats["errors"])
            stats["jobs_checked"] = job_stats["checked"]
            stats["jobs_recovered"] = job_stats["recovered"]
            stats["jobs_failed"] = job_stats["failed"]
        except Exception as e:
            logger.error(f"Error sweeping thumbnail jobs: {e}", exc_info=True)
            stats["errors"].append(f"Job sweep error: {str(e)}")

        if resync_flags:
            try:
                flag_stats = self._resync_flags(stats["errors"])
                stats["media_checked"] = flag_stats["checked"]
                stats["flags_set"] = flag_stats["set"]
            except Exception as e:
                logger.error(f"Error re-synchronizing flags: {e}", exc_info=True)
                stats["errors"].append(f"Flag sync error: {str(e)}")

        logger.info(f"Reconciliation complete: {stats}")
        return stats

    def is_stale(self, job: ThumbnailJob) -> bool:
        last_seen = job.updated_at or job.created_at
        if last_seen is None:
            return True
        return self.now() - last_seen > timedelta(seconds=self.expiry_seconds)

    async def _sweep_expired_jobs(self, errors: list) -> dict:
        checked = 0
        recovered = 0
        failed = 0

        for job in self.job_repository.find_by_statuses(JobStatus.ACTIVE):
            checked += 1
            try:
                if not self.is_stale(job):
                    continue
                if await self._queue_owns(job):
                    logger.debug(f"Job {job.job_id} is still live in the queue")
                    continue

                logger.warning(
                    f"Job {job.job_id} ({job.status}) has not progressed for "
                    f"over {self.expiry_seconds}s - handling as expired"
                )
                if await self.strategy.handle_expired(job):
                    recovered += 1
                else:
                    failed += 1

            except Exception as e:
                logger.error(f"Error reconciling job {job.job_id}: {e}", exc_info=True)
                errors.append(f"Job {job.job_id}: {str(e)}")

        logger.info(
            f"Job sweep complete: checked={checked}, recovered={recovered}, "
            f"failed={failed}"
        )
        return {"checked": checked, "recovered": recovered, "failed": failed}

    async def _queue_owns(self, job: ThumbnailJob) -> bool:
        """True if arq still has the job queued or running."""
        if self.redis is None or not job.queue_job_id:
            return False
        arq_job = ArqJob(job.queue_job_id, self.redis, _queue_name=self.queue_name)
        status = await arq_job.status()
        return status in LIVE_QUEUE_STATES

    def _resync_flags(self, errors: list) -> dict:
        if self.media_repository is None or self.synchronizer is None:
            raise ValueError(
                "Flag re-synchronization needs media repository and synchronizer"
            )

        checked = 0
        flags_set = 0
        for media in self.media_repository.find_by_media_types(self.supported_formats):
            checked += 1
            try:
                if self.synchronizer.synchronize(media.media_id):
                    flags_set += 1
            except Exception as e:
                logger.error(f"Error synchronizing media {media.media_id}: {e}")
                errors.append(f"Media {media.media_id}: {str(e)}")

        logger.info(
            f"Flag sync complete: checked={checked}, with_thumbnails={flags_set}"
        )
        return {"checked": checked, "set": flags_set}
