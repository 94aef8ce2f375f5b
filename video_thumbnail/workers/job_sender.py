"""Job sender for enqueueing thumbnail regeneration jobs to Redis via arq."""

import logging
from abc import ABC, abstractmethod

from arq import create_pool

from ..config.redis_config import THUMBNAIL_QUEUE, get_redis_settings, get_redis_url
from ..domain.exceptions import DispatchError
from ..domain.models import ThumbnailJob

logger = logging.getLogger(__name__)

REGENERATE_FUNCTION = "regenerate_thumbnails"


def queue_job_id_for(job: ThumbnailJob) -> str:
    """arq job id for a dispatch; unique per retry so resends are not deduplicated."""
    return f"thumb_{job.job_id}_{job.retry_state.retry_count}_{job.recovery_attempts}"


class JobSender(ABC):
    """Underlying mechanism that hands a job to whatever will run it."""

    @abstractmethod
    async def send(self, job: ThumbnailJob) -> str:
        """Send job. Returns an identifier for the dispatched run."""
        pass


class ArqJobSender(JobSender):
    """Hands thumbnail jobs to the arq queue consumed by the worker."""

    def __init__(
        self,
        redis_url: str | None = None,
        queue_name: str = THUMBNAIL_QUEUE,
        pool=None,
    ):
        """Initialize ArqJobSender.

        Args:
            redis_url: Redis connection URL (default: from redis_config.py)
            queue_name: arq queue the worker consumes
            pool: Existing arq pool to reuse (the worker passes its own)
        """
        self.redis_url = redis_url or get_redis_url()
        self.queue_name = queue_name
        self.pool = pool
        self._owns_pool = pool is None

    async def initialize(self) -> None:
        """Initialize Redis connection pool."""
        if self.pool is None:
            self.pool = await create_pool(get_redis_settings())
            self._owns_pool = True
        logger.info(f"ArqJobSender initialized with Redis: {self.redis_url}")

    async def close(self) -> None:
        """Close Redis connection pool if this sender created it."""
        if self.pool and self._owns_pool:
            await self.pool.close()
            self.pool = None
            logger.info("ArqJobSender connection closed")

    async def send(self, job: ThumbnailJob) -> str:
        """Enqueue job and record the arq job id on it.

        Returns:
            The arq job id

        Raises:
            DispatchError: If the pool is not ready or arq refused the job
        """
        if not self.pool:
            raise DispatchError(
                "ArqJobSender not initialized. Call initialize() first."
            )

        queue_job_id = queue_job_id_for(job)
        try:
            arq_job = await self.pool.enqueue_job(
                REGENERATE_FUNCTION,
                job.job_id,
                _job_id=queue_job_id,
                _queue_name=self.queue_name,
            )
        except Exception as e:
            raise DispatchError(f"Failed to enqueue job {job.job_id}: {e}") from e

        if arq_job is None:
            # arq returns None when a job with the same id already exists
            raise DispatchError(f"Job {queue_job_id} is already queued")

        job.queue_job_id = queue_job_id
        logger.info(f"Enqueued job {job.job_id} to {self.queue_name} as {queue_job_id}")
        return queue_job_id
