"""Retrying dispatch of batch thumbnail jobs.

RetryingDispatchStrategy wraps a job sender. A failed send is retried with
exponential backoff until the job's retry budget is used up, at which point the
job is marked as a permanent error. Jobs that expire mid-run can be resumed from
a recovery checkpoint.

State machine per job:
    starting -> running -> {completed | error | recovering -> running}
    any active state -> stopped (operator request) | failed (expired)

Every transition is written through the job repository as soon as it happens,
so a restarted worker sees the latest state.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..domain.exceptions import RetriesExhaustedError
from ..domain.models import JobStatus, RecoveryCheckpoint, ThumbnailJob
from ..repositories.interfaces import JobRepository
from .job_sender import JobSender

module_logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 5.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_MAX_RECOVERY_ATTEMPTS = 3

EXPIRED_ERROR = "expired"


class RetryingDispatchStrategy:
    """Sends jobs through a delegate, retrying with capped exponential backoff."""

    def __init__(
        self,
        delegate: JobSender,
        job_repository: JobRepository,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        max_recovery_attempts: int = DEFAULT_MAX_RECOVERY_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ):
        self.delegate = delegate
        self.job_repository = job_repository
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_recovery_attempts = max_recovery_attempts
        self.sleep = sleep
        self.logger = logger or module_logger

    def backoff_delay(self, retry_count: int) -> float:
        """Delay before the next attempt, given the counter before this failure."""
        return min(self.max_delay, self.base_delay * (2**retry_count))

    def _persist(self, job: ThumbnailJob) -> None:
        self.job_repository.update(job)

    def _finish(self, job: ThumbnailJob, status: str, error: str | None = None):
        job.status = status
        job.error = error
        job.completed_at = datetime.utcnow()
        job.retry_state.checkpoint = None
        self._persist(job)

    async def send(self, job: ThumbnailJob) -> str:
        """Dispatch job, retrying failed sends.

        Returns:
            The queue job id reported by the delegate

        Raises:
            RetriesExhaustedError: When the retry counter reaches max_retries;
                the job is left in the error state
        """
        state = job.retry_state
        state.max_retries = self.max_retries

        if state.exhausted:
            self._finish(
                job, JobStatus.ERROR, f"Retries exhausted ({state.retry_count})"
            )
            raise RetriesExhaustedError(job.job_id, state.retry_count)

        if job.status != JobStatus.RECOVERING:
            job.status = JobStatus.STARTING
            self._persist(job)

        while True:
            try:
                queue_job_id = await self.delegate.send(job)
            except Exception as e:
                previous = state.retry_count
                state.increment()
                job.error = str(e)
                self._persist(job)

                if state.exhausted:
                    self.logger.error(
                        f"Job {job.job_id} dispatch failed permanently after "
                        f"{state.retry_count} retries: {e}"
                    )
                    self._finish(job, JobStatus.ERROR, str(e))
                    raise RetriesExhaustedError(job.job_id, state.retry_count) from e

                delay = self.backoff_delay(previous)
                self.logger.warning(
                    f"Job {job.job_id} dispatch failed (retry {state.retry_count}/"
                    f"{state.max_retries}), retrying in {delay}s: {e}"
                )
                await self.sleep(delay)
                continue

            job.status = JobStatus.RUNNING
            job.error = None
            self._persist(job)
            self.logger.info(f"Job {job.job_id} dispatched as {queue_job_id}")
            return queue_job_id

    def is_recoverable(self, job: ThumbnailJob) -> bool:
        """Partial progress beyond the last checkpoint, or recovery budget left."""
        checkpoint = job.retry_state.checkpoint
        last_progress = checkpoint.last_progress if checkpoint else 0.0
        made_progress = 0 < job.progress < 100 and job.progress > last_progress
        return made_progress or job.recovery_attempts < self.max_recovery_attempts

    async def handle_expired(self, job: ThumbnailJob) -> bool:
        """Resume an expired job from a checkpoint, or fail it as expired.

        Returns:
            True if the job was re-dispatched
        """
        if not self.is_recoverable(job):
            self.logger.warning(
                f"Job {job.job_id} expired at {job.progress:.1f}% after "
                f"{job.recovery_attempts} recovery attempts, marking failed"
            )
            self._finish(job, JobStatus.FAILED, EXPIRED_ERROR)
            return False

        job.retry_state.checkpoint = RecoveryCheckpoint(
            last_processed_index=job.last_processed_index,
            last_progress=job.progress,
        )
        job.recovery_attempts += 1
        job.status = JobStatus.RECOVERING
        self._persist(job)

        self.logger.info(
            f"Recovering job {job.job_id} from item {job.last_processed_index + 1} "
            f"({job.progress:.1f}%), attempt {job.recovery_attempts}"
        )
        try:
            await self.send(job)
        except RetriesExhaustedError:
            return False
        return True

    def stop(self, job: ThumbnailJob) -> None:
        """Mark job stopped; the batch loop halts before its next item."""
        job.stop_requested = True
        self._finish(job, JobStatus.STOPPED)
        self.logger.info(f"Job {job.job_id} stopped")
