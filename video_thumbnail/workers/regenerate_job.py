"""Batch regeneration of video thumbnails across all supported media."""

import logging
from datetime import datetime

from ..domain.exceptions import JobNotFoundError
from ..domain.models import JobStatus, ThumbnailJob
from ..repositories.interfaces import JobRepository, MediaRepository
from ..services.thumbnail_synchronizer import ThumbnailSynchronizer

module_logger = logging.getLogger(__name__)


class RegenerateThumbnailsJob:
    """Runs ThumbnailSynchronizer.regenerate for every supported video.

    Progress is persisted after each item, so a recovered job can continue
    after the last processed index instead of starting over.
    """

    def __init__(
        self,
        synchronizer: ThumbnailSynchronizer,
        media_repository: MediaRepository,
        job_repository: JobRepository,
        supported_formats,
        default_frame_percent: float = 10.0,
        logger: logging.Logger | None = None,
    ):
        self.synchronizer = synchronizer
        self.media_repository = media_repository
        self.job_repository = job_repository
        self.supported_formats = tuple(supported_formats)
        self.default_frame_percent = default_frame_percent
        self.logger = logger or module_logger

    def frame_position(self, job: ThumbnailJob) -> float:
        value = job.args.get("frame_position")
        try:
            percent = float(value)
        except (TypeError, ValueError):
            percent = float(self.default_frame_percent)
        return max(0.0, min(100.0, percent))

    def _load(self, job_id: str) -> ThumbnailJob:
        job = self.job_repository.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _stats(self, job: ThumbnailJob, total: int) -> dict:
        return {
            "job_id": job.job_id,
            "status": job.status,
            "processed": job.processed_count,
            "failed": job.failed_count,
            "total": total,
        }

    def perform(self, job_id: str) -> dict:
        """Regenerate thumbnails for every supported video.

        Returns:
            Dictionary with job_id, status, processed, failed and total counts

        Raises:
            JobNotFoundError: If the job record does not exist
        """
        job = self._load(job_id)
        if job.is_terminal():
            self.logger.warning(f"Job {job_id} is already {job.status}, skipping")
            return self._stats(job, 0)

        percent = self.frame_position(job)
        media_list = self.media_repository.find_by_media_types(self.supported_formats)
        total = len(media_list)

        checkpoint = job.retry_state.checkpoint
        start_index = checkpoint.last_processed_index + 1 if checkpoint else 0
        if start_index > 0:
            self.logger.info(
                f"Job {job_id} resuming at item {start_index}/{total} "
                f"({checkpoint.last_progress:.1f}%)"
            )

        job.status = JobStatus.RUNNING
        self.job_repository.update(job)
        self.logger.info(
            f"Job {job_id} regenerating {total - start_index} videos at {percent}%"
        )

        for index in range(start_index, total):
            # Re-read so a stop request from another process is seen
            job = self._load(job_id)
            if job.stop_requested or job.status == JobStatus.STOPPED:
                self.logger.info(f"Job {job_id} stopped before item {index}/{total}")
                return self._stats(job, total)

            media = media_list[index]
            try:
                succeeded = self.synchronizer.regenerate(media.media_id, percent)
            except Exception as e:
                self.logger.error(
                    f"Job {job_id} failed on media {media.media_id}: {e}",
                    exc_info=True,
                )
                succeeded = False

            job = self._load(job_id)
            if succeeded:
                job.processed_count += 1
            else:
                job.failed_count += 1
                self.logger.warning(
                    f"Job {job_id}: thumbnails not regenerated for {media.media_id}"
                )

            job.last_processed_index = index
            job.progress = round((index + 1) * 100.0 / total, 2)
            self.job_repository.update(job)

        job = self._load(job_id)
        if job.stop_requested or job.status == JobStatus.STOPPED:
            return self._stats(job, total)

        job.status = JobStatus.COMPLETED
        job.progress = 100.0
        job.error = None
        job.completed_at = datetime.utcnow()
        job.retry_state.checkpoint = None
        self.job_repository.update(job)

        self.logger.info(
            f"Job {job_id} completed: processed={job.processed_count}, "
            f"failed={job.failed_count}, total={total}"
        )
        return self._stats(job, total)
