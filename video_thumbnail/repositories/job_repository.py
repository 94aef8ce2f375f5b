"""SQLAlchemy implementation of JobRepository."""

from datetime import datetime

from sqlalchemy.orm import Session

from ..database.models import ThumbnailJob as JobEntity
from ..domain.exceptions import JobNotFoundError
from ..domain.models import RecoveryCheckpoint, RetryState, ThumbnailJob
from .interfaces import JobRepository


class SQLAlchemyJobRepository(JobRepository):
    """SQLAlchemy implementation of JobRepository.

    Every call commits, so each state transition is durable as soon as it is
    made.
    """

    def __init__(self, session: Session):
        self.session = session

    def save(self, job: ThumbnailJob) -> ThumbnailJob:
        """Save job to database."""
        entity = JobEntity(job_id=job.job_id, created_at=datetime.utcnow())
        self._copy_to_entity(job, entity)

        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)

        return self._entity_to_domain(entity)

    def update(self, job: ThumbnailJob) -> ThumbnailJob:
        """Update an existing job.

        Raises:
            JobNotFoundError: If the job was never saved
        """
        entity = (
            self.session.query(JobEntity).filter(JobEntity.job_id == job.job_id).first()
        )
        if not entity:
            raise JobNotFoundError(job.job_id)

        self._copy_to_entity(job, entity)
        entity.updated_at = datetime.utcnow()
        self.session.commit()
        self.session.refresh(entity)

        job.updated_at = entity.updated_at
        return job

    def find_by_id(self, job_id: str) -> ThumbnailJob | None:
        """Find job by ID, reloading from the database.

        Other processes (the CLI stop command, the reconciler) write to the same
        row, so cached state in this session is never trusted.
        """
        entity = (
            self.session.query(JobEntity)
            .filter(JobEntity.job_id == job_id)
            .populate_existing()
            .first()
        )
        return self._entity_to_domain(entity) if entity else None

    def find_by_statuses(self, statuses) -> list[ThumbnailJob]:
        """Find jobs by status, oldest first."""
        entities = (
            self.session.query(JobEntity)
            .filter(JobEntity.status.in_(list(statuses)))
            .order_by(JobEntity.created_at.asc())
            .populate_existing()
            .all()
        )
        return [self._entity_to_domain(entity) for entity in entities]

    def _copy_to_entity(self, job: ThumbnailJob, entity: JobEntity) -> None:
        checkpoint = job.retry_state.checkpoint
        entity.status = job.status
        entity.args = dict(job.args)
        entity.retry_count = job.retry_state.retry_count
        entity.max_retries = job.retry_state.max_retries
        entity.checkpoint = checkpoint.to_dict() if checkpoint else None
        entity.recovery_attempts = job.recovery_attempts
        entity.progress = job.progress
        entity.last_processed_index = job.last_processed_index
        entity.processed_count = job.processed_count
        entity.failed_count = job.failed_count
        entity.stop_requested = job.stop_requested
        entity.queue_job_id = job.queue_job_id
        entity.error = job.error
        entity.completed_at = job.completed_at

    def _entity_to_domain(self, entity: JobEntity) -> ThumbnailJob:
        """Convert database entity to domain model."""
        return ThumbnailJob(
            job_id=entity.job_id,
            status=entity.status,
            args=dict(entity.args or {}),
            retry_state=RetryState(
                retry_count=entity.retry_count or 0,
                max_retries=entity.max_retries,
                checkpoint=RecoveryCheckpoint.from_dict(entity.checkpoint),
            ),
            recovery_attempts=entity.recovery_attempts or 0,
            progress=entity.progress or 0.0,
            last_processed_index=entity.last_processed_index,
            processed_count=entity.processed_count or 0,
            failed_count=entity.failed_count or 0,
            stop_requested=bool(entity.stop_requested),
            queue_job_id=entity.queue_job_id,
            error=entity.error,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            completed_at=entity.completed_at,
        )
