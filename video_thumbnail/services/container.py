"""Explicit wiring of the thumbnail services.

Everything is built once per process from ThumbnailSettings and a database
session. There is no global registry; callers keep the returned container.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..config.settings import ThumbnailSettings, resolve_ffmpeg_path
from ..repositories.file_store import LocalFileStore
from ..repositories.job_repository import SQLAlchemyJobRepository
from ..repositories.media_repository import SQLAlchemyMediaRepository
from ..utils.process_runner import ProcessRunner
from ..workers.dispatch_strategy import RetryingDispatchStrategy
from ..workers.job_sender import ArqJobSender
from ..workers.reconciler import Reconciler
from ..workers.regenerate_job import RegenerateThumbnailsJob
from .derivatives import DerivativeGenerator
from .duration_probe import DurationProbe
from .frame_sampler import FrameSampler
from .frame_selection import FrameSelectionService
from .media_ingest import MediaIngestHandler
from .thumbnail_synchronizer import ThumbnailSynchronizer

logger = logging.getLogger(__name__)


@dataclass
class ThumbnailServices:
    settings: ThumbnailSettings
    session: Session
    runner: ProcessRunner
    probe: DurationProbe
    sampler: FrameSampler
    file_store: LocalFileStore
    media_repository: SQLAlchemyMediaRepository
    job_repository: SQLAlchemyJobRepository
    synchronizer: ThumbnailSynchronizer
    ingest: MediaIngestHandler
    selection: FrameSelectionService
    regenerate_job: RegenerateThumbnailsJob
    sender: ArqJobSender
    strategy: RetryingDispatchStrategy
    reconciler: Reconciler


def build_services(
    settings: ThumbnailSettings, session: Session, redis_pool=None
) -> ThumbnailServices:
    """Build every service for one process.

    Args:
        settings: Loaded configuration
        session: Database session shared by the repositories
        redis_pool: arq pool to reuse; without one the sender must be
            initialized before dispatching
    """
    ffmpeg_path = resolve_ffmpeg_path(settings.ffmpeg_path)

    runner = ProcessRunner(
        default_timeout=settings.operation_timeout,
        min_timeout=settings.min_timeout,
        max_timeout=settings.max_timeout,
    )
    probe = DurationProbe(runner, ffmpeg_path, timeout=settings.probe_timeout)
    sampler = FrameSampler(
        runner,
        probe,
        ffmpeg_path,
        scratch_dir=settings.scratch_dir,
        frame_timeout=settings.frame_timeout,
    )

    file_store = LocalFileStore(settings.storage_dir)
    media_repository = SQLAlchemyMediaRepository(session)
    job_repository = SQLAlchemyJobRepository(session)

    synchronizer = ThumbnailSynchronizer(
        media_repository,
        file_store,
        sampler,
        probe,
        DerivativeGenerator(),
        scratch_dir=settings.scratch_dir,
    )
    ingest = MediaIngestHandler(
        synchronizer,
        media_repository,
        default_frame_percent=settings.default_frame_percent,
        supported_formats=settings.supported_formats,
    )
    selection = FrameSelectionService(
        sampler,
        synchronizer,
        media_repository,
        file_store,
        frames_count=settings.frames_count,
    )
    regenerate_job = RegenerateThumbnailsJob(
        synchronizer,
        media_repository,
        job_repository,
        settings.supported_formats,
        default_frame_percent=settings.default_frame_percent,
    )

    sender = ArqJobSender(pool=redis_pool)
    strategy = RetryingDispatchStrategy(
        sender,
        job_repository,
        max_retries=settings.max_retries,
        base_delay=settings.backoff_base_delay,
        max_delay=settings.max_backoff_delay,
        max_recovery_attempts=settings.max_recovery_attempts,
    )
    reconciler = Reconciler(
        job_repository,
        strategy,
        redis=redis_pool,
        media_repository=media_repository,
        synchronizer=synchronizer,
        supported_formats=settings.supported_formats,
        expiry_seconds=settings.job_expiry_seconds,
    )

    logger.info(f"Thumbnail services ready (ffmpeg={ffmpeg_path})")

    return ThumbnailServices(
        settings=settings,
        session=session,
        runner=runner,
        probe=probe,
        sampler=sampler,
        file_store=file_store,
        media_repository=media_repository,
        job_repository=job_repository,
        synchronizer=synchronizer,
        ingest=ingest,
        selection=selection,
        regenerate_job=regenerate_job,
        sender=sender,
        strategy=strategy,
        reconciler=reconciler,
    )
