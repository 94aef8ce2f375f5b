import logging

from ..domain.exceptions import MediaNotFoundError, SpawnError
from ..repositories.interfaces import MediaRepository
from .thumbnail_synchronizer import ThumbnailSynchronizer

module_logger = logging.getLogger(__name__)


class MediaIngestHandler:
    """Creates the default thumbnails for a newly ingested video."""

    def __init__(
        self,
        synchronizer: ThumbnailSynchronizer,
        media_repository: MediaRepository,
        default_frame_percent: float = 10.0,
        supported_formats=(),
        logger: logging.Logger | None = None,
    ):
        self.synchronizer = synchronizer
        self.media_repository = media_repository
        self.default_frame_percent = default_frame_percent
        self.supported_formats = tuple(supported_formats)
        self.logger = logger or module_logger

    def handle_ingest(self, media_id: str) -> bool:
        media = self.media_repository.find_by_id(media_id)
        if media is None:
            raise MediaNotFoundError(media_id)

        if not media.is_video():
            self.logger.debug(
                f"Skipping non-video media {media_id} ({media.media_type})"
            )
            return False
        if self.supported_formats and media.media_type not in self.supported_formats:
            self.logger.info(f"Skipping unsupported video format {media.media_type}")
            return False

        try:
            return self.synchronizer.regenerate(media_id, self.default_frame_percent)
        except SpawnError as e:
            self.logger.error(f"Aborting thumbnail ingestion for media {media_id}: {e}")
            return False
