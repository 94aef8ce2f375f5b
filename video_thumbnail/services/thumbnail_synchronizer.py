"""Keeps the persisted has-thumbnails flag consistent with stored derivatives.

The flag on a media record is only ever written here. synchronize() derives it
from what is actually present in storage; regenerate() rebuilds the derivatives
from the source video and then synchronizes.
"""

import logging
import os
import tempfile
from datetime import datetime

from ..domain.exceptions import MediaNotFoundError, SpawnError
from ..domain.models import (
    FRAME_DATA_KEY,
    TIMESTAMP_DATA_KEY,
    MediaAsset,
    ThumbnailSet,
)
from ..repositories.interfaces import FileStore, MediaRepository
from .derivatives import DerivativeGenerator
from .duration_probe import DurationProbe, position_from_percent, resolve_duration
from .frame_sampler import FrameSampler

module_logger = logging.getLogger(__name__)


class ThumbnailSynchronizer:
    """Reconciles expected thumbnail derivatives against the file store."""

    def __init__(
        self,
        media_repository: MediaRepository,
        file_store: FileStore,
        sampler: FrameSampler,
        probe: DurationProbe,
        derivatives: DerivativeGenerator,
        scratch_dir: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self.media_repository = media_repository
        self.file_store = file_store
        self.sampler = sampler
        self.probe = probe
        self.derivatives = derivatives
        self.scratch_dir = scratch_dir
        self.logger = logger or module_logger

    def _get_media(self, media_id: str) -> MediaAsset:
        media = self.media_repository.find_by_id(media_id)
        if media is None:
            raise MediaNotFoundError(media_id)
        return media

    def _derivative_present(self, storage_path: str) -> bool:
        try:
            local_path = self.file_store.get_local_path(storage_path)
            return os.path.isfile(local_path) and os.path.getsize(local_path) > 0
        except OSError as e:
            self.logger.warning(f"Cannot check derivative {storage_path}: {e}")
            return False

    def synchronize(self, media_id: str) -> bool:
        """Recompute the has-thumbnails flag from storage.

        Returns:
            True if every derivative exists and is non-empty.

        Raises:
            MediaNotFoundError: If the media record does not exist
        """
        media = self._get_media(media_id)
        thumbnail_set = ThumbnailSet.for_storage_id(media.storage_id)

        missing = [
            size
            for size, storage_path in thumbnail_set.paths.items()
            if not self._derivative_present(storage_path)
        ]
        has_thumbnails = not missing

        if has_thumbnails != media.has_thumbnails:
            self.media_repository.set_has_thumbnails(media_id, has_thumbnails)
            self.logger.info(
                f"Media {media_id} has_thumbnails {media.has_thumbnails} -> "
                f"{has_thumbnails}"
            )

        if missing:
            self.logger.debug(f"Media {media_id} missing derivatives: {missing}")

        return has_thumbnails

    def regenerate(self, media_id: str, frame_position_percent: float) -> bool:
        """Extract a new frame at the given percentage and rebuild derivatives.

        Returns:
            The result of synchronize() after storing the derivatives, or False
            if any step failed (the flag is left untouched in that case).

        Raises:
            MediaNotFoundError: If the media record does not exist
            SpawnError: If ffmpeg cannot be launched at all
        """
        media = self._get_media(media_id)
        frame = None

        try:
            source_path = self.file_store.get_local_path(media.original_path)
            if not os.path.isfile(source_path):
                self.logger.error(f"Source video missing for media {media_id}")
                return False

            probed = self.probe.probe(source_path)
            if probed > 0 and probed != media.duration:
                self.media_repository.set_duration(media_id, probed)

            file_size = media.file_size or os.path.getsize(source_path)
            resolved = resolve_duration(probed, file_size)
            if resolved.low_confidence:
                self.logger.warning(
                    f"Using estimated duration {resolved.seconds}s for media "
                    f"{media_id} (probed {probed}s)"
                )

            percent = max(0.0, min(100.0, float(frame_position_percent)))
            timestamp = position_from_percent(resolved.seconds, percent)

            frame = self.sampler.extract_with_fallback(
                source_path, timestamp, resolved.seconds
            )
            if frame is None:
                self.logger.error(f"No frame could be extracted for media {media_id}")
                return False

            thumbnail_set = ThumbnailSet.for_storage_id(media.storage_id)
            with tempfile.TemporaryDirectory(
                prefix="vidthumb_", dir=self.scratch_dir
            ) as work_dir:
                generated = self.derivatives.generate(frame.path, work_dir)
                for size, storage_path in thumbnail_set.paths.items():
                    self.file_store.put(generated[size], storage_path)

            self.media_repository.update_data(
                media_id,
                {
                    FRAME_DATA_KEY: percent,
                    TIMESTAMP_DATA_KEY: datetime.utcnow().isoformat(),
                },
            )

        except SpawnError as e:
            self.logger.error(f"Cannot launch decoder for media {media_id}: {e}")
            raise

        except Exception as e:
            self.logger.error(
                f"Thumbnail regeneration failed for media {media_id}: {e}",
                exc_info=True,
            )
            return False

        finally:
            if frame is not None:
                frame.discard()

        self.logger.info(
            f"Regenerated thumbnails for media {media_id} at {percent}% "
            f"({frame.timestamp}s)"
        )
        return self.synchronize(media_id)
