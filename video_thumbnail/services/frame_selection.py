"""Interactive frame selection: candidate frames for a video, then save one."""

import logging

from ..domain.exceptions import MediaNotFoundError, VideoThumbnailError
from ..domain.models import ExtractedFrame
from ..repositories.interfaces import FileStore, MediaRepository
from .frame_sampler import FrameSampler, clamp_frame_count
from .thumbnail_synchronizer import ThumbnailSynchronizer

module_logger = logging.getLogger(__name__)


class FrameSelectionService:
    """Backs the admin frame picker.

    Results are plain dicts with a success flag and either data or a short
    message; error details stay in the logs.
    """

    def __init__(
        self,
        sampler: FrameSampler,
        synchronizer: ThumbnailSynchronizer,
        media_repository: MediaRepository,
        file_store: FileStore,
        frames_count: int = 5,
        logger: logging.Logger | None = None,
    ):
        self.sampler = sampler
        self.synchronizer = synchronizer
        self.media_repository = media_repository
        self.file_store = file_store
        self.frames_count = frames_count
        self.logger = logger or module_logger

    def generate_frames(self, media_id: str) -> dict:
        """Extract candidate frames evenly spread over the video.

        Each frame carries its position as a percentage of the duration, which
        is what save_frame expects back.
        """
        if not media_id:
            return {"success": False, "message": "No media ID provided"}

        media = self.media_repository.find_by_id(media_id)
        if media is None or not media.is_video():
            return {
                "success": False,
                "message": "Invalid media type or media not found",
            }

        count = clamp_frame_count(self.frames_count)
        try:
            source_path = self.file_store.get_local_path(media.original_path)
            frames = self.sampler.extract_frames(source_path, count)
        except (VideoThumbnailError, OSError) as e:
            self.logger.error(f"Error generating frames for media {media_id}: {e}")
            return {"success": False, "message": "Error generating frames"}

        if not frames:
            return {"success": False, "message": "No frames could be extracted"}

        return {
            "success": True,
            "frames": [
                {
                    "index": frame.index,
                    "path": frame.path,
                    "timestamp": frame.timestamp,
                    "position": (frame.index + 1) * 100 / (count + 1),
                }
                for frame in frames
            ],
        }

    def save_frame(self, media_id: str, position_percent) -> dict:
        """Regenerate the media's thumbnails at the chosen percentage."""
        try:
            percent = float(position_percent)
        except (TypeError, ValueError):
            return {"success": False, "message": "Invalid parameters"}
        if not media_id:
            return {"success": False, "message": "Invalid parameters"}

        try:
            regenerated = self.synchronizer.regenerate(media_id, percent)
        except MediaNotFoundError:
            return {"success": False, "message": "Media not found"}
        except VideoThumbnailError as e:
            self.logger.error(f"Error updating frame for media {media_id}: {e}")
            return {"success": False, "message": "Error updating frame"}

        if not regenerated:
            return {"success": False, "message": "Thumbnail could not be generated"}
        return {"success": True, "message": "Thumbnail frame updated successfully"}

    def discard_frames(self, frames) -> int:
        """Delete candidate frame files. Accepts ExtractedFrame objects or dicts."""
        removed = 0
        for frame in frames:
            path = frame.path if isinstance(frame, ExtractedFrame) else frame["path"]
            try:
                ExtractedFrame(path=path, timestamp=0.0).discard()
                removed += 1
            except OSError as e:
                self.logger.warning(f"Could not remove candidate frame {path}: {e}")
        return removed
