from abc import ABC, abstractmethod

from ..domain.models import MediaAsset, ThumbnailJob


class MediaRepository(ABC):
    """Abstract repository interface for MediaAsset persistence."""

    @abstractmethod
    def save(self, media: MediaAsset) -> MediaAsset:
        """Insert or replace a media record."""
        pass

    @abstractmethod
    def find_by_id(self, media_id: str) -> MediaAsset | None:
        """Find media by ID."""
        pass

    @abstractmethod
    def find_by_media_types(self, media_types) -> list[MediaAsset]:
        """Find media whose MIME type is in media_types, in stable order."""
        pass

    @abstractmethod
    def set_has_thumbnails(self, media_id: str, value: bool) -> bool:
        """Persist the thumbnail consistency flag. Returns False if not found."""
        pass

    @abstractmethod
    def set_duration(self, media_id: str, duration: float) -> bool:
        """Cache a probed duration on the media record."""
        pass

    @abstractmethod
    def update_data(self, media_id: str, values: dict) -> bool:
        """Merge values into the media data dict."""
        pass


class JobRepository(ABC):
    """Abstract repository interface for ThumbnailJob persistence."""

    @abstractmethod
    def save(self, job: ThumbnailJob) -> ThumbnailJob:
        """Save a new job."""
        pass

    @abstractmethod
    def update(self, job: ThumbnailJob) -> ThumbnailJob:
        """Write every field of an existing job and commit."""
        pass

    @abstractmethod
    def find_by_id(self, job_id: str) -> ThumbnailJob | None:
        """Find job by ID."""
        pass

    @abstractmethod
    def find_by_statuses(self, statuses) -> list[ThumbnailJob]:
        """Find jobs in any of the given statuses."""
        pass


class FileStore(ABC):
    """Storage backend for original files and thumbnail derivatives."""

    @abstractmethod
    def put(self, local_path: str, storage_path: str) -> None:
        """Store the file at local_path under storage_path.

        Raises:
            StorageError: If the file could not be stored
        """
        pass

    @abstractmethod
    def get_local_path(self, storage_path: str) -> str:
        """Return a local filesystem path for storage_path (may not exist)."""
        pass

    @abstractmethod
    def delete(self, storage_path: str) -> bool:
        """Delete storage_path. Returns False if it did not exist."""
        pass
