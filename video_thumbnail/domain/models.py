import math
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime

THUMBNAIL_SIZES = ("large", "medium", "square")

FRAME_DATA_KEY = "videothumbnail_frame"
TIMESTAMP_DATA_KEY = "videothumbnail_timestamp"


class JobStatus:
    """Lifecycle states of a thumbnail regeneration job."""

    STARTING = "starting"
    RUNNING = "running"
    RECOVERING = "recovering"
    COMPLETED = "completed"
    ERROR = "error"
    STOPPED = "stopped"
    FAILED = "failed"

    ACTIVE = (STARTING, RUNNING, RECOVERING)
    TERMINAL = (COMPLETED, ERROR, STOPPED, FAILED)


class MediaAsset:
    """A stored media item that may carry video thumbnails."""

    def __init__(
        self,
        media_id: str,
        storage_id: str,
        filename: str,
        media_type: str,
        duration: float | None = None,
        has_thumbnails: bool = False,
        data: dict | None = None,
        file_size: int | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.media_id = media_id
        self.storage_id = storage_id
        self.filename = filename
        self.media_type = media_type
        self.duration = duration
        self.has_thumbnails = has_thumbnails
        self.data = data or {}
        self.file_size = file_size
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def original_path(self) -> str:
        """Storage path of the uploaded source file."""
        return f"original/{self.filename}"

    def is_video(self) -> bool:
        return bool(self.media_type) and self.media_type.startswith("video/")

    @property
    def frame_percent(self) -> float | None:
        value = self.data.get(FRAME_DATA_KEY)
        return float(value) if value is not None else None

    def __repr__(self):
        return (
            f"MediaAsset(media_id={self.media_id!r}, media_type={self.media_type!r}, "
            f"has_thumbnails={self.has_thumbnails})"
        )


@dataclass(frozen=True)
class ExtractionRequest:
    """One single-frame extraction: source, clamped timestamp, output and timeout."""

    source_path: str
    timestamp: float
    output_path: str
    timeout: int

    @classmethod
    def create(
        cls,
        source_path: str,
        timestamp: float,
        duration: float | None = None,
        timeout: int | None = None,
        output_path: str | None = None,
        default_timeout: int = 10,
        min_timeout: int = 1,
        max_timeout: int = 60,
        scratch_dir: str | None = None,
    ) -> "ExtractionRequest":
        """Build a request with the timestamp and timeout forced into range.

        The timestamp is clamped to [0, duration) when the duration is known.
        A unique scratch path is generated when no output path is given.
        """
        ts = max(0.0, float(timestamp))
        if duration is not None and duration > 0 and ts >= duration:
            ts = max(0.0, duration - 0.1)

        effective = default_timeout if timeout is None else float(timeout)
        if math.isnan(effective):
            effective = default_timeout
        effective = int(max(min_timeout, min(max_timeout, effective)))

        if output_path is None:
            directory = scratch_dir or tempfile.gettempdir()
            output_path = os.path.join(
                directory, f"vidthumb_{uuid.uuid4().hex}.jpg"
            )

        return cls(
            source_path=source_path,
            timestamp=round(ts, 3),
            output_path=output_path,
            timeout=effective,
        )


@dataclass(frozen=True)
class ExtractedFrame:
    """A decoded still image in a scratch file owned by the caller."""

    path: str
    timestamp: float
    index: int | None = None

    def discard(self):
        """Remove the scratch file if it is still present."""
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


@dataclass(frozen=True)
class ThumbnailSet:
    """Expected derivative locations for one media item."""

    storage_id: str
    paths: dict[str, str]

    @classmethod
    def for_storage_id(cls, storage_id: str) -> "ThumbnailSet":
        return cls(
            storage_id=storage_id,
            paths={size: f"{size}/{storage_id}.jpg" for size in THUMBNAIL_SIZES},
        )


@dataclass(frozen=True)
class RecoveryCheckpoint:
    """Last known good position of a batch job."""

    last_processed_index: int
    last_progress: float

    def to_dict(self) -> dict:
        return {
            "last_processed_index": self.last_processed_index,
            "last_progress": self.last_progress,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "RecoveryCheckpoint | None":
        if not data:
            return None
        return cls(
            last_processed_index=int(data.get("last_processed_index", -1)),
            last_progress=float(data.get("last_progress", 0.0)),
        )


@dataclass
class RetryState:
    """Dispatch retry counter and optional checkpoint for a job."""

    retry_count: int = 0
    max_retries: int = 3
    checkpoint: RecoveryCheckpoint | None = None

    @property
    def exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def increment(self) -> int:
        """Advance the counter, never past max_retries. Returns the new value."""
        self.retry_count = min(self.retry_count + 1, self.max_retries)
        return self.retry_count


@dataclass
class ThumbnailJob:
    """Durable record of a batch thumbnail regeneration."""

    job_id: str
    status: str = JobStatus.STARTING
    args: dict = field(default_factory=dict)
    retry_state: RetryState = field(default_factory=RetryState)
    recovery_attempts: int = 0
    progress: float = 0.0
    last_processed_index: int = -1
    processed_count: int = 0
    failed_count: int = 0
    stop_requested: bool = False
    queue_job_id: str | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def new(cls, frame_position: float | None = None, max_retries: int = 3):
        args = {}
        if frame_position is not None:
            args["frame_position"] = frame_position
        return cls(
            job_id=str(uuid.uuid4()),
            args=args,
            retry_state=RetryState(max_retries=max_retries),
        )

    def is_active(self) -> bool:
        return self.status in JobStatus.ACTIVE

    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL
