"""Domain exceptions for the application."""


class VideoThumbnailError(Exception):
    """Base exception for video thumbnail errors."""

    pass


class SpawnError(VideoThumbnailError):
    """Raised when an external executable cannot be launched.

    Attributes:
        command: The executable that failed to start
    """

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to launch {command}: {reason}")


class ProcessTimeoutError(VideoThumbnailError, TimeoutError):
    """Raised when an external process exceeds its wall-clock bound.

    Attributes:
        command: The executable that was running
        timeout: Effective (clamped) timeout in seconds
        stdout: Output collected before the process was terminated
        stderr: Error output collected before the process was terminated
    """

    def __init__(
        self, command: str, timeout: float, stdout: bytes = b"", stderr: bytes = b""
    ):
        self.command = command
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"{command} timed out after {timeout}s")


class StorageError(VideoThumbnailError):
    """Raised when the file store cannot read or write a storage path."""

    pass


class MediaNotFoundError(VideoThumbnailError):
    """Raised when a requested media record does not exist.

    Attributes:
        media_id: The media ID that was not found
    """

    def __init__(self, media_id: str):
        self.media_id = media_id
        super().__init__(f"Media not found: {media_id}")


class JobNotFoundError(VideoThumbnailError):
    """Raised when a requested thumbnail job does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class DispatchError(VideoThumbnailError):
    """Raised by a job sender when a job could not be handed to the queue."""

    pass


class RetriesExhaustedError(VideoThumbnailError):
    """Raised when a dispatched job has used up its retry budget.

    Attributes:
        job_id: The job that failed permanently
        retry_count: Retry counter at the time of failure
    """

    def __init__(self, job_id: str, retry_count: int):
        self.job_id = job_id
        self.retry_count = retry_count
        super().__init__(
            f"Job {job_id} failed permanently after {retry_count} retries"
        )
