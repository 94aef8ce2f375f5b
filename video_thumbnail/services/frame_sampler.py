"""Still-frame extraction from video files using ffmpeg.

This module decodes single JPEG frames at chosen timestamps. Frames are written
to scratch files that belong to the caller: whoever receives an ExtractedFrame
is responsible for deleting it (ExtractedFrame.discard).

Behaviour:
- A single extraction runs under a 10 second limit unless told otherwise
- A failed extraction returns None and leaves no scratch file behind
- Batch extraction spaces frames evenly, never at the very start or end
- Batch extraction pauses briefly between frames to limit decoder load
"""

import logging
import os
import tempfile
import time
from collections.abc import Callable

from ..domain.exceptions import ProcessTimeoutError
from ..domain.models import ExtractedFrame, ExtractionRequest
from ..utils.process_runner import ProcessRunner
from .duration_probe import DurationProbe

module_logger = logging.getLogger(__name__)

# Timeout for a single frame extraction in seconds
FRAME_TIMEOUT = 10

# Pause between frames of a batch in seconds
INTER_FRAME_PAUSE = 0.1

MIN_FRAMES = 1
MAX_FRAMES = 20

# Second rung of the fallback ladder, as a fraction of the duration
FALLBACK_FRACTION = 0.25
# Last rung of the fallback ladder, in seconds
FALLBACK_SECONDS = 1.0

# JPEG quality (2-31 for ffmpeg, lower = better quality)
JPEG_QUALITY = 2


def compute_frame_positions(duration: float, count: int) -> list[float]:
    """Evenly spaced timestamps strictly inside (0, duration).

    Args:
        duration: Video duration in seconds
        count: Number of positions (already clamped by the caller)

    Returns:
        Timestamps duration / (count + 1) * i for i = 1..count, ascending.
        Empty when duration is not positive.

    Example:
        >>> compute_frame_positions(60.0, 5)
        [10.0, 20.0, 30.0, 40.0, 50.0]
    """
    if duration <= 0 or count <= 0:
        return []
    interval = duration / (count + 1)
    return [round(interval * i, 3) for i in range(1, count + 1)]


def clamp_frame_count(count) -> int:
    try:
        value = int(count)
    except (TypeError, ValueError):
        value = MIN_FRAMES
    return max(MIN_FRAMES, min(MAX_FRAMES, value))


class FrameSampler:
    """Extracts single frames, evenly spaced frame sets, and fallback frames."""

    def __init__(
        self,
        runner: ProcessRunner,
        probe: DurationProbe,
        ffmpeg_path: str,
        scratch_dir: str | None = None,
        frame_timeout: int = FRAME_TIMEOUT,
        inter_frame_pause: float = INTER_FRAME_PAUSE,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ):
        self.runner = runner
        self.probe = probe
        self.ffmpeg_path = ffmpeg_path
        self.scratch_dir = scratch_dir
        self.frame_timeout = frame_timeout
        self.inter_frame_pause = inter_frame_pause
        self.sleep = sleep
        self.logger = logger or module_logger

    def _new_scratch_path(self) -> str:
        fd, path = tempfile.mkstemp(
            prefix="vidthumb_", suffix=".jpg", dir=self.scratch_dir
        )
        os.close(fd)
        return path

    def build_request(
        self,
        path: str,
        timestamp: float,
        duration: float | None = None,
        timeout: int | None = None,
    ) -> ExtractionRequest:
        return ExtractionRequest.create(
            source_path=path,
            timestamp=timestamp,
            duration=duration,
            timeout=timeout,
            output_path=self._new_scratch_path(),
            default_timeout=self.frame_timeout,
            min_timeout=self.runner.min_timeout,
            max_timeout=self.runner.max_timeout,
        )

    def extract_frame(
        self,
        path: str,
        timestamp: float,
        timeout: int | None = None,
        index: int | None = None,
        duration: float | None = None,
    ) -> ExtractedFrame | None:
        """Decode one frame at timestamp into a JPEG scratch file.

        Seeks before opening the input (-ss ahead of -i) so long videos are not
        decoded from the start. The output must exist and be non-empty to count
        as a success.

        Args:
            path: Local path of the source video
            timestamp: Seek position in seconds
            timeout: Optional timeout, defaults to FRAME_TIMEOUT
            index: Position in a batch, None for single extractions
            duration: Known duration, used to keep the seek inside the video

        Returns:
            ExtractedFrame for the scratch file, or None if nothing was decoded.

        Raises:
            SpawnError: If ffmpeg cannot be launched
        """
        if not os.path.isfile(path):
            self.logger.warning(f"Source video does not exist: {path}")
            return None

        request = self.build_request(path, timestamp, duration, timeout)
        args = [
            "-hide_banner",
            "-nostdin",
            "-loglevel",
            "error",
            "-y",
            "-ss",
            f"{request.timestamp:.3f}",
            "-i",
            request.source_path,
            "-frames:v",
            "1",
            "-q:v",
            str(JPEG_QUALITY),
            "-f",
            "image2",
            request.output_path,
        ]

        try:
            result = self.runner.run(self.ffmpeg_path, args, timeout=request.timeout)
        except ProcessTimeoutError:
            self.logger.warning(
                f"Frame extraction timed out at {request.timestamp}s "
                f"(timeout={request.timeout}s): {path}"
            )
            self._remove(request.output_path)
            return None
        except Exception:
            self._remove(request.output_path)
            raise

        if result.exit_code != 0 or not self._has_content(request.output_path):
            self.logger.warning(
                f"Frame extraction failed at {request.timestamp}s "
                f"(exit code {result.exit_code}): {path}"
            )
            self._remove(request.output_path)
            return None

        self.logger.debug(
            f"Extracted frame at {request.timestamp}s to {request.output_path}"
        )
        return ExtractedFrame(
            path=request.output_path, timestamp=request.timestamp, index=index
        )

    def extract_with_fallback(
        self,
        path: str,
        timestamp: float,
        duration: float,
        timeout: int | None = None,
    ) -> ExtractedFrame | None:
        """Try timestamp, then 25% of duration, then 1 second. First success wins."""
        candidates = []
        for position in (
            timestamp,
            duration * FALLBACK_FRACTION,
            FALLBACK_SECONDS,
        ):
            if duration > 0 and position >= duration:
                position = max(0.0, duration - 0.1)
            position = round(max(0.0, position), 3)
            if position not in candidates:
                candidates.append(position)

        for attempt, position in enumerate(candidates, start=1):
            frame = self.extract_frame(
                path, position, timeout=timeout, duration=duration
            )
            if frame is not None:
                if attempt > 1:
                    self.logger.info(
                        f"Extracted fallback frame at {position}s "
                        f"(requested {timestamp}s): {path}"
                    )
                return frame

        self.logger.error(
            f"All extraction positions failed for {path}: {candidates}"
        )
        return None

    def extract_frames(self, path: str, count: int = 5) -> list[ExtractedFrame]:
        """Extract count evenly spaced frames in ascending time order.

        count is clamped to [1, 20]. When the duration cannot be probed the
        result is empty rather than guessed. Individual failures are skipped,
        so fewer than count frames may come back.
        """
        count = clamp_frame_count(count)
        duration = self.probe.probe(path)
        if duration <= 0:
            self.logger.error(f"Could not determine video duration: {path}")
            return []

        positions = compute_frame_positions(duration, count)
        self.logger.info(
            f"Extracting {count} frames at interval of "
            f"{duration / (count + 1):.2f}s from {path}"
        )

        frames: list[ExtractedFrame] = []
        for index, position in enumerate(positions):
            frame = self.extract_frame(
                path,
                position,
                timeout=self.frame_timeout,
                index=index,
                duration=duration,
            )
            if frame is not None:
                frames.append(frame)
            if index < len(positions) - 1:
                self.sleep(self.inter_frame_pause)

        self.logger.info(f"Extracted {len(frames)}/{count} frames from {path}")
        return frames

    @staticmethod
    def _has_content(path: str) -> bool:
        try:
            return os.path.getsize(path) > 0
        except OSError:
            return False

    @staticmethod
    def _remove(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
