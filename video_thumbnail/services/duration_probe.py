"""Video duration probing and the shared duration fallback policy."""

import logging
import os
import re
from dataclasses import dataclass

from ..domain.exceptions import ProcessTimeoutError
from ..utils.process_runner import ProcessRunner

module_logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 10

DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

# Used whenever the real duration cannot be determined
FALLBACK_DURATION = 5.0

# Durations that historically came back from failed probes
SUSPICIOUS_DURATIONS = (20.0, 60.0)
SMALL_FILE_BYTES = 5 * 1024 * 1024
MEDIUM_FILE_BYTES = 20 * 1024 * 1024
SMALL_FILE_DURATION = 3.0
MEDIUM_FILE_DURATION = 10.0

LONG_VIDEO_SECONDS = 7200.0
MIN_BYTES_PER_SECOND = 10 * 1024
LONG_VIDEO_CAP = 1800.0

# Keep seeks away from the very first and last frame
EDGE_MARGIN = 0.1


def parse_duration(output: str) -> float:
    """Parse the first 'Duration: H:MM:SS.ff' token, or 0.0 if there is none.

    >>> parse_duration("  Duration: 00:01:30.50, start: 0.000000")
    90.5
    """
    match = DURATION_PATTERN.search(output or "")
    if not match:
        return 0.0
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


@dataclass(frozen=True)
class ResolvedDuration:
    seconds: float
    low_confidence: bool = False


def resolve_duration(probed: float, file_size: int | None = None) -> ResolvedDuration:
    """Turn a probed duration into one that is safe to pick timestamps from."""
    if probed is None or probed <= 0:
        return ResolvedDuration(FALLBACK_DURATION, low_confidence=True)

    if file_size and probed in SUSPICIOUS_DURATIONS:
        if file_size < SMALL_FILE_BYTES:
            return ResolvedDuration(SMALL_FILE_DURATION, low_confidence=True)
        if file_size < MEDIUM_FILE_BYTES:
            return ResolvedDuration(MEDIUM_FILE_DURATION, low_confidence=True)

    if file_size and probed > LONG_VIDEO_SECONDS:
        if file_size / probed < MIN_BYTES_PER_SECOND:
            return ResolvedDuration(LONG_VIDEO_CAP, low_confidence=True)

    return ResolvedDuration(float(probed))


def position_from_percent(duration: float, percent: float) -> float:
    """Timestamp at percent of duration, kept EDGE_MARGIN away from both ends."""
    percent = max(0.0, min(100.0, float(percent)))
    if duration <= 2 * EDGE_MARGIN:
        return max(0.0, duration / 2)
    position = duration * percent / 100.0
    return max(EDGE_MARGIN, min(duration - EDGE_MARGIN, position))


class DurationProbe:
    """Reads a video's duration from the decoder's banner output."""

    def __init__(
        self,
        runner: ProcessRunner,
        ffmpeg_path: str,
        timeout: int = PROBE_TIMEOUT,
        logger: logging.Logger | None = None,
    ):
        self.runner = runner
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.logger = logger or module_logger

    def probe(self, path: str) -> float:
        """Return the duration of path in seconds, or 0.0 if unknown.

        Raises:
            SpawnError: If ffmpeg itself cannot be launched
        """
        if not os.path.isfile(path):
            self.logger.warning(f"Cannot probe missing file: {path}")
            return 0.0

        try:
            result = self.runner.run(
                self.ffmpeg_path,
                ["-hide_banner", "-nostdin", "-i", path],
                timeout=self.timeout,
            )
        except ProcessTimeoutError as e:
            self.logger.warning(f"Duration probe timed out after {e.timeout}s: {path}")
            return 0.0

        # ffmpeg exits non-zero without an output file, the banner is still there
        duration = parse_duration(result.output)
        if duration <= 0:
            self.logger.warning(f"No duration found in ffmpeg output for {path}")
            return 0.0

        self.logger.debug(f"Probed duration {duration:.2f}s for {path}")
        return duration
