"""Thumbnail extraction settings.

Settings are read once at startup and handed to each component as plain
values. Sources, lowest precedence first:

1. Built-in defaults
2. JSON config file (VIDEO_THUMBNAIL_CONFIG_PATH, ~/.video-thumbnail/config.json,
   /etc/video-thumbnail/config.json)
3. VIDEO_THUMBNAIL_* environment variables
"""

import json
import logging
import math
import os
import shutil
from dataclasses import dataclass, fields, replace
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_PREFIX = "VIDEO_THUMBNAIL_"

DEFAULT_FFMPEG_PATH = "/usr/bin/ffmpeg"

# Common install locations checked when the configured binary is unusable
FFMPEG_CANDIDATE_PATHS = (
    "/usr/bin/ffmpeg",
    "/usr/local/bin/ffmpeg",
    "/opt/homebrew/bin/ffmpeg",
)

DEFAULT_SUPPORTED_FORMATS = (
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-ms-wmv",
    "video/x-matroska",
    "video/webm",
    "video/3gpp",
    "video/3gpp2",
    "video/x-flv",
)


@dataclass(frozen=True)
class ThumbnailSettings:
    """Configuration values consumed by the thumbnail core."""

    ffmpeg_path: str = DEFAULT_FFMPEG_PATH
    default_frame_percent: float = 10.0
    frames_count: int = 5

    # Timeouts in seconds
    operation_timeout: int = 15
    frame_timeout: int = 10
    probe_timeout: int = 10
    min_timeout: int = 1
    max_timeout: int = 60

    # Dispatch retry policy
    max_retries: int = 3
    backoff_base_delay: float = 5.0
    max_backoff_delay: float = 30.0
    max_recovery_attempts: int = 3
    job_expiry_seconds: int = 300

    storage_dir: str = "/data/files"
    scratch_dir: str | None = None
    supported_formats: tuple[str, ...] = DEFAULT_SUPPORTED_FORMATS

    def clamp_frame_percent(self, percent: float | None) -> float:
        """Return percent in [0, 100], or the configured default if unusable."""
        if percent is None:
            percent = self.default_frame_percent
        try:
            value = float(percent)
        except (TypeError, ValueError):
            value = float(self.default_frame_percent)
        return max(0.0, min(100.0, value))


def resolve_ffmpeg_path(configured: str) -> str:
    """Return a usable ffmpeg path.

    Falls back to PATH lookup and common install locations when the configured
    path is not executable. If nothing is found the configured path is returned
    unchanged and launching it will fail with SpawnError.
    """
    if configured and os.path.isfile(configured) and os.access(configured, os.X_OK):
        return configured

    found = shutil.which("ffmpeg")
    if found:
        logger.info(f"ffmpeg not executable at {configured}, using {found}")
        return found

    for candidate in FFMPEG_CANDIDATE_PATHS:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            logger.info(f"ffmpeg not executable at {configured}, using {candidate}")
            return candidate

    logger.warning(f"No executable ffmpeg found (configured: {configured})")
    return configured


def _config_file_candidates() -> list[str]:
    return [
        os.getenv(f"{ENV_PREFIX}CONFIG_PATH"),
        str(Path.home() / ".video-thumbnail" / "config.json"),
        "/etc/video-thumbnail/config.json",
    ]


def _load_config_file(config_path: str | None = None) -> dict:
    """Load overrides from a JSON config file, or {} if none is usable."""
    if config_path is None:
        for path in _config_file_candidates():
            if path and Path(path).exists():
                config_path = path
                break

    if not config_path:
        return {}

    config_file = Path(config_path)
    if not config_file.exists():
        return {}

    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {config_file}: expected an object")
        return {}
    return data


def _coerce(name: str, default, raw):
    """Convert a raw config value to the type of the field default."""
    if name == "supported_formats":
        if isinstance(raw, str):
            items = [item.strip() for item in raw.split(",")]
        else:
            items = [str(item).strip() for item in raw]
        return tuple(item for item in items if item) or DEFAULT_SUPPORTED_FORMATS
    if name == "scratch_dir":
        return str(raw) if raw else None
    if isinstance(default, bool):
        return str(raw).lower() in ("1", "true", "yes", "on")
    if isinstance(default, (int, float)):
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError(f"{name} must be a finite number")
        return int(value) if isinstance(default, int) else value
    return str(raw)


def load_settings(config_path: str | None = None) -> ThumbnailSettings:
    """Build settings from defaults, the JSON config file and the environment."""
    settings = ThumbnailSettings()
    overrides: dict = {}

    file_values = _load_config_file(config_path)
    env_values = {
        f.name: os.environ[f"{ENV_PREFIX}{f.name.upper()}"]
        for f in fields(ThumbnailSettings)
        if f"{ENV_PREFIX}{f.name.upper()}" in os.environ
    }

    for source in (file_values, env_values):
        for f in fields(ThumbnailSettings):
            if f.name not in source:
                continue
            try:
                overrides[f.name] = _coerce(f.name, f.default, source[f.name])
            except (TypeError, ValueError) as e:
                logger.warning(f"Invalid value for {f.name}: {source[f.name]!r} ({e})")

    settings = replace(settings, **overrides)

    if settings.min_timeout > settings.max_timeout:
        logger.warning(
            f"min_timeout {settings.min_timeout} exceeds max_timeout "
            f"{settings.max_timeout}; using defaults"
        )
        settings = replace(
            settings,
            min_timeout=ThumbnailSettings.min_timeout,
            max_timeout=ThumbnailSettings.max_timeout,
        )

    return settings
