"""Tests for duration probing and the duration fallback policy."""

from unittest.mock import patch

import pytest

from video_thumbnail.domain.exceptions import ProcessTimeoutError, SpawnError
from video_thumbnail.services.duration_probe import (
    FALLBACK_DURATION,
    DurationProbe,
    parse_duration,
    position_from_percent,
    resolve_duration,
)
from video_thumbnail.utils.process_runner import ProcessResult, ProcessRunner

BANNER = (
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mp4':\n"
    "  Duration: 00:01:30.50, start: 0.000000, bitrate: 1205 kb/s\n"
    "  Stream #0:0: Video: h264\n"
    "At least one output file must be specified\n"
)


class TestParseDuration:
    """Tests for parse_duration."""

    def test_parses_hours_minutes_seconds(self):
        assert parse_duration("Duration: 01:02:03.25,") == pytest.approx(3723.25)

    def test_parses_banner(self):
        assert parse_duration(BANNER) == pytest.approx(90.5)

    def test_whole_seconds(self):
        assert parse_duration("Duration: 00:00:07, start") == pytest.approx(7.0)

    def test_missing_token_returns_zero(self):
        assert parse_duration("Invalid data found when processing input") == 0.0

    def test_not_available_returns_zero(self):
        assert parse_duration("Duration: N/A, bitrate: N/A") == 0.0

    def test_empty_input(self):
        assert parse_duration("") == 0.0
        assert parse_duration(None) == 0.0


class TestResolveDuration:
    """Tests for the duration fallback policy."""

    def test_unknown_duration_uses_fallback(self):
        resolved = resolve_duration(0.0)

        assert resolved.seconds == FALLBACK_DURATION
        assert resolved.low_confidence

    def test_plausible_duration_is_kept(self):
        resolved = resolve_duration(42.5, file_size=30 * 1024 * 1024)

        assert resolved.seconds == 42.5
        assert not resolved.low_confidence

    def test_suspicious_duration_small_file(self):
        resolved = resolve_duration(60.0, file_size=2 * 1024 * 1024)

        assert resolved.seconds == 3.0
        assert resolved.low_confidence

    def test_suspicious_duration_medium_file(self):
        resolved = resolve_duration(20.0, file_size=10 * 1024 * 1024)

        assert resolved.seconds == 10.0

    def test_suspicious_duration_large_file_is_trusted(self):
        resolved = resolve_duration(60.0, file_size=50 * 1024 * 1024)

        assert resolved.seconds == 60.0
        assert not resolved.low_confidence

    def test_suspicious_duration_without_size_is_trusted(self):
        assert resolve_duration(20.0).seconds == 20.0

    def test_implausibly_long_video_is_capped(self):
        resolved = resolve_duration(36000.0, file_size=1024 * 1024)

        assert resolved.seconds == 1800.0
        assert resolved.low_confidence

    def test_long_video_with_enough_data_is_kept(self):
        size = 36000 * 200 * 1024

        assert resolve_duration(36000.0, file_size=size).seconds == 36000.0


class TestPositionFromPercent:
    """Tests for percentage to timestamp conversion."""

    def test_percentage_of_duration(self):
        assert position_from_percent(60.0, 10) == pytest.approx(6.0)

    def test_kept_away_from_start(self):
        assert position_from_percent(60.0, 0) == pytest.approx(0.1)

    def test_kept_away_from_end(self):
        assert position_from_percent(60.0, 100) == pytest.approx(59.9)

    def test_percent_clamped(self):
        assert position_from_percent(10.0, 250) == pytest.approx(9.9)
        assert position_from_percent(10.0, -5) == pytest.approx(0.1)

    def test_tiny_duration_uses_midpoint(self):
        assert position_from_percent(0.1, 90) == pytest.approx(0.05)


class TestDurationProbe:
    """Tests for DurationProbe with a patched runner."""

    @pytest.fixture
    def video(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00" * 64)
        return str(path)

    def test_probe_reads_banner_from_stderr(self, video):
        runner = ProcessRunner()
        probe = DurationProbe(runner, "/usr/bin/ffmpeg")

        with patch.object(
            runner,
            "run",
            return_value=ProcessResult(b"", BANNER.encode(), 1, 0.2),
        ) as mock_run:
            duration = probe.probe(video)

        assert duration == pytest.approx(90.5)
        mock_run.assert_called_once_with(
            "/usr/bin/ffmpeg", ["-hide_banner", "-nostdin", "-i", video], timeout=10
        )

    def test_missing_file_returns_zero_without_spawning(self, tmp_path):
        runner = ProcessRunner()
        probe = DurationProbe(runner, "/usr/bin/ffmpeg")

        with patch.object(runner, "run") as mock_run:
            assert probe.probe(str(tmp_path / "missing.mp4")) == 0.0

        mock_run.assert_not_called()

    def test_timeout_returns_zero(self, video):
        runner = ProcessRunner()
        probe = DurationProbe(runner, "/usr/bin/ffmpeg", timeout=3)

        with patch.object(
            runner, "run", side_effect=ProcessTimeoutError("ffmpeg", 3)
        ):
            assert probe.probe(video) == 0.0

    def test_output_without_duration_returns_zero(self, video):
        runner = ProcessRunner()
        probe = DurationProbe(runner, "/usr/bin/ffmpeg")

        with patch.object(
            runner,
            "run",
            return_value=ProcessResult(b"", b"moov atom not found\n", 1, 0.1),
        ):
            assert probe.probe(video) == 0.0

    def test_spawn_error_propagates(self, video):
        runner = ProcessRunner()
        probe = DurationProbe(runner, "/missing/ffmpeg")

        with patch.object(
            runner, "run", side_effect=SpawnError("/missing/ffmpeg", "not found")
        ):
            with pytest.raises(SpawnError):
                probe.probe(video)
