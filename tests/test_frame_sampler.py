"""Tests for FrameSampler using a fake ffmpeg runner."""

import os
from unittest.mock import MagicMock

import pytest

from video_thumbnail.domain.exceptions import ProcessTimeoutError, SpawnError
from video_thumbnail.services.duration_probe import DurationProbe
from video_thumbnail.services.frame_sampler import (
    FrameSampler,
    clamp_frame_count,
    compute_frame_positions,
)
from video_thumbnail.utils.process_runner import ProcessResult, ProcessRunner


class FakeFfmpegRunner(ProcessRunner):
    """Writes a fake JPEG to the output argument unless told to fail.

    fail_at holds timestamps (as passed after -ss) that produce no output.
    """

    def __init__(self, fail_at=(), exit_code=0, empty=False, error=None):
        super().__init__()
        self.fail_at = set(fail_at)
        self.exit_code = exit_code
        self.empty = empty
        self.error = error
        self.calls = []

    def run(self, command, args, timeout=None):
        self.calls.append((command, list(args), timeout))
        if self.error is not None:
            raise self.error
        timestamp = float(args[args.index("-ss") + 1])
        output = args[-1]
        if timestamp in self.fail_at:
            return ProcessResult(b"", b"Invalid data", 1, 0.01)
        with open(output, "wb") as f:
            f.write(b"" if self.empty else b"\xff\xd8fakejpeg")
        return ProcessResult(b"", b"", self.exit_code, 0.01)

    def timestamps(self):
        return [float(args[args.index("-ss") + 1]) for _, args, _ in self.calls]


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00" * 128)
    return str(path)


@pytest.fixture
def scratch(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return str(path)


def make_sampler(runner, scratch, duration=60.0, sleep=None):
    probe = MagicMock(spec=DurationProbe)
    probe.probe.return_value = duration
    return FrameSampler(
        runner,
        probe,
        "/usr/bin/ffmpeg",
        scratch_dir=scratch,
        sleep=sleep or MagicMock(),
    )


class TestFramePositions:
    """Tests for evenly spaced frame positions."""

    def test_sixty_seconds_five_frames(self):
        assert compute_frame_positions(60.0, 5) == [10.0, 20.0, 30.0, 40.0, 50.0]

    def test_positions_strictly_inside_duration(self):
        positions = compute_frame_positions(7.3, 20)

        assert len(positions) == 20
        assert all(0 < p < 7.3 for p in positions)
        assert positions == sorted(positions)

    def test_no_positions_without_duration(self):
        assert compute_frame_positions(0.0, 5) == []

    def test_clamp_frame_count(self):
        assert clamp_frame_count(0) == 1
        assert clamp_frame_count(50) == 20
        assert clamp_frame_count("7") == 7
        assert clamp_frame_count(None) == 1


class TestExtractFrame:
    """Tests for single frame extraction."""

    def test_success_returns_frame(self, video, scratch):
        runner = FakeFfmpegRunner()
        sampler = make_sampler(runner, scratch)

        frame = sampler.extract_frame(video, 12.5)

        assert frame is not None
        assert frame.timestamp == 12.5
        assert os.path.getsize(frame.path) > 0
        assert os.path.dirname(frame.path) == scratch

        command, args, timeout = runner.calls[0]
        assert command == "/usr/bin/ffmpeg"
        assert timeout == 10
        assert args.index("-ss") < args.index("-i")
        assert args[args.index("-frames:v") + 1] == "1"
        assert args[-1] == frame.path

    def test_timeout_is_clamped(self, video, scratch):
        runner = FakeFfmpegRunner()
        sampler = make_sampler(runner, scratch)

        sampler.extract_frame(video, 1.0, timeout=500)
        sampler.extract_frame(video, 1.0, timeout=0)

        assert [call[2] for call in runner.calls] == [60, 1]

    def test_timestamp_clamped_inside_duration(self, video, scratch):
        runner = FakeFfmpegRunner()
        sampler = make_sampler(runner, scratch)

        frame = sampler.extract_frame(video, 99.0, duration=8.0)

        assert frame.timestamp == pytest.approx(7.9)

    def test_missing_source_does_not_spawn(self, tmp_path, scratch):
        runner = FakeFfmpegRunner()
        sampler = make_sampler(runner, scratch)

        assert sampler.extract_frame(str(tmp_path / "gone.mp4"), 1.0) is None
        assert runner.calls == []

    def test_empty_output_is_failure(self, video, scratch):
        sampler = make_sampler(FakeFfmpegRunner(empty=True), scratch)

        assert sampler.extract_frame(video, 1.0) is None
        assert os.listdir(scratch) == []

    def test_non_zero_exit_is_failure(self, video, scratch):
        sampler = make_sampler(FakeFfmpegRunner(exit_code=1), scratch)

        assert sampler.extract_frame(video, 1.0) is None
        assert os.listdir(scratch) == []

    def test_timeout_is_failure(self, video, scratch):
        runner = FakeFfmpegRunner(error=ProcessTimeoutError("ffmpeg", 10))
        sampler = make_sampler(runner, scratch)

        assert sampler.extract_frame(video, 1.0) is None
        assert os.listdir(scratch) == []

    def test_spawn_error_propagates_and_cleans_up(self, video, scratch):
        runner = FakeFfmpegRunner(error=SpawnError("/usr/bin/ffmpeg", "not found"))
        sampler = make_sampler(runner, scratch)

        with pytest.raises(SpawnError):
            sampler.extract_frame(video, 1.0)
        assert os.listdir(scratch) == []

    def test_outputs_are_unique(self, video, scratch):
        sampler = make_sampler(FakeFfmpegRunner(), scratch)

        first = sampler.extract_frame(video, 1.0)
        second = sampler.extract_frame(video, 1.0)

        assert first.path != second.path


class TestExtractWithFallback:
    """Tests for the fallback position ladder."""

    def test_requested_position_first(self, video, scratch):
        runner = FakeFfmpegRunner()
        sampler = make_sampler(runner, scratch)

        frame = sampler.extract_with_fallback(video, 6.0, 60.0)

        assert frame.timestamp == 6.0
        assert runner.timestamps() == [6.0]

    def test_falls_back_to_quarter_then_one_second(self, video, scratch):
        runner = FakeFfmpegRunner(fail_at={6.0, 15.0})
        sampler = make_sampler(runner, scratch)

        frame = sampler.extract_with_fallback(video, 6.0, 60.0)

        assert frame.timestamp == 1.0
        assert runner.timestamps() == [6.0, 15.0, 1.0]

    def test_all_positions_fail(self, video, scratch):
        runner = FakeFfmpegRunner(fail_at={6.0, 15.0, 1.0})
        sampler = make_sampler(runner, scratch)

        assert sampler.extract_with_fallback(video, 6.0, 60.0) is None
        assert len(runner.calls) == 3
        assert os.listdir(scratch) == []

    def test_duplicate_positions_tried_once(self, video, scratch):
        runner = FakeFfmpegRunner(fail_at={1.0})
        sampler = make_sampler(runner, scratch)

        assert sampler.extract_with_fallback(video, 1.0, 4.0) is None
        assert runner.timestamps() == [1.0]


class TestExtractFrames:
    """Tests for evenly spaced batch extraction."""

    def test_five_frames_in_order(self, video, scratch):
        runner = FakeFfmpegRunner()
        sleep = MagicMock()
        sampler = make_sampler(runner, scratch, duration=60.0, sleep=sleep)

        frames = sampler.extract_frames(video, 5)

        assert [f.timestamp for f in frames] == [10.0, 20.0, 30.0, 40.0, 50.0]
        assert [f.index for f in frames] == [0, 1, 2, 3, 4]
        assert len({f.path for f in frames}) == 5
        assert sleep.call_count == 4
        sleep.assert_called_with(0.1)

    def test_count_is_clamped(self, video, scratch):
        sampler = make_sampler(FakeFfmpegRunner(), scratch)

        assert len(sampler.extract_frames(video, 50)) == 20
        assert len(sampler.extract_frames(video, 0)) == 1

    def test_unknown_duration_returns_empty(self, video, scratch):
        runner = FakeFfmpegRunner()
        sampler = make_sampler(runner, scratch, duration=0.0)

        assert sampler.extract_frames(video, 5) == []
        assert runner.calls == []

    def test_failed_frames_are_skipped(self, video, scratch):
        runner = FakeFfmpegRunner(fail_at={20.0, 40.0})
        sampler = make_sampler(runner, scratch)

        frames = sampler.extract_frames(video, 5)

        assert [f.timestamp for f in frames] == [10.0, 30.0, 50.0]
        assert [f.index for f in frames] == [0, 2, 4]
        assert len(os.listdir(scratch)) == 3

    def test_discard_removes_scratch_files(self, video, scratch):
        sampler = make_sampler(FakeFfmpegRunner(), scratch)

        for frame in sampler.extract_frames(video, 3):
            frame.discard()
            frame.discard()

        assert os.listdir(scratch) == []
