"""Tests for ProcessRunner, run against real Python child processes."""

import logging
import os
import subprocess
import sys
import time
from unittest.mock import patch

import pytest

from video_thumbnail.domain.exceptions import ProcessTimeoutError, SpawnError
from video_thumbnail.utils.process_runner import ProcessResult, ProcessRunner

PYTHON = sys.executable


def python_args(code: str) -> list[str]:
    return ["-c", code]


class TestClampTimeout:
    """Tests for timeout clamping."""

    def test_none_uses_default(self):
        assert ProcessRunner().clamp_timeout(None) == 15

    def test_values_forced_into_bounds(self):
        runner = ProcessRunner()

        assert runner.clamp_timeout(0) == 1
        assert runner.clamp_timeout(-10) == 1
        assert runner.clamp_timeout(1000) == 60
        assert runner.clamp_timeout(30) == 30

    def test_unparseable_value_uses_default(self):
        assert ProcessRunner().clamp_timeout("soon") == 15

    def test_non_finite_values_are_clamped(self):
        runner = ProcessRunner()

        assert runner.clamp_timeout(float("inf")) == 60
        assert runner.clamp_timeout(float("-inf")) == 1
        assert runner.clamp_timeout(float("nan")) == 15
        assert runner.clamp_timeout(2.9) == 2

    def test_custom_bounds(self):
        runner = ProcessRunner(default_timeout=5, min_timeout=2, max_timeout=8)

        assert runner.clamp_timeout(None) == 5
        assert runner.clamp_timeout(1) == 2
        assert runner.clamp_timeout(100) == 8


class TestRun:
    """Tests for processes that finish on their own."""

    def test_captures_stdout_stderr_and_exit_code(self):
        runner = ProcessRunner()

        result = runner.run(
            PYTHON,
            python_args(
                "import sys; print('hello'); "
                "print('oops', file=sys.stderr); sys.exit(3)"
            ),
            timeout=10,
        )

        assert isinstance(result, ProcessResult)
        assert result.stdout.strip() == b"hello"
        assert result.stderr.strip() == b"oops"
        assert result.exit_code == 3
        assert not result.ok
        assert result.duration >= 0

    def test_zero_exit_is_ok(self):
        result = ProcessRunner().run(PYTHON, python_args("pass"), timeout=10)

        assert result.ok
        assert result.stdout == b""

    def test_output_combines_streams(self):
        result = ProcessRunner().run(
            PYTHON,
            python_args("import sys; sys.stdout.write('a'); sys.stderr.write('b')"),
            timeout=10,
        )

        assert result.output == "ab"

    def test_large_output_does_not_block(self):
        """Output larger than a pipe buffer is drained while the child runs."""
        result = ProcessRunner().run(
            PYTHON,
            python_args(
                "import sys; sys.stdout.write('x' * 300000); "
                "sys.stderr.write('y' * 300000)"
            ),
            timeout=20,
        )

        assert result.ok
        assert len(result.stdout) == 300000
        assert len(result.stderr) == 300000

    def test_stdin_is_closed(self):
        """A child reading stdin sees end-of-file instead of hanging."""
        result = ProcessRunner().run(
            PYTHON,
            python_args("import sys; data = sys.stdin.read(); print(len(data))"),
            timeout=5,
        )

        assert result.ok
        assert result.stdout.strip() == b"0"

    def test_args_are_not_shell_interpreted(self):
        result = ProcessRunner().run(
            PYTHON,
            ["-c", "import sys; print(sys.argv[1])", "$HOME; echo injected"],
            timeout=10,
        )

        assert result.stdout.strip() == b"$HOME; echo injected"

    def test_failure_log_omits_progress_lines(self, caplog):
        runner = ProcessRunner()
        code = (
            "import sys; "
            "sys.stderr.write('frame=   10 fps=0.0 q=2.0\\n'); "
            "sys.stderr.write('Invalid data found\\n'); "
            "sys.exit(1)"
        )

        with caplog.at_level(
            logging.DEBUG, logger="video_thumbnail.utils.process_runner"
        ):
            runner.run(PYTHON, python_args(code), timeout=10)

        failures = [
            r.getMessage()
            for r in caplog.records
            if "exited with code" in r.getMessage()
        ]
        assert len(failures) == 1
        assert "Invalid data found" in failures[0]
        assert "frame=" not in failures[0]


class TestTimeout:
    """Tests for processes that outlive their timeout."""

    def test_timeout_raises_with_partial_output(self):
        runner = ProcessRunner()
        code = "import time; print('started', flush=True); time.sleep(30)"

        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError) as exc_info:
            runner.run(PYTHON, python_args(code), timeout=1)
        elapsed = time.monotonic() - start

        assert elapsed < 5
        assert exc_info.value.timeout == 1
        assert b"started" in exc_info.value.stdout

    def test_timeout_error_is_builtin_timeout(self):
        assert issubclass(ProcessTimeoutError, TimeoutError)

    def test_zero_timeout_is_clamped_to_minimum(self):
        runner = ProcessRunner()

        start = time.monotonic()
        with pytest.raises(ProcessTimeoutError) as exc_info:
            runner.run(PYTHON, python_args("import time; time.sleep(10)"), timeout=0)
        elapsed = time.monotonic() - start

        assert exc_info.value.timeout == 1
        assert 0.9 <= elapsed < 5

    @pytest.mark.skipif(os.name != "posix", reason="needs POSIX signals")
    def test_process_ignoring_sigterm_is_killed(self):
        """SIGTERM is ignored by the child, so SIGKILL must follow."""
        created = []
        real_popen = subprocess.Popen

        def spy(*args, **kwargs):
            process = real_popen(*args, **kwargs)
            created.append(process)
            return process

        code = (
            "import signal, time; "
            "signal.signal(signal.SIGTERM, signal.SIG_IGN); "
            "print('ready', flush=True); "
            "time.sleep(30)"
        )
        runner = ProcessRunner()

        with patch(
            "video_thumbnail.utils.process_runner.subprocess.Popen", side_effect=spy
        ):
            with pytest.raises(ProcessTimeoutError):
                runner.run(PYTHON, python_args(code), timeout=1)

        assert len(created) == 1
        assert created[0].poll() is not None


class TestSpawnErrors:
    """Tests for executables that cannot be launched."""

    def test_missing_binary_raises_spawn_error(self, tmp_path):
        missing = str(tmp_path / "no-such-ffmpeg")

        with pytest.raises(SpawnError) as exc_info:
            ProcessRunner().run(missing, ["-version"], timeout=5)

        assert exc_info.value.command == missing

    @pytest.mark.skipif(os.name != "posix", reason="needs POSIX permissions")
    def test_non_executable_raises_spawn_error(self, tmp_path):
        script = tmp_path / "ffmpeg"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)

        with pytest.raises(SpawnError):
            ProcessRunner().run(str(script), [], timeout=5)
