"""Bounded execution of external processes.

Every run has a wall-clock limit. Output is read incrementally while the
process runs, so a chatty child cannot fill a pipe and stall. When the limit
passes, the child is sent SIGTERM and then SIGKILL until it is gone.
"""

import logging
import math
import os
import selectors
import subprocess
import time
from dataclasses import dataclass

from ..domain.exceptions import ProcessTimeoutError, SpawnError

module_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15
MIN_TIMEOUT = 1
MAX_TIMEOUT = 60

POLL_INTERVAL = 0.05
KILL_GRACE = 0.1
KILL_ATTEMPTS = 2

READ_CHUNK = 65536


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a process that exited on its own."""

    stdout: bytes
    stderr: bytes
    exit_code: int
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr as text."""
        return (self.stdout + self.stderr).decode("utf-8", errors="replace")


class ProcessRunner:
    """Runs one external command at a time per call, with a hard time limit.

    Holds no per-call state, so a single instance can serve concurrent callers.
    """

    def __init__(
        self,
        default_timeout: int = DEFAULT_TIMEOUT,
        min_timeout: int = MIN_TIMEOUT,
        max_timeout: int = MAX_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        kill_grace: float = KILL_GRACE,
        logger: logging.Logger | None = None,
    ):
        self.default_timeout = default_timeout
        self.min_timeout = min_timeout
        self.max_timeout = max_timeout
        self.poll_interval = poll_interval
        self.kill_grace = kill_grace
        self.logger = logger or module_logger

    def clamp_timeout(self, timeout: float | None) -> int:
        """Force a timeout into [min_timeout, max_timeout] seconds."""
        if timeout is None:
            timeout = self.default_timeout
        try:
            value = float(timeout)
        except (TypeError, ValueError):
            value = self.default_timeout
        if math.isnan(value):
            value = self.default_timeout
        return int(max(self.min_timeout, min(self.max_timeout, value)))

    def run(self, command: str, args, timeout: float | None = None) -> ProcessResult:
        """Run command with args and wait for it within the clamped timeout.

        Args:
            command: Executable path
            args: Argument list (not interpreted by a shell)
            timeout: Requested timeout in seconds, clamped before use

        Returns:
            ProcessResult with the full output and exit code

        Raises:
            SpawnError: If the executable could not be launched
            ProcessTimeoutError: If the process outlived the timeout
        """
        argv = [command, *[str(arg) for arg in args]]
        effective = self.clamp_timeout(timeout)
        self.logger.debug(f"Running {' '.join(argv)} (timeout={effective}s)")

        started = time.monotonic()
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnError(command, e.strerror or str(e)) from e

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        selector = selectors.DefaultSelector()
        try:
            selector.register(process.stdout, selectors.EVENT_READ, stdout_chunks)
            selector.register(process.stderr, selectors.EVENT_READ, stderr_chunks)

            deadline = started + effective
            timed_out = False
            while True:
                if process.poll() is not None:
                    # Collect whatever is still buffered in the pipes
                    while selector.get_map() and self._read_ready(selector, 0):
                        pass
                    break

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    timed_out = True
                    break

                wait = min(self.poll_interval, remaining)
                if selector.get_map():
                    self._read_ready(selector, wait)
                else:
                    time.sleep(wait)

            if timed_out:
                self._terminate(process, command)
                if selector.get_map():
                    self._read_ready(selector, 0)
                raise ProcessTimeoutError(
                    command,
                    effective,
                    stdout=b"".join(stdout_chunks),
                    stderr=b"".join(stderr_chunks),
                )
        finally:
            selector.close()
            process.stdout.close()
            process.stderr.close()

        result = ProcessResult(
            stdout=b"".join(stdout_chunks),
            stderr=b"".join(stderr_chunks),
            exit_code=process.returncode,
            duration=time.monotonic() - started,
        )

        if not result.ok:
            self._log_failure(command, result)

        return result

    def _read_ready(self, selector, timeout: float) -> int:
        """Read once from every ready stream. Returns the number of ready streams."""
        events = selector.select(timeout)
        for key, _ in events:
            data = os.read(key.fd, READ_CHUNK)
            if data:
                key.data.append(data)
            else:
                selector.unregister(key.fileobj)
        return len(events)

    def _terminate(self, process: subprocess.Popen, command: str) -> None:
        """SIGTERM, then SIGKILL up to KILL_ATTEMPTS times."""
        self.logger.warning(
            f"{command} exceeded its timeout, terminating (pid {process.pid})"
        )
        process.terminate()
        try:
            process.wait(timeout=self.kill_grace)
            return
        except subprocess.TimeoutExpired:
            pass

        for attempt in range(1, KILL_ATTEMPTS + 1):
            self.logger.warning(
                f"Killing {command} (pid {process.pid}), attempt {attempt}"
            )
            process.kill()
            try:
                process.wait(timeout=self.kill_grace)
                return
            except subprocess.TimeoutExpired:
                continue

        self.logger.error(f"{command} (pid {process.pid}) still running after SIGKILL")

    def _log_failure(self, command: str, result: ProcessResult) -> None:
        lines = [
            line
            for line in result.stderr.decode("utf-8", errors="replace").splitlines()
            if line.strip() and "frame=" not in line
        ]
        self.logger.debug(
            f"{command} exited with code {result.exit_code}: " + " | ".join(lines[-5:])
        )
