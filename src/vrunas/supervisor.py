"""Optional fork-based benchmarking around the launched program."""

import logging
import os
import resource
import signal
import sys
import time
from typing import Any, Protocol, TextIO

from vrunas.errors import ErrorKind, LaunchError, exit_code, os_error_text
from vrunas.models import LaunchConfig, LaunchResources
from vrunas.report import format_report

log = logging.getLogger(__name__)

FORWARDED_SIGNALS = (
    signal.SIGINT,
    signal.SIGHUP,
    signal.SIGTERM,
    signal.SIGQUIT,
    signal.SIGUSR1,
    signal.SIGUSR2,
    signal.SIGPIPE,
)


def read_clock() -> float:
    """Return a monotonic timestamp, or 0.0 when the clock cannot be read."""
    try:
        return time.clock_gettime(time.CLOCK_MONOTONIC)
    except OSError as e:
        log.warning("cannot read monotonic clock: %s", os_error_text(e))
        return 0.0


class SignalForwarder:
    """Relay signals received by the supervising process to its child."""

    def __init__(self, pid: int) -> None:
        self.pid = pid
        self.forwarded: list[int] = []
        self._previous: dict[int, Any] = {}

    def handle_signal(self, signum: int, _frame: Any) -> None:
        self.forwarded.append(signum)
        try:
            os.kill(self.pid, signum)
        except ProcessLookupError:
            pass

    def install(self, signals: tuple[int, ...] = FORWARDED_SIGNALS) -> None:
        for signum in signals:
            self._previous[signum] = signal.signal(signum, self.handle_signal)

    def restore(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()


class Supervisor(Protocol):
    def run(self) -> int | None:
        """Return None to continue the launch here, or an exit status to stop with."""


class DirectSupervisor:
    """No benchmarking: the launch continues in this process."""

    def run(self) -> int | None:
        return None


class BenchmarkSupervisor:
    """Fork; the child continues the launch, the parent waits and reports."""

    def __init__(self, report_stream: TextIO, extended: bool = False) -> None:
        self.report_stream = report_stream
        self.extended = extended

    def run(self) -> int | None:
        start = read_clock()
        self._flush()
        try:
            pid = os.fork()
        except OSError as e:
            raise LaunchError(ErrorKind.BENCH, f"fork: {os_error_text(e)}") from e

        if pid == 0:
            # Give the parent a chance to install its signal forwarding first.
            if hasattr(os, "sched_yield"):
                os.sched_yield()
            return None
        return self._supervise(pid, start)

    def _supervise(self, pid: int, start: float) -> int:
        log.debug("supervising pid %d", pid)
        forwarder = SignalForwarder(pid)
        forwarder.install()
        try:
            status, usage = self._wait(pid)
        finally:
            forwarder.restore()
        end = read_clock()
        if forwarder.forwarded:
            log.debug("forwarded signals %s to pid %d", forwarder.forwarded, pid)

        self.report_stream.write(format_report(end - start, usage, extended=self.extended))
        self.report_stream.flush()

        if status is None:
            return exit_code(ErrorKind.BENCH)
        return os.waitstatus_to_exitcode(status)

    def _wait(self, pid: int) -> tuple[int | None, Any]:
        try:
            _, status, usage = os.wait4(pid, 0)
        except OSError as e:
            log.error("wait for pid %d failed: %s", pid, os_error_text(e))
            return None, resource.getrusage(resource.RUSAGE_CHILDREN)
        return status, usage

    def _flush(self) -> None:
        for stream in (self.report_stream, sys.stdout, sys.stderr):
            try:
                stream.flush()
            except (OSError, ValueError, AttributeError):
                pass


def build_supervisor(config: LaunchConfig, resources: LaunchResources) -> Supervisor:
    """Return the supervisor matching the timing flags of the config."""
    if not config.timing:
        return DirectSupervisor()
    stream = resources.alternate_stream or sys.stderr
    return BenchmarkSupervisor(stream, extended=config.extended_timing)
