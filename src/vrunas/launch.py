"""Launch sequence: priority, identity, file binding, benchmarking, exec."""

import logging
import os
import signal
import sys
from typing import Callable

from vrunas.errors import ErrorKind, LaunchError, exit_code, os_error_text
from vrunas.models import LaunchConfig, LaunchResources
from vrunas.privilege import switch_identity
from vrunas.redirect import bind_input, bind_output
from vrunas.supervisor import Supervisor, build_supervisor

log = logging.getLogger(__name__)

# The interpreter ignores these at startup and an exec would keep them ignored.
RESTORED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGPIPE", "SIGXFSZ") if hasattr(signal, name)
)

SupervisorFactory = Callable[[LaunchConfig, LaunchResources], Supervisor]


def adjust_priority(config: LaunchConfig) -> None:
    """Apply the requested niceness increment, if any."""
    if not config.has_priority:
        return
    try:
        niceness = os.nice(config.priority)
    except (OSError, OverflowError) as e:
        raise LaunchError(
            ErrorKind.PRIORITY, f"`{config.priority}` (nice): {os_error_text(e)}"
        ) from e
    log.info("niceness is now %d", niceness)


def build_argv(config: LaunchConfig) -> list[str]:
    """Return a new list holding the program name and its arguments, verbatim."""
    argv = list(config.child_argv)
    if not argv:
        raise LaunchError(ErrorKind.ARGV, "empty argument vector for program")
    return argv


def exec_program(argv: list[str], resources: LaunchResources) -> None:
    """Replace the current process with argv[0]; returns only by raising.

    The file descriptors are already duplicated onto 0/1/2, so the originals
    are released here. The alternate stream is not inheritable and goes away
    with the exec, and it stays usable for reporting an exec failure.
    """
    resources.close_files()
    for signum in RESTORED_SIGNALS:
        signal.signal(signum, signal.SIG_DFL)
    log.debug("exec %s", argv)
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    try:
        os.execvp(argv[0], argv)
    except OSError as e:
        raise LaunchError(ErrorKind.EXEC, f"`{argv[0]}` (execvp): {os_error_text(e)}") from e


def launch(
    config: LaunchConfig,
    resources: LaunchResources,
    supervisor_factory: SupervisorFactory = build_supervisor,
) -> int:
    """Run the launch sequence after options are parsed and streams are redirected.

    Returns an exit status when the launch stops here: nothing to run, or
    the benchmarking parent once its child finished. On success in the
    launching process this never returns, because the program replaces it.
    """
    if not config.has_program:
        if config.optional_args:
            return 0
        raise LaunchError(ErrorKind.PROG_MISSING, "missing program")

    adjust_priority(config)

    # Identity switch happens exactly once, before or after file binding.
    if config.new_id_files:
        switch_identity(config)
    bind_output(config, resources)
    bind_input(config, resources)
    if not config.new_id_files:
        switch_identity(config)

    status = supervisor_factory(config, resources).run()
    if status is not None:
        return status

    argv = build_argv(config)
    exec_program(argv, resources)
    return exit_code(ErrorKind.EXEC)
