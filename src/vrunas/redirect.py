"""Standard stream redirection and file binding for the launched program.

The stream swap (-1/-2) runs before anything is printed: once it is done,
the stream that was not chosen as the merge target survives as the
alternate stream, which carries vrunas' own diagnostics and benchmark
reports. File binding (-o/-O/-i) runs later, around the identity switch.
"""

import enum
import logging
import os
import sys
from typing import TextIO

from vrunas.errors import ErrorKind, LaunchError, os_error_text
from vrunas.models import LaunchConfig, LaunchResources

log = logging.getLogger(__name__)

STDIN_FD = 0
STDOUT_FD = 1
STDERR_FD = 2

OUTPUT_FILE_MODE = 0o666


class RedirectMode(enum.Enum):
    NONE = "none"
    STDERR_TO_STDOUT = "stderr-to-stdout"
    STDOUT_TO_STDERR = "stdout-to-stderr"


def choose_redirect(config: LaunchConfig) -> RedirectMode:
    """Decide how the standard streams are rearranged.

    stdout-to-stderr wins when active. Otherwise stderr-to-stdout applies,
    either requested or implied by timing, which needs a stream of its own.
    """
    if config.stdout_to_stderr:
        return RedirectMode.STDOUT_TO_STDERR
    if config.stderr_to_stdout or config.timing:
        return RedirectMode.STDERR_TO_STDOUT
    return RedirectMode.NONE


def _flush_std_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        if stream is None:
            continue
        try:
            stream.flush()
        except (OSError, ValueError):
            pass


def _swap(keep_fd: int, source_fd: int, target_fd: int) -> TextIO:
    """Preserve keep_fd as a stream, then make target_fd a copy of source_fd.

    Nothing observable changes until the final dup2, so a failure leaves the
    standard streams as they were.
    """
    try:
        alt_fd = os.dup(keep_fd)
    except OSError as e:
        raise LaunchError(ErrorKind.REDIRECT, f"dup({keep_fd}): {os_error_text(e)}") from e
    try:
        alternate = os.fdopen(alt_fd, "w")
    except OSError as e:
        os.close(alt_fd)
        raise LaunchError(ErrorKind.REDIRECT, f"fdopen({alt_fd}): {os_error_text(e)}") from e

    _flush_std_streams()
    try:
        os.dup2(source_fd, target_fd)
    except OSError as e:
        alternate.close()
        raise LaunchError(
            ErrorKind.REDIRECT, f"dup2({source_fd}, {target_fd}): {os_error_text(e)}"
        ) from e
    return alternate


def apply_redirection(config: LaunchConfig) -> TextIO | None:
    """Rearrange fd 1/fd 2 and return the alternate stream, if any.

    Timing without an explicit redirect is recorded on the config as
    stderr-to-stdout so that file binding later treats it the same way.
    """
    mode = choose_redirect(config)
    if mode is RedirectMode.STDOUT_TO_STDERR:
        return _swap(keep_fd=STDOUT_FD, source_fd=STDERR_FD, target_fd=STDOUT_FD)
    if mode is RedirectMode.STDERR_TO_STDOUT:
        config.stderr_to_stdout = True
        return _swap(keep_fd=STDERR_FD, source_fd=STDOUT_FD, target_fd=STDERR_FD)
    return None


def _open_flags(config: LaunchConfig) -> int:
    flags = os.O_WRONLY | os.O_CREAT
    if config.append:
        return flags | os.O_APPEND
    return flags | os.O_TRUNC


def bind_output(config: LaunchConfig, resources: LaunchResources) -> None:
    """Open the output file, if any, as the child's stdout.

    When a merge flag is active both child streams go to the file.
    """
    path = config.output_path
    if path is None:
        return
    try:
        fd = os.open(path, _open_flags(config), OUTPUT_FILE_MODE)
    except OSError as e:
        raise LaunchError(ErrorKind.SETOUT, f"`{path}` (open): {os_error_text(e)}") from e
    resources.output_fd = fd

    targets = [STDOUT_FD]
    if config.merges_streams:
        targets.append(STDERR_FD)
    _flush_std_streams()
    for target in targets:
        try:
            os.dup2(fd, target)
        except OSError as e:
            raise LaunchError(
                ErrorKind.SETOUT, f"`{path}` (dup2 to {target}): {os_error_text(e)}"
            ) from e
    mode = "appended" if config.append else "written"
    log.debug("output %s to `%s` on fds %s", mode, path, targets)


def bind_input(config: LaunchConfig, resources: LaunchResources) -> None:
    """Open the input file, if any, as the child's stdin."""
    path = config.input_path
    if path is None:
        return
    try:
        fd = os.open(path, os.O_RDONLY)
    except OSError as e:
        raise LaunchError(ErrorKind.SETIN, f"`{path}` (open): {os_error_text(e)}") from e
    resources.input_fd = fd
    try:
        os.dup2(fd, STDIN_FD)
    except OSError as e:
        raise LaunchError(ErrorKind.SETIN, f"`{path}` (dup2 to 0): {os_error_text(e)}") from e
    log.debug("input read from `%s`", path)
