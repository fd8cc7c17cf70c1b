"""Launch failures and their process exit codes."""

import enum


class ErrorKind(enum.Enum):
    """What went wrong while preparing or performing a launch."""

    PROG_MISSING = "missing program"
    SETID = "identity change"
    ARGV = "argument vector"
    EXEC = "exec"
    REDIRECT = "stream redirection"
    SETOUT = "output file"
    BENCH = "benchmark"
    SETIN = "input file"
    PRIORITY = "priority"
    OPTION = "option"
    OPTION_GROUP = "group option"
    OPTION_GROUP_ARG = "group option value"
    OPTION_USER = "user option"
    OPTION_USER_ARG = "user option value"
    OPTION_PRIORITY = "priority option"


OPTION_BASE = 10

_EXIT_CODES = {
    ErrorKind.PROG_MISSING: 1,
    ErrorKind.SETID: 2,
    ErrorKind.ARGV: 3,
    ErrorKind.EXEC: 4,
    ErrorKind.REDIRECT: 5,
    ErrorKind.SETOUT: 6,
    ErrorKind.BENCH: 7,
    ErrorKind.SETIN: 8,
    ErrorKind.PRIORITY: 9,
    ErrorKind.OPTION: OPTION_BASE,
    ErrorKind.OPTION_GROUP: OPTION_BASE + 1,
    ErrorKind.OPTION_GROUP_ARG: OPTION_BASE + 2,
    ErrorKind.OPTION_USER: OPTION_BASE + 3,
    ErrorKind.OPTION_USER_ARG: OPTION_BASE + 4,
    ErrorKind.OPTION_PRIORITY: OPTION_BASE + 5,
}


def exit_code(kind: ErrorKind) -> int:
    """Return the process exit code reported for an error kind."""
    return _EXIT_CODES[kind]


class LaunchError(Exception):
    """A fatal launch failure, tagged with its kind."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def is_usage_error(self) -> bool:
        return self.kind in {
            ErrorKind.PROG_MISSING,
            ErrorKind.OPTION,
            ErrorKind.OPTION_GROUP,
            ErrorKind.OPTION_GROUP_ARG,
            ErrorKind.OPTION_USER,
            ErrorKind.OPTION_USER_ARG,
            ErrorKind.OPTION_PRIORITY,
        }

    @property
    def code(self) -> int:
        return exit_code(self.kind)


def os_error_text(err: Exception) -> str:
    """Return the OS error text of an OSError, without the errno prefix."""
    return getattr(err, "strerror", None) or str(err)
