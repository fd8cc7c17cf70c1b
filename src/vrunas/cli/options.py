"""Two-phase command-line handling.

Options are read twice. The scan phase looks only at the flags that decide
how stdout/stderr get rearranged (-1, -2, -t, -T) and where the program's
own command line starts. It prints nothing and never fails, because the
streams have not been redirected yet. The parse phase runs once the
redirection is in place. It interprets every option, resolves user and
group names, and may report errors and warnings.
"""

import argparse
import logging
import sys
from typing import Any, TextIO

from vrunas import __version__
from vrunas.errors import ErrorKind, LaunchError
from vrunas.identity import MAX_ID, lookup_gid, lookup_uid, resolve_gid, resolve_uid
from vrunas.models import LaunchConfig

log = logging.getLogger(__name__)

PROG = "vrunas"

STDERR_TO_STDOUT = "1"
STDOUT_TO_STDERR = "2"
POSIX_TIMING = "t"
EXTENDED_TIMING = "T"

# Short options that take a value, and their long spellings.
SHORT_VALUE_OPTIONS = frozenset("ugUGoOip")
LONG_VALUE_OPTIONS = frozenset(
    {
        "--uid",
        "--gid",
        "--print-uid",
        "--print-gid",
        "--output",
        "--append",
        "--input",
        "--priority",
    }
)
SCANNED_SHORT_FLAGS = frozenset(
    (STDERR_TO_STDOUT, STDOUT_TO_STDERR, POSIX_TIMING, EXTENDED_TIMING)
)
SCANNED_LONG_FLAGS = {
    "--stderr-to-stdout": STDERR_TO_STDOUT,
    "--stdout-to-stderr": STDOUT_TO_STDERR,
    "--time": POSIX_TIMING,
    "--time-extended": EXTENDED_TIMING,
}

# A missing value for these options has its own exit code.
MISSING_VALUE_KINDS = {
    "-u/--uid": ErrorKind.OPTION_USER_ARG,
    "-U/--print-uid": ErrorKind.OPTION_USER_ARG,
    "-g/--gid": ErrorKind.OPTION_GROUP_ARG,
    "-G/--print-gid": ErrorKind.OPTION_GROUP_ARG,
}

# nice() takes a C int.
MIN_PRIORITY = -(2**31)
MAX_PRIORITY = 2**31 - 1


def _record_scanned(config: LaunchConfig, flag: str) -> None:
    if flag == STDERR_TO_STDOUT:
        config.stderr_to_stdout, config.stdout_to_stderr = True, False
    elif flag == STDOUT_TO_STDERR:
        config.stdout_to_stderr, config.stderr_to_stdout = True, False
    elif flag == POSIX_TIMING:
        config.posix_timing = True
    elif flag == EXTENDED_TIMING:
        config.extended_timing = True


def scan_options(config: LaunchConfig) -> int:
    """Silently record redirection-related flags; return where options end.

    Sets config.child_argv_start to the index of the program name (or to
    len(argv) when there is none). The returned index excludes a `--`
    terminator, so config.argv[1:end] holds exactly the options.
    """
    argv = config.argv
    index = 1
    while index < len(argv):
        arg = argv[index]
        if arg == "--":
            config.child_argv_start = index + 1
            return index
        if not arg.startswith("-") or arg == "-":
            break

        if arg.startswith("--"):
            name, has_value, _ = arg.partition("=")
            if name in SCANNED_LONG_FLAGS:
                _record_scanned(config, SCANNED_LONG_FLAGS[name])
            elif name in LONG_VALUE_OPTIONS and not has_value:
                index += 1
            index += 1
            continue

        cluster = arg[1:]
        for position, letter in enumerate(cluster):
            if letter in SHORT_VALUE_OPTIONS:
                if position == len(cluster) - 1:
                    index += 1
                break
            if letter in SCANNED_SHORT_FLAGS:
                _record_scanned(config, letter)
        index += 1

    end = min(index, len(argv))
    config.child_argv_start = end
    return end


class OptionParser(argparse.ArgumentParser):
    """ArgumentParser that raises LaunchError instead of exiting on bad input."""

    def error(self, message: str) -> None:  # type: ignore[override]
        kind = ErrorKind.OPTION
        if message.endswith("expected one argument"):
            option = message.removeprefix("argument ").partition(":")[0]
            kind = MISSING_VALUE_KINDS.get(option, ErrorKind.OPTION)
        raise LaunchError(kind, message)


class RedirectAction(argparse.Action):
    """-1/-2: the later one wins; remember when both were given."""

    def __init__(self, option_strings: list[str], dest: str, **kwargs: Any) -> None:
        super().__init__(option_strings, dest, nargs=0, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        previous = getattr(namespace, self.dest, None)
        if previous is not None and previous != self.const:
            namespace.multiple_redirects = True
        setattr(namespace, self.dest, self.const)


class OutputAction(argparse.Action):
    """-o/-O: store (path, append); the later one wins."""

    def __call__(self, parser, namespace, values, option_string=None):
        if getattr(namespace, self.dest, None) is not None:
            namespace.multiple_outputs = True
        setattr(namespace, self.dest, (values, bool(self.const)))


class PrintIdAction(argparse.Action):
    """-U/-G: queue a (kind, name) lookup, keeping command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        queued = list(getattr(namespace, self.dest, None) or [])
        queued.append((self.const, values))
        setattr(namespace, self.dest, queued)


def build_parser() -> OptionParser:
    """Build the parser for the full (second) option pass."""
    parser = OptionParser(
        prog=PROG,
        description="Run a program as another user and/or group.",
        usage=(
            "%(prog)s [-u uid|user] [-g gid|group] [-U user] [-G group] [-1|-2] [-t|-T]\n"
            "       [-o file|-O file] [-i file] [-n] [-p nice] [-d] [--] [program [arguments]]"
        ),
        allow_abbrev=False,
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")

    identity = parser.add_argument_group("identity")
    identity.add_argument("-u", "--uid", metavar="uid|user", help="Change uid")
    identity.add_argument("-g", "--gid", metavar="gid|group", help="Change gid")
    identity.add_argument(
        "-U",
        "--print-uid",
        dest="print_ids",
        action=PrintIdAction,
        const="user",
        metavar="user",
        help="Print the uid of user; no program needed",
    )
    identity.add_argument(
        "-G",
        "--print-gid",
        dest="print_ids",
        action=PrintIdAction,
        const="group",
        metavar="group",
        help="Print the gid of group; no program needed",
    )
    identity.add_argument(
        "-n",
        "--new-id-files",
        action="store_true",
        help="Open -o/-O/-i files after switching uid/gid instead of before",
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "-1",
        "--stderr-to-stdout",
        dest="redirect",
        action=RedirectAction,
        const=STDERR_TO_STDOUT,
        help="Send the program's stderr to stdout; vrunas messages go to the old stderr",
    )
    output.add_argument(
        "-2",
        "--stdout-to-stderr",
        dest="redirect",
        action=RedirectAction,
        const=STDOUT_TO_STDERR,
        help="Send the program's stdout to stderr; vrunas messages go to the old stdout",
    )
    output.add_argument(
        "-o", "--output", dest="output", action=OutputAction, const=False, metavar="file",
        help="Write the program's stdout to file (truncated)",
    )
    output.add_argument(
        "-O", "--append", dest="output", action=OutputAction, const=True, metavar="file",
        help="Append the program's stdout to file",
    )
    output.add_argument("-i", "--input", metavar="file", help="Read the program's stdin from file")

    timing = parser.add_argument_group("timing")
    timing.add_argument(
        "-t", "--time", action="store_true", help="Report real/user/sys times (POSIX format)"
    )
    timing.add_argument(
        "-T",
        "--time-extended",
        action="store_true",
        help="Report times and all resource usage counters",
    )
    parser.add_argument(
        "-p",
        "--priority",
        metavar="nice",
        help="Niceness increment (use -p-5 or --priority=-5 for negative values)",
    )
    return parser


def parse_priority(value: str) -> int:
    try:
        priority = int(value)
    except ValueError as e:
        raise LaunchError(ErrorKind.OPTION_PRIORITY, f"`{value}`: invalid priority") from e
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise LaunchError(ErrorKind.OPTION_PRIORITY, f"`{value}`: priority out of range")
    return priority


def _resolve_user(value: str) -> int:
    try:
        uid = resolve_uid(value)
    except KeyError as e:
        raise LaunchError(ErrorKind.OPTION_USER, f"`{value}`: no such user") from e
    if uid > MAX_ID:
        raise LaunchError(ErrorKind.OPTION_USER, f"`{value}`: uid out of range")
    return uid


def _resolve_group(value: str) -> int:
    try:
        gid = resolve_gid(value)
    except KeyError as e:
        raise LaunchError(ErrorKind.OPTION_GROUP, f"`{value}`: no such group") from e
    if gid > MAX_ID:
        raise LaunchError(ErrorKind.OPTION_GROUP, f"`{value}`: gid out of range")
    return gid


def _print_ids(queued: list[tuple[str, str]], out: TextIO) -> None:
    for kind, name in queued:
        if kind == "user":
            try:
                value = lookup_uid(name)
            except KeyError as e:
                raise LaunchError(ErrorKind.OPTION_USER, f"`{name}`: no such user") from e
        else:
            try:
                value = lookup_gid(name)
            except KeyError as e:
                raise LaunchError(ErrorKind.OPTION_GROUP, f"`{name}`: no such group") from e
        print(value, file=out)
    out.flush()


def parse_options(
    config: LaunchConfig, options_end: int, out: TextIO | None = None
) -> argparse.Namespace:
    """Interpret config.argv[1:options_end] fully and fill in the config.

    Must run after the streams were redirected: it resolves names, prints
    -U/-G results on stdout and logs warnings.
    """
    out = out if out is not None else sys.stdout
    args = build_parser().parse_args(config.argv[1:options_end])

    config.debug = args.debug
    if args.redirect == STDERR_TO_STDOUT:
        config.stderr_to_stdout, config.stdout_to_stderr = True, False
    elif args.redirect == STDOUT_TO_STDERR:
        config.stdout_to_stderr, config.stderr_to_stdout = True, False
    config.multiple_redirects = bool(getattr(args, "multiple_redirects", False))
    if config.multiple_redirects:
        winner = "-1" if config.stderr_to_stdout else "-2"
        log.warning("both -1 and -2 given, using the last one (%s)", winner)

    config.posix_timing = config.posix_timing or args.time
    config.extended_timing = config.extended_timing or args.time_extended

    if args.output is not None:
        config.output_path, config.append = args.output
        if getattr(args, "multiple_outputs", False):
            log.warning("output file given more than once, using `%s`", config.output_path)
    config.input_path = args.input
    config.new_id_files = args.new_id_files

    if args.gid is not None:
        config.gid = _resolve_group(args.gid)
        config.has_gid = True
    if args.uid is not None:
        config.uid = _resolve_user(args.uid)
        config.has_uid = True
    if args.priority is not None:
        config.priority = parse_priority(args.priority)
        config.has_priority = True

    if args.print_ids:
        _print_ids(args.print_ids, out)
        config.optional_args = True

    log.debug("parsed %s", config)
    return args
