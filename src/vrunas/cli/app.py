"""Top-level CLI driver: option phases, redirection, launch, cleanup."""

import logging
import sys
from typing import TextIO

from vrunas.cli.options import PROG, build_parser, parse_options, scan_options
from vrunas.config import load_settings
from vrunas.errors import LaunchError
from vrunas.launch import launch
from vrunas.models import LaunchConfig, LaunchResources
from vrunas.redirect import apply_redirection

log = logging.getLogger("vrunas")


def report_error(error: LaunchError, stream: TextIO) -> None:
    """Print a launch failure, plus the usage line for usage errors."""
    try:
        print(f"{PROG}: error: {error.message}", file=stream)
        if error.is_usage_error:
            stream.write(build_parser().format_usage())
        stream.flush()
    except (OSError, ValueError):
        pass


def _configure_logging(stream: TextIO, level: int) -> None:
    logging.basicConfig(
        stream=stream,
        level=level,
        format="%(name)s %(levelname)s: %(message)s",
    )


def run(config: LaunchConfig, resources: LaunchResources) -> int:
    """Drive one invocation; the caller owns cleanup of resources."""
    # Nothing may be printed before apply_redirection: the scan is silent.
    options_end = scan_options(config)
    try:
        resources.alternate_stream = apply_redirection(config)
    except LaunchError as e:
        # The streams are untouched when redirection fails.
        report_error(e, sys.stderr)
        return e.code

    diagnostics = resources.alternate_stream or sys.stderr
    settings = load_settings()
    _configure_logging(diagnostics, settings.effective_level())

    try:
        parse_options(config, options_end)
        logging.getLogger().setLevel(settings.effective_level(config.debug))
        return launch(config, resources)
    except LaunchError as e:
        log.debug("launch failed: %s", e.kind.value)
        report_error(e, diagnostics)
        return e.code


def main(argv: list[str] | None = None) -> int:
    """Run vrunas with argv (without the program name); return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    config = LaunchConfig(argv=[PROG, *args])
    resources = LaunchResources()
    try:
        return run(config, resources)
    finally:
        resources.close()


def entrypoint() -> None:
    """Console script entrypoint."""
    raise SystemExit(main())
