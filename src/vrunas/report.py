"""Format benchmark reports from elapsed time and resource usage."""

from typing import Any

# (label, struct rusage field, comment)
RUSAGE_FIELDS = (
    ("maxrss", "ru_maxrss", "maximum resident set size"),
    ("ixrss", "ru_ixrss", "integral shared memory size (text)"),
    ("idrss", "ru_idrss", "integral unshared data size"),
    ("isrss", "ru_isrss", "integral unshared stack size"),
    ("minflt", "ru_minflt", "page reclaims (soft page faults)"),
    ("majflt", "ru_majflt", "page faults (hard page faults)"),
    ("nswap", "ru_nswap", "swaps"),
    ("inblock", "ru_inblock", "block input operations"),
    ("oublock", "ru_oublock", "block output operations"),
    ("msgsnd", "ru_msgsnd", "IPC messages sent"),
    ("msgrcv", "ru_msgrcv", "IPC messages received"),
    ("nsignals", "ru_nsignals", "signals received"),
    ("nvcsw", "ru_nvcsw", "voluntary context switches"),
    ("nivcsw", "ru_nivcsw", "involuntary context switches"),
)


def posix_lines(elapsed: float, usage: Any) -> list[str]:
    """Return the `real`, `user` and `sys` lines of a POSIX time report."""
    user = getattr(usage, "ru_utime", 0.0) if usage is not None else 0.0
    system = getattr(usage, "ru_stime", 0.0) if usage is not None else 0.0
    return [
        f"real {max(elapsed, 0.0):.2f}",
        f"user {user:.2f}",
        f"sys {system:.2f}",
    ]


def extended_lines(usage: Any) -> list[str]:
    """Return one labeled line per resource usage counter."""
    lines = []
    for label, field, comment in RUSAGE_FIELDS:
        value = int(getattr(usage, field, 0)) if usage is not None else 0
        lines.append(f"{label:<8} {value:12d}  # {comment}")
    return lines


def format_report(elapsed: float, usage: Any, extended: bool = False) -> str:
    """Render a full report, newline-terminated."""
    lines = posix_lines(elapsed, usage)
    if extended:
        lines.extend(extended_lines(usage))
    return "\n".join(lines) + "\n"
