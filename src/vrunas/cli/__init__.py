"""Command-line interface for vrunas."""

from vrunas.cli.app import entrypoint, main

__all__ = [
    "entrypoint",
    "main",
]
