"""vrunas: run a program as another user or group."""

__version__ = "0.3.0"
