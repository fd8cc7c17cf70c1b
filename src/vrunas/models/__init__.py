"""Model package for vrunas."""

from vrunas.models.launch_config import LaunchConfig
from vrunas.models.launch_resources import LaunchResources

__all__ = [
    "LaunchConfig",
    "LaunchResources",
]
