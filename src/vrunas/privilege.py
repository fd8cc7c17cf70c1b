"""Switch the process identity before launching."""

import logging
import os

from vrunas.errors import ErrorKind, LaunchError, os_error_text
from vrunas.models import LaunchConfig

log = logging.getLogger(__name__)


def switch_identity(config: LaunchConfig) -> None:
    """Apply the requested gid, then the requested uid.

    The group goes first: once the uid changes, the process may no longer
    be allowed to change its group.
    """
    if config.has_gid:
        try:
            os.setgid(config.gid)
        except (OSError, OverflowError) as e:
            raise LaunchError(
                ErrorKind.SETID, f"`{config.gid}` (setgid): {os_error_text(e)}"
            ) from e
        log.info("setting gid to %d", config.gid)

    if config.has_uid:
        try:
            os.setuid(config.uid)
        except (OSError, OverflowError) as e:
            raise LaunchError(
                ErrorKind.SETID, f"`{config.uid}` (setuid): {os_error_text(e)}"
            ) from e
        log.info("setting uid to %d", config.uid)
