"""Descriptors and streams owned by a launch."""

import logging
import os
from dataclasses import dataclass
from typing import TextIO

log = logging.getLogger(__name__)


@dataclass
class LaunchResources:
    """Owned descriptors, released exactly once by close()."""

    alternate_stream: TextIO | None = None
    output_fd: int | None = None
    input_fd: int | None = None

    def close_files(self) -> None:
        """Release the output and input descriptors."""
        for attr in ("output_fd", "input_fd"):
            fd = getattr(self, attr)
            if fd is None:
                continue
            setattr(self, attr, None)
            try:
                os.close(fd)
            except OSError as e:
                log.debug("closing %s %d failed: %s", attr, fd, e)

    def close(self) -> None:
        """Release everything still owned."""
        self.close_files()

        stream = self.alternate_stream
        if stream is not None:
            self.alternate_stream = None
            try:
                stream.close()
            except OSError as e:
                log.debug("closing alternate stream failed: %s", e)
