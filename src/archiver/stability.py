"""Wait for a file to stop growing before it is processed."""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from .exceptions import FileVanishedError, GateInterruptedError

logger = logging.getLogger(__name__)


class StabilityGate:
    """
    Blocks until a file's size is the same on two consecutive polls.

    There is no upper bound on the wait. A file that keeps growing holds
    the caller until it stops or the stop event is set.
    """

    def __init__(self, poll_interval: float = 0.5, stop_event: Optional[threading.Event] = None):
        """
        Initialize the gate.

        Args:
            poll_interval: Seconds between size reads
            stop_event: Event that interrupts a wait in progress
        """
        self.poll_interval = poll_interval
        self.stop_event = stop_event or threading.Event()

    def _size(self, path: Path) -> int:
        try:
            return os.stat(path).st_size
        except OSError as e:
            raise FileVanishedError(f"Cannot read size of {path}: {e}") from e

    def wait(self, path: Path) -> int:
        """
        Wait until the file at path stops changing size.

        Args:
            path: File being written

        Returns:
            The stable size in bytes

        Raises:
            FileVanishedError: If the file disappears mid-poll
            GateInterruptedError: If the stop event is set during the wait
        """
        previous = -1
        current = self._size(path)
        polls = 0

        while previous != current:
            previous = current
            if self.stop_event.wait(timeout=self.poll_interval):
                raise GateInterruptedError(f"Stopped while waiting for {path}")
            current = self._size(path)
            polls += 1

        logger.debug(f"{path} stable at {current} bytes after {polls} polls")
        return current
