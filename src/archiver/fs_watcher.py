"""Directory watches that report newly created entries, backed by watchdog."""

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .config import ArchiverSettings
from .exceptions import SourceFolderError, WatchClosedError, WatchInvalidError
from .models import EntryKind, WatchEvent

logger = logging.getLogger(__name__)


def classify(path: Path) -> Optional[EntryKind]:
    """
    Classify a directory entry by a stat check.

    Returns:
        FOLDER or FILE, or None if the entry no longer exists
    """
    if path.is_dir():
        return EntryKind.FOLDER
    if path.is_file():
        return EntryKind.FILE
    return None


def validate_directory(directory: Path) -> None:
    """
    Raises:
        SourceFolderError: If directory is missing or not a directory
    """
    if not directory.exists():
        raise SourceFolderError(f"Monitored path does not exist: {directory}")
    if not directory.is_dir():
        raise SourceFolderError(f"Monitored path is not a directory: {directory}")


class DirectoryWatch(ABC):
    """
    A restartable source of creation events for one directory.

    A watch is single use: once next_batch raises WatchInvalidError the
    watch is dead and a new one must be opened.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @abstractmethod
    def open(self) -> None:
        """Start watching. Raises SourceFolderError for a bad directory."""

    @abstractmethod
    def next_batch(self, timeout: Optional[float] = None) -> List[WatchEvent]:
        """
        Block until at least one change is available and return the batch.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Returns:
            Events in delivery order, possibly empty on timeout or when every
            notification in the batch was dropped

        Raises:
            WatchInvalidError: If the watch can no longer deliver events
            WatchClosedError: If the watch was closed
        """

    @abstractmethod
    def invalidate(self) -> None:
        """Mark the watch dead so the next next_batch raises WatchInvalidError."""

    @abstractmethod
    def close(self) -> None:
        """Release the watch and wake any blocked next_batch call."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the watch is open and still valid."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class CreationEventHandler(FileSystemEventHandler):
    """Handler that forwards watchdog creation events to a watch."""

    def __init__(self, watch: "ObserverDirectoryWatch"):
        super().__init__()
        self.watch = watch

    def on_created(self, event):
        self.watch._notify(Path(os.fsdecode(event.src_path)))

    def on_moved(self, event):
        # A rename into the directory is a creation under the new name
        self.watch._notify(Path(os.fsdecode(event.dest_path)))

    def on_deleted(self, event):
        if Path(os.fsdecode(event.src_path)) == self.watch.directory:
            logger.info(f"Watched directory was removed: {self.watch.directory}")
            self.watch.invalidate()


class ObserverDirectoryWatch(DirectoryWatch):
    """
    Watch backed by a watchdog observer thread.

    Notifications are buffered until next_batch collects them. When more
    than max_pending notifications are waiting the excess is dropped and
    reported as an overflow, so creation events can be lost under heavy
    load.
    """

    def __init__(self, directory: Path, settings: Optional[ArchiverSettings] = None):
        """
        Initialize the watch.

        Args:
            directory: Directory whose direct children are watched
            settings: Archiver settings (ignore patterns, buffer size)
        """
        super().__init__(Path(directory).resolve())
        self.settings = settings or ArchiverSettings()
        self._observer = None
        self._pending: Deque[Path] = deque()
        self._overflowed = False
        self._invalid = False
        self._closed = False
        self._cond = threading.Condition()

    @abstractmethod
    def _create_observer(self):
        """Create the watchdog observer for this watch."""

    def open(self) -> None:
        validate_directory(self.directory)

        with self._cond:
            if self._observer is not None:
                return
            observer = self._create_observer()
            observer.schedule(CreationEventHandler(self), str(self.directory), recursive=False)
            observer.start()
            self._observer = observer

        logger.info(f"Monitoring '{self.directory}' for new entries")

    def _notify(self, path: Path) -> None:
        """Buffer a raw notification. Called on the observer thread."""
        if path.parent != self.directory:
            return
        if self.settings.should_ignore(path):
            logger.debug(f"Ignoring {path}")
            return

        with self._cond:
            if self._closed or self._invalid:
                return
            if len(self._pending) >= self.settings.max_pending_events:
                self._overflowed = True
            else:
                self._pending.append(path)
            self._cond.notify_all()

    def _ready(self) -> bool:
        return bool(self._pending) or self._overflowed or self._closed or self._invalid

    def next_batch(self, timeout: Optional[float] = None) -> List[WatchEvent]:
        with self._cond:
            if self._closed:
                raise WatchClosedError(f"Watch on {self.directory} is closed")
            if self._invalid and not self._pending:
                raise WatchInvalidError(f"Watch on {self.directory} is no longer valid")
            if self._observer is None:
                raise WatchInvalidError(f"Watch on {self.directory} was never opened")

            self._cond.wait_for(self._ready, timeout)

            if self._closed:
                raise WatchClosedError(f"Watch on {self.directory} is closed")
            raw = list(self._pending)
            self._pending.clear()
            overflowed = self._overflowed
            self._overflowed = False

        if overflowed:
            logger.error(f"Event overflow occurred in {self.directory}. Some events might have been lost.")

        events = []
        for path in raw:
            kind = classify(path)
            if kind is None:
                logger.debug(f"Entry vanished before it could be resolved: {path}")
                continue
            events.append(WatchEvent(path=path, kind=kind, timestamp=time.time()))

        if not self._reset() and not events:
            raise WatchInvalidError(f"Watch on {self.directory} is no longer valid")
        return events

    def _reset(self) -> bool:
        """Check the watch can keep delivering events."""
        with self._cond:
            if self._invalid:
                return False
            if not self.directory.is_dir() or not self._observer.is_alive():
                self._invalid = True
                self._cond.notify_all()
                return False
            return True

    def invalidate(self) -> None:
        with self._cond:
            self._invalid = True
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            observer = self._observer
            self._cond.notify_all()

        if observer is not None:
            observer.stop()
            if observer is not threading.current_thread():
                observer.join(timeout=5.0)

    @property
    def is_open(self) -> bool:
        with self._cond:
            return self._observer is not None and not self._closed and not self._invalid


class NativeDirectoryWatch(ObserverDirectoryWatch):
    """Watch driven by the platform's native notification facility."""

    def _create_observer(self):
        return Observer()


class PollingDirectoryWatch(ObserverDirectoryWatch):
    """Watch that rescans the directory on an interval."""

    def __init__(
        self,
        directory: Path,
        settings: Optional[ArchiverSettings] = None,
        polling_interval: Optional[float] = None,
    ):
        super().__init__(directory, settings)
        if polling_interval is None:
            polling_interval = self.settings.polling_interval_s
        self.polling_interval = polling_interval

    def _create_observer(self):
        return PollingObserver(timeout=self.polling_interval)


def create_watch(directory: Path, settings: Optional[ArchiverSettings] = None) -> DirectoryWatch:
    """
    Create an unopened watch of the kind selected by settings.

    Args:
        directory: Directory to watch
        settings: Archiver settings; use_polling selects the polling variant

    Returns:
        A DirectoryWatch that still needs open()
    """
    settings = settings or ArchiverSettings()
    if settings.use_polling:
        return PollingDirectoryWatch(directory, settings)
    return NativeDirectoryWatch(directory, settings)
