"""Shared fixtures for archiver tests."""

import queue
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from src.archiver.config import ArchiverSettings
from src.archiver.exceptions import SourceFolderError, WatchClosedError, WatchInvalidError
from src.archiver.fs_watcher import DirectoryWatch, validate_directory
from src.archiver.models import WatchEvent

_CLOSED = object()


class ScriptedWatch(DirectoryWatch):
    """
    In-memory watch that replays scripted batches.

    Each script item is either a list of WatchEvents, returned as one
    batch, or an exception instance, raised from next_batch. Once the
    script is exhausted next_batch blocks until close().
    """

    def __init__(self, directory: Path, script: Optional[list] = None):
        super().__init__(directory)
        self._items: "queue.Queue" = queue.Queue()
        for item in script or []:
            self._items.put(item)
        self.opened = False
        self.closed = False
        self.invalid = False

    def push(self, item) -> None:
        self._items.put(item)

    def open(self) -> None:
        validate_directory(self.directory)
        self.opened = True

    def next_batch(self, timeout=None) -> List[WatchEvent]:
        if self.closed:
            raise WatchClosedError("closed")
        if self.invalid:
            raise WatchInvalidError("invalidated")
        try:
            item = self._items.get(timeout=timeout)
        except queue.Empty:
            return []
        if item is _CLOSED:
            raise WatchClosedError("closed")
        if isinstance(item, BaseException):
            raise item
        return list(item)

    def invalidate(self) -> None:
        self.invalid = True
        self._items.put(WatchInvalidError("invalidated"))

    def close(self) -> None:
        self.closed = True
        self._items.put(_CLOSED)

    @property
    def is_open(self) -> bool:
        return self.opened and not self.closed and not self.invalid


class WatchFactory:
    """Creates ScriptedWatches from a list of scripts, one per call."""

    def __init__(self, scripts: Optional[List[list]] = None, fail_on: Optional[List[int]] = None):
        self.scripts = list(scripts or [])
        self.fail_on = set(fail_on or [])
        self.watches: List[ScriptedWatch] = []
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, directory: Path) -> ScriptedWatch:
        with self._lock:
            self.calls += 1
            if self.calls in self.fail_on:
                raise SourceFolderError(f"cannot watch {directory}")
            script = self.scripts.pop(0) if self.scripts else []
            watch = ScriptedWatch(directory, script)
            self.watches.append(watch)
            return watch


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll predicate until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fast_settings():
    return ArchiverSettings(
        stability_poll_ms=50,
        restart_delay_ms=0,
        shutdown_grace_s=0.5,
        polling_interval_s=0.1,
    )


@pytest.fixture
def folders(tmp_path):
    source = tmp_path / "src"
    archive = tmp_path / "arch"
    source.mkdir()
    return source, archive
