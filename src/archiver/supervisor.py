"""Supervision of one monitored directory: watch loop, restarts, archival."""

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from .config import ArchiverSettings
from .exceptions import (
    ArchiveFolderError,
    ArchiverAlreadyRunningError,
    ConfigurationError,
    FileVanishedError,
    FingerprintError,
    GateInterruptedError,
    SchedulerClosedError,
    SourceFolderError,
    WatchClosedError,
    WatchInvalidError,
)
from .fingerprint import compute_fingerprint
from .fs_watcher import DirectoryWatch, create_watch
from .models import EntryKind, MonitorConfig, SupervisorState, SupervisorStatus, WatchEvent
from .scheduler import ArchiveScheduler
from .stability import StabilityGate

logger = logging.getLogger(__name__)


class MonitorListener:
    """
    Receives notifications from a watch supervisor.

    Listeners are called synchronously on the watch loop thread, in the
    order they were registered. A slow listener delays processing of every
    later event in that directory.
    """

    def on_detected(self, path: Path, kind: EntryKind) -> None:
        """Called for every stable new file and every new folder."""

    def on_monitor_failed(self, config: MonitorConfig) -> None:
        """Called once when the watch has failed for good."""


class CallbackListener(MonitorListener):
    """Adapts plain callables to the listener interface."""

    def __init__(
        self,
        on_detected: Optional[Callable[[Path, EntryKind], None]] = None,
        on_failed: Optional[Callable[[MonitorConfig], None]] = None,
    ):
        self._on_detected = on_detected
        self._on_failed = on_failed

    def on_detected(self, path: Path, kind: EntryKind) -> None:
        if self._on_detected:
            self._on_detected(path, kind)

    def on_monitor_failed(self, config: MonitorConfig) -> None:
        if self._on_failed:
            self._on_failed(config)


class WatchSupervisor:
    """
    Keeps one directory watch alive and feeds its files to a scheduler.

    Lifecycle: STARTING -> RUNNING -> RESTARTING -> RUNNING | STOPPED.
    Every watch failure counts towards settings.max_restarts; once the
    count is reached the supervisor stops for good and notifies listeners.

    Events in one directory are handled one at a time: while a file is
    still being written, later events in the same directory wait.
    """

    def __init__(
        self,
        config: MonitorConfig,
        settings: Optional[ArchiverSettings] = None,
        watch_factory: Optional[Callable[[Path], DirectoryWatch]] = None,
        scheduler: Optional[ArchiveScheduler] = None,
        gate: Optional[StabilityGate] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            config: The directory to monitor and what to do with its files
            settings: Archiver settings
            watch_factory: Creates an unopened watch for a directory
            scheduler: Scheduler for delayed archivals
            gate: Stability gate used before fingerprinting
        """
        self.config = config
        self.settings = settings or ArchiverSettings()
        self._watch_factory = watch_factory or (lambda directory: create_watch(directory, self.settings))
        self._stop_event = threading.Event()
        self._gate = gate or StabilityGate(
            poll_interval=self.settings.stability_poll_ms / 1000.0,
            stop_event=self._stop_event,
        )
        self._scheduler = scheduler or ArchiveScheduler(
            config.archive_folder,
            name=config.source_folder.name,
            fingerprint_algorithm=self.settings.hash_algorithm,
        )

        self._listeners: List[MonitorListener] = []
        self._listeners_lock = threading.Lock()
        self._state = SupervisorState()
        self._lock = threading.Lock()
        self._watch: Optional[DirectoryWatch] = None
        self._thread: Optional[threading.Thread] = None
        self._started = False

    @property
    def name(self) -> str:
        return str(self.config.source_folder)

    # Listeners

    def add_listener(self, listener: MonitorListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: MonitorListener) -> bool:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False

    def _notify_detected(self, path: Path, kind: EntryKind) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener.on_detected(path, kind)
            except Exception as e:
                logger.error(f"Listener {listener!r} failed on {path}: {e}")

    def _notify_failed(self) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener.on_monitor_failed(self.config)
            except Exception as e:
                logger.error(f"Listener {listener!r} failed on monitor failure: {e}")

    # State

    def _set_status(self, status: SupervisorStatus) -> None:
        with self._lock:
            self._state.status = status

    @property
    def state(self) -> SupervisorState:
        """A copy of the current state."""
        with self._lock:
            return self._state.copy()

    @property
    def status(self) -> SupervisorStatus:
        with self._lock:
            return self._state.status

    @property
    def restart_count(self) -> int:
        with self._lock:
            return self._state.restart_count

    @property
    def is_running(self) -> bool:
        return self.status in (SupervisorStatus.RUNNING, SupervisorStatus.RESTARTING)

    @property
    def scheduler(self) -> ArchiveScheduler:
        return self._scheduler

    # Lifecycle

    def _validate(self) -> None:
        source = self.config.source_folder
        if not source.exists() or not source.is_dir():
            raise SourceFolderError(f"Monitored path is not a valid directory: {source}")

        archive = self.config.archive_folder
        if archive.exists():
            if not archive.is_dir():
                raise ArchiveFolderError(f"Archive path exists but is not a directory: {archive}")
            return
        try:
            archive.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveFolderError(f"Failed to create archive directory: {archive}: {e}") from e
        logger.info(f"Created archive directory: {archive.resolve()}")

    def _open_watch(self) -> DirectoryWatch:
        watch = self._watch_factory(self.config.source_folder)
        try:
            watch.open()
        except OSError as e:
            raise SourceFolderError(f"Cannot watch {self.config.source_folder}: {e}") from e
        return watch

    def start(self) -> None:
        """
        Validate the configuration and open the watch.

        Raises:
            SourceFolderError: If the source folder is missing or not a directory
            ArchiveFolderError: If the archive folder cannot be used
            ArchiverAlreadyRunningError: If already started
        """
        with self._lock:
            if self._started:
                raise ArchiverAlreadyRunningError(f"Supervisor for {self.name} already started")
            self._started = True
            self._state.status = SupervisorStatus.STARTING

        try:
            self._validate()
            self._watch = self._open_watch()
        except ConfigurationError as e:
            logger.error(f"Cannot monitor '{self.name}': {e}")
            self._set_status(SupervisorStatus.FAILED)
            raise

        self._set_status(SupervisorStatus.RUNNING)
        logger.info(
            f"Files will be archived from '{self.config.source_folder.resolve()}' "
            f"to '{self.config.archive_folder.resolve()}' after "
            f"{self.config.delay} {self.config.unit.value.lower()} ({self.config.action.value})."
        )

    def start_async(self) -> None:
        """
        Start the watch loop on a background thread.

        Validation happens on the calling thread so configuration errors
        are raised here.
        """
        self.start()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"WatchSupervisor-{self.config.source_folder.name}",
            daemon=True,
        )
        self._thread.start()

    def run(self) -> None:
        """Start if needed and run the watch loop on the calling thread."""
        with self._lock:
            started = self._started
        if not started:
            self.start()
        self._loop()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            watch = self._watch
            try:
                batch = watch.next_batch()
            except WatchClosedError:
                break
            except WatchInvalidError as e:
                if not self._handle_failure(e):
                    break
                continue

            for event in batch:
                if self._stop_event.is_set():
                    break
                self._process_event(event)

        logger.debug(f"Watch loop for '{self.name}' exited")

    def _handle_failure(self, error: Exception) -> bool:
        """
        Count a watch failure and restart the watch if allowed.

        Returns:
            True if the watch was reopened
        """
        with self._lock:
            self._state.restart_count += 1
            count = self._state.restart_count
        max_restarts = self.settings.max_restarts

        logger.error(f"Watch on '{self.name}' failed ({count}/{max_restarts}): {error}")
        self._close_watch()

        if count >= max_restarts:
            self._set_status(SupervisorStatus.STOPPED)
            logger.error(f"Giving up on '{self.name}' after {count} failures. Restart the process to resume.")
            self._scheduler.shutdown(self.settings.shutdown_grace_s)
            self._notify_failed()
            return False

        self._set_status(SupervisorStatus.RESTARTING)
        if self._stop_event.wait(timeout=self.settings.restart_delay_ms / 1000.0):
            return False

        try:
            watch = self._open_watch()
        except ConfigurationError as e:
            return self._handle_failure(e)

        with self._lock:
            self._watch = watch
        # stop() may have closed the previous watch while this one was opening
        if self._stop_event.is_set():
            watch.close()
            return False

        self._set_status(SupervisorStatus.RUNNING)
        logger.info(f"Restarted monitoring '{self.name}'")
        return True

    def _process_event(self, event: WatchEvent) -> None:
        path = event.path

        if event.kind == EntryKind.FOLDER:
            logger.info(f"[CREATED] Detected new directory (will not {self.config.action.value}): {path}")
            self._notify_detected(path, EntryKind.FOLDER)
            return

        logger.info(f"[CREATED] Detected new file: {path}")
        try:
            self._gate.wait(path)
        except FileVanishedError as e:
            logger.info(f"File vanished before it finished writing: {e}")
            return
        except GateInterruptedError:
            return

        self._notify_detected(path, EntryKind.FILE)

        try:
            fingerprint = compute_fingerprint(path, self.settings.hash_algorithm)
        except FingerprintError as e:
            logger.warning(f"No hash for '{path.name}', skipping: {e}")
            return

        try:
            self._scheduler.arm(path, fingerprint, self.config.delay, self.config.unit, self.config.action)
        except SchedulerClosedError:
            logger.debug(f"Scheduler closed, not arming '{path.name}'")

    def _close_watch(self) -> None:
        with self._lock:
            watch = self._watch
        if watch is not None:
            watch.close()

    def stop(self, grace: Optional[float] = None) -> int:
        """
        Stop watching and drain the scheduler.

        Args:
            grace: Seconds pending archivals may still fire; defaults to
                settings.shutdown_grace_s

        Returns:
            Number of pending archivals abandoned
        """
        if grace is None:
            grace = self.settings.shutdown_grace_s

        self._stop_event.set()
        self._gate.stop_event.set()
        self._close_watch()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        # The loop may have reopened the watch before it saw the stop event
        self._close_watch()

        abandoned = self._scheduler.shutdown(grace)

        with self._lock:
            if self._state.status not in (SupervisorStatus.FAILED, SupervisorStatus.STOPPED):
                self._state.status = SupervisorStatus.STOPPED
        logger.info(f"Stopped monitoring '{self.name}'")
        return abandoned

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a background watch loop to exit.

        Returns:
            True if the loop has exited
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
