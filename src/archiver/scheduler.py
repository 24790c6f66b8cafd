"""Delayed, fingerprint-checked archival of detected files."""

import errno
import heapq
import itertools
import logging
import os
import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .exceptions import FingerprintError, SchedulerClosedError
from .fingerprint import DEFAULT_ALGORITHM, compute_fingerprint
from .models import ArchivalOutcome, ArchiveAction, PendingArchival, TimeUnit

logger = logging.getLogger(__name__)


class ScheduledArchival:
    """Handle for one armed archival task."""

    def __init__(self, pending: PendingArchival, scheduler: "ArchiveScheduler"):
        self.pending = pending
        self.outcome: Optional[ArchivalOutcome] = None
        self.error: Optional[BaseException] = None
        self._scheduler = scheduler
        self._done = threading.Event()

    @property
    def path(self) -> Path:
        return self.pending.path

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> bool:
        """
        Cancel the task if it has not started yet.

        Returns:
            True if the task was cancelled
        """
        return self._scheduler._cancel(self, ArchivalOutcome.CANCELLED)

    def wait(self, timeout: Optional[float] = None) -> Optional[ArchivalOutcome]:
        """
        Wait for the task to finish.

        Returns:
            The outcome, or None if the timeout expired first
        """
        self._done.wait(timeout)
        return self.outcome

    def _finish(self, outcome: ArchivalOutcome, error: Optional[BaseException] = None) -> None:
        self.outcome = outcome
        self.error = error
        self._done.set()

    def __repr__(self) -> str:
        return f"ScheduledArchival(path={self.pending.path!s}, outcome={self.outcome})"


class ArchiveScheduler:
    """
    Runs delayed archival tasks for one monitored directory.

    Tasks live in a min-heap keyed by fire time and are executed one at a
    time by a single worker thread, so tasks fire in fire-time order rather
    than arm order. When a task fires the file is fingerprinted again and
    the action only runs if the content is unchanged.

    Arming a path that already has a task outstanding replaces that task.
    """

    def __init__(
        self,
        archive_folder: Path,
        name: Optional[str] = None,
        fingerprint_algorithm: str = DEFAULT_ALGORITHM,
        on_outcome: Optional[Callable[[ScheduledArchival], None]] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            archive_folder: Destination directory for MOVE and COPY
            name: Name used for the worker thread
            fingerprint_algorithm: Digest used to re-check content on fire
            on_outcome: Called on the worker thread when a task finishes
        """
        self.archive_folder = Path(archive_folder)
        self.name = name or self.archive_folder.name
        self.fingerprint_algorithm = fingerprint_algorithm
        self.on_outcome = on_outcome

        self._heap: List[Tuple[float, int, ScheduledArchival]] = []
        self._by_path: Dict[Path, ScheduledArchival] = {}
        self._sequence = itertools.count()
        self._cond = threading.Condition()
        self._closed = False
        self._abandoned = False
        self._running: Optional[ScheduledArchival] = None
        self._worker: Optional[threading.Thread] = None

    def arm(
        self,
        path: Path,
        fingerprint: str,
        delay: float,
        unit: TimeUnit,
        action: ArchiveAction,
    ) -> ScheduledArchival:
        """
        Schedule an archival of path after the delay.

        Args:
            path: File to archive
            fingerprint: Content fingerprint taken at detection
            delay: Delay amount
            unit: Unit of the delay
            action: Action to perform if the content is unchanged

        Returns:
            Handle for the armed task

        Raises:
            SchedulerClosedError: If the scheduler has been shut down
        """
        fire_at = time.monotonic() + unit.to_seconds(delay)
        pending = PendingArchival(
            path=path,
            fingerprint=fingerprint,
            action=action,
            archive_folder=self.archive_folder,
            armed_at=time.time(),
            fire_at=fire_at,
        )

        with self._cond:
            if self._closed:
                raise SchedulerClosedError(f"Scheduler {self.name} is shut down")

            replaced = self._by_path.pop(path, None)
            if replaced is not None:
                replaced._finish(ArchivalOutcome.REPLACED)

            task = ScheduledArchival(pending, self)
            heapq.heappush(self._heap, (fire_at, next(self._sequence), task))
            self._by_path[path] = task
            self._ensure_worker()
            self._cond.notify_all()

        if replaced is not None:
            logger.info(f"Replacing pending {action.value} for '{path.name}'")
            self._report(replaced)

        when = f"{delay} {unit.value.lower()}"
        if action == ArchiveAction.DELETE:
            logger.info(f"Scheduling {action.value} for '{path.name}' in {when}.")
        else:
            logger.info(f"Scheduling {action.value} for '{path.name}' to archive in {when}.")
        return task

    def _ensure_worker(self) -> None:
        if self._worker is None:
            self._worker = threading.Thread(
                target=self._run,
                name=f"ArchiveScheduler-{self.name}",
                daemon=True,
            )
            self._worker.start()

    def _cancel(self, task: ScheduledArchival, outcome: ArchivalOutcome) -> bool:
        with self._cond:
            if task.done or task is self._running:
                return False
            if self._by_path.get(task.path) is task:
                del self._by_path[task.path]
            task._finish(outcome)
            self._cond.notify_all()

        self._report(task)
        return True

    def _next_due(self) -> Optional[ScheduledArchival]:
        """Wait for the next due task. Called with the lock held."""
        while True:
            if self._abandoned:
                return None
            while self._heap and self._heap[0][2].done:
                heapq.heappop(self._heap)
            if not self._heap:
                if self._closed:
                    return None
                self._cond.wait()
                continue

            remaining = self._heap[0][0] - time.monotonic()
            if remaining <= 0:
                _, _, task = heapq.heappop(self._heap)
                return task
            self._cond.wait(remaining)

    def _run(self) -> None:
        """Worker loop that fires due tasks."""
        logger.debug(f"Archive worker {self.name} started")

        while True:
            with self._cond:
                task = self._next_due()
                if task is None:
                    break
                if self._by_path.get(task.path) is task:
                    del self._by_path[task.path]
                self._running = task

            try:
                try:
                    outcome = self._execute(task.pending)
                    task._finish(outcome)
                except Exception as e:
                    logger.error(f"Unexpected error archiving '{task.path.name}': {e}")
                    task._finish(ArchivalOutcome.FAILED, e)
                self._report(task)
            finally:
                with self._cond:
                    self._running = None
                    self._cond.notify_all()

        logger.debug(f"Archive worker {self.name} stopped")

    def _execute(self, pending: PendingArchival) -> ArchivalOutcome:
        path = pending.path
        action = pending.action

        if not path.exists():
            logger.info(f"[SKIPPED] File '{path.name}' no longer exists in source, skipping {action.value}.")
            return ArchivalOutcome.SKIPPED_MISSING

        try:
            current = compute_fingerprint(path, self.fingerprint_algorithm)
        except FingerprintError as e:
            logger.warning(f"[SKIPPED] Cannot fingerprint '{path.name}', skipping {action.value}: {e}")
            return ArchivalOutcome.SKIPPED_UNREADABLE

        if current != pending.fingerprint:
            logger.info(f"File hash for '{path.name}' doesn't match original. Skipping file.")
            return ArchivalOutcome.SKIPPED_CHANGED

        try:
            self._perform(pending)
        except OSError as e:
            logger.error(f"[ERROR] Failed to {action.value} '{path.name}': {e}")
            return ArchivalOutcome.FAILED
        return ArchivalOutcome.ARCHIVED

    def _perform(self, pending: PendingArchival) -> None:
        path = pending.path
        destination = pending.destination

        if pending.action == ArchiveAction.MOVE:
            try:
                os.replace(path, destination)
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                # Cross-device: copy then remove the source
                shutil.copy2(path, destination)
                path.unlink()
            logger.info(f"[MOVED] Successfully archived '{path.name}' to '{destination.resolve()}'")

        elif pending.action == ArchiveAction.COPY:
            shutil.copy2(path, destination)
            logger.info(f"[COPY] Successfully archived '{path.name}' to '{destination.resolve()}'")

        elif pending.action == ArchiveAction.DELETE:
            path.unlink(missing_ok=True)
            logger.info(f"[DELETE] Successfully deleted '{path.name}'")

    def _report(self, task: ScheduledArchival) -> None:
        if self.on_outcome is None:
            return
        try:
            self.on_outcome(task)
        except Exception as e:
            logger.error(f"Outcome callback failed for '{task.path.name}': {e}")

    def shutdown(self, grace: float = 5.0) -> int:
        """
        Stop accepting tasks and drain for a bounded grace period.

        Tasks that come due within the grace period still run. Whatever is
        left afterwards is cancelled without running.

        Args:
            grace: Seconds to wait for outstanding tasks

        Returns:
            Number of tasks abandoned
        """
        deadline = time.monotonic() + grace

        with self._cond:
            if self._abandoned:
                return 0
            self._closed = True
            self._cond.notify_all()

            worker = self._worker
            while worker is not None and worker.is_alive() and (self._live_count() or self._running):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)

            self._abandoned = True
            abandoned = [task for _, _, task in self._heap if not task.done]
            self._heap.clear()
            self._by_path.clear()
            for task in abandoned:
                task._finish(ArchivalOutcome.CANCELLED)
            self._cond.notify_all()

        for task in abandoned:
            self._report(task)

        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=max(deadline - time.monotonic(), 0.1))
            if worker.is_alive():
                logger.error(f"Archive worker {self.name} still busy after shutdown grace period")

        if abandoned:
            logger.error(
                f"Scheduler {self.name} did not finish in time, "
                f"abandoned {len(abandoned)} pending archival(s)"
            )
        return len(abandoned)

    def _live_count(self) -> int:
        return sum(1 for _, _, task in self._heap if not task.done)

    def pending_count(self) -> int:
        """Number of armed tasks that have not fired yet."""
        with self._cond:
            return self._live_count()

    def pending_paths(self) -> List[Path]:
        """Paths with a task outstanding."""
        with self._cond:
            return list(self._by_path.keys())

    @property
    def is_closed(self) -> bool:
        return self._closed
