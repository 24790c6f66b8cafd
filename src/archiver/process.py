"""Main archiver process orchestrator."""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .config import ArchiverSettings
from .exceptions import ArchiverAlreadyRunningError, ConfigurationError
from .models import MonitorConfig, SupervisorState
from .supervisor import MonitorListener, WatchSupervisor

logger = logging.getLogger(__name__)


class ArchiverProcess:
    """
    Runs one watch supervisor per monitored directory.

    Supervisors are independent: a directory whose configuration is
    invalid, or whose watch fails for good, does not affect the others.
    """

    def __init__(
        self,
        configs: List[MonitorConfig],
        settings: Optional[ArchiverSettings] = None,
        listeners: Optional[List[MonitorListener]] = None,
    ):
        """
        Initialize the archiver process.

        Args:
            configs: Directories to monitor
            settings: Archiver settings shared by all supervisors
            listeners: Listeners attached to every supervisor
        """
        self.configs = list(configs)
        self.settings = settings or ArchiverSettings()
        self.listeners = list(listeners or [])

        self._supervisors: List[WatchSupervisor] = []
        self.failed_configs: Dict[MonitorConfig, ConfigurationError] = {}
        self._running = False
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    def _create_supervisor(self, config: MonitorConfig) -> WatchSupervisor:
        supervisor = WatchSupervisor(config, self.settings)
        for listener in self.listeners:
            supervisor.add_listener(listener)
        return supervisor

    def start_async(self) -> None:
        """
        Start every supervisor in the background.

        Raises:
            ArchiverAlreadyRunningError: If already running
        """
        with self._lock:
            if self._running:
                raise ArchiverAlreadyRunningError("Archiver is already running")
            self._running = True
            self._stop_event.clear()

        self._supervisors = []
        self.failed_configs = {}
        for config in self.configs:
            supervisor = self._create_supervisor(config)
            try:
                supervisor.start_async()
            except ConfigurationError as e:
                logger.error(f"Not monitoring '{config.source_folder}': {e}")
                self.failed_configs[config] = e
                continue
            self._supervisors.append(supervisor)

        logger.info(f"Archiver running with {len(self._supervisors)} of {len(self.configs)} monitor(s)")

    def start(self) -> None:
        """
        Start every supervisor and block until stop() is called or no
        supervisor is left running.

        Raises:
            ArchiverAlreadyRunningError: If already running
        """
        self.start_async()
        try:
            while not self._stop_event.is_set():
                if not any(s.is_running for s in self._supervisors):
                    logger.info("No directories left to monitor")
                    break
                self._stop_event.wait(timeout=0.5)
        except KeyboardInterrupt:
            pass
        finally:
            self._shutdown()

    def stop(self, grace: Optional[float] = None) -> None:
        """
        Stop every supervisor.

        Args:
            grace: Seconds pending archivals may still fire
        """
        self._stop_event.set()
        self._shutdown(grace)

    def _shutdown(self, grace: Optional[float] = None) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False

        # Supervisors drain in parallel under the same grace period
        threads = [
            threading.Thread(
                target=self._stop_supervisor,
                args=(supervisor, grace),
                name=f"Stop-{supervisor.config.source_folder.name}",
            )
            for supervisor in self._supervisors
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def _stop_supervisor(self, supervisor: WatchSupervisor, grace: Optional[float]) -> None:
        try:
            supervisor.stop(grace)
        except Exception as e:
            logger.error(f"Error stopping '{supervisor.name}': {e}")

    def get_states(self) -> Dict[Path, SupervisorState]:
        """Current state of every started supervisor, keyed by source folder."""
        return {s.config.source_folder: s.state for s in self._supervisors}

    @property
    def supervisors(self) -> List[WatchSupervisor]:
        return list(self._supervisors)

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
