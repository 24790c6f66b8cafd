"""
Folder Archiver Package

Watches source folders for newly created files and, after a configurable
delay, moves, copies or deletes them, but only if their content is
unchanged since they were detected.

Features:
- One independent watch loop per monitored folder
- Write-in-progress detection by polling file size
- Content fingerprints re-checked before every archival
- Bounded restarts when a folder watch fails
- Native or polling watch backends via watchdog
"""

from .models import (
    ArchiveAction,
    TimeUnit,
    EntryKind,
    ArchivalOutcome,
    SupervisorStatus,
    MonitorConfig,
    WatchEvent,
    PendingArchival,
    SupervisorState,
)

from .config import (
    ArchiverSettings,
    load_configs,
    load_or_create,
    write_default_config,
)

from .exceptions import (
    ArchiverError,
    ConfigurationError,
    ConfigFileError,
    SourceFolderError,
    ArchiveFolderError,
    WatchError,
    WatchInvalidError,
    WatchClosedError,
    FingerprintError,
    HashUnavailableError,
    FileIOError,
    StabilityError,
    FileVanishedError,
    GateInterruptedError,
    SchedulerClosedError,
    ArchiverAlreadyRunningError,
)

from .fingerprint import compute_fingerprint
from .stability import StabilityGate
from .fs_watcher import (
    DirectoryWatch,
    NativeDirectoryWatch,
    PollingDirectoryWatch,
    create_watch,
)
from .scheduler import ArchiveScheduler, ScheduledArchival
from .supervisor import WatchSupervisor, MonitorListener, CallbackListener
from .process import ArchiverProcess


__all__ = [
    # Models
    "ArchiveAction",
    "TimeUnit",
    "EntryKind",
    "ArchivalOutcome",
    "SupervisorStatus",
    "MonitorConfig",
    "WatchEvent",
    "PendingArchival",
    "SupervisorState",
    # Config
    "ArchiverSettings",
    "load_configs",
    "load_or_create",
    "write_default_config",
    # Exceptions
    "ArchiverError",
    "ConfigurationError",
    "ConfigFileError",
    "SourceFolderError",
    "ArchiveFolderError",
    "WatchError",
    "WatchInvalidError",
    "WatchClosedError",
    "FingerprintError",
    "HashUnavailableError",
    "FileIOError",
    "StabilityError",
    "FileVanishedError",
    "GateInterruptedError",
    "SchedulerClosedError",
    "ArchiverAlreadyRunningError",
    # Components
    "compute_fingerprint",
    "StabilityGate",
    "DirectoryWatch",
    "NativeDirectoryWatch",
    "PollingDirectoryWatch",
    "create_watch",
    "ArchiveScheduler",
    "ScheduledArchival",
    "WatchSupervisor",
    "MonitorListener",
    "CallbackListener",
    # Main Process
    "ArchiverProcess",
]

__version__ = "0.1.0"
