"""Data models for the folder archiver package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import time

from .exceptions import ConfigurationError


class ArchiveAction(Enum):
    """What to do with a file once its delay has elapsed."""
    MOVE = "MOVE"
    COPY = "COPY"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: Any) -> "ArchiveAction":
        """Parse an action name case-insensitively."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ConfigurationError(f"Unknown action: {value!r}") from None


class TimeUnit(Enum):
    """Units a delay can be expressed in."""
    MILLISECONDS = "MILLISECONDS"
    SECONDS = "SECONDS"
    MINUTES = "MINUTES"
    HOURS = "HOURS"
    DAYS = "DAYS"

    @classmethod
    def parse(cls, value: Any) -> "TimeUnit":
        """Parse a unit name case-insensitively."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ConfigurationError(f"Unknown time unit: {value!r}") from None

    def to_seconds(self, amount: float) -> float:
        """Convert an amount of this unit to seconds."""
        return amount * _SECONDS_PER_UNIT[self]


_SECONDS_PER_UNIT = {
    TimeUnit.MILLISECONDS: 0.001,
    TimeUnit.SECONDS: 1.0,
    TimeUnit.MINUTES: 60.0,
    TimeUnit.HOURS: 3600.0,
    TimeUnit.DAYS: 86400.0,
}


class EntryKind(Enum):
    """Kind of a newly created directory entry."""
    FILE = "file"
    FOLDER = "folder"


class ArchivalOutcome(Enum):
    """How an armed archival task ended."""
    ARCHIVED = "archived"
    SKIPPED_MISSING = "skipped_missing"
    SKIPPED_UNREADABLE = "skipped_unreadable"
    SKIPPED_CHANGED = "skipped_changed"
    FAILED = "failed"
    REPLACED = "replaced"
    CANCELLED = "cancelled"


class SupervisorStatus(Enum):
    """Lifecycle states of a watch supervisor."""
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class MonitorConfig:
    """
    Configuration for one monitored directory.

    Attributes:
        source_folder: Directory watched for new entries
        archive_folder: Directory files are moved or copied into
        action: What to do once the delay elapses
        delay: Delay amount, a positive integer
        unit: Unit of the delay
    """
    source_folder: Path
    archive_folder: Path
    action: ArchiveAction
    delay: int
    unit: TimeUnit = TimeUnit.SECONDS

    def __post_init__(self):
        if not isinstance(self.source_folder, Path):
            object.__setattr__(self, "source_folder", Path(self.source_folder))
        if not isinstance(self.archive_folder, Path):
            object.__setattr__(self, "archive_folder", Path(self.archive_folder))
        if not isinstance(self.action, ArchiveAction):
            raise ConfigurationError(f"action must be an ArchiveAction: {self.action!r}")
        if not isinstance(self.unit, TimeUnit):
            raise ConfigurationError(f"unit must be a TimeUnit: {self.unit!r}")
        if isinstance(self.delay, bool) or not isinstance(self.delay, int):
            raise ConfigurationError(f"delay must be an integer: {self.delay!r}")
        if self.delay <= 0:
            raise ConfigurationError(f"delay must be positive: {self.delay}")

    @property
    def delay_seconds(self) -> float:
        """The configured delay in seconds."""
        return self.unit.to_seconds(self.delay)

    def to_dict(self) -> dict:
        """Convert to the on-disk JSON shape."""
        return {
            "sourceFolder": str(self.source_folder),
            "archiveFolder": str(self.archive_folder),
            "action": self.action.value,
            "delay": self.delay,
            "timeUnit": self.unit.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MonitorConfig":
        """
        Create from the on-disk JSON shape.

        Accepts either ``unit`` or ``timeUnit`` for the delay unit.

        Raises:
            ConfigurationError: If a field is missing or invalid
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"config entry must be an object: {data!r}")
        missing = [k for k in ("sourceFolder", "archiveFolder", "action", "delay") if k not in data]
        if missing:
            raise ConfigurationError(f"config entry missing fields: {', '.join(missing)}")
        unit = data.get("unit", data.get("timeUnit", TimeUnit.SECONDS.value))
        return cls(
            source_folder=Path(data["sourceFolder"]),
            archive_folder=Path(data["archiveFolder"]),
            action=ArchiveAction.parse(data["action"]),
            delay=data["delay"],
            unit=TimeUnit.parse(unit),
        )


@dataclass(frozen=True)
class WatchEvent:
    """
    A newly created entry detected in a watched directory.

    Attributes:
        path: Full path of the new entry
        kind: Whether the entry is a file or a folder
        timestamp: Unix timestamp when the entry was resolved
    """
    path: Path
    kind: EntryKind
    timestamp: float = field(default_factory=time.time)


@dataclass
class PendingArchival:
    """
    A delayed archival waiting for its fire time.

    Attributes:
        path: File to archive
        fingerprint: Content fingerprint taken at detection
        action: Action to perform when the task fires
        archive_folder: Destination directory for MOVE and COPY
        armed_at: Unix timestamp when the task was armed
        fire_at: Monotonic clock value at which the task fires
    """
    path: Path
    fingerprint: str
    action: ArchiveAction
    archive_folder: Path
    armed_at: float = field(default_factory=time.time)
    fire_at: float = 0.0

    @property
    def destination(self) -> Optional[Path]:
        """Where MOVE and COPY put the file; None for DELETE."""
        if self.action == ArchiveAction.DELETE:
            return None
        return self.archive_folder / self.path.name


@dataclass
class SupervisorState:
    """
    Restart bookkeeping for one watch supervisor.

    Attributes:
        restart_count: Number of watch failures seen so far
        status: Current lifecycle status
    """
    restart_count: int = 0
    status: SupervisorStatus = SupervisorStatus.STARTING

    def copy(self) -> "SupervisorState":
        return SupervisorState(self.restart_count, self.status)
