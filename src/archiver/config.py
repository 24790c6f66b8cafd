"""Configuration for the folder archiver package."""

import fnmatch
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .exceptions import ConfigFileError, ConfigurationError
from .models import ArchiveAction, MonitorConfig, TimeUnit

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "Config.json"


@dataclass
class ArchiverSettings:
    """
    Process-wide tunables shared by every monitored directory.

    Attributes:
        stability_poll_ms: Interval between size polls while a file is written
        hash_algorithm: Digest used to fingerprint file content
        max_restarts: Watch failures tolerated before a supervisor stops
        restart_delay_ms: Pause between a watch failure and reopening it
        shutdown_grace_s: How long pending archivals may still fire on shutdown
        use_polling: Use a polling observer instead of OS notifications
        polling_interval_s: Scan interval of the polling observer
        max_pending_events: Undelivered notifications kept before overflowing
        ignore_patterns: Glob patterns for entry names to ignore
    """
    stability_poll_ms: int = 500
    hash_algorithm: str = "md5"
    max_restarts: int = 2
    restart_delay_ms: int = 500
    shutdown_grace_s: float = 5.0
    use_polling: bool = False
    polling_interval_s: float = 1.0
    max_pending_events: int = 4096
    ignore_patterns: List[str] = field(default_factory=list)

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the entry name matches an ignore pattern
        """
        name = path.name
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore_patterns)


def _default_entry(source: str) -> dict:
    return MonitorConfig(
        source_folder=Path("C:/Dev/FolderMonitorTesting") / source,
        archive_folder=Path("C:/Dev/FolderMonitorTesting/ArchiveFolder"),
        action=ArchiveAction.MOVE,
        delay=5,
        unit=TimeUnit.SECONDS,
    ).to_dict()


def write_default_config(path: Path) -> None:
    """
    Write a template configuration with two example entries.

    Args:
        path: Where to write the template
    """
    template = {"configs": [_default_entry("Source 1"), _default_entry("Source 2")]}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(template, indent=4) + "\n", encoding="utf-8")


def load_configs(path: Path) -> List[MonitorConfig]:
    """
    Load monitor configurations from a JSON file.

    Expected format:

    ```json
    {
        "configs": [
            {
                "sourceFolder": "/data/incoming",
                "archiveFolder": "/data/archive",
                "action": "MOVE",
                "delay": 5,
                "timeUnit": "SECONDS"
            }
        ]
    }
    ```

    A bare list of entries is also accepted. Null or invalid entries are
    logged and skipped.

    Args:
        path: Path to the JSON configuration file

    Returns:
        List of valid MonitorConfig objects

    Raises:
        ConfigFileError: If the file cannot be read or is not valid JSON
    """
    logger.info(f"Parsing config file: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigFileError(f"Cannot read config file {path}: {e}") from e

    if isinstance(data, dict):
        entries = data.get("configs")
    else:
        entries = data
    if not isinstance(entries, list):
        raise ConfigFileError(f"Config file {path} has no 'configs' list")

    configs = []
    for index, entry in enumerate(entries):
        if entry is None:
            logger.error(f"Config file was found however config object #{index} is null.")
            continue
        try:
            configs.append(MonitorConfig.from_dict(entry))
        except ConfigurationError as e:
            logger.error(f"Skipping config #{index}: {e}")

    logger.info(f"Loaded {len(configs)} monitor configurations from {path}")
    return configs


def load_or_create(path: Path) -> Optional[List[MonitorConfig]]:
    """
    Load configurations, writing a template if the file is missing.

    Args:
        path: Path to the JSON configuration file

    Returns:
        The loaded configurations, or None if a template was written
    """
    if path.exists():
        return load_configs(path)

    write_default_config(path)
    logger.error(
        f"{path.name} file not found in {path.parent.resolve()}. "
        f"A default config file has been created. "
        f"Change the paths and other values accordingly."
    )
    return None
