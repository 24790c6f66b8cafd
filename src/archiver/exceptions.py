"""Custom exceptions for the folder archiver package."""


class ArchiverError(Exception):
    """Base exception for all archiver errors."""
    pass


class ConfigurationError(ArchiverError):
    """A monitor configuration is invalid."""
    pass


class ConfigFileError(ConfigurationError):
    """The configuration file could not be read or parsed."""
    pass


class SourceFolderError(ConfigurationError):
    """Source folder does not exist or is not a directory."""
    pass


class ArchiveFolderError(ConfigurationError):
    """Archive folder could not be created or is not a directory."""
    pass


class WatchError(ArchiverError):
    """Error related to a directory watch."""
    pass


class WatchInvalidError(WatchError):
    """The watch can no longer deliver events and must be recreated."""
    pass


class WatchClosedError(WatchError):
    """The watch was closed while waiting for events."""
    pass


class FingerprintError(ArchiverError):
    """Content fingerprint could not be computed."""
    pass


class HashUnavailableError(FingerprintError):
    """Requested digest algorithm is not supported."""
    pass


class FileIOError(FingerprintError):
    """File could not be read."""
    pass


class StabilityError(ArchiverError):
    """Error while waiting for a file to stop growing."""
    pass


class FileVanishedError(StabilityError):
    """File disappeared while its size was being polled."""
    pass


class GateInterruptedError(StabilityError):
    """Stability wait was interrupted by shutdown."""
    pass


class SchedulerClosedError(ArchiverError):
    """Archive scheduler no longer accepts new tasks."""
    pass


class ArchiverAlreadyRunningError(ArchiverError):
    """Archiver process is already running."""
    pass
