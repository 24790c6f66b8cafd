"""Content fingerprints used to detect files that changed during their delay."""

import hashlib
from pathlib import Path

from .exceptions import FileIOError, HashUnavailableError

DEFAULT_ALGORITHM = "md5"
CHUNK_SIZE = 8192


def compute_fingerprint(path: Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Compute a hex digest of file contents.

    The file is read in fixed-size chunks so memory use does not depend
    on file size.

    Args:
        path: Path to the file
        algorithm: Digest algorithm name accepted by hashlib

    Returns:
        Lowercase hex digest of the file contents

    Raises:
        HashUnavailableError: If the algorithm is not supported
        FileIOError: If the file cannot be read
    """
    try:
        hasher = hashlib.new(algorithm)
    except (ValueError, TypeError) as e:
        raise HashUnavailableError(f"Digest algorithm not available: {algorithm}") from e

    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                hasher.update(chunk)
    except OSError as e:
        raise FileIOError(f"Cannot read {path}: {e}") from e

    return hasher.hexdigest()
