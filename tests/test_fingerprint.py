"""Tests for fingerprint module."""

import hashlib

import pytest

from src.archiver.exceptions import FileIOError, FingerprintError, HashUnavailableError
from src.archiver.fingerprint import CHUNK_SIZE, compute_fingerprint


class TestComputeFingerprint:
    """Tests for compute_fingerprint function."""

    def test_md5_default(self, tmp_path):
        path = tmp_path / "test.txt"
        path.write_text("hello")

        assert compute_fingerprint(path) == "5d41402abc4b2a76b9719d911017c592"

    def test_other_algorithm(self, tmp_path):
        path = tmp_path / "test.txt"
        path.write_text("hello")

        assert compute_fingerprint(path, "sha256") == hashlib.sha256(b"hello").hexdigest()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")

        assert compute_fingerprint(path) == hashlib.md5(b"").hexdigest()

    def test_file_larger_than_chunk(self, tmp_path):
        data = bytes(range(256)) * (CHUNK_SIZE // 64 + 3)
        path = tmp_path / "big.bin"
        path.write_bytes(data)

        assert len(data) > CHUNK_SIZE
        assert compute_fingerprint(path) == hashlib.md5(data).hexdigest()

    def test_content_change_changes_fingerprint(self, tmp_path):
        path = tmp_path / "test.txt"
        path.write_text("a")
        first = compute_fingerprint(path)
        path.write_text("b")

        assert compute_fingerprint(path) != first

    def test_unknown_algorithm(self, tmp_path):
        path = tmp_path / "test.txt"
        path.write_text("hello")

        with pytest.raises(HashUnavailableError):
            compute_fingerprint(path, "no-such-digest")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileIOError):
            compute_fingerprint(tmp_path / "missing.txt")

    def test_directory(self, tmp_path):
        with pytest.raises(FileIOError):
            compute_fingerprint(tmp_path)

    def test_errors_share_base_class(self, tmp_path):
        with pytest.raises(FingerprintError):
            compute_fingerprint(tmp_path / "missing.txt")
