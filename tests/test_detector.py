"""Tests for the ChangeDetector class."""

import hashlib

import pytest

from pyreposync.exceptions import HashError
from pyreposync.sync.detector import ChangeDetector
from pyreposync.sync.hierarchy import build_remote_hierarchy


@pytest.fixture(params=[True, False], ids=["parallel", "sequential"])
def detector(request, store):
    return ChangeDetector(store, "repo-1", parallel=request.param)


class TestIsModified:
    """Tests for is_modified."""

    def test_missing_local_file_is_modified(self, detector, store, tmp_path):
        """A missing local file always needs fetching."""
        assert detector.is_modified("readme.txt", tmp_path / "readme.txt") is True
        # No remote fetch is needed to decide
        assert store.fetched == []

    def test_identical_content_is_unmodified(self, detector, tmp_path):
        local = tmp_path / "readme.txt"
        local.write_bytes(b"hello readme")
        assert detector.is_modified("readme.txt", local) is False

    def test_different_content_is_modified(self, detector, tmp_path):
        local = tmp_path / "readme.txt"
        local.write_bytes(b"hello README")
        assert detector.is_modified("readme.txt", local) is True

    def test_same_size_different_content_is_modified(self, detector, tmp_path):
        """Size equality is not a shortcut for unmodified."""
        local = tmp_path / "readme.txt"
        local.write_bytes(b"hello readmX")
        assert len(local.read_bytes()) == len(b"hello readme")
        assert detector.is_modified("readme.txt", local) is True

    def test_directory_at_local_path_is_modified(self, detector, tmp_path):
        """A directory where a file is expected counts as missing."""
        (tmp_path / "readme.txt").mkdir()
        assert detector.is_modified("readme.txt", tmp_path / "readme.txt") is True

    def test_remote_failure_raises_hash_error(self, detector, store, tmp_path):
        """Hashing failures are hard errors."""
        local = tmp_path / "readme.txt"
        local.write_bytes(b"hello readme")
        store.fail_keys.add("readme.txt")

        with pytest.raises(HashError, match="readme.txt"):
            detector.is_modified("readme.txt", local)

    def test_remote_digest(self, detector):
        assert detector.remote_digest("readme.txt") == (
            hashlib.sha256(b"hello readme").hexdigest()
        )


class TestAnnotate:
    """Tests for annotate."""

    def test_annotate_marks_modified_files(self, store, tmp_path):
        (tmp_path / "readme.txt").write_bytes(b"hello readme")
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.txt").write_bytes(b"old")

        tree = build_remote_hierarchy(store.list_objects("repo-1"))
        count = ChangeDetector(store, "repo-1").annotate(tree, tmp_path)

        assert count == 1
        files = dict(tree.iter_files())
        assert files["readme.txt"].modified is False
        assert files["src/main.txt"].modified is True
