"""Tests for hierarchy construction."""

import os
import socket
from unittest.mock import Mock

import pytest

from pyreposync.exceptions import (
    LocalIOError,
    NotFoundError,
    RemoteFetchError,
    UnsupportedFileTypeError,
)
from pyreposync.models import FileNode, FolderNode, NodeKind
from pyreposync.sync.hierarchy import (
    HierarchyBuilder,
    build_local_hierarchy,
    build_remote_hierarchy,
)


def _shape(node):
    """Reduce a tree to (name, kind, sorted children) ignoring paths and order."""
    if isinstance(node, FolderNode):
        return (
            node.kind,
            sorted((child.name, _shape(child)) for child in node.children),
        )
    return (node.kind, None)


class TestBuildRemoteHierarchy:
    """Tests for build_remote_hierarchy."""

    def test_root_has_empty_path(self):
        """Test the root is a folder with an empty path."""
        tree = build_remote_hierarchy(["a.txt"], root_name="Repo")
        assert isinstance(tree, FolderNode)
        assert tree.path == ""
        assert tree.name == "Repo"

    def test_nested_keys(self):
        """Test intermediate folders are synthesized from prefixes."""
        tree = build_remote_hierarchy(["a.txt", "b/c.txt", "b/d/e.txt"])

        assert [child.name for child in tree.children] == ["a.txt", "b"]
        b = tree.get_child("b")
        assert isinstance(b, FolderNode)
        assert b.path == "b"
        d = b.get_child("d")
        assert isinstance(d, FolderNode)
        assert d.path == "b/d"
        e = d.get_child("e.txt")
        assert isinstance(e, FileNode)
        assert e.path == "b/d/e.txt"

    def test_file_path_is_original_key(self):
        """Test file nodes keep the full original key."""
        tree = build_remote_hierarchy(["docs/guide/intro.md"])
        [(rel_path, node)] = list(tree.iter_files())
        assert rel_path == "docs/guide/intro.md"
        assert node.path == "docs/guide/intro.md"
        assert node.kind == NodeKind.FILE
        assert not hasattr(node, "children")

    def test_folder_reused_across_keys(self):
        """Test a folder is created once even when keys are interleaved."""
        tree = build_remote_hierarchy(["b/1.txt", "a.txt", "b/2.txt"])
        assert [child.name for child in tree.children] == ["b", "a.txt"]
        b = tree.get_child("b")
        assert [child.name for child in b.children] == ["1.txt", "2.txt"]

    def test_key_order_does_not_change_shape(self):
        """Test processing order affects insertion order only."""
        keys = ["x/y/z.txt", "a.txt", "x/w.txt", "b/c.txt"]
        forward = build_remote_hierarchy(keys)
        backward = build_remote_hierarchy(reversed(keys))
        assert _shape(forward) == _shape(backward)

    def test_children_unique_by_name(self):
        """Test duplicate keys do not create duplicate children."""
        tree = build_remote_hierarchy(["a.txt", "a.txt", "b/c.txt", "b/c.txt"])
        assert [child.name for child in tree.children] == ["a.txt", "b"]
        assert len(tree.get_child("b").children) == 1

    def test_folder_placeholder_creates_empty_folder(self):
        """Test a zero-length key ending in / creates a folder only."""
        tree = build_remote_hierarchy(["empty/", "photos/2024/"])
        empty = tree.get_child("empty")
        assert isinstance(empty, FolderNode)
        assert empty.children == []
        photos = tree.get_child("photos")
        assert isinstance(photos.get_child("2024"), FolderNode)
        assert list(tree.iter_files()) == []

    def test_empty_segments_skipped(self):
        """Test leading and doubled separators are ignored."""
        tree = build_remote_hierarchy(["/a//b.txt"])
        a = tree.get_child("a")
        assert isinstance(a, FolderNode)
        assert a.get_child("b.txt").path == "/a//b.txt"

    def test_relative_segments_rejected(self):
        """Test keys with . or .. segments never enter the tree."""
        tree = build_remote_hierarchy(["../up.txt", "a/./b.txt", "ok.txt"])

        assert [child.name for child in tree.children] == ["ok.txt"]
        assert set(tree.rejected_keys) == {"../up.txt", "a/./b.txt"}
        error = tree.rejected_keys["../up.txt"]
        assert isinstance(error, RemoteFetchError)
        assert error.key == "../up.txt"

    def test_nul_key_rejected(self):
        tree = build_remote_hierarchy(["bad\x00name.txt"])
        assert tree.children == []
        assert list(tree.rejected_keys) == ["bad\x00name.txt"]

    def test_file_folder_conflict_recorded(self):
        """Test the later of two colliding keys is recorded, not dropped."""
        folder_first = build_remote_hierarchy(["a/b.txt", "a"])
        assert isinstance(folder_first.get_child("a"), FolderNode)
        assert list(folder_first.rejected_keys) == ["a"]

        file_first = build_remote_hierarchy(["a", "a/b.txt"])
        assert isinstance(file_first.get_child("a"), FileNode)
        assert list(file_first.rejected_keys) == ["a/b.txt"]

    def test_duplicate_keys_not_rejected(self):
        tree = build_remote_hierarchy(["a.txt", "a.txt"])
        assert tree.rejected_keys == {}

    def test_empty_listing(self):
        """Test an empty container yields an empty root."""
        tree = build_remote_hierarchy([])
        assert tree.children == []
        assert tree.count() == (0, 0)


class TestBuildLocalHierarchy:
    """Tests for build_local_hierarchy."""

    def test_directory_tree(self, tmp_path):
        """Test files and subfolders are represented."""
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "c.txt").write_text("c")

        tree = build_local_hierarchy(tmp_path)

        assert isinstance(tree, FolderNode)
        assert tree.path == str(tmp_path)
        assert tree.name == tmp_path.name
        names = {child.name: child for child in tree.children}
        assert isinstance(names["a.txt"], FileNode)
        assert names["a.txt"].path == str(tmp_path / "a.txt")
        assert isinstance(names["b"], FolderNode)
        assert [child.name for child in names["b"].children] == ["c.txt"]

    def test_single_file(self, tmp_path):
        """Test a file path yields a leaf node."""
        path = tmp_path / "only.txt"
        path.write_text("x")
        node = build_local_hierarchy(path)
        assert isinstance(node, FileNode)
        assert node.name == "only.txt"
        assert node.modified is False

    def test_relative_path_made_absolute(self, tmp_path, monkeypatch):
        """Test relative input paths are resolved."""
        (tmp_path / "a.txt").write_text("a")
        monkeypatch.chdir(tmp_path)
        tree = build_local_hierarchy(".")
        assert os.path.isabs(tree.path)

    def test_missing_path(self, tmp_path):
        """Test NotFoundError for a missing path."""
        with pytest.raises(NotFoundError, match="does not exist"):
            build_local_hierarchy(tmp_path / "missing")

    def test_symlinks_skipped(self, tmp_path):
        """Test symlinked children are not part of the tree."""
        (tmp_path / "real.txt").write_text("x")
        (tmp_path / "link.txt").symlink_to(tmp_path / "real.txt")

        tree = build_local_hierarchy(tmp_path)
        assert [child.name for child in tree.children] == ["real.txt"]

    def test_symlinks_followed(self, tmp_path):
        """Test follow_symlinks resolves links to their targets."""
        (tmp_path / "real.txt").write_text("x")
        (tmp_path / "link.txt").symlink_to(tmp_path / "real.txt")

        tree = build_local_hierarchy(tmp_path, follow_symlinks=True)
        assert sorted(child.name for child in tree.children) == [
            "link.txt",
            "real.txt",
        ]

    def test_symlink_root_rejected(self, tmp_path):
        """Test a symlink as root raises UnsupportedFileTypeError."""
        (tmp_path / "real").mkdir()
        link = tmp_path / "link"
        link.symlink_to(tmp_path / "real")

        with pytest.raises(UnsupportedFileTypeError):
            build_local_hierarchy(link)

    def test_socket_skipped(self, tmp_path):
        """Test special files are skipped."""
        sock_path = tmp_path / "s.sock"
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(sock_path))
            (tmp_path / "a.txt").write_text("a")
            tree = build_local_hierarchy(tmp_path)
        finally:
            sock.close()
        assert [child.name for child in tree.children] == ["a.txt"]

    def test_unreadable_directory(self, tmp_path):
        """Test listing failures raise LocalIOError."""
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(
                "pyreposync.sync.hierarchy.os.listdir",
                Mock(side_effect=PermissionError("denied")),
            )
            with pytest.raises(LocalIOError, match="denied"):
                build_local_hierarchy(tmp_path)


class TestHierarchyRoundTrip:
    """Local and remote builds of the same content have the same shape."""

    def test_local_and_remote_shapes_match(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "c.txt").write_text("c")

        local = build_local_hierarchy(tmp_path)
        remote = build_remote_hierarchy(["a.txt", "b/c.txt"])

        assert _shape(local) == _shape(remote)


class TestHierarchyBuilder:
    """Tests for the HierarchyBuilder facade."""

    def test_remote_uses_friendly_name(self, store):
        """Test the root name comes from the repository record."""
        tree = HierarchyBuilder(store).remote("repo-1")
        assert tree.name == "Repo"
        assert tree.count() == (2, 1)

    def test_remote_explicit_root_name(self, store):
        tree = HierarchyBuilder(store).remote("repo-1", root_name="Custom")
        assert tree.name == "Custom"

    def test_remote_falls_back_to_container_id(self, store):
        """Test a missing repository record falls back to the id."""
        store.get_repository = Mock(side_effect=NotFoundError("gone"))
        tree = HierarchyBuilder(store).remote("repo-1")
        assert tree.name == "repo-1"

    def test_remote_missing_container(self, store):
        """Test NotFoundError propagates for unknown containers."""
        with pytest.raises(NotFoundError):
            HierarchyBuilder(store).remote("other", root_name="x")

    def test_remote_without_client(self):
        with pytest.raises(ValueError, match="client is required"):
            HierarchyBuilder().remote("repo-1")

    def test_local(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        tree = HierarchyBuilder().local(tmp_path)
        assert [child.name for child in tree.children] == ["a.txt"]
