"""Hierarchy construction from remote key listings and local directories."""

import logging
import os
import stat
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from ..exceptions import (
    LocalIOError,
    NotFoundError,
    RemoteFetchError,
    UnsupportedFileTypeError,
)
from ..models import FileNode, FolderNode, HierarchyNode
from ..utils import KEY_SEPARATOR, is_folder_placeholder, split_key

if TYPE_CHECKING:
    from ..api import ObjectStoreClient

logger = logging.getLogger(__name__)


def build_remote_hierarchy(keys: Iterable[str], root_name: str = "") -> FolderNode:
    """Build a tree from a flat listing of object keys.

    Folders are synthesized from key prefixes split on ``/``. Intermediate
    folders are created on first encounter and found again by name, so key
    order only affects child insertion order, never the shape.

    Keys that cannot be mirrored locally are left out of the tree and
    recorded in the root's ``rejected_keys``: keys with ``.`` or ``..``
    segments or a NUL character, and keys whose name collides with a file or
    folder already in the tree. Exact duplicate keys are ignored.

    Args:
        keys: Object keys of one container
        root_name: Display name of the root folder

    Returns:
        Root folder whose ``path`` is the empty string

    Examples:
        >>> tree = build_remote_hierarchy(["a.txt", "b/c.txt"])
        >>> [child.name for child in tree.children]
        ['a.txt', 'b']
    """
    root = FolderNode(name=root_name, path="")

    def reject(key: str, reason: str) -> None:
        logger.warning(f"Rejecting key {key!r}: {reason}")
        root.rejected_keys[key] = RemoteFetchError(
            f"Invalid key {key!r}: {reason}", key=key
        )

    for key in keys:
        segments = split_key(key)
        if not segments:
            continue
        if "\x00" in key:
            reject(key, "contains a NUL character")
            continue
        if any(segment in (".", "..") for segment in segments):
            reject(key, "contains a relative path segment")
            continue

        placeholder = is_folder_placeholder(key)
        folder_segments = segments if placeholder else segments[:-1]

        current = root
        for depth, segment in enumerate(folder_segments):
            child = current.get_child(segment)
            if child is None:
                child = FolderNode(
                    name=segment,
                    path=KEY_SEPARATOR.join(segments[: depth + 1]),
                )
                current.children.append(child)
            elif not isinstance(child, FolderNode):
                # A file and a folder share a name; keep the first one seen
                reject(key, f"conflicts with file {child.path!r}")
                break
            current = child
        else:
            if placeholder:
                continue
            name = segments[-1]
            existing = current.get_child(name)
            if existing is None:
                current.children.append(FileNode(name=name, path=key))
            elif isinstance(existing, FileNode) and existing.path == key:
                logger.debug(f"Skipping duplicate key {key}")
            else:
                reject(key, f"conflicts with {existing.kind.value} {existing.path!r}")

    return root


def build_local_hierarchy(
    path: Union[str, Path], follow_symlinks: bool = False
) -> HierarchyNode:
    """Build a tree from a local file or directory.

    Children appear in directory enumeration order. Symlinks and special
    files (sockets, FIFOs, devices) below the root are skipped unless
    ``follow_symlinks`` is set, in which case symlinks are resolved.

    Args:
        path: Absolute directory or file path
        follow_symlinks: Resolve symlinks instead of skipping them

    Returns:
        FolderNode for a directory, FileNode for a regular file

    Raises:
        NotFoundError: If the path does not exist
        UnsupportedFileTypeError: If the root itself is a symlink or special file
        LocalIOError: If stat or listing fails
    """
    path = os.path.abspath(path)
    node = _build_local_node(path, follow_symlinks)
    if node is None:
        raise UnsupportedFileTypeError(
            f"Not a regular file or directory: {path}", path=path
        )
    return node


def _build_local_node(path: str, follow_symlinks: bool) -> Optional[HierarchyNode]:
    try:
        st = os.stat(path) if follow_symlinks else os.lstat(path)
    except FileNotFoundError:
        raise NotFoundError(f"Path does not exist: {path}") from None
    except OSError as e:
        raise LocalIOError(f"Cannot stat {path}: {e}", path=path) from e

    name = os.path.basename(path)

    if stat.S_ISREG(st.st_mode):
        return FileNode(name=name, path=path)

    if not stat.S_ISDIR(st.st_mode):
        logger.debug(f"Skipping unsupported file type: {path}")
        return None

    folder = FolderNode(name=name, path=path)
    try:
        entries = os.listdir(path)
    except OSError as e:
        raise LocalIOError(f"Cannot list directory {path}: {e}", path=path) from e

    for entry in entries:
        child = _build_local_node(os.path.join(path, entry), follow_symlinks)
        if child is not None:
            folder.children.append(child)
    return folder


class HierarchyBuilder:
    """Builds hierarchies of a remote container or a local directory.

    Examples:
        >>> builder = HierarchyBuilder(client)
        >>> tree = builder.remote("repo-123")
        >>> local = builder.local("/home/user/repo")
    """

    def __init__(self, client: Optional["ObjectStoreClient"] = None):
        """Initialize hierarchy builder.

        Args:
            client: Object store client, required for remote hierarchies
        """
        self.client = client

    def remote(self, container_id: str, root_name: Optional[str] = None) -> FolderNode:
        """List a container and build its hierarchy.

        Args:
            container_id: Container to list
            root_name: Display name of the root; resolved from the
                repository metadata when not given

        Raises:
            NotFoundError: If the container does not exist
            RemoteFetchError: If the listing fails
        """
        if self.client is None:
            raise ValueError("A client is required to build a remote hierarchy")

        if root_name is None:
            root_name = self._resolve_root_name(container_id)

        keys = self.client.list_objects(container_id)
        tree = build_remote_hierarchy(keys, root_name=root_name)
        files, folders = tree.count()
        logger.debug(
            f"Built remote hierarchy for {container_id}: "
            f"{files} file(s), {folders} folder(s)"
        )
        return tree

    def local(
        self, path: Union[str, Path], follow_symlinks: bool = False
    ) -> HierarchyNode:
        """Build the hierarchy of a local path."""
        return build_local_hierarchy(path, follow_symlinks=follow_symlinks)

    def _resolve_root_name(self, container_id: str) -> str:
        try:
            record = self.client.get_repository(container_id)
        except NotFoundError:
            logger.debug(f"No repository record for {container_id}")
            return container_id
        return record.friendly_name or container_id
