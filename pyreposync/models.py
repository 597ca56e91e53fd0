"""Data models for hierarchies, repositories and sync results."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class NodeKind(str, Enum):
    """Kind of a hierarchy node."""

    FILE = "file"
    FOLDER = "folder"


@dataclass
class FileNode:
    """Leaf of a hierarchy: one remote object or one local file."""

    name: str
    """Display label (final path segment)"""

    path: str
    """Remote key or absolute local path"""

    modified: bool = False
    """Set during pull-style diffing only"""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.FILE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.kind.value,
            "isModified": self.modified,
        }


@dataclass
class FolderNode:
    """Folder of a hierarchy, owning an ordered list of children."""

    name: str
    """Display label (final path segment)"""

    path: str
    """Key prefix (empty for the remote root) or absolute local path"""

    children: list["HierarchyNode"] = field(default_factory=list)
    """Child nodes, unique by name"""

    rejected_keys: dict[str, Exception] = field(
        default_factory=dict, compare=False, repr=False
    )
    """Keys left out of a remote tree, with the reason (remote root only)"""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.FOLDER

    def get_child(self, name: str) -> Optional["HierarchyNode"]:
        """Find a direct child by name (linear scan)."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def iter_files(self, prefix: str = "") -> Iterator[tuple[str, FileNode]]:
        """Yield (relative_path, FileNode) for every file below this folder.

        Relative paths use forward slashes and are relative to this folder.
        """
        for child in self.children:
            rel_path = f"{prefix}/{child.name}" if prefix else child.name
            if isinstance(child, FolderNode):
                yield from child.iter_files(rel_path)
            else:
                yield rel_path, child

    def count(self) -> tuple[int, int]:
        """Count (files, folders) below this folder, excluding itself."""
        files = 0
        folders = 0
        for child in self.children:
            if isinstance(child, FolderNode):
                sub_files, sub_folders = child.count()
                files += sub_files
                folders += sub_folders + 1
            else:
                files += 1
        return files, folders

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.kind.value,
            "isModified": False,
            "children": [child.to_dict() for child in self.children],
        }


HierarchyNode = Union[FileNode, FolderNode]


@dataclass
class RepositoryRecord:
    """Repository record from the metadata store."""

    id: str
    friendly_name: str
    organization: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RepositoryRecord":
        """Create RepositoryRecord from an API response dict.

        Both snake_case and camelCase field names are accepted.
        """
        return cls(
            id=str(data.get("id", "")),
            friendly_name=data.get("friendly_name") or data.get("friendlyName") or "",
            organization=data.get("organization", "") or "",
        )


@dataclass
class RepositoryConfig:
    """Locally stored settings for one synchronized repository."""

    friendly_name: str
    organization: str = ""
    folder_path: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "friendlyName": self.friendly_name,
            "organization": self.organization,
            "folderPath": self.folder_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryConfig":
        return cls(
            friendly_name=data.get("friendlyName", ""),
            organization=data.get("organization", ""),
            folder_path=data.get("folderPath", ""),
        )


@dataclass
class SyncResult:
    """Outcome of one clone or pull."""

    downloads: int = 0
    """Files fetched and written (or that would be, in a dry run)"""

    bytes_downloaded: int = 0

    skips: int = 0
    """Files left untouched"""

    folders_created: int = 0
    """Local directories created"""

    failed: dict[str, Exception] = field(default_factory=dict)
    """Failures keyed by the local path, or by the remote key if it was rejected"""

    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.failed and not self.cancelled

    def to_dict(self) -> dict[str, Any]:
        return {
            "downloads": self.downloads,
            "bytes_downloaded": self.bytes_downloaded,
            "skips": self.skips,
            "folders_created": self.folders_created,
            "failed": {path: str(error) for path, error in self.failed.items()},
            "cancelled": self.cancelled,
            "success": self.success,
        }
