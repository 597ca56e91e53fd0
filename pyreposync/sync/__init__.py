"""Reconciliation engine for pyreposync - hierarchy, detection, clone/pull."""

from .detector import ChangeDetector
from .engine import SyncEngine, TreeMaterializer
from .hierarchy import HierarchyBuilder, build_local_hierarchy, build_remote_hierarchy
from .operations import SyncOperations, remote_key_for
from .session import SyncSession
from .watcher import ChangeConsumer, ChangeEvent, ChangeKind, LocalChangeWatcher

__all__ = [
    "SyncEngine",
    "TreeMaterializer",
    "ChangeDetector",
    "HierarchyBuilder",
    "build_local_hierarchy",
    "build_remote_hierarchy",
    "SyncOperations",
    "remote_key_for",
    "SyncSession",
    "LocalChangeWatcher",
    "ChangeConsumer",
    "ChangeEvent",
    "ChangeKind",
]
