"""Sync session owning the current folder and its single live watcher."""

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from ..exceptions import RepoSyncError
from ..models import HierarchyNode
from .hierarchy import build_local_hierarchy
from .watcher import ChangeConsumer, LocalChangeWatcher

logger = logging.getLogger(__name__)


class SyncSession:
    """Explicit context for one sync session.

    The session holds the current folder path and at most one live
    watcher. Opening a new folder always releases the previous watcher
    first, so two subscriptions never coexist.

    Examples:
        >>> with SyncSession() as session:
        ...     tree = session.watch("/home/user/repo", print)
        ...     # events are printed until the session closes
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._watcher: Optional[LocalChangeWatcher] = None
        self.folder_path: Optional[str] = None

    @property
    def watcher(self) -> Optional[LocalChangeWatcher]:
        return self._watcher

    def watch(
        self, path: Union[str, Path], consumer: ChangeConsumer
    ) -> HierarchyNode:
        """Start watching a folder and return its hierarchy.

        Any previous watcher is stopped before the new one starts. If the
        folder cannot be read, the new watcher is stopped again.

        Args:
            path: Directory to watch
            consumer: Callable receiving change events

        Returns:
            Local hierarchy of the folder

        Raises:
            NotFoundError: If the directory does not exist
            LocalIOError: If the directory cannot be watched or read
        """
        with self._lock:
            self._release()
            watcher = LocalChangeWatcher(path, consumer)
            watcher.start()
            try:
                hierarchy = build_local_hierarchy(watcher.path)
            except RepoSyncError:
                watcher.stop()
                raise
            self._watcher = watcher
            self.folder_path = watcher.path
        return hierarchy

    def get_folder_hierarchy(self) -> Optional[HierarchyNode]:
        """Rebuild the hierarchy of the current folder, if one is open."""
        folder_path = self.folder_path
        if not folder_path:
            return None
        return build_local_hierarchy(folder_path)

    def close(self) -> None:
        """Release the watcher and forget the current folder."""
        with self._lock:
            self._release()

    def _release(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        self.folder_path = None

    def __enter__(self) -> "SyncSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
