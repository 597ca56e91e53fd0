"""Live change detection for a local directory subtree.

This module wraps the Watchdog library. The observer thread delivers raw
filesystem events to ``_NormalizingHandler``, which turns them into
``ChangeEvent`` values and hands them to a registered consumer.

Normalization:
    created  -> add / add_dir
    modified -> change (directory modifications are dropped, they only
                mirror changes of their children)
    deleted  -> unlink / unlink_dir
    moved    -> unlink of the source, then add of the destination

The watcher has no debounce, batching or upload logic. Consumers decide
what to do with events; they are called on the observer thread.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..exceptions import LocalIOError, NotFoundError

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    """Kind of a normalized filesystem change."""

    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    ADD_DIR = "add_dir"
    UNLINK_DIR = "unlink_dir"


@dataclass(frozen=True)
class ChangeEvent:
    """One normalized filesystem change."""

    kind: ChangeKind
    path: str
    """Absolute path of the affected entry"""

    @property
    def is_directory(self) -> bool:
        return self.kind in (ChangeKind.ADD_DIR, ChangeKind.UNLINK_DIR)


ChangeConsumer = Callable[[ChangeEvent], None]


class _NormalizingHandler(FileSystemEventHandler):
    """Translates Watchdog events into ChangeEvents."""

    def __init__(self, consumer: ChangeConsumer):
        self.consumer = consumer

    def _emit(self, kind: ChangeKind, path: Union[str, bytes]) -> None:
        event = ChangeEvent(kind=kind, path=os.path.abspath(os.fsdecode(path)))
        logger.debug(f"{event.kind.value}: {event.path}")
        try:
            self.consumer(event)
        except Exception:
            # Keep the observer thread alive; the consumer owns its errors
            logger.exception(f"Change consumer failed for {event.path}")

    def on_created(self, event: FileSystemEvent) -> None:
        kind = ChangeKind.ADD_DIR if event.is_directory else ChangeKind.ADD
        self._emit(kind, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(ChangeKind.CHANGE, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        kind = ChangeKind.UNLINK_DIR if event.is_directory else ChangeKind.UNLINK
        self._emit(kind, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._emit(ChangeKind.UNLINK_DIR, event.src_path)
            self._emit(ChangeKind.ADD_DIR, event.dest_path)
        else:
            self._emit(ChangeKind.UNLINK, event.src_path)
            self._emit(ChangeKind.ADD, event.dest_path)


class LocalChangeWatcher:
    """Watches one directory subtree and emits normalized change events."""

    def __init__(self, path: Union[str, Path], consumer: ChangeConsumer):
        """Initialize local change watcher.

        Args:
            path: Directory to watch recursively
            consumer: Callable receiving each ChangeEvent
        """
        self.path = os.path.abspath(path)
        self.consumer = consumer
        self._observer: Optional[Any] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start watching.

        Raises:
            NotFoundError: If the directory does not exist
            LocalIOError: If the path is not a directory or cannot be watched
        """
        if self._observer is not None:
            logger.warning(f"Watcher for {self.path} already running")
            return
        if not os.path.exists(self.path):
            raise NotFoundError(f"Path does not exist: {self.path}")
        if not os.path.isdir(self.path):
            raise LocalIOError(f"Not a directory: {self.path}", path=self.path)

        observer = Observer()
        observer.schedule(_NormalizingHandler(self.consumer), self.path, recursive=True)
        try:
            observer.start()
        except OSError as e:
            raise LocalIOError(f"Cannot watch {self.path}: {e}", path=self.path) from e
        self._observer = observer
        logger.debug(f"Watching {self.path}")

    def stop(self) -> None:
        """Stop watching and release the subscription."""
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join()
        logger.debug(f"Stopped watching {self.path}")

    def __enter__(self) -> "LocalChangeWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
