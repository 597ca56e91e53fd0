"""Tree materialization: clone and pull of a remote hierarchy."""

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..exceptions import LocalIOError, NotFoundError, RemoteFetchError, RepoSyncError
from ..models import FileNode, FolderNode, SyncResult
from ..output import OutputFormatter
from .detector import ChangeDetector
from .hierarchy import HierarchyBuilder
from .operations import SyncOperations

if TYPE_CHECKING:
    from ..api import ObjectStoreClient

logger = logging.getLogger(__name__)

# Outcome of one file node visit
DOWNLOADED = "downloaded"
SKIPPED = "skipped"


def _is_safe_name(name: str) -> bool:
    """Check that a node name maps to exactly one entry inside its folder."""
    return (
        name not in ("", ".", "..")
        and "\x00" not in name
        and os.sep not in name
        and (os.altsep is None or os.altsep not in name)
    )


class TreeMaterializer:
    """Reproduces a remote hierarchy on the local filesystem.

    Clone fetches every file that does not exist locally and never
    overwrites. Pull fetches files whose content differs from the remote
    object. Neither variant deletes local entries.

    Folders are created before any write into them is attempted. File
    fetches run inline with ``max_workers=1`` or on a thread pool otherwise.
    A failing node is recorded in the result under its local path and does
    not stop its siblings. Keys the hierarchy rejected, and nodes whose name
    would resolve outside their folder, are recorded under their key.
    """

    def __init__(
        self,
        client: "ObjectStoreClient",
        container_id: str,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
        dry_run: bool = False,
        detector: Optional[ChangeDetector] = None,
    ):
        """Initialize tree materializer.

        Args:
            client: Object store client
            container_id: Container the tree was listed from
            max_workers: Number of parallel file fetches (default: 1)
            cancel_event: Event checked between node visits to stop early
            dry_run: Count what would be fetched without writing anything
            detector: Change detector for pull (created if not given)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.container_id = container_id
        self.max_workers = max_workers
        self.cancel_event = cancel_event or threading.Event()
        self.dry_run = dry_run
        self.operations = SyncOperations(client, container_id)
        self.detector = detector or ChangeDetector(client, container_id)

    def clone(self, tree: FolderNode, destination: Union[str, Path]) -> SyncResult:
        """Fetch every file of the tree that is missing locally."""
        return self._materialize(tree, destination, conditional=False)

    def pull(self, tree: FolderNode, destination: Union[str, Path]) -> SyncResult:
        """Fetch every file of the tree that is missing or modified locally."""
        return self._materialize(tree, destination, conditional=True)

    def _materialize(
        self, tree: FolderNode, destination: Union[str, Path], conditional: bool
    ) -> SyncResult:
        start_time = time.time()
        result = SyncResult()
        destination = os.path.abspath(destination)
        mode = "pull" if conditional else "clone"
        logger.debug(f"Starting {mode} of {self.container_id} into {destination}")

        # Listed objects that have no place in the tree fail under their key
        for key, error in tree.rejected_keys.items():
            self._record_failure(result, key, error)

        if self.max_workers == 1:
            self._visit_folder(tree, destination, conditional, result, None)
        else:
            futures: dict[Future, str] = {}
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:

                def submit(node: FileNode, local_path: str) -> None:
                    future = executor.submit(
                        self._process_file, node, local_path, conditional
                    )
                    futures[future] = local_path

                self._visit_folder(tree, destination, conditional, result, submit)

                if result.cancelled:
                    for future in futures:
                        future.cancel()

            for future, local_path in futures.items():
                if future.cancelled():
                    continue
                try:
                    self._record(result, future.result())
                except (RepoSyncError, OSError) as e:
                    self._record_failure(result, local_path, e)

        if self.cancel_event.is_set():
            result.cancelled = True

        elapsed = time.time() - start_time
        logger.debug(
            f"{mode} finished in {elapsed:.2f}s: {result.downloads} fetched, "
            f"{result.skips} skipped, {len(result.failed)} failed"
        )
        return result

    def _visit_folder(
        self,
        folder: FolderNode,
        local_dir: str,
        conditional: bool,
        result: SyncResult,
        submit: Optional[Callable[[FileNode, str], None]],
    ) -> None:
        if self.cancel_event.is_set():
            result.cancelled = True
            return

        try:
            if self._ensure_directory(local_dir):
                result.folders_created += 1
        except LocalIOError as e:
            self._record_failure(result, local_dir, e)
            return

        for child in folder.children:
            if self.cancel_event.is_set():
                result.cancelled = True
                return

            if not _is_safe_name(child.name):
                self._record_failure(
                    result,
                    child.path,
                    RemoteFetchError(
                        f"Refusing to write {child.path!r} outside {local_dir}",
                        key=child.path,
                    ),
                )
                continue

            local_path = os.path.join(local_dir, child.name)
            if isinstance(child, FolderNode):
                self._visit_folder(child, local_path, conditional, result, submit)
            elif submit is not None:
                submit(child, local_path)
            else:
                try:
                    self._record(
                        result, self._process_file(child, local_path, conditional)
                    )
                except (RepoSyncError, OSError) as e:
                    self._record_failure(result, local_path, e)

    def _ensure_directory(self, local_dir: str) -> bool:
        """Create a directory if absent.

        Returns:
            True if the directory was (or, in a dry run, would be) created
        """
        if os.path.isdir(local_dir):
            return False
        if self.dry_run:
            return True
        try:
            os.makedirs(local_dir, exist_ok=True)
        except OSError as e:
            raise LocalIOError(
                f"Cannot create directory {local_dir}: {e}", path=local_dir
            ) from e
        logger.debug(f"Created directory {local_dir}")
        return True

    def _process_file(
        self, node: FileNode, local_path: str, conditional: bool
    ) -> tuple[str, int]:
        """Visit one file node.

        Returns:
            Tuple of (outcome, bytes written)
        """
        if self.cancel_event.is_set():
            return SKIPPED, 0

        if conditional:
            node.modified = self.detector.is_modified(node.path, local_path)
            if not node.modified:
                return SKIPPED, 0
        elif os.path.lexists(local_path):
            return SKIPPED, 0

        if self.dry_run:
            return DOWNLOADED, 0
        return DOWNLOADED, self.operations.download_object(node.path, local_path)

    @staticmethod
    def _record(result: SyncResult, outcome: tuple[str, int]) -> None:
        kind, size = outcome
        if kind == DOWNLOADED:
            result.downloads += 1
            result.bytes_downloaded += size
        else:
            result.skips += 1

    @staticmethod
    def _record_failure(result: SyncResult, local_path: str, error: Exception) -> None:
        logger.warning(f"Failed to sync {local_path}: {error}")
        result.failed[local_path] = error


class SyncEngine:
    """Orchestrates clone, pull and status for one repository container."""

    def __init__(
        self,
        client: "ObjectStoreClient",
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Object store client
            output: Output formatter for displaying progress/status
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.builder = HierarchyBuilder(client)

    def _build_remote_tree(self, container_id: str) -> FolderNode:
        if self.output.quiet or self.output.json_output:
            return self.builder.remote(container_id)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            task = progress.add_task("Listing remote objects...", total=None)
            tree = self.builder.remote(container_id)
            files, _ = tree.count()
            progress.update(task, description=f"Found {files} remote file(s)")
        return tree

    def clone_repository(
        self,
        container_id: str,
        destination: Union[str, Path],
        max_workers: int = 1,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Clone a container into a local directory.

        Args:
            container_id: Container to clone
            destination: Local directory (created if absent)
            max_workers: Number of parallel fetches
            dry_run: Only report what would be fetched
            cancel_event: Event to cancel the operation

        Returns:
            SyncResult of the operation

        Examples:
            >>> engine = SyncEngine(client)
            >>> result = engine.clone_repository("repo-123", "/home/user/repo")
            >>> result.success
            True
        """
        if not self.output.quiet:
            self.output.info(f"Cloning: {container_id} -> {destination}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")

        tree = self._build_remote_tree(container_id)
        materializer = TreeMaterializer(
            self.client,
            container_id,
            max_workers=max_workers,
            cancel_event=cancel_event,
            dry_run=dry_run,
        )
        result = materializer.clone(tree, destination)
        self._display_summary(result, dry_run)
        return result

    def pull_repository(
        self,
        container_id: str,
        destination: Union[str, Path],
        max_workers: int = 1,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Pull remote changes into an existing local directory.

        Raises:
            NotFoundError: If the destination does not exist
            LocalIOError: If the destination is not a directory
        """
        self._validate_destination(destination)

        if not self.output.quiet:
            self.output.info(f"Pulling: {container_id} -> {destination}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")

        tree = self._build_remote_tree(container_id)
        materializer = TreeMaterializer(
            self.client,
            container_id,
            max_workers=max_workers,
            cancel_event=cancel_event,
            dry_run=dry_run,
        )
        result = materializer.pull(tree, destination)
        self._display_summary(result, dry_run)
        return result

    def status(self, container_id: str, destination: Union[str, Path]) -> list[str]:
        """List relative paths of remote files that differ locally.

        Raises:
            NotFoundError: If the destination does not exist
            HashError: If a digest cannot be computed
        """
        self._validate_destination(destination)
        tree = self._build_remote_tree(container_id)
        detector = ChangeDetector(self.client, container_id)
        detector.annotate(tree, destination)
        return [path for path, node in tree.iter_files() if node.modified]

    @staticmethod
    def _validate_destination(destination: Union[str, Path]) -> None:
        if not os.path.exists(destination):
            raise NotFoundError(f"Local directory does not exist: {destination}")
        if not os.path.isdir(destination):
            raise LocalIOError(
                f"Local path is not a directory: {destination}", path=str(destination)
            )

    def _display_summary(self, result: SyncResult, dry_run: bool) -> None:
        if self.output.quiet or self.output.json_output:
            return

        self.output.print("")
        if result.cancelled:
            self.output.warning("Sync cancelled - local tree may be incomplete")
        elif result.failed:
            self.output.error(f"Sync failed for {len(result.failed)} path(s):")
            for path, error in sorted(result.failed.items()):
                self.output.error(f"  {path}: {error}")
        elif dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        if result.downloads > 0 and dry_run:
            self.output.info(f"  Would download: {result.downloads} file(s)")
        elif result.downloads > 0:
            size = self.output.format_size(result.bytes_downloaded)
            self.output.info(f"  Downloaded: {result.downloads} file(s) ({size})")
        if result.folders_created > 0:
            self.output.info(f"  Folders created: {result.folders_created}")
        if result.downloads == 0 and not result.failed:
            self.output.info("No changes needed - everything is in sync!")
