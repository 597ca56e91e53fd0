"""Content-based change detection between remote objects and local files."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from pathlib import Path
from typing import TYPE_CHECKING, Union

from ..models import FolderNode
from ..utils import calculate_file_hash, calculate_stream_hash

if TYPE_CHECKING:
    from ..api import ObjectStoreClient

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Decides whether a local file is stale relative to its remote object.

    Equality of SHA-256 digests is the only criterion for "unmodified";
    size and modification time are never used as a shortcut.
    """

    def __init__(
        self,
        client: "ObjectStoreClient",
        container_id: str,
        parallel: bool = True,
    ):
        """Initialize change detector.

        Args:
            client: Object store client
            container_id: Container holding the remote objects
            parallel: Hash the remote and local content concurrently
        """
        self.client = client
        self.container_id = container_id
        self.parallel = parallel

    def remote_digest(self, remote_key: str) -> str:
        """Stream a remote object and return its digest.

        Raises:
            HashError: If the stream fails
        """
        with closing(self.client.iter_object(self.container_id, remote_key)) as chunks:
            return calculate_stream_hash(chunks, name=remote_key)

    def is_modified(self, remote_key: str, local_path: Union[str, Path]) -> bool:
        """Check whether the local copy differs from the remote object.

        Args:
            remote_key: Key of the remote object
            local_path: Path of the local copy

        Returns:
            True if no local file exists or the digests differ

        Raises:
            HashError: If either digest cannot be computed
        """
        if not os.path.isfile(local_path):
            return True

        if self.parallel:
            with ThreadPoolExecutor(max_workers=2) as executor:
                remote_future = executor.submit(self.remote_digest, remote_key)
                local_future = executor.submit(calculate_file_hash, local_path)
                # Wait for both before raising so no hash is left running
                remote_error = remote_future.exception()
                local_error = local_future.exception()
                if remote_error is not None:
                    raise remote_error
                if local_error is not None:
                    raise local_error
                remote_hash = remote_future.result()
                local_hash = local_future.result()
        else:
            remote_hash = self.remote_digest(remote_key)
            local_hash = calculate_file_hash(local_path)

        modified = remote_hash != local_hash
        logger.debug(
            f"{remote_key}: {'modified' if modified else 'unchanged'} "
            f"(remote {remote_hash[:12]}, local {local_hash[:12]})"
        )
        return modified

    def annotate(self, tree: FolderNode, local_root: Union[str, Path]) -> int:
        """Set ``modified`` on every file node of a remote tree.

        Args:
            tree: Remote hierarchy root
            local_root: Local directory the tree maps onto

        Returns:
            Number of modified (or missing) files
        """
        count = 0
        for relative_path, node in tree.iter_files():
            node.modified = self.is_modified(
                node.path, os.path.join(local_root, *relative_path.split("/"))
            )
            if node.modified:
                count += 1
        return count
