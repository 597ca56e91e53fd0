"""Object transfer operations between the store and the local filesystem."""

import logging
import os
from contextlib import closing
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from ..exceptions import LocalIOError

if TYPE_CHECKING:
    from ..api import ObjectStoreClient

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"


class SyncOperations:
    """Download and upload operations with a common interface."""

    def __init__(self, client: "ObjectStoreClient", container_id: str):
        """Initialize sync operations.

        Args:
            client: Object store client
            container_id: Container the operations act on
        """
        self.client = client
        self.container_id = container_id

    def download_object(
        self,
        remote_key: str,
        local_path: Union[str, Path],
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> int:
        """Fetch an object and write it to a local path.

        The body is streamed into a hidden ``.part`` file next to the target,
        which replaces the target only once the stream is fully drained.
        Parent directories are created as needed.

        Args:
            remote_key: Key of the object to fetch
            local_path: Destination path
            progress_callback: Optional callback function(bytes_downloaded)

        Returns:
            Number of bytes written

        Raises:
            RemoteFetchError: If the object cannot be retrieved
            LocalIOError: If the file cannot be written
        """
        local_path = Path(local_path)
        partial_path = local_path.with_name(f".{local_path.name}{PARTIAL_SUFFIX}")
        bytes_written = 0

        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            with open(partial_path, "wb") as f, closing(
                self.client.iter_object(self.container_id, remote_key)
            ) as chunks:
                for chunk in chunks:
                    f.write(chunk)
                    bytes_written += len(chunk)
                    if progress_callback:
                        progress_callback(bytes_written)
            os.replace(partial_path, local_path)
        except OSError as e:
            _remove_quietly(partial_path)
            raise LocalIOError(
                f"Failed to write {local_path}: {e}", path=str(local_path)
            ) from e
        except BaseException:
            _remove_quietly(partial_path)
            raise

        logger.debug(f"Downloaded {remote_key} -> {local_path} ({bytes_written} B)")
        return bytes_written

    def upload_file(self, local_path: Union[str, Path], remote_key: str) -> None:
        """Upload a local file as an object.

        Raises:
            LocalIOError: If the file cannot be read
            RemoteFetchError: If the upload fails
        """
        self.client.put_object(self.container_id, remote_key, Path(local_path))
        logger.debug(f"Uploaded {local_path} -> {remote_key}")


def remote_key_for(local_root: Union[str, Path], local_path: Union[str, Path]) -> str:
    """Derive the object key of a file below a local root.

    Examples:
        >>> remote_key_for("/repo", "/repo/src/main.txt")
        'src/main.txt'
    """
    return Path(local_path).relative_to(local_root).as_posix()


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
