"""Utility functions for pyreposync."""

import hashlib
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Union

from .exceptions import HashError, RemoteError

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for streaming downloads and hashing (64 KB)
DEFAULT_HASH_CHUNK_SIZE: int = 64 * 1024

# Chunk size for streaming object bodies from the store (64 KB)
DEFAULT_DOWNLOAD_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Remote key separator
KEY_SEPARATOR: str = "/"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Key utilities
# =============================================================================


def split_key(key: str) -> list[str]:
    """Split a remote key into its non-empty path segments.

    Examples:
        >>> split_key("src/main.txt")
        ['src', 'main.txt']
        >>> split_key("/docs//a.txt")
        ['docs', 'a.txt']
    """
    return [segment for segment in key.split(KEY_SEPARATOR) if segment]


def is_folder_placeholder(key: str) -> bool:
    """Check if a key is a zero-length folder marker (ends with the separator).

    Examples:
        >>> is_folder_placeholder("photos/")
        True
        >>> is_folder_placeholder("photos/a.jpg")
        False
    """
    return key.endswith(KEY_SEPARATOR)


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_stream_hash(chunks: Iterable[bytes], name: str = "<stream>") -> str:
    """Calculate the SHA-256 digest of a stream of byte chunks.

    The stream is consumed to completion. Chunk boundaries do not affect
    the result.

    Args:
        chunks: Iterable of byte chunks
        name: Path or key used in error messages

    Returns:
        Hex-encoded SHA-256 digest

    Raises:
        HashError: If reading the stream fails

    Examples:
        >>> calculate_stream_hash([b"hello ", b"world"]) == calculate_stream_hash(
        ...     [b"hello world"]
        ... )
        True
    """
    digest = hashlib.sha256()
    try:
        for chunk in chunks:
            digest.update(chunk)
    except (OSError, RemoteError) as e:
        raise HashError(f"Failed to hash {name}: {e}", path=name) from e
    return digest.hexdigest()


def iter_file_chunks(
    file_path: Union[str, Path], chunk_size: int = DEFAULT_HASH_CHUNK_SIZE
) -> Iterator[bytes]:
    """Yield the content of a local file in chunks.

    Args:
        file_path: File to read
        chunk_size: Size of each chunk in bytes
    """
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


def calculate_file_hash(
    file_path: Union[str, Path], chunk_size: int = DEFAULT_HASH_CHUNK_SIZE
) -> str:
    """Calculate the SHA-256 digest of a local file.

    Args:
        file_path: File to hash
        chunk_size: Read size in bytes

    Returns:
        Hex-encoded SHA-256 digest

    Raises:
        HashError: If the file cannot be read
    """
    return calculate_stream_hash(
        iter_file_chunks(file_path, chunk_size), name=str(file_path)
    )
