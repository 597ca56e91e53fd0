"""pyreposync - keep a local directory in sync with a remote object store."""

from .api import ObjectStoreClient
from .exceptions import (
    AuthenticationError,
    ConfigError,
    HashError,
    InvalidResponseError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RemoteError,
    RemoteFetchError,
    RepoSyncError,
    SyncFailedError,
    UnsupportedFileTypeError,
)
from .models import FileNode, FolderNode, HierarchyNode, NodeKind, SyncResult
from .utils import calculate_file_hash, calculate_stream_hash

__all__ = [
    "ObjectStoreClient",
    "AuthenticationError",
    "ConfigError",
    "HashError",
    "InvalidResponseError",
    "LocalIOError",
    "NetworkError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "RemoteError",
    "RemoteFetchError",
    "RepoSyncError",
    "SyncFailedError",
    "UnsupportedFileTypeError",
    "FileNode",
    "FolderNode",
    "HierarchyNode",
    "NodeKind",
    "SyncResult",
    "calculate_file_hash",
    "calculate_stream_hash",
]
