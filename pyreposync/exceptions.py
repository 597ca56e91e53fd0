"""Custom exceptions for pyreposync."""

from typing import Optional


class RepoSyncError(Exception):
    """Base exception for all pyreposync errors."""


class ConfigError(RepoSyncError):
    """Configuration is missing or malformed."""


class NotFoundError(RepoSyncError):
    """Remote container, repository or local path does not exist."""


class LocalIOError(RepoSyncError):
    """Local read, write or stat failure."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class UnsupportedFileTypeError(LocalIOError):
    """Symlink or special file where a regular file or directory is required."""


class RemoteError(RepoSyncError):
    """Object store or metadata store request failed."""


class AuthenticationError(RemoteError):
    """Invalid API key or unauthorized access."""


class PermissionDeniedError(RemoteError):
    """Access to the resource is forbidden."""


class RateLimitError(RemoteError):
    """Rate limit exceeded."""


class NetworkError(RemoteError):
    """Transient network failure."""


class InvalidResponseError(RemoteError):
    """Server returned a response that could not be understood."""


class RemoteFetchError(RemoteError):
    """Object listing, download or upload failed."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class HashError(RepoSyncError):
    """Stream failed while computing a digest."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class SyncFailedError(RepoSyncError):
    """One or more paths failed during a clone or pull."""

    def __init__(self, failed: dict[str, Exception]):
        paths = ", ".join(sorted(failed))
        super().__init__(f"{len(failed)} path(s) failed: {paths}")
        self.failed = failed
