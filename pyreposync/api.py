"""HTTP client for the remote object store and metadata store."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    AuthenticationError,
    ConfigError,
    InvalidResponseError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RemoteError,
    RemoteFetchError,
)
from .models import RepositoryRecord
from .utils import (
    DEFAULT_DOWNLOAD_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
)

logger = logging.getLogger(__name__)


class ObjectStoreClient:
    """Client for the object store and repository metadata API."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Optional API key (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or config.api_key
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.api_key:
            raise ConfigError(
                "API key not configured. "
                "Please set REPOSYNC_API_KEY environment variable."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> ObjectStoreClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff: retry_delay * 2^attempt."""
        return self.retry_delay * (2**attempt)

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[RemoteError, bool]:
        """Map an HTTP error to an exception and decide whether to retry.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise AuthenticationError("Invalid API key or unauthorized access") from e
        elif status_code == 403:
            raise PermissionDeniedError(
                "Access forbidden - check your permissions"
            ) from e
        elif status_code == 404:
            raise NotFoundError(f"Resource not found: {e.request.url.path}") from e
        elif status_code == 429:
            error: RemoteError = RateLimitError(
                "Rate limit exceeded - please try again later"
            )
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("message") or error_data.get("error")
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass

        error = RemoteError(error_msg)
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty bodies)

        Raises:
            RemoteError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        last_exception: Exception | None = None
        client = self._get_client()

        # A streamed body must be rewound before it is sent again
        body = kwargs.get("content")
        rewind_to = None
        if hasattr(body, "seekable") and body.seekable():
            rewind_to = body.tell()

        for attempt in range(self.max_retries + 1):
            if rewind_to is not None:
                body.seek(rewind_to)
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()

                if not response.content:
                    return {}
                content_type = response.headers.get("Content-Type", "")
                if "application/json" not in content_type:
                    raise InvalidResponseError(
                        f"Unexpected response type: {content_type}"
                    )
                try:
                    return response.json()
                except ValueError as e:
                    raise InvalidResponseError(
                        "Invalid JSON response from server"
                    ) from e

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry:
                    delay = self._calculate_retry_delay(attempt)
                    if isinstance(error, RateLimitError):
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after and retry_after.isdigit():
                            delay = float(retry_after)
                    logger.debug(
                        f"{method} {endpoint} failed ({error}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = NetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < self.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"{method} {endpoint} network error, retrying")
                    time.sleep(delay)
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise RemoteError("Request failed after all retry attempts")

    @staticmethod
    def _object_endpoint(container_id: str, key: str) -> str:
        return f"/containers/{quote(container_id, safe='')}/objects/{quote(key)}"

    # =========================
    # Object Store Operations
    # =========================

    def list_objects(self, container_id: str) -> list[str]:
        """List every object key in a container.

        Follows pagination cursors until the listing is complete.

        Args:
            container_id: Container (bucket) identifier

        Returns:
            Keys in listing order

        Raises:
            NotFoundError: If the container does not exist
            RemoteFetchError: If the listing fails
        """
        endpoint = f"/containers/{quote(container_id, safe='')}/objects"
        keys: list[str] = []
        cursor: str | None = None

        while True:
            params = {"cursor": cursor} if cursor else None
            try:
                result = self._request("GET", endpoint, params=params)
            except NotFoundError:
                raise NotFoundError(f"Container not found: {container_id}") from None
            except RemoteError as e:
                raise RemoteFetchError(
                    f"Failed to list container {container_id}: {e}"
                ) from e

            if not isinstance(result, dict) or not isinstance(
                result.get("keys"), list
            ):
                raise RemoteFetchError(
                    f"Invalid listing response for container {container_id}"
                )
            keys.extend(result["keys"])
            cursor = result.get("next_cursor")
            if not cursor:
                break

        logger.debug(f"Listed {len(keys)} object(s) in {container_id}")
        return keys

    def iter_object(
        self,
        container_id: str,
        key: str,
        chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE,
    ) -> Iterator[bytes]:
        """Stream the body of an object.

        The HTTP response is closed when the generator is exhausted or closed.

        Args:
            container_id: Container identifier
            key: Object key
            chunk_size: Size of yielded chunks

        Yields:
            Byte chunks of the object body

        Raises:
            RemoteFetchError: If the object cannot be retrieved
        """
        url = f"{self.api_url}{self._object_endpoint(container_id, key)}"
        client = self._get_client()

        try:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes(chunk_size=chunk_size):
                    if chunk:
                        yield chunk
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404:
                raise RemoteFetchError(
                    f"Object {key} no longer exists in {container_id}", key=key
                ) from e
            raise RemoteFetchError(
                f"Download of {key} failed with status {status_code}", key=key
            ) from e
        except httpx.RequestError as e:
            raise RemoteFetchError(
                f"Network error while downloading {key}: {e}", key=key
            ) from e

    def get_object(self, container_id: str, key: str) -> bytes:
        """Return the full body of an object."""
        return b"".join(self.iter_object(container_id, key))

    def put_object(
        self, container_id: str, key: str, data: bytes | IO[bytes] | Path
    ) -> None:
        """Upload an object.

        Args:
            container_id: Container identifier
            key: Object key
            data: Body as bytes, a binary file object, or a local path

        Raises:
            RemoteFetchError: If the upload fails
        """
        endpoint = self._object_endpoint(container_id, key)
        try:
            if isinstance(data, Path):
                with open(data, "rb") as f:
                    size = os.fstat(f.fileno()).st_size
                    self._request(
                        "PUT",
                        endpoint,
                        content=f,
                        headers={"Content-Length": str(size)},
                    )
            else:
                # File objects are streamed in chunks by httpx
                self._request("PUT", endpoint, content=data)
        except (RemoteError, NotFoundError) as e:
            raise RemoteFetchError(f"Upload of {key} failed: {e}", key=key) from e
        except OSError as e:
            raise LocalIOError(f"Cannot read {data}: {e}", path=str(data)) from e
        logger.debug(f"Uploaded {key} to {container_id}")

    # =========================
    # Metadata Operations
    # =========================

    def get_repository(self, repo_id: str) -> RepositoryRecord:
        """Get the metadata record of a repository.

        Raises:
            NotFoundError: If the repository does not exist
        """
        try:
            result = self._request("GET", f"/repositories/{quote(repo_id, safe='')}")
        except NotFoundError:
            raise NotFoundError(f"Repository not found: {repo_id}") from None
        if not isinstance(result, dict):
            raise InvalidResponseError("Invalid repository response")
        return RepositoryRecord.from_api_response(result)

    def list_repositories(self) -> list[RepositoryRecord]:
        """List the repositories visible to the API key."""
        result = self._request("GET", "/repositories")
        if not isinstance(result, dict):
            raise InvalidResponseError("Invalid repository listing response")
        return [
            RepositoryRecord.from_api_response(item)
            for item in result.get("repositories", [])
        ]
