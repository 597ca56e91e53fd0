"""Shared fixtures for pyreposync tests."""

import threading
from collections.abc import Iterator

import pytest

from pyreposync.exceptions import NotFoundError, RemoteFetchError
from pyreposync.models import RepositoryRecord


class FakeObjectStore:
    """In-memory stand-in for ObjectStoreClient.

    Records every fetch so tests can assert on the amount of I/O.
    """

    def __init__(self, objects=None, container_id="repo-1", friendly_name="Repo"):
        self.container_id = container_id
        self.friendly_name = friendly_name
        self.objects: dict[str, bytes] = dict(objects or {})
        self.fetched: list[str] = []
        self.uploaded: dict[str, bytes] = {}
        self.fail_keys: set[str] = set()
        self._lock = threading.Lock()

    def _check_container(self, container_id):
        if container_id != self.container_id:
            raise NotFoundError(f"Container not found: {container_id}")

    def list_objects(self, container_id):
        self._check_container(container_id)
        return list(self.objects)

    def iter_object(self, container_id, key, chunk_size=4) -> Iterator[bytes]:
        self._check_container(container_id)
        with self._lock:
            self.fetched.append(key)
        if key in self.fail_keys or key not in self.objects:
            raise RemoteFetchError(f"Object {key} no longer exists", key=key)
        data = self.objects[key]
        for i in range(0, len(data), chunk_size):
            yield data[i : i + chunk_size]

    def get_object(self, container_id, key):
        return b"".join(self.iter_object(container_id, key))

    def put_object(self, container_id, key, data):
        self._check_container(container_id)
        body = data.read_bytes() if hasattr(data, "read_bytes") else bytes(data)
        self.uploaded[key] = body
        self.objects[key] = body

    def get_repository(self, repo_id):
        if repo_id != self.container_id:
            raise NotFoundError(f"Repository not found: {repo_id}")
        return RepositoryRecord(
            id=repo_id, friendly_name=self.friendly_name, organization="acme"
        )

    def close(self):
        pass


@pytest.fixture
def store():
    """A fake store holding the readme/src scenario."""
    return FakeObjectStore(
        {
            "readme.txt": b"hello readme",
            "src/main.txt": b"print('main')",
        }
    )


@pytest.fixture
def make_store():
    """Factory for fake stores with custom objects."""
    return FakeObjectStore
