# childcare/repositories/blob_repo.py
"""
Blob storage for user images.

Every object lives at "<owner id>/<file name>" inside one bucket, so a
user's images can be found, and bulk-deleted, by prefix.

Two implementations share the BlobStore protocol:
  - SupabaseBlobStore: Supabase Storage bucket (production)
  - InMemoryBlobStore: dict-backed store for development and tests
"""

import logging
import mimetypes
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from supabase import Client

from childcare.core.errors import BlobNotFoundError, BlobStoreError
from childcare.models.image import owner_prefix

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Supabase Storage list() page size
LIST_PAGE_SIZE = 100


class BlobStore(Protocol):
    """Operations the services need from object storage."""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at `path` (overwriting) and return the object URL."""
        ...

    def download(self, path: str) -> tuple[bytes, str]:
        """Return (bytes, content type); BlobNotFoundError if missing."""
        ...

    def delete(self, path: str) -> None:
        ...

    def delete_all_for_owner(self, owner_id: str) -> int:
        """Delete every object under "<owner_id>/"; return how many."""
        ...

    def list_all(self) -> list[str]:
        ...


class InMemoryBlobStore:
    """Test double and development fallback for the image bucket."""

    def __init__(self, base_url: str = "http://localhost:8080/api/images"):
        self.base_url = base_url
        self.objects: dict[str, tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self.objects[path] = (bytes(data), content_type or DEFAULT_CONTENT_TYPE)
        return f"{self.base_url}/{path}"

    def download(self, path: str) -> tuple[bytes, str]:
        with self._lock:
            stored = self.objects.get(path)
        if stored is None:
            raise BlobNotFoundError(path)
        return stored

    def delete(self, path: str) -> None:
        with self._lock:
            if path not in self.objects:
                raise BlobNotFoundError(path)
            del self.objects[path]

    def delete_all_for_owner(self, owner_id: str) -> int:
        prefix = owner_prefix(owner_id)
        with self._lock:
            doomed = [p for p in self.objects if p.startswith(prefix)]
            for path in doomed:
                del self.objects[path]
        return len(doomed)

    def list_all(self) -> list[str]:
        with self._lock:
            return sorted(self.objects)


@contextmanager
def _storage_errors(operation: str, path: str) -> Iterator[None]:
    """Re-raise any Supabase/httpx failure as BlobStoreError."""
    try:
        yield
    except BlobStoreError:
        raise
    except Exception as exc:
        if "not found" in str(exc).lower():
            raise BlobNotFoundError(path) from exc
        raise BlobStoreError(f"{operation} {path!r}: {exc}") from exc


class SupabaseBlobStore:
    """
    Image bucket backed by Supabase Storage.

    Uploads use upsert so re-uploading the same file name replaces the
    object in place.
    """

    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    @property
    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        with _storage_errors("upload", path):
            self._bucket.upload(
                path,
                data,
                {"content-type": content_type or DEFAULT_CONTENT_TYPE, "upsert": "true"},
            )
            return self._bucket.get_public_url(path)

    def download(self, path: str) -> tuple[bytes, str]:
        with _storage_errors("download", path):
            data = self._bucket.download(path)
        # Storage does not echo the stored content type on download.
        content_type, _ = mimetypes.guess_type(path)
        return data, content_type or DEFAULT_CONTENT_TYPE

    def delete(self, path: str) -> None:
        with _storage_errors("delete", path):
            self._bucket.remove([path])

    def delete_all_for_owner(self, owner_id: str) -> int:
        folder = owner_id
        paths = [f"{folder}/{name}" for name in self._list_names(folder)]
        if not paths:
            return 0
        with _storage_errors("delete_all_for_owner", folder):
            self._bucket.remove(paths)
        logger.info("Deleted %d blob(s) under %s/", len(paths), folder)
        return len(paths)

    def list_all(self) -> list[str]:
        paths: list[str] = []
        # Top level holds one folder per owner; objects sit one level down.
        for entry in self._list_entries(""):
            name = entry.get("name")
            if not name:
                continue
            if entry.get("id") is None:
                paths.extend(f"{name}/{child}" for child in self._list_names(name))
            else:
                paths.append(name)
        return sorted(paths)

    def _list_names(self, folder: str) -> list[str]:
        return [
            entry["name"]
            for entry in self._list_entries(folder)
            if entry.get("name") and entry.get("id") is not None
        ]

    def _list_entries(self, folder: str) -> list[dict]:
        entries: list[dict] = []
        offset = 0
        while True:
            with _storage_errors("list", folder or "/"):
                page = self._bucket.list(
                    folder,
                    {"limit": LIST_PAGE_SIZE, "offset": offset},
                )
            entries.extend(page)
            if len(page) < LIST_PAGE_SIZE:
                return entries
            offset += LIST_PAGE_SIZE
