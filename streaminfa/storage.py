"""Storage backend abstraction, object metadata types and an in-memory store."""

from __future__ import annotations

import dataclasses
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

MANIFEST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
JSON_CONTENT_TYPE = "application/json"


class StorageError(Exception):
    """Raised when a storage operation on ``path`` fails."""

    def __init__(self, path: str, reason: str, operation: str = "get") -> None:
        super().__init__(f"storage {operation} failed for {path}: {reason}")
        self.path = path
        self.reason = reason
        self.operation = operation


@dataclass(frozen=True)
class GetObjectOutput:
    """Body and metadata returned by a GET."""

    body: bytes
    content_length: int
    content_type: str
    last_modified: datetime
    etag: str


@dataclass(frozen=True)
class ObjectInfo:
    """An object as returned by a listing."""

    key: str
    size: int
    last_modified: datetime


@dataclass(frozen=True)
class ObjectMeta:
    """Metadata returned by a HEAD, without the body."""

    content_length: int
    content_type: str
    last_modified: datetime
    etag: str


@dataclass(frozen=True)
class StorageWrite:
    """A request to write one object to storage."""

    path: str
    data: bytes
    content_type: str


class MediaStore(ABC):
    """Abstract storage backend for segments, playlists and metadata."""

    @abstractmethod
    async def put_segment(self, path: str, data: bytes, content_type: str) -> None:
        """Write a segment or init segment."""

    @abstractmethod
    async def put_manifest(self, path: str, content: str) -> None:
        """Write (overwrite) a playlist."""

    @abstractmethod
    async def get_object(self, path: str) -> GetObjectOutput:
        """Read a whole object."""

    @abstractmethod
    async def get_object_range(self, path: str, start: int, end: int) -> GetObjectOutput:
        """Read the inclusive byte range ``start..=end`` of an object."""

    @abstractmethod
    async def delete_object(self, path: str) -> None:
        """Delete a single object."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every object under ``prefix``; return how many were deleted."""

    @abstractmethod
    async def list_objects(self, prefix: str) -> list[ObjectInfo]:
        """List objects under ``prefix``."""

    @abstractmethod
    async def put_metadata(self, path: str, metadata: Any) -> None:
        """Write stream metadata as JSON."""

    @abstractmethod
    async def head_object(self, path: str) -> ObjectMeta:
        """Return an object's metadata without its body."""


def content_type_for_path(path: str) -> str:
    """Return the content type implied by a path's extension."""
    if path.endswith((".m4s", ".mp4")):
        return "video/mp4"
    if path.endswith(".m3u8"):
        return MANIFEST_CONTENT_TYPE
    if path.endswith(".json"):
        return JSON_CONTENT_TYPE
    return "application/octet-stream"


def object_type_label(path: str) -> str:
    """Return the object type label used for metrics."""
    if path.endswith(".m4s"):
        return "segment"
    if path.endswith("init.mp4"):
        return "init_segment"
    if path.endswith("media.m3u8"):
        return "media_playlist"
    if path.endswith("master.m3u8"):
        return "master_playlist"
    if path.endswith("metadata.json"):
        return "metadata"
    return "other"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


@dataclass(frozen=True)
class _StoredObject:
    data: bytes
    content_type: str
    created_at: datetime

    @property
    def etag(self) -> str:
        return f'"{len(self.data)}"'


class InMemoryMediaStore(MediaStore):
    """A storage backend that keeps every object in a dictionary."""

    def __init__(self) -> None:
        self._objects: dict[str, _StoredObject] = {}

    def _store(self, path: str, data: bytes, content_type: str) -> None:
        self._objects[path] = _StoredObject(
            data=bytes(data),
            content_type=content_type,
            created_at=datetime.now(timezone.utc),
        )

    def _lookup(self, path: str) -> _StoredObject:
        try:
            return self._objects[path]
        except KeyError:
            raise StorageError(path, "not found", "get") from None

    async def put_segment(self, path: str, data: bytes, content_type: str) -> None:
        self._store(path, data, content_type)

    async def put_manifest(self, path: str, content: str) -> None:
        self._store(path, content.encode("utf-8"), MANIFEST_CONTENT_TYPE)

    async def get_object(self, path: str) -> GetObjectOutput:
        obj = self._lookup(path)
        return GetObjectOutput(
            body=obj.data,
            content_length=len(obj.data),
            content_type=obj.content_type,
            last_modified=obj.created_at,
            etag=obj.etag,
        )

    async def get_object_range(self, path: str, start: int, end: int) -> GetObjectOutput:
        obj = self._lookup(path)
        size = len(obj.data)
        end = min(end, max(size - 1, 0))
        if start >= size:
            raise StorageError(
                path, f"range start {start} exceeds object size {size}", "get"
            )
        if start < 0 or end < start:
            raise StorageError(path, f"invalid range {start}-{end}", "get")
        body = obj.data[start : end + 1]
        return GetObjectOutput(
            body=body,
            content_length=end - start + 1,
            content_type=obj.content_type,
            last_modified=obj.created_at,
            etag=obj.etag,
        )

    async def delete_object(self, path: str) -> None:
        self._objects.pop(path, None)

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._objects if key.startswith(prefix)]
        for key in doomed:
            del self._objects[key]
        return len(doomed)

    async def list_objects(self, prefix: str) -> list[ObjectInfo]:
        return sorted(
            (
                ObjectInfo(key=key, size=len(obj.data), last_modified=obj.created_at)
                for key, obj in self._objects.items()
                if key.startswith(prefix)
            ),
            key=lambda info: info.key,
        )

    async def put_metadata(self, path: str, metadata: Any) -> None:
        try:
            payload = (
                dataclasses.asdict(metadata)
                if dataclasses.is_dataclass(metadata) and not isinstance(metadata, type)
                else metadata
            )
            text = json.dumps(payload, default=_json_default)
        except (TypeError, ValueError) as exc:
            raise StorageError(
                path, f"failed to serialize metadata: {exc}", "put"
            ) from exc
        self._store(path, text.encode("utf-8"), JSON_CONTENT_TYPE)

    async def head_object(self, path: str) -> ObjectMeta:
        obj = self._lookup(path)
        return ObjectMeta(
            content_length=len(obj.data),
            content_type=obj.content_type,
            last_modified=obj.created_at,
            etag=obj.etag,
        )

    async def exists(self, path: str) -> bool:
        """Whether an object is stored at ``path``."""
        return path in self._objects

    async def object_count(self) -> int:
        """Number of stored objects."""
        return len(self._objects)