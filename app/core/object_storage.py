"""
Object Storage
--------------
Filesystem-backed object store for expert documents.

Objects are addressed by slash-separated keys (``experts/<user>/<type>/<ms>_<name>``)
and stored under ``settings.storage_root``. Blocking file I/O runs in a worker
thread so request handlers never block the event loop.
"""

import asyncio
import re
import time
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger

from app.core.config_manager import settings

ALLOWED_DOCUMENT_TYPES = [
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class ObjectNotFoundError(Exception):
    """Raised when a key has no stored object."""


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", filename or "file")


def build_document_key(user_id: str, document_type: str, filename: str) -> str:
    timestamp_ms = int(time.time() * 1000)
    safe_type = sanitize_filename(document_type or "other")
    return f"experts/{user_id}/{safe_type}/{timestamp_ms}_{sanitize_filename(filename)}"


class LocalObjectStorage:
    """Stores each object as a file plus a sidecar holding its content type."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.storage_root).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Object key escapes storage root: {key}")
        return path

    def _write(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        path.with_name(path.name + ".content-type").write_text(content_type)

    def _read(self, key: str) -> Tuple[bytes, str]:
        path = self._path_for(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        type_file = path.with_name(path.name + ".content-type")
        content_type = (
            type_file.read_text() if type_file.is_file() else "application/octet-stream"
        )
        return path.read_bytes(), content_type

    def _remove(self, key: str) -> None:
        path = self._path_for(key)
        path.unlink(missing_ok=True)
        path.with_name(path.name + ".content-type").unlink(missing_ok=True)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(self._write, key, data, content_type)
        logger.info(f"Stored object {key} ({len(data)} bytes)")

    async def get(self, key: str) -> Tuple[bytes, str]:
        return await asyncio.to_thread(self._read, key)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
        logger.info(f"Deleted object {key}")


def get_object_storage() -> LocalObjectStorage:
    """FastAPI dependency returning the configured storage backend."""
    return LocalObjectStorage()
