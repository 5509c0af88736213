"""Key/value blob stores holding serialized portal sessions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import redis.asyncio as redis
from loguru import logger

from config.settings import Settings, settings as default_settings


class BlobStore(ABC):
    """Read side of a key/value store of opaque string blobs."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the blob stored under ``key``, or None."""

    async def close(self) -> None:
        return None


class RedisBlobStore(BlobStore):
    """Blobs kept in the shared Redis cache the login job writes to."""

    def __init__(self, url: str) -> None:
        self._url = url
        self._client: Optional[redis.Redis] = None

    def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(self._url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[str]:
        value = await self._redis().get(key)
        return value or None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class FileBlobStore(BlobStore):
    """
    File-backed store for local runs.

    Each key is one file under ``root`` (``<key>.json``) containing the raw
    blob exactly as it would sit in Redis.
    """

    def __init__(self, root: str) -> None:
        self._root = Path(root)

    def path_for(self, key: str) -> Path:
        safe = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.is_file():
            return None
        with open(path, "r", encoding="utf-8") as fh:
            value = fh.read().strip()
        return value or None


def build_blob_store(config: Optional[Settings] = None) -> BlobStore:
    """Create the backend selected by ``SESSION_BACKEND``."""
    config = config or default_settings
    backend = config.session_backend.lower()
    if backend == "redis":
        return RedisBlobStore(config.redis_url)
    if backend == "file":
        return FileBlobStore(config.session_dir)
    logger.error(f"Unknown session backend {config.session_backend!r}")
    raise ValueError(f"Unknown session backend: {config.session_backend!r}")
