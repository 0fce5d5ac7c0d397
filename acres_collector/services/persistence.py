"""
Snapshot persistence gateways.

The core only needs save() and load(). Three backends are provided: a JSON
file (default), a Redis key and a process-local memory slot.
"""
import asyncio
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles
import redis.asyncio as redis
import structlog
from pydantic import ValidationError

from ..errors import PersistenceError
from ..models import Snapshot

logger = structlog.get_logger(__name__)


class SnapshotGateway(ABC):
    """Load/save contract for the collector snapshot."""

    @abstractmethod
    async def save(self, snapshot: Snapshot) -> None:
        """Persist the snapshot, replacing any previous one."""

    @abstractmethod
    async def load(self) -> Optional[Snapshot]:
        """Return the last saved snapshot, or None if nothing was saved."""

    async def close(self) -> None:
        pass


class MemoryGateway(SnapshotGateway):
    """Keeps the serialized snapshot in memory."""

    def __init__(self):
        self._raw: Optional[str] = None
        self.save_count = 0

    async def save(self, snapshot: Snapshot) -> None:
        self._raw = snapshot.to_json()
        self.save_count += 1

    async def load(self) -> Optional[Snapshot]:
        if self._raw is None:
            return None
        return Snapshot.from_json(self._raw)


class JsonFileGateway(SnapshotGateway):
    """Snapshot stored as one JSON document, replaced atomically on save."""

    def __init__(self, path: Path):
        self.path = Path(path)
        # Saves run one at a time and in call order, so the newest snapshot lands last
        self._save_lock = asyncio.Lock()

    async def save(self, snapshot: Snapshot) -> None:
        async with self._save_lock:
            await self._write(snapshot)

    async def _write(self, snapshot: Snapshot) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(snapshot.to_json())
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to save snapshot", path=str(self.path), error=str(e))
            raise PersistenceError(f"Could not write snapshot to {self.path}: {e}") from e

        logger.debug("Snapshot saved",
                     path=str(self.path),
                     properties=len(snapshot.entities),
                     profiles=len(snapshot.profiles))

    async def load(self) -> Optional[Snapshot]:
        if not self.path.exists():
            return None
        try:
            async with aiofiles.open(self.path, 'r', encoding='utf-8') as f:
                raw = await f.read()
        except OSError as e:
            raise PersistenceError(f"Could not read snapshot from {self.path}: {e}") from e

        if not raw.strip():
            return None
        try:
            return Snapshot.from_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt snapshot in {self.path}: {e}") from e


class RedisGateway(SnapshotGateway):
    """Snapshot stored as a JSON string under one Redis key."""

    def __init__(self, client: redis.Redis, key: str = "acres_collector:snapshot"):
        self.redis = client
        self.key = key

    @classmethod
    def from_url(cls, url: str, key: str = "acres_collector:snapshot") -> "RedisGateway":
        return cls(redis.from_url(url, decode_responses=True), key=key)

    async def save(self, snapshot: Snapshot) -> None:
        try:
            await self.redis.set(self.key, snapshot.to_json())
        except redis.RedisError as e:
            logger.error("Failed to save snapshot to Redis", key=self.key, error=str(e))
            raise PersistenceError(f"Could not save snapshot to Redis: {e}") from e

    async def load(self) -> Optional[Snapshot]:
        try:
            raw = await self.redis.get(self.key)
        except redis.RedisError as e:
            raise PersistenceError(f"Could not load snapshot from Redis: {e}") from e

        if raw is None:
            return None
        try:
            return Snapshot.from_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt snapshot under {self.key}: {e}") from e

    async def close(self) -> None:
        await self.redis.aclose()


def create_gateway(settings) -> SnapshotGateway:
    """Build the gateway selected by STORAGE_BACKEND."""
    backend = settings.STORAGE_BACKEND
    if backend == "memory":
        return MemoryGateway()
    if backend == "redis":
        return RedisGateway.from_url(settings.REDIS_URL, key=settings.SNAPSHOT_KEY)
    return JsonFileGateway(settings.STORAGE_PATH)
