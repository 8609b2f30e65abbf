"""
Key-Value Persistence - The Bridge Pattern

Gallery entries, prompt history and the provider credential are stored as
JSON values under string keys. LocalKeyValueStore keeps them in one JSON file
(development); RedisKeyValueStore keeps them in Redis (production).
"""

import json
import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import redis.asyncio as redis

from flux_studio.core.config import settings
from flux_studio.core.logging import get_logger

logger = get_logger(__name__)


class IKeyValueStore(ABC):
    """Interface for key-value state."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value for key, or None when absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key if present."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None


class LocalKeyValueStore(IKeyValueStore):
    """JSON-file backed store for development and tests."""

    def __init__(self, path: str = "./data/state.json"):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError:
            logger.warning("kv_store_corrupt_file", path=str(self.path))
            return {}

    def _write_all(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp_path.replace(self.path)

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return self._read_all().get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


class RedisKeyValueStore(IKeyValueStore):
    """Redis-backed store."""

    def __init__(self, redis_client, prefix: str = "flux_studio"):
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.redis.get(self._key(key))
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any) -> None:
        await self.redis.set(self._key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def close(self) -> None:
        await self.redis.aclose()


class KeyValueStoreFactory:
    """
    Factory for the key-value store singleton.

    KV_BACKEND=redis switches to Redis; anything else uses the local JSON file.
    """

    _instance: Optional[IKeyValueStore] = None

    @classmethod
    def get_store(cls) -> IKeyValueStore:
        if cls._instance is None:
            if settings.KV_BACKEND.lower() == "redis":
                client = redis.from_url(
                    settings.REDIS_URL,
                    encoding="utf-8",
                    decode_responses=True
                )
                cls._instance = RedisKeyValueStore(client)
            else:
                cls._instance = LocalKeyValueStore(settings.LOCAL_STATE_PATH)
            logger.info("kv_store_initialized", backend=type(cls._instance).__name__)
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None
