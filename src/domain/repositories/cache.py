"""Result cache interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.domain.models.cache import CachedResult


class ResultCacheRepository(ABC):
    """Key / JSON-blob store with expiry.

    Writes are whole-blob upserts: concurrent writers of the same key both
    succeed and the last one wins.
    """

    @abstractmethod
    async def get(self, cache_key: str) -> CachedResult | None:
        """Return the entry for the key, stale or not, or None."""

    @abstractmethod
    async def put(self, cache_key: str, payload: dict[str, Any], ttl_seconds: int) -> None:
        """Store the payload under the key, expiring after ttl_seconds."""
