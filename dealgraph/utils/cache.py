"""
Enrichment Lookup Caching

Content-addressed caching for profile lookups using diskcache.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import diskcache
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """A cached profile lookup."""
    key: str
    lookup: str
    provider: str
    payload: dict
    created_at: datetime
    expires_at: datetime
    metadata: dict = Field(default_factory=dict)


class EnrichmentCache:
    """Content-addressed profile lookup cache.

    Uses SHA-256 hash of provider + lookup kind + query as cache key. Only
    successful lookups are stored, so a missing profile is asked for again.
    """

    def __init__(
        self,
        cache_path: str = ".cache/enrichment.db",
        ttl_days: int = 7,
        max_size_mb: int = 100,
        enabled: bool = True,
    ):
        """Initialize cache.

        Args:
            cache_path: Path to cache directory
            ttl_days: Time-to-live for cache entries
            max_size_mb: Maximum cache size in MB (0 = diskcache default)
            enabled: Whether caching is enabled
        """
        self.enabled = enabled
        self.ttl_days = ttl_days
        self.cache_path = Path(cache_path)
        self.max_size_bytes = max_size_mb * 1024 * 1024 if max_size_mb > 0 else None

        self._cache: Optional[diskcache.Cache] = None

        if self.enabled:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            settings = {"size_limit": self.max_size_bytes} if self.max_size_bytes else {}
            self._cache = diskcache.Cache(str(self.cache_path), **settings)
            logger.debug(f"Enrichment cache initialized at {self.cache_path}")

    def _generate_key(self, provider: str, lookup: str, query: dict) -> str:
        """Generate content-addressed cache key."""
        key_data = {
            "provider": provider,
            "lookup": lookup,
            "query": {k: str(v).lower().strip() for k, v in query.items()},
        }
        key_string = json.dumps(key_data, sort_keys=True)
        return hashlib.sha256(key_string.encode()).hexdigest()

    def get(self, provider: str, lookup: str, query: dict) -> Optional[dict]:
        """Retrieve a cached payload.

        Args:
            provider: Provider name
            lookup: Lookup kind, e.g. "email" or "search"
            query: Lookup arguments

        Returns:
            Cached payload or None if not found/expired
        """
        if not self.enabled or self._cache is None:
            return None

        key = self._generate_key(provider, lookup, query)

        try:
            entry_data = self._cache.get(key)
            if entry_data is None:
                return None

            entry = CacheEntry.model_validate_json(entry_data)

            if datetime.now() > entry.expires_at:
                self._cache.delete(key)
                return None

            logger.debug(f"Cache hit for {lookup} lookup {key[:16]}...")
            return entry.payload

        except Exception as e:
            logger.warning(f"Cache read error: {e}")
            return None

    def set(
        self,
        provider: str,
        lookup: str,
        query: dict,
        payload: dict,
        metadata: Optional[dict] = None,
    ) -> None:
        """Store a lookup payload."""
        if not self.enabled or self._cache is None:
            return

        key = self._generate_key(provider, lookup, query)
        now = datetime.now()

        entry = CacheEntry(
            key=key,
            lookup=lookup,
            provider=provider,
            payload=payload,
            created_at=now,
            expires_at=now + timedelta(days=self.ttl_days),
            metadata=metadata or {},
        )

        try:
            self._cache.set(key, entry.model_dump_json())
            logger.debug(f"Cached {lookup} lookup {key[:16]}...")

        except Exception as e:
            logger.warning(f"Cache write error: {e}")

    def clear(self) -> None:
        """Clear all cache entries."""
        if not self.enabled or self._cache is None:
            return

        try:
            self._cache.clear()
            logger.info("Enrichment cache cleared")
        except Exception as e:
            logger.warning(f"Cache clear error: {e}")

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        if not self.enabled or self._cache is None:
            return {"enabled": False}

        try:
            return {
                "enabled": True,
                "path": str(self.cache_path),
                "size_bytes": self._cache.volume(),
                "count": len(self._cache),
                "ttl_days": self.ttl_days,
            }
        except Exception as e:
            logger.warning(f"Cache stats error: {e}")
            return {"enabled": True, "error": str(e)}

    def close(self) -> None:
        """Close the cache."""
        if self._cache is not None:
            self._cache.close()
