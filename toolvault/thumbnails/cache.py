"""Bounded, expiring thumbnail cache on top of a key-value store.

Entries are kept as JSON records ``{"payload", "createdAt", "sizeBytes"}``
under ``<key_prefix><asset_id>``. The payload is stored as a base64 data URL.
"""

from __future__ import annotations

import base64
import logging
import math
import time
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from toolvault.thumbnails.config import CacheLimits
from toolvault.thumbnails.store import Store, StoreError, StoreWriteError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:"
BASE64_MARKER = ";base64,"


def encode_data_url(payload: bytes, mime_type: str = "image/png") -> str:
    """Encode bytes as a ``data:`` URL."""
    return f"{DATA_URL_PREFIX}{mime_type}{BASE64_MARKER}" + base64.b64encode(payload).decode("ascii")


def decode_data_url(data_url: str) -> bytes:
    """Decode a base64 ``data:`` URL back to bytes.

    Raises:
        ValueError: If the string is not a base64 data URL.
    """
    header, sep, body = data_url.partition(",")
    if not sep or not header.startswith(DATA_URL_PREFIX) or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URL")
    return base64.b64decode(body, validate=True)


def format_size(size_bytes: int) -> str:
    """Format a byte count for humans."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


class CacheRecord(BaseModel):
    """Persisted form of a cache entry."""

    model_config = ConfigDict(populate_by_name=True)

    payload: str
    created_at: float = Field(alias="createdAt")
    size_bytes: int = Field(alias="sizeBytes", ge=0)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class CacheEntry(BaseModel):
    """A cached thumbnail."""

    asset_id: str
    payload: bytes
    created_at: float
    size_bytes: int

    @classmethod
    def from_record(cls, asset_id: str, record: CacheRecord) -> "CacheEntry":
        return cls(
            asset_id=asset_id,
            payload=decode_data_url(record.payload),
            created_at=record.created_at,
            size_bytes=record.size_bytes,
        )


class CacheStats(BaseModel):
    """Statistics for the thumbnail cache."""

    count: int
    total_size_bytes: int

    @property
    def size_formatted(self) -> str:
        return format_size(self.total_size_bytes)


class ThumbnailCache:
    """Size- and count-bounded thumbnail cache with lazy TTL expiry.

    The cache is best-effort: storage failures are logged and swallowed so
    that a broken or full store never breaks thumbnail display.
    """

    def __init__(
        self,
        store: Store,
        limits: CacheLimits | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.limits = limits or CacheLimits()
        self._clock = clock

    def _key(self, asset_id: str) -> str:
        return f"{self.limits.key_prefix}{asset_id}"

    def _is_expired(self, created_at: float) -> bool:
        return self._clock() - created_at >= self.limits.max_age_seconds

    def set(self, asset_id: str, payload: bytes) -> None:
        """Store a thumbnail, evicting old entries as needed."""
        key = self._key(asset_id)
        size = len(payload)

        try:
            if size > self.limits.max_size_bytes:
                logger.warning(
                    f"Thumbnail for {asset_id} is {format_size(size)}, "
                    f"larger than the whole cache; not caching"
                )
                self.store.remove(key)
                return
            self._ensure_capacity(key, size)
        except StoreError as e:
            # Caps only hold after a completed capacity check
            logger.warning(f"Cache capacity check failed for {asset_id}, not caching: {e}")
            return

        record = CacheRecord(
            payload=encode_data_url(payload),
            created_at=self._clock(),
            size_bytes=size,
        ).to_json()

        try:
            self.store.set(key, record)
        except StoreWriteError as e:
            logger.warning(f"Failed to cache thumbnail {asset_id}: {e}")
            self.cleanup(self.limits.retry_evict_count)
            try:
                self.store.set(key, record)
            except StoreWriteError as retry_error:
                logger.error(
                    f"Failed to cache thumbnail {asset_id} after cleanup: {retry_error}"
                )

    def get(self, asset_id: str) -> bytes | None:
        """Return a cached thumbnail, or None if missing, expired or corrupt."""
        entry = self.get_entry(asset_id)
        return entry.payload if entry else None

    def get_entry(self, asset_id: str) -> CacheEntry | None:
        """Return the full cache entry for an asset."""
        key = self._key(asset_id)
        try:
            raw = self.store.get(key)
            if raw is None:
                return None

            try:
                record = CacheRecord.model_validate_json(raw)
                entry = CacheEntry.from_record(asset_id, record)
            except ValueError as e:
                logger.warning(f"Dropping corrupt cache entry {key}: {e}")
                self.store.remove(key)
                return None

            if self._is_expired(entry.created_at):
                logger.debug(f"Cache entry {key} expired")
                self.store.remove(key)
                return None

            return entry
        except StoreError as e:
            logger.warning(f"Failed to retrieve cached thumbnail {asset_id}: {e}")
            return None

    def has(self, asset_id: str) -> bool:
        """Check if a live thumbnail is cached."""
        return self.get(asset_id) is not None

    def remove(self, asset_id: str) -> None:
        """Remove a thumbnail. Removing a missing one is a no-op."""
        try:
            self.store.remove(self._key(asset_id))
        except StoreError as e:
            logger.warning(f"Failed to remove cached thumbnail {asset_id}: {e}")

    def _records(self) -> list[tuple[str, CacheRecord]]:
        """All parseable records under the namespace; corrupt ones are deleted."""
        records: list[tuple[str, CacheRecord]] = []
        for key in self.store.keys():
            if not key.startswith(self.limits.key_prefix):
                continue
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                record = CacheRecord.model_validate_json(raw)
                decode_data_url(record.payload)
            except ValueError:
                logger.debug(f"Removing unparseable cache entry {key}")
                self.store.remove(key)
                continue
            records.append((key, record))
        return records

    def _ensure_capacity(self, key: str, incoming_size: int) -> None:
        """Evict oldest entries so that adding `incoming_size` stays in bounds."""
        records = [(k, r) for k, r in self._records() if k != key]
        count = len(records) + 1
        total = sum(r.size_bytes for _, r in records) + incoming_size

        if count <= self.limits.max_items and total <= self.limits.max_size_bytes:
            return

        records.sort(key=lambda item: (item[1].created_at, item[0]))
        remove_count = max(
            count - self.limits.max_items + self.limits.headroom_items,
            math.ceil(count * self.limits.evict_fraction),
        )
        remove_count = min(remove_count, len(records))

        evicted = records[:remove_count]
        remaining = records[remove_count:]
        total -= sum(r.size_bytes for _, r in evicted)

        # A large incoming payload may need more room than the count heuristic frees
        while total > self.limits.max_size_bytes and remaining:
            item = remaining.pop(0)
            evicted.append(item)
            total -= item[1].size_bytes

        for evicted_key, _ in evicted:
            self.store.remove(evicted_key)
        logger.info(f"Evicted {len(evicted)} cached thumbnails")

    def cleanup(self, count: int = 10) -> int:
        """Remove the `count` oldest entries. Returns count removed."""
        try:
            records = self._records()
            records.sort(key=lambda item: (item[1].created_at, item[0]))
            to_remove = records[: min(count, len(records))]
            for key, _ in to_remove:
                self.store.remove(key)
        except StoreError as e:
            logger.warning(f"Failed to cleanup cache: {e}")
            return 0
        logger.info(f"Cleaned up {len(to_remove)} cached thumbnails")
        return len(to_remove)

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns count removed."""
        try:
            expired = [k for k, r in self._records() if self._is_expired(r.created_at)]
            for key in expired:
                self.store.remove(key)
        except StoreError as e:
            logger.warning(f"Failed to purge expired thumbnails: {e}")
            return 0
        return len(expired)

    def clear(self) -> int:
        """Remove all thumbnails under this cache's namespace. Returns count removed."""
        try:
            keys = [k for k in self.store.keys() if k.startswith(self.limits.key_prefix)]
            for key in keys:
                self.store.remove(key)
        except StoreError as e:
            logger.warning(f"Failed to clear cache: {e}")
            return 0
        logger.info(f"Cleared {len(keys)} cached thumbnails")
        return len(keys)

    def stats(self) -> CacheStats:
        """Get count and total payload size of cached thumbnails."""
        try:
            records = self._records()
        except StoreError as e:
            logger.warning(f"Failed to read cache stats: {e}")
            return CacheStats(count=0, total_size_bytes=0)
        return CacheStats(
            count=len(records),
            total_size_bytes=sum(r.size_bytes for _, r in records),
        )
