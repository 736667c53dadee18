import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Callable, Dict, Mapping, Optional


@dataclass(frozen=True)
class CacheEntry:
    value: str
    created_at: datetime


def time_bucket(moment: datetime, bucket_minutes: int) -> int:
    """Index of the fixed-width window containing ``moment``."""
    return int(moment.timestamp() // (bucket_minutes * 60))


def make_cache_key(salt: str, payload: Mapping[str, Any]) -> str:
    """Salted SHA-256 over a canonical JSON rendering of ``payload``."""
    digest = sha256()
    digest.update(salt.encode("utf-8"))
    digest.update(json.dumps(payload, sort_keys=True, default=str).encode("utf-8"))
    return digest.hexdigest()[:32]


class GenerationCache:
    """Bounded map of rendered template text.

    Entries expire after ``ttl``; when full, the oldest insertion is evicted.
    Keys are content hashes, so concurrent writers store identical values and
    last-writer-wins is safe without a lock.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl: timedelta = timedelta(minutes=30),
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        self._now = now
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._now() - entry.created_at >= self.ttl:
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: str, value: str) -> None:
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries), None)
            if oldest is None:
                break
            self._entries.pop(oldest, None)
        self._entries[key] = CacheEntry(value=value, created_at=self._now())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def clear(self) -> None:
        self._entries.clear()
