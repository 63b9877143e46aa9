"""
In-process key-value store with expiring entries.

Suitable for workers that share one process (threads or asyncio tasks),
and as the store used by the test suite. Expiry is evaluated lazily on
access against a monotonic clock.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from hyperlease.errors import StoreUnavailableError


@dataclass(slots=True)
class StoredValue:
    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryKVStore:
    """
    Thread-safe in-memory implementation of the KVStore protocol.

    Attributes:
        clock: Callable returning the current monotonic time in seconds
        reachable: When False every operation raises StoreUnavailableError,
            which lets callers exercise outage handling
    """

    __slots__ = (
        "_entries",
        "_lock",
        "_clock",
        "reachable",
    )

    def __init__(
        self,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._entries: dict[str, StoredValue] = {}
        self._lock = threading.Lock()
        self._clock = clock or time.monotonic
        self.reachable = True

    @property
    def name(self) -> str:
        return "memory"

    def _check_reachable(self, operation: str) -> None:
        if not self.reachable:
            raise StoreUnavailableError(self.name, operation)

    def _live_entry(self, key: str, now: float) -> StoredValue | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(now):
            del self._entries[key]
            return None

        return entry

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        self._check_reachable("set_if_absent")

        with self._lock:
            now = self._clock()
            if self._live_entry(key, now) is not None:
                return False

            self._entries[key] = StoredValue(
                value=value,
                expires_at=now + ttl,
            )
            return True

    async def expire(self, key: str, ttl: float) -> bool:
        self._check_reachable("expire")

        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return False

            entry.expires_at = now + ttl
            return True

    async def delete(self, key: str) -> bool:
        self._check_reachable("delete")

        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None:
                return False

            del self._entries[key]
            return True

    async def get(self, key: str) -> str | None:
        self._check_reachable("get")

        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None:
                return None

            return entry.value

    def ttl(self, key: str) -> float | None:
        """Remaining lifetime of key in seconds, or None if absent."""
        with self._lock:
            now = self._clock()
            entry = self._live_entry(key, now)
            if entry is None:
                return None

            return max(0.0, entry.expires_at - now)

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()
