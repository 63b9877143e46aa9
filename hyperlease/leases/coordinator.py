"""
Lease coordination over a shared key-value store.

This implementation provides:
- Mutual exclusion: one atomic set-if-absent decides who holds a key
- Time-bounded ownership: leases expire in the store without a release
- Non-blocking acquisition: contention is reported, never waited on
- Fail-closed acquisition: an unreachable store means "not acquired"

The store is the single arbitration point. Local records only mirror
what this coordinator was granted, so several coordinators (in one
process or many) can share a store safely.

Usage:
    coordinator = LeaseCoordinator(MemoryKVStore(), default_ttl=120)

    if await coordinator.acquire("lease:T1:R1", "worker-1"):
        try:
            await coordinator.extend("lease:T1:R1")
        finally:
            await coordinator.release("lease:T1:R1")
"""

from __future__ import annotations

import threading
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from hyperlease.env import Env
from hyperlease.errors import StoreUnavailableError
from hyperlease.logging import Logger
from hyperlease.logging.hyperlease_logging_models import (
    LeaseDebug,
    LeaseError,
    LeaseInfo,
    LeaseWarning,
)
from hyperlease.stores import KVStore, create_store

from .lease import Lease, LeaseState


LOGGER_NAME = "hyperlease.leases"


class LeaseCoordinator:
    """
    Grants mutually-exclusive, time-bounded access to named resources.

    Attributes:
        store: The shared key-value store used for arbitration
        default_ttl: Lease duration used when a call does not give one
    """

    __slots__ = (
        "_store",
        "_default_ttl",
        "_logger",
        "_clock",
        "_leases",
        "_lock",
    )

    def __init__(
        self,
        store: KVStore,
        default_ttl: float = 120.0,
        logger: Logger | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            store: Injected key-value store client
            default_ttl: Default lease duration in seconds
            logger: Logger to report lease activity to
            clock: Monotonic clock used for local lease records
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self._store = store
        self._default_ttl = default_ttl
        self._logger = logger or Logger()
        self._clock = clock or time.monotonic
        self._leases: dict[str, Lease] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_env(
        cls,
        env: Env,
        store: KVStore | None = None,
        logger: Logger | None = None,
    ) -> LeaseCoordinator:
        env.configure_logging()

        return cls(
            store or create_store(env),
            default_ttl=env.lease_ttl,
            logger=logger,
        )

    @property
    def store(self) -> KVStore:
        return self._store

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def _resolve_ttl(self, ttl: float | None) -> float:
        if ttl is None:
            return self._default_ttl

        if ttl <= 0:
            raise ValueError(f"Lease ttl must be positive, got {ttl}")

        return ttl

    async def acquire(
        self,
        resource_key: str,
        holder_id: str,
        ttl: float | None = None,
    ) -> bool:
        """
        Attempt to acquire a lease on resource_key.

        Makes a single atomic set-if-absent round trip to the store and
        never blocks waiting for a current holder.

        Args:
            resource_key: Key of the contested resource
            holder_id: Identifier of the acquiring process or thread
            ttl: Lease duration in seconds (uses default if not specified)

        Returns:
            True if the lease was granted, False if another unexpired lease
            exists or the store could not be reached
        """
        ttl = self._resolve_ttl(ttl)

        try:
            acquired = await self._store.set_if_absent(
                resource_key,
                holder_id,
                ttl,
            )

        except StoreUnavailableError as err:
            await self._logger.log(
                LeaseError(
                    message="Store unreachable during acquire, treating lease as denied",
                    resource_key=resource_key,
                    holder_id=holder_id,
                    error=str(err),
                ),
                name=LOGGER_NAME,
            )
            return False

        if not acquired:
            await self._logger.log(
                LeaseDebug(
                    message="Lease held by another holder",
                    resource_key=resource_key,
                    holder_id=holder_id,
                    ttl_seconds=ttl,
                ),
                name=LOGGER_NAME,
            )
            return False

        with self._lock:
            self._leases[resource_key] = Lease(
                resource_key=resource_key,
                holder_id=holder_id,
                acquired_at=self._clock(),
                ttl_seconds=ttl,
            )

        await self._logger.log(
            LeaseDebug(
                message="Acquired lease",
                resource_key=resource_key,
                holder_id=holder_id,
                ttl_seconds=ttl,
            ),
            name=LOGGER_NAME,
        )

        return True

    async def release(self, resource_key: str) -> bool:
        """
        Delete the lease on resource_key.

        No ownership check is made against the store: whoever calls
        release removes the entry, even if it now belongs to another
        holder. Releasing an absent or expired key is not an error.

        Returns:
            True if a store entry was removed
        """
        with self._lock:
            lease = self._leases.pop(resource_key, None)

        holder_id = lease.holder_id if lease else None

        if lease is None:
            await self._logger.log(
                LeaseWarning(
                    message="Releasing a lease this coordinator did not grant",
                    resource_key=resource_key,
                ),
                name=LOGGER_NAME,
            )

        elif lease.is_expired(self._clock()):
            await self._logger.log(
                LeaseWarning(
                    message="Lease expired before release, key may belong to another holder",
                    resource_key=resource_key,
                    holder_id=holder_id,
                ),
                name=LOGGER_NAME,
            )

        try:
            removed = await self._store.delete(resource_key)

        except StoreUnavailableError as err:
            await self._logger.log(
                LeaseError(
                    message="Store unreachable during release, lease will lapse at ttl",
                    resource_key=resource_key,
                    holder_id=holder_id,
                    error=str(err),
                ),
                name=LOGGER_NAME,
            )
            removed = False

        if lease:
            lease.mark_released()

        await self._logger.log(
            LeaseDebug(
                message="Released lease" if removed else "Lease already absent at release",
                resource_key=resource_key,
                holder_id=holder_id,
            ),
            name=LOGGER_NAME,
        )

        return removed

    async def extend(
        self,
        resource_key: str,
        ttl: float | None = None,
    ) -> bool:
        """
        Reset the expiry window of resource_key to ttl seconds from now.

        No-op if the key is absent, which means the lease already expired
        or was released.

        Returns:
            True if the store entry existed and was extended
        """
        ttl = self._resolve_ttl(ttl)

        try:
            extended = await self._store.expire(resource_key, ttl)

        except StoreUnavailableError as err:
            await self._logger.log(
                LeaseError(
                    message="Store unreachable during extend",
                    resource_key=resource_key,
                    error=str(err),
                ),
                name=LOGGER_NAME,
            )
            return False

        with self._lock:
            lease = self._leases.get(resource_key)

            if lease and extended:
                lease.extend(ttl, now=self._clock())

            elif lease:
                lease.mark_expired()
                del self._leases[resource_key]

        if extended:
            await self._logger.log(
                LeaseDebug(
                    message="Extended lease",
                    resource_key=resource_key,
                    holder_id=lease.holder_id if lease else None,
                    ttl_seconds=ttl,
                ),
                name=LOGGER_NAME,
            )

        else:
            await self._logger.log(
                LeaseInfo(
                    message="Lease absent at extend, nothing to extend",
                    resource_key=resource_key,
                    ttl_seconds=ttl,
                ),
                name=LOGGER_NAME,
            )

        return extended

    async def holder(self, resource_key: str) -> str | None:
        """
        Get the holder currently recorded in the store for resource_key.

        Returns None if the key is absent, expired or the store could not
        be reached.
        """
        try:
            return await self._store.get(resource_key)

        except StoreUnavailableError as err:
            await self._logger.log(
                LeaseError(
                    message="Store unreachable during holder lookup",
                    resource_key=resource_key,
                    error=str(err),
                ),
                name=LOGGER_NAME,
            )
            return None

    def get_lease(self, resource_key: str) -> Lease | None:
        """
        Get this coordinator's record of a lease it granted.

        Returns None if no record exists or it has expired locally.
        """
        with self._lock:
            lease = self._leases.get(resource_key)
            if lease and lease.is_active(self._clock()):
                return lease

            return None

    def held_keys(self) -> list[str]:
        """Get the keys this coordinator holds unexpired leases on."""
        now = self._clock()

        with self._lock:
            return [
                resource_key
                for resource_key, lease in self._leases.items()
                if lease.is_active(now)
            ]

    def cleanup_expired(self) -> list[Lease]:
        """
        Drop local records of leases whose ttl has passed.

        Returns the leases that were dropped.
        """
        now = self._clock()
        expired: list[Lease] = []

        with self._lock:
            for resource_key, lease in list(self._leases.items()):
                if lease.state == LeaseState.ACTIVE and lease.is_expired(now):
                    lease.mark_expired()
                    expired.append(lease)
                    del self._leases[resource_key]

        return expired

    @asynccontextmanager
    async def lease(
        self,
        resource_key: str,
        holder_id: str,
        ttl: float | None = None,
    ) -> AsyncIterator[Lease | None]:
        """
        Scoped acquisition with guaranteed release.

        Yields the granted Lease, or None if acquisition was denied. When
        granted, the lease is released on every exit from the block,
        including exceptions and cancellation.
        """
        acquired = await self.acquire(resource_key, holder_id, ttl=ttl)
        if not acquired:
            yield None
            return

        try:
            yield self.get_lease(resource_key)

        finally:
            await self.release(resource_key)
