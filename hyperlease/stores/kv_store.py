"""
Backing store contract for lease arbitration.

Any store that offers an atomic set-if-absent with expiry, an expire
reset and a delete can arbitrate leases. Each call is an independent
atomic operation; no transaction spans several of them.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KVStore(Protocol):
    """
    Protocol for the key-value store shared by all lease holders.

    Implementations raise StoreUnavailableError when the store cannot
    be reached. Every other outcome is reported through return values.
    """

    @property
    def name(self) -> str:
        ...

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        """
        Atomically set key to value with a ttl, only if no unexpired
        entry exists (SET key value NX PX ttl).

        Returns:
            True if the key was set, False if it was already present
        """
        ...

    async def expire(self, key: str, ttl: float) -> bool:
        """
        Reset the expiry of key to ttl seconds from now.

        Returns:
            True if the key existed and was updated, False otherwise
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns:
            True if a key was removed, False if it was already absent
        """
        ...

    async def get(self, key: str) -> str | None:
        """Return the value stored at key, or None if absent or expired."""
        ...

    async def close(self) -> None:
        ...
