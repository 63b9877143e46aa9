"""
Time-bounded exclusive claims on a resource key.

The authoritative record of a lease lives in the shared store. A Lease
instance is the granting coordinator's local view of it, used to report
remaining time and to notice when a held lease has lapsed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class LeaseState(Enum):
    """State of a lease."""
    ACTIVE = "active"      # Lease is held and not expired
    EXPIRED = "expired"    # Lease has expired
    RELEASED = "released"  # Lease was explicitly released


@dataclass(slots=True)
class Lease:
    """
    A time-bounded lease on a resource key.

    Attributes:
        resource_key: Key of the contested resource, e.g. lease:T1:R1
        holder_id: Opaque identifier of the owning process or thread
        acquired_at: When the lease was acquired (monotonic)
        ttl_seconds: Validity window in seconds
        expires_at: When the lease expires (monotonic)
        state: Current state of the lease
    """
    resource_key: str
    holder_id: str
    acquired_at: float
    ttl_seconds: float
    expires_at: float | None = None
    state: LeaseState = field(default=LeaseState.ACTIVE)

    def __post_init__(self) -> None:
        if self.expires_at is None:
            self.expires_at = self.acquired_at + self.ttl_seconds

    def is_expired(self, now: float | None = None) -> bool:
        """Check if the lease has expired."""
        if self.state != LeaseState.ACTIVE:
            return True

        if now is None:
            now = time.monotonic()

        return now >= self.expires_at

    def is_active(self, now: float | None = None) -> bool:
        """Check if the lease is currently active (not expired)."""
        return not self.is_expired(now)

    def remaining_seconds(self, now: float | None = None) -> float:
        """Get remaining time until expiry (0 if expired)."""
        if now is None:
            now = time.monotonic()

        if self.is_expired(now):
            return 0.0

        return max(0.0, self.expires_at - now)

    def extend(self, ttl: float, now: float | None = None) -> None:
        """Reset the expiry window to ttl seconds from now."""
        if now is None:
            now = time.monotonic()

        self.ttl_seconds = ttl
        self.expires_at = now + ttl

    def mark_released(self) -> None:
        self.state = LeaseState.RELEASED

    def mark_expired(self) -> None:
        self.state = LeaseState.EXPIRED
