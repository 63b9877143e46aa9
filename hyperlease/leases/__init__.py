"""
Lease coordination for exclusive, time-bounded resource ownership.

Arbitration is delegated to a shared key-value store so that workers in
separate processes can contend for the same resource keys.
"""

from .coordinator import LeaseCoordinator
from .lease import Lease, LeaseState

__all__ = ["Lease", "LeaseCoordinator", "LeaseState"]
