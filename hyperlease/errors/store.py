"""
Exceptions raised by key-value store backends.

Coordinators treat these as transient: an unreachable store means a lease
could not be confirmed, never that one was granted.
"""


class StoreError(Exception):
    """Base class for key-value store failures."""
    pass


class StoreUnavailableError(StoreError):
    """
    Raised when the backing store cannot be reached or does not answer
    within its timeout.

    Attributes:
        store: Name of the backend that failed
        operation: The store primitive that was attempted
    """

    def __init__(self, store: str, operation: str, message: str | None = None) -> None:
        self.store = store
        self.operation = operation

        detail = f"{store} store unavailable during {operation}"
        if message:
            detail = f"{detail}: {message}"

        super().__init__(detail)
