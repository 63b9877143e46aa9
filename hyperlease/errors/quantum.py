class QuantumStateError(Exception):
    """Raised when a task quantum is moved through an illegal state transition."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot transition quantum from {current} to {requested}"
        )
