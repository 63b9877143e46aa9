from enum import Enum


class QuantumState(Enum):
    IDLE = "IDLE"
    LEASE_REQUESTED = "LEASE_REQUESTED"
    GRANTED = "GRANTED"
    RUNNING = "RUNNING"
    RELEASED = "RELEASED"
    DENIED = "DENIED"


QUANTUM_TRANSITIONS: dict[QuantumState, tuple[QuantumState, ...]] = {
    QuantumState.IDLE: (QuantumState.LEASE_REQUESTED,),
    QuantumState.LEASE_REQUESTED: (
        QuantumState.GRANTED,
        QuantumState.DENIED,
    ),
    QuantumState.GRANTED: (
        QuantumState.RUNNING,
        QuantumState.RELEASED,
    ),
    QuantumState.RUNNING: (QuantumState.RELEASED,),
    QuantumState.RELEASED: (),
    QuantumState.DENIED: (),
}
