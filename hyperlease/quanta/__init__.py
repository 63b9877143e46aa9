from .executor import TaskQuantumExecutor as TaskQuantumExecutor
from .quantum_state import QuantumState as QuantumState
from .task_quantum import (
    TaskQuantum as TaskQuantum,
    lease_key as lease_key,
)
