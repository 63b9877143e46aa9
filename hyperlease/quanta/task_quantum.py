from typing import List, Optional

from pydantic import (
    BaseModel,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
)

from hyperlease.errors import QuantumStateError

from .quantum_state import QUANTUM_TRANSITIONS, QuantumState


def lease_key(task_id: str, run_id: str, prefix: str = "lease") -> str:
    return f"{prefix}:{task_id}:{run_id}"


class TaskQuantum(BaseModel):
    task_id: StrictStr
    run_id: StrictStr
    quantum_seconds: StrictInt | StrictFloat
    holder_id: StrictStr
    key_prefix: StrictStr = "lease"
    state: QuantumState = QuantumState.IDLE
    transitions: List[QuantumState] = [QuantumState.IDLE]
    started_at: Optional[StrictInt | StrictFloat] = None
    finished_at: Optional[StrictInt | StrictFloat] = None
    timed_out: StrictBool = False
    error: Optional[StrictStr] = None

    @property
    def lease_key(self) -> str:
        return lease_key(
            self.task_id,
            self.run_id,
            prefix=self.key_prefix,
        )

    @property
    def elapsed(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0

        return self.finished_at - self.started_at

    def transition(self, state: QuantumState):
        if state not in QUANTUM_TRANSITIONS[self.state]:
            raise QuantumStateError(self.state.value, state.value)

        self.state = state
        self.transitions.append(state)

    def complete(self):
        return self.state in [QuantumState.RELEASED, QuantumState.DENIED]

    def ran(self):
        return QuantumState.RUNNING in self.transitions
