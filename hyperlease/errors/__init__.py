from .quantum import QuantumStateError as QuantumStateError
from .store import (
    StoreError as StoreError,
    StoreUnavailableError as StoreUnavailableError,
)
