from .env import Env as Env
from .env import load_env as load_env
from .leases import (
    Lease as Lease,
    LeaseCoordinator as LeaseCoordinator,
    LeaseState as LeaseState,
)
from .quanta import (
    QuantumState as QuantumState,
    TaskQuantum as TaskQuantum,
    TaskQuantumExecutor as TaskQuantumExecutor,
)
from .stores import (
    KVStore as KVStore,
    MemoryKVStore as MemoryKVStore,
    RedisKVStore as RedisKVStore,
)
