"""
Test: Task Quantum Executor

This test validates the TaskQuantumExecutor implementation:
1. Work runs only while the lease is held
2. A held lease makes the quantum DENIED without running work
3. The lease is released on success, exception, timeout and cancellation
4. Two executors never run the same task/run pair at once
5. Plain callables run on a thread under the same guarantees
6. A failed release never hides the error raised by the work

Run with: pytest tests/unit/quanta/test_task_quantum_executor.py
"""

import asyncio
import time

import msgspec
import pytest
from redis.exceptions import ResponseError

from hyperlease.env import Env
from hyperlease.errors import QuantumStateError
from hyperlease.leases import LeaseCoordinator
from hyperlease.logging import Logger, LoggingConfig, LogLevel
from hyperlease.quanta import QuantumState, TaskQuantum, TaskQuantumExecutor
from hyperlease.stores import MemoryKVStore


@pytest.mark.asyncio
async def test_quantum_runs_under_lease(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that work sees the lease held and the lease is gone afterwards."""
    observed_holders: list[str | None] = []

    async def work(quantum: TaskQuantum):
        observed_holders.append(await memory_store.get(quantum.lease_key))

    executor = TaskQuantumExecutor(
        coordinator,
        work,
        quantum_seconds=5,
        holder_id="worker-1",
    )

    quantum = await executor.run_quantum("T1", "R1")

    assert observed_holders == ["worker-1"]
    assert quantum.lease_key == "lease:T1:R1"
    assert quantum.state == QuantumState.RELEASED
    assert quantum.transitions == [
        QuantumState.IDLE,
        QuantumState.LEASE_REQUESTED,
        QuantumState.GRANTED,
        QuantumState.RUNNING,
        QuantumState.RELEASED,
    ]
    assert quantum.timed_out is False
    assert await memory_store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_execute_quantum_returns_nothing(coordinator: LeaseCoordinator):
    """Test that the caller-facing entry point has no return value."""
    calls: list[tuple[str, str]] = []

    async def work(quantum: TaskQuantum):
        calls.append((quantum.task_id, quantum.run_id))

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5)

    assert await executor.execute_quantum("T1", "R1") is None
    assert calls == [("T1", "R1")]


@pytest.mark.asyncio
async def test_quantum_denied_when_lease_held(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that a foreign lease skips the quantum without touching the lease."""
    await memory_store.set_if_absent("lease:T1:R1", "worker-2", 120)

    async def work(quantum: TaskQuantum):
        pytest.fail("Work must not run without the lease")

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5)

    quantum = await executor.run_quantum("T1", "R1")

    assert quantum.state == QuantumState.DENIED
    assert quantum.ran() is False
    assert quantum.complete()
    assert await memory_store.get("lease:T1:R1") == "worker-2"


@pytest.mark.asyncio
async def test_work_exception_releases_lease(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that a failing work function releases the lease and re-raises."""

    async def work(quantum: TaskQuantum):
        raise ValueError("boom")

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5)

    with pytest.raises(ValueError, match="boom"):
        await executor.execute_quantum("T1", "R1")

    assert await memory_store.get("lease:T1:R1") is None
    assert coordinator.held_keys() == []


@pytest.mark.asyncio
async def test_budget_exhaustion_releases_lease():
    """Test that work overrunning its budget is cancelled and the lease released."""
    store = MemoryKVStore()
    coordinator = LeaseCoordinator(store, default_ttl=30)
    cancelled = asyncio.Event()

    async def work(quantum: TaskQuantum):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=0.05)

    quantum = await executor.run_quantum("T1", "R1")

    assert quantum.timed_out is True
    assert quantum.state == QuantumState.RELEASED
    assert quantum.elapsed >= 0.04
    assert cancelled.is_set()
    assert await store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_work_timeout_error_is_not_budget(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that a TimeoutError raised by the work itself propagates."""

    async def work(quantum: TaskQuantum):
        raise TimeoutError("upstream timed out")

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5)

    with pytest.raises(TimeoutError, match="upstream"):
        await executor.run_quantum("T1", "R1")

    assert await memory_store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_cancellation_releases_lease(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that cancelling a running quantum still releases its lease."""
    started = asyncio.Event()

    async def work(quantum: TaskQuantum):
        started.set()
        await asyncio.sleep(10)

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=30)

    task = asyncio.create_task(executor.execute_quantum("T1", "R1"))
    await started.wait()

    assert await memory_store.get("lease:T1:R1") is not None

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await memory_store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_no_concurrent_execution_of_same_pair(memory_store: MemoryKVStore, clock):
    """Test that a second worker is denied while the first runs the pair."""
    started = asyncio.Event()
    finish = asyncio.Event()
    runs: list[str] = []

    async def slow_work(quantum: TaskQuantum):
        runs.append(quantum.holder_id)
        started.set()
        await finish.wait()

    async def fast_work(quantum: TaskQuantum):
        runs.append(quantum.holder_id)

    first = TaskQuantumExecutor(
        LeaseCoordinator(memory_store, clock=clock),
        slow_work,
        quantum_seconds=30,
        holder_id="worker-1",
    )
    second = TaskQuantumExecutor(
        LeaseCoordinator(memory_store, clock=clock),
        fast_work,
        quantum_seconds=30,
        holder_id="worker-2",
    )

    first_run = asyncio.create_task(first.run_quantum("T1", "R1"))
    await started.wait()

    denied = await second.run_quantum("T1", "R1")
    assert denied.state == QuantumState.DENIED

    finish.set()
    granted = await first_run
    assert granted.state == QuantumState.RELEASED
    assert runs == ["worker-1"]

    after = await second.run_quantum("T1", "R1")
    assert after.state == QuantumState.RELEASED
    assert runs == ["worker-1", "worker-2"]


@pytest.mark.asyncio
async def test_sync_work_runs_on_thread(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that a plain callable runs while the lease is held."""
    seen: list[str] = []

    def work(quantum: TaskQuantum):
        seen.append(quantum.lease_key)

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5)

    try:
        quantum = await executor.run_quantum("T1", "R1")

    finally:
        await executor.close()

    assert seen == ["lease:T1:R1"]
    assert quantum.state == QuantumState.RELEASED
    assert await memory_store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_work_can_extend_lease(coordinator: LeaseCoordinator, memory_store: MemoryKVStore, clock):
    """Test that work can push its lease deadline out mid-quantum."""
    remaining: list[float | None] = []

    async def work(quantum: TaskQuantum):
        clock.advance(100)
        assert await executor.extend(quantum, ttl=120)
        remaining.append(memory_store.ttl(quantum.lease_key))

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5, lease_ttl=120)

    await executor.run_quantum("T1", "R1")

    assert remaining == [pytest.approx(120)]
    assert await memory_store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_custom_key_prefix(coordinator: LeaseCoordinator):
    async def work(quantum: TaskQuantum):
        return None

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5, key_prefix="quantum")

    assert executor.lease_key("T1", 7) == "quantum:T1:7"

    quantum = await executor.run_quantum("T1", 7)
    assert quantum.run_id == "7"
    assert quantum.lease_key == "quantum:T1:7"


def test_illegal_transition_rejected():
    quantum = TaskQuantum(
        task_id="T1",
        run_id="R1",
        quantum_seconds=5,
        holder_id="worker-1",
    )

    with pytest.raises(QuantumStateError):
        quantum.transition(QuantumState.RUNNING)

    quantum.transition(QuantumState.LEASE_REQUESTED)
    quantum.transition(QuantumState.DENIED)

    with pytest.raises(QuantumStateError):
        quantum.transition(QuantumState.GRANTED)


@pytest.mark.asyncio
async def test_executor_from_env():
    env = Env(
        HYPERLEASE_LEASE_TTL="30s",
        HYPERLEASE_QUANTUM_DURATION="10s",
        HYPERLEASE_KEY_PREFIX="quantum",
    )

    async def work(quantum: TaskQuantum):
        return None

    executor = TaskQuantumExecutor.from_env(env, work, holder_id="worker-1")

    assert executor.coordinator.default_ttl == 30.0
    assert isinstance(executor.coordinator.store, MemoryKVStore)

    quantum = await executor.run_quantum("T1", "R1")
    assert quantum.quantum_seconds == 10.0
    assert quantum.lease_key == "quantum:T1:R1"
    assert quantum.state == QuantumState.RELEASED


class ReadOnlyStore(MemoryKVStore):
    """Grants leases but rejects deletes, like a read-only Redis replica."""

    __slots__ = ()

    async def delete(self, key: str) -> bool:
        raise ResponseError("READONLY You can't write against a read only replica.")


@pytest.mark.asyncio
async def test_quantum_longer_than_ttl_warns(memory_store: MemoryKVStore, clock, tmp_path):
    """Test that a budget longer than the lease ttl is logged as a warning."""
    LoggingConfig().update(log_level="warn")

    logger = Logger()
    logger.configure(
        name="hyperlease.quanta",
        path=str(tmp_path / "quanta.json"),
    )

    async def work(quantum: TaskQuantum):
        return None

    executor = TaskQuantumExecutor(
        LeaseCoordinator(memory_store, clock=clock),
        work,
        quantum_seconds=10,
        lease_ttl=5,
        logger=logger,
    )

    quantum = await executor.run_quantum("T1", "R1")
    await logger.close()

    records = [
        msgspec.json.decode(line)
        for line in (tmp_path / "quanta.json").read_bytes().splitlines()
    ]

    assert quantum.state == QuantumState.RELEASED
    assert len(records) == 1
    assert records[0]["entry"]["level"] == "WARN"
    assert records[0]["entry"]["task_id"] == "T1"
    assert "exceeds lease ttl of 5s" in records[0]["entry"]["message"]


@pytest.mark.asyncio
async def test_sync_work_overrun_holds_lease_until_thread_returns():
    """Test that a thread overrunning its budget keeps the lease until it returns."""
    store = MemoryKVStore()
    coordinator = LeaseCoordinator(store, default_ttl=30)
    remaining_during_work: list[float | None] = []

    def work(quantum: TaskQuantum):
        time.sleep(0.3)
        remaining_during_work.append(store.ttl(quantum.lease_key))

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=0.05)

    try:
        quantum = await executor.run_quantum("T1", "R1")

    finally:
        await executor.close()

    assert len(remaining_during_work) == 1
    assert remaining_during_work[0] is not None
    assert quantum.timed_out is True
    assert quantum.state == QuantumState.RELEASED
    assert quantum.elapsed >= 0.25
    assert await store.get("lease:T1:R1") is None


@pytest.mark.asyncio
async def test_unreachable_store_denies_quantum(coordinator: LeaseCoordinator, memory_store: MemoryKVStore):
    """Test that a store outage skips the quantum without running work."""
    memory_store.reachable = False
    calls: list[str] = []

    async def work(quantum: TaskQuantum):
        calls.append(quantum.lease_key)

    executor = TaskQuantumExecutor(coordinator, work, quantum_seconds=5)

    quantum = await executor.run_quantum("T1", "R1")

    assert quantum.state == QuantumState.DENIED
    assert quantum.ran() is False
    assert calls == []
    assert coordinator.held_keys() == []


@pytest.mark.asyncio
async def test_release_failure_does_not_mask_work_error(clock):
    """Test that the work's exception wins over a failing release."""
    store = ReadOnlyStore(clock=clock)
    seen: list[TaskQuantum] = []

    async def work(quantum: TaskQuantum):
        seen.append(quantum)
        raise ValueError("boom")

    executor = TaskQuantumExecutor(
        LeaseCoordinator(store, clock=clock),
        work,
        quantum_seconds=5,
    )

    with pytest.raises(ValueError, match="boom"):
        await executor.run_quantum("T1", "R1")

    assert seen[0].state == QuantumState.RELEASED
    assert seen[0].error == "boom"


@pytest.mark.asyncio
async def test_release_failure_after_successful_work_propagates(clock):
    """Test that a failing release is raised when the work itself succeeded."""
    store = ReadOnlyStore(clock=clock)
    seen: list[TaskQuantum] = []

    async def work(quantum: TaskQuantum):
        seen.append(quantum)

    executor = TaskQuantumExecutor(
        LeaseCoordinator(store, clock=clock),
        work,
        quantum_seconds=5,
    )

    with pytest.raises(ResponseError, match="READONLY"):
        await executor.run_quantum("T1", "R1")

    assert seen[0].state == QuantumState.RELEASED


@pytest.mark.asyncio
async def test_executor_from_env_applies_log_level():
    env = Env(HYPERLEASE_LOG_LEVEL="debug")

    async def work(quantum: TaskQuantum):
        return None

    TaskQuantumExecutor.from_env(env, work)

    assert LoggingConfig().level == LogLevel.DEBUG
