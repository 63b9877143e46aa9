"""
Lease-guarded execution of task quanta.

A quantum is one bounded slice of work for a (task_id, run_id) pair.
The executor holds the lease on lease:{task_id}:{run_id} for the whole
time the work runs, so two workers never run the same pair at once.

State machine:
    IDLE -> LEASE_REQUESTED -> GRANTED -> RUNNING -> RELEASED
                            -> DENIED

DENIED is terminal: the quantum is skipped, not retried. Once granted,
the lease is released on every exit path.
"""

from __future__ import annotations

import asyncio
import inspect
import os
import socket
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable

from hyperlease.env import Env
from hyperlease.logging import Logger
from hyperlease.logging.hyperlease_logging_models import (
    QuantumDebug,
    QuantumError,
    QuantumInfo,
    QuantumWarning,
)
from hyperlease.leases import LeaseCoordinator

from .quantum_state import QuantumState
from .task_quantum import TaskQuantum, lease_key


LOGGER_NAME = "hyperlease.quanta"

QuantumWork = Callable[[TaskQuantum], Awaitable[Any] | Any]


def default_holder_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class TaskQuantumExecutor:
    """
    Runs bounded slices of work for task/run pairs under a lease.

    The work callable receives the TaskQuantum being executed. Coroutine
    functions run on the event loop; plain callables run on a thread pool.
    Threads cannot be interrupted, so a plain callable that overruns its
    budget keeps the lease until it returns.
    """

    def __init__(
        self,
        coordinator: LeaseCoordinator,
        work: QuantumWork,
        quantum_seconds: float = 60.0,
        lease_ttl: float | None = None,
        holder_id: str | None = None,
        key_prefix: str = "lease",
        logger: Logger | None = None,
        max_threads: int | None = None,
    ) -> None:
        if quantum_seconds <= 0:
            raise ValueError("quantum_seconds must be positive")

        self._coordinator = coordinator
        self._work = work
        self._quantum_seconds = quantum_seconds
        self._lease_ttl = lease_ttl or coordinator.default_ttl
        self._holder_id = holder_id or default_holder_id()
        self._key_prefix = key_prefix
        self._logger = logger or Logger()
        self._max_threads = max_threads
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_env(
        cls,
        env: Env,
        work: QuantumWork,
        coordinator: LeaseCoordinator | None = None,
        holder_id: str | None = None,
        logger: Logger | None = None,
    ) -> TaskQuantumExecutor:
        env.configure_logging()

        return cls(
            coordinator or LeaseCoordinator.from_env(env, logger=logger),
            work,
            quantum_seconds=env.quantum_duration,
            lease_ttl=env.lease_ttl,
            holder_id=holder_id,
            key_prefix=env.HYPERLEASE_KEY_PREFIX,
            logger=logger,
        )

    @property
    def holder_id(self) -> str:
        return self._holder_id

    @property
    def coordinator(self) -> LeaseCoordinator:
        return self._coordinator

    def lease_key(self, task_id: str, run_id: str) -> str:
        return lease_key(
            str(task_id),
            str(run_id),
            prefix=self._key_prefix,
        )

    async def execute_quantum(self, task_id: str, run_id: str) -> None:
        """
        Run one quantum for the pair if its lease can be acquired.

        Skips silently when another holder owns the lease. Errors raised
        by the work propagate after the lease is released.
        """
        await self.run_quantum(task_id, run_id)

    async def run_quantum(self, task_id: str, run_id: str) -> TaskQuantum:
        """
        Run one quantum and return its record.

        Returns:
            The TaskQuantum in its terminal state, DENIED or RELEASED
        """
        quantum = TaskQuantum(
            task_id=str(task_id),
            run_id=str(run_id),
            quantum_seconds=self._quantum_seconds,
            holder_id=self._holder_id,
            key_prefix=self._key_prefix,
        )

        quantum.transition(QuantumState.LEASE_REQUESTED)

        acquired = await self._coordinator.acquire(
            quantum.lease_key,
            self._holder_id,
            ttl=self._lease_ttl,
        )

        if not acquired:
            quantum.transition(QuantumState.DENIED)
            await self._log_state(quantum)
            return quantum

        quantum.transition(QuantumState.GRANTED)
        work_failed = True

        try:
            if quantum.quantum_seconds > self._lease_ttl:
                await self._logger.log(
                    QuantumWarning(
                        message=(
                            f"Quantum budget of {quantum.quantum_seconds}s exceeds "
                            f"lease ttl of {self._lease_ttl}s, lease may lapse mid-quantum"
                        ),
                        task_id=quantum.task_id,
                        run_id=quantum.run_id,
                        state=quantum.state.value,
                    ),
                    name=LOGGER_NAME,
                )

            quantum.transition(QuantumState.RUNNING)
            quantum.started_at = self._coordinator.clock()
            await self._log_state(quantum)

            budget = asyncio.timeout(quantum.quantum_seconds)

            try:
                async with budget:
                    await self._run_work(quantum)

            except TimeoutError:
                if not budget.expired():
                    raise

                quantum.timed_out = True

            work_failed = False

        except Exception as err:
            quantum.error = str(err)

            await self._logger.log(
                QuantumError(
                    message="Quantum work failed",
                    task_id=quantum.task_id,
                    run_id=quantum.run_id,
                    state=quantum.state.value,
                    error=str(err),
                ),
                name=LOGGER_NAME,
            )

            raise

        finally:
            quantum.finished_at = self._coordinator.clock()

            try:
                await self._coordinator.release(quantum.lease_key)

            except Exception as release_err:
                await self._logger.log(
                    QuantumError(
                        message="Lease release failed, lease will lapse at ttl",
                        task_id=quantum.task_id,
                        run_id=quantum.run_id,
                        state=quantum.state.value,
                        error=str(release_err),
                    ),
                    name=LOGGER_NAME,
                )

                # The work's own error takes precedence.
                if not work_failed:
                    raise

            finally:
                quantum.transition(QuantumState.RELEASED)

        await self._logger.log(
            QuantumInfo(
                message="Quantum budget exhausted" if quantum.timed_out else "Quantum complete",
                task_id=quantum.task_id,
                run_id=quantum.run_id,
                state=quantum.state.value,
                elapsed=quantum.elapsed,
            ),
            name=LOGGER_NAME,
        )

        return quantum

    async def extend(
        self,
        quantum: TaskQuantum,
        ttl: float | None = None,
    ) -> bool:
        """Extend the lease of a running quantum."""
        return await self._coordinator.extend(
            quantum.lease_key,
            ttl=ttl or self._lease_ttl,
        )

    async def _run_work(self, quantum: TaskQuantum):
        if inspect.iscoroutinefunction(self._work):
            await self._work(quantum)
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_threads,
            )

        work_future = self._executor.submit(self._work, quantum)

        try:
            result = await asyncio.wrap_future(work_future)

        except asyncio.CancelledError:
            if work_future.cancel() is False and work_future.done() is False:
                # Hold the lease until the thread returns.
                thread_result = asyncio.wrap_future(work_future)
                await asyncio.wait([thread_result])

                if thread_error := thread_result.exception():
                    await self._logger.log(
                        QuantumError(
                            message="Quantum work failed after its budget ran out",
                            task_id=quantum.task_id,
                            run_id=quantum.run_id,
                            state=quantum.state.value,
                            error=str(thread_error),
                        ),
                        name=LOGGER_NAME,
                    )

            raise

        if inspect.isawaitable(result):
            await result

    async def _log_state(self, quantum: TaskQuantum):
        await self._logger.log(
            QuantumDebug(
                message=f"Quantum {quantum.state.value.lower()}",
                task_id=quantum.task_id,
                run_id=quantum.run_id,
                state=quantum.state.value,
            ),
            name=LOGGER_NAME,
        )

    async def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
