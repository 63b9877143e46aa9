import asyncio

from hyperlease import (
    LeaseCoordinator,
    MemoryKVStore,
    TaskQuantum,
    TaskQuantumExecutor,
)
from hyperlease.logging import Logger, LoggingConfig


async def run():
    LoggingConfig().update(log_level="debug")

    logger = Logger()
    logger.configure(
        name="hyperlease.quanta",
        path="logs/quanta.json",
    )

    store = MemoryKVStore()

    async def work(quantum: TaskQuantum):
        print(f"{quantum.holder_id} running {quantum.lease_key}")
        await asyncio.sleep(0.5)

    executors = [
        TaskQuantumExecutor(
            LeaseCoordinator(store, default_ttl=5, logger=logger),
            work,
            quantum_seconds=1,
            holder_id=f"worker-{idx}",
            logger=logger,
        )
        for idx in range(4)
    ]

    quanta = await asyncio.gather(*[
        executor.run_quantum("T1", "R1") for executor in executors
    ])

    for quantum in quanta:
        print(quantum.holder_id, quantum.state.value)

    await logger.close()


asyncio.run(run())
