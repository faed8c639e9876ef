"""Propagation engine: one asyncio worker per outbox partition.

Partitions are independent and run in parallel; within a partition the
processor keeps outbox order. Blocking database work runs in worker threads.
"""

import asyncio

import structlog

from propagation.processor import OutboxProcessor

logger = structlog.get_logger(__name__)


class PropagationEngine:
    def __init__(self, processor: OutboxProcessor, partitions: int, poll_interval: float = 1.0):
        self.processor = processor
        self.partitions = partitions
        self.poll_interval = poll_interval
        self._stopped = asyncio.Event()

    async def run(self) -> None:
        logger.info("Propagation engine starting", partitions=self.partitions)
        await asyncio.gather(*(self._worker(partition) for partition in range(self.partitions)))
        logger.info("Propagation engine stopped", **self.processor.metrics_snapshot())

    def shutdown(self) -> None:
        """Ask every worker to stop after its current event."""
        logger.info("Propagation engine shutting down")
        self._stopped.set()
        self.processor.stop()

    def drain(self) -> int:
        """Process every partition until no pending event is left. Returns events settled."""
        total = 0
        while not self.processor.stopping:
            settled = sum(self.processor.process_partition(partition) for partition in range(self.partitions))
            if settled == 0:
                break
            total += settled
        return total

    async def _worker(self, partition: int) -> None:
        while not self._stopped.is_set():
            try:
                settled = await asyncio.to_thread(self.processor.process_partition, partition)
            except Exception:
                # Outbox unreachable; the batch stays pending and is retried on the next poll
                logger.exception("Partition poll failed", partition=partition)
                settled = 0

            if settled == 0:
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
                except TimeoutError:
                    pass
