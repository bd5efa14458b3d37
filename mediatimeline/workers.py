"""Background workers started with the server and stopped with it."""

from __future__ import annotations

import abc
import asyncio
import logging

log = logging.getLogger(__name__)


class Worker(abc.ABC):
    """A long-running background job."""

    @abc.abstractmethod
    async def run(self, cancelled):
        """Do the work until the ``cancelled`` event is set."""


class WorkerTracker:
    """Starts registered workers and waits for them after a shared stop signal."""

    def __init__(self):
        self._workers = []
        self._tasks = []
        self._cancelled = asyncio.Event()

    def register_worker(self, worker):
        """Add a worker to be started by ``start``."""
        self._workers.append(worker)

    def start(self):
        """Start every registered worker as a task on the running loop."""
        log.info("starting the workers")
        self._tasks.extend(asyncio.create_task(self._run(worker)) for worker in self._workers)

    async def _run(self, worker):
        try:
            await worker.run(self._cancelled)
        except Exception:
            log.exception("worker %r failed", worker)

    def stop(self):
        """Signal every worker to stop."""
        self._cancelled.set()

    async def wait(self):
        """Wait until every started worker has finished."""
        await asyncio.gather(*self._tasks)