"""In-process job queue using asyncio.

A fixed pool of worker tasks pulls job tasks off an asyncio.Queue, so
submission returns before any work starts and at most ``workers`` jobs run
at once. No external dependencies (Redis, Celery) needed.
"""

import asyncio
import logging
from typing import Coroutine, List, Optional, Set, Tuple

from webp_service.jobs.dispatcher import JobDispatcher, JobTask

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Local async job queue backed by asyncio tasks."""

    def __init__(self, workers: int = 4):
        self._queue: Optional[asyncio.Queue[Tuple[str, JobTask]]] = None
        self._workers = max(1, workers)
        self._tasks: List[asyncio.Task] = []
        self._background: Set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def submit(self, job_id: str, task: JobTask) -> str:
        if self._queue is None:
            raise RuntimeError("Dispatcher not started")
        await self._queue.put((job_id, task))
        logger.info("[%s] Job enqueued", job_id)
        return job_id

    def spawn(self, coro: Coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    async def start(self) -> None:
        if self._running:
            return
        self._queue = asyncio.Queue()
        self._running = True
        self._tasks = [
            asyncio.create_task(self._worker_loop(i), name=f"conversion-worker-{i}")
            for i in range(self._workers)
        ]
        logger.info("Started %d conversion workers", self._workers)

    async def stop(self) -> None:
        self._running = False
        pending = self._tasks + list(self._background)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []
        self._background.clear()

    async def _worker_loop(self, index: int) -> None:
        """Process job tasks one at a time from the queue."""
        while self._running:
            try:
                job_id, task = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            logger.info("[%s] Processing started on worker %d", job_id, index)
            try:
                await task()
            except Exception:
                logger.exception("[%s] Job task raised", job_id)
            finally:
                self._queue.task_done()
