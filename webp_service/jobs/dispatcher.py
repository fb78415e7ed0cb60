"""Job dispatcher interface."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Coroutine

# A unit of queued work: fn() -> awaitable, run once by a worker
JobTask = Callable[[], Awaitable[None]]


class JobDispatcher(ABC):
    """Abstract interface for running job tasks in the background."""

    @abstractmethod
    async def submit(self, job_id: str, task: JobTask) -> str:
        """Queue a job task without waiting for it. Returns job_id."""
        ...

    @abstractmethod
    def spawn(self, coro: Coroutine) -> None:
        """Run a housekeeping coroutine (timers, sweeps) alongside the jobs."""
        ...

    @abstractmethod
    async def join(self) -> None:
        """Wait until every queued job task has finished."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loops)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher, cancelling workers and housekeeping tasks."""
        ...
