"""In-memory job registry shared by the orchestrator and status handlers."""

import threading
from typing import Dict, List, Optional

from webp_service.jobs.models import JobRecord


class JobRegistry:
    """Maps job id -> JobRecord.

    ``set`` replaces the whole record; writers read, copy with changes and
    store the copy back. Each job has exactly one writer (its orchestrator
    task), so the lock only has to protect the mapping itself.
    """

    def __init__(self):
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def set(self, job_id: str, record: JobRecord) -> None:
        with self._lock:
            self._jobs[job_id] = record

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self) -> List[JobRecord]:
        with self._lock:
            return list(self._jobs.values())

    def delete(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            return self._jobs.pop(job_id, None)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
