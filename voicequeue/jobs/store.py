"""
Job persistence interface.

The queue writes every state change through a JobStore so that a restart
can pick up where it left off. Recording metadata storage is external; an
in-memory store is provided for tests and embedding.
"""

import threading
from typing import Dict, List, Optional, Protocol, runtime_checkable

from voicequeue.jobs.models import AudioJob


@runtime_checkable
class JobStore(Protocol):
    def save(self, job: AudioJob) -> None:
        ...

    def delete(self, job_id: str) -> None:
        ...

    def get(self, job_id: str) -> Optional[AudioJob]:
        ...

    def list_jobs(self) -> List[AudioJob]:
        ...


class InMemoryJobStore:
    """Thread-safe JobStore keeping copies of jobs in a dict."""

    def __init__(self, jobs: Optional[List[AudioJob]] = None):
        self._lock = threading.Lock()
        self._jobs: Dict[str, AudioJob] = {}
        for job in jobs or []:
            self._jobs[job.id] = job.snapshot()

    def save(self, job: AudioJob) -> None:
        with self._lock:
            self._jobs[job.id] = job.snapshot()

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def get(self, job_id: str) -> Optional[AudioJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.snapshot() if job else None

    def list_jobs(self) -> List[AudioJob]:
        with self._lock:
            return sorted((job.snapshot() for job in self._jobs.values()),
                          key=lambda job: job.enqueued_at)
