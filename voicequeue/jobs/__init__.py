"""
Audio job model and the single-lane job queue.
"""

from voicequeue.jobs.models import AudioJob, JobEvent, JobStatus
from voicequeue.jobs.queue import JobQueue
from voicequeue.jobs.store import InMemoryJobStore, JobStore

__all__ = ["AudioJob", "JobEvent", "JobStatus", "JobQueue", "InMemoryJobStore", "JobStore"]
