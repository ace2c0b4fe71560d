"""
Job data model.

AudioJob instances are owned by the JobQueue worker. Everything handed to
observers is a copy taken with AudioJob.snapshot().
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from voicequeue.transcription.errors import ErrorKind


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(Enum):
    PENDING = "pending"
    CONVERTING = "converting"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.CONVERTING, JobStatus.TRANSCRIBING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class AudioJob:
    """One audio-to-text unit of work.

    Attributes:
        source_path: Audio file location (not owned by the queue)
        estimated_duration: Caller's duration estimate in seconds
        id: Opaque unique id
        created_at: Creation time, never changes
        enqueued_at: Time of the last (re)enqueue, drives FIFO order
        status: Current JobStatus
        progress: Fraction in [0, 1]
        result_text: Transcript once completed
        error: Human-readable failure message
        error_kind: Classified failure kind
        provider_id: Provider that produced the result
    """
    source_path: str
    estimated_duration: float = 0.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utc_now)
    enqueued_at: datetime = field(default_factory=utc_now)
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0
    result_text: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    provider_id: Optional[str] = None

    @property
    def was_cancelled(self) -> bool:
        return self.error_kind is ErrorKind.CANCELLED

    def snapshot(self) -> "AudioJob":
        return dataclasses.replace(self)


@dataclass(frozen=True)
class JobEvent:
    """A change published to queue subscribers.

    ``removed`` is True when the job left the queue without running
    (cancelled while pending, or discarded as stale).
    """
    job: AudioJob
    removed: bool = False
