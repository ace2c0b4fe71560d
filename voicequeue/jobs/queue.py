"""
Single-lane Job Queue

The queue is driven by one worker thread that owns every AudioJob and all
queue state. Public methods never touch that state directly: they post a
message to the worker's inbox and return immediately (or hand back a
Future that the worker resolves).

Job runs execute on a separate single-thread "lane" executor so the worker
stays responsive to cancel requests and progress events while a provider
call blocks. A run's progress events and its completion come back to the
worker as inbox messages, which keeps every job mutation on one thread.
"""

import logging
import os
import queue
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional

from voicequeue.jobs.models import AudioJob, JobEvent, JobStatus, utc_now
from voicequeue.jobs.store import InMemoryJobStore, JobStore
from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.config import TranscriptionSettings
from voicequeue.transcription.errors import (
    ErrorKind,
    ProcessingFailedError,
    TranscriptionCancelled,
    TranscriptionError,
)
from voicequeue.transcription.orchestrator import TranscriptionOrchestrator
from voicequeue.transcription.progress import ProgressEvent


logger = logging.getLogger(__name__)

JobListener = Callable[[JobEvent], None]

CANCELLED_MESSAGE = "Transcription cancelled"


# Inbox messages

@dataclass
class _Enqueue:
    job: AudioJob


@dataclass
class _Cancel:
    job_id: str
    future: Future


@dataclass
class _Requeue:
    job_id: str
    future: Future


@dataclass
class _Subscribe:
    listener: JobListener


@dataclass
class _Unsubscribe:
    listener: JobListener


@dataclass
class _Progress:
    job_id: str
    run_seq: int
    event: ProgressEvent


@dataclass
class _RunFinished:
    job_id: str
    run_seq: int
    future: Future


@dataclass
class _Barrier:
    idle: threading.Event


@dataclass
class _Stop:
    cancel_active: bool


class JobQueue:
    """
    Persistent single-lane queue of audio jobs.

    Jobs are processed strictly in FIFO order of (re)enqueue time, one at a
    time. Listeners are called on the worker thread and must not block.

    Example:
        >>> job_queue = JobQueue(orchestrator, settings_provider=config.current_settings)
        >>> job_queue.start()
        >>> job_id = job_queue.enqueue("memo.wav", estimated_duration=12.0)
        >>> job_queue.wait_until_idle(timeout=60)
        >>> job_queue.get(job_id).result_text
    """

    def __init__(
        self,
        orchestrator: TranscriptionOrchestrator,
        store: Optional[JobStore] = None,
        settings_provider: Optional[Callable[[], TranscriptionSettings]] = None,
        source_exists: Callable[[str], bool] = os.path.exists,
    ):
        """
        Initialize the queue. Nothing runs until start() is called.

        Args:
            orchestrator: Runs one job across the provider chain
            store: Persistence for jobs; in-memory when None
            settings_provider: Returns the settings snapshot for a job about to run
            source_exists: Check used for stale-source cleanup and requeue
        """
        self.orchestrator = orchestrator
        self.store = store if store is not None else InMemoryJobStore()
        self.settings_provider = settings_provider or TranscriptionSettings
        self.source_exists = source_exists

        self._inbox: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._lane: Optional[ThreadPoolExecutor] = None

        # Worker-owned state
        self._jobs: Dict[str, AudioJob] = {}
        self._pending: Deque[str] = deque()
        self._listeners: List[JobListener] = []
        self._idle_waiters: List[threading.Event] = []
        self._active_id: Optional[str] = None
        self._active_token: Optional[CancellationToken] = None
        self._run_seq = 0
        self._stopping = False

        # Read-only copy republished by the worker after every change
        self._view: Dict[str, AudioJob] = {}

    # Public interface

    def start(self) -> None:
        """Recover persisted jobs, drop stale ones, then start the worker."""
        if self._worker is not None:
            return

        self._stopping = False
        self._recover()
        self._lane = ThreadPoolExecutor(max_workers=1, thread_name_prefix="voicequeue-lane")
        self._worker = threading.Thread(target=self._run_worker, name="voicequeue-worker", daemon=True)
        self._worker.start()
        logger.info(f"Job queue started with {len(self._pending)} pending job(s)")

    def shutdown(self, cancel_active: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the worker; pending jobs stay pending in the store.

        Args:
            cancel_active: Cancel the running job instead of letting it finish
            timeout: Maximum seconds to wait for the worker to exit
        """
        if self._worker is None:
            return
        self._inbox.put(_Stop(cancel_active))
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("Job queue worker did not stop within the timeout")
            return
        self._lane.shutdown(wait=True)
        self._worker = None
        self._lane = None
        logger.info("Job queue stopped")

    def enqueue(self, source_path: str, estimated_duration: float = 0.0) -> str:
        """Add a job to the tail of the queue and return its id. Never blocks."""
        job = AudioJob(source_path=str(source_path), estimated_duration=estimated_duration)
        self._inbox.put(_Enqueue(job))
        return job.id

    submit = enqueue

    def cancel(self, job_id: str) -> "Future[bool]":
        """Cancel a job.

        A pending job is removed and never starts. The running job has its
        cancellation token set and settles as failed with kind ``cancelled``.
        The future resolves to False for unknown or already finished jobs.
        """
        future: Future = Future()
        self._inbox.put(_Cancel(job_id, future))
        return future

    def requeue(self, job_id: str) -> "Future[bool]":
        """Put a completed or failed job back at the tail of the queue.

        If its source no longer exists the job is marked failed with
        "Source not found" and the future resolves to False.
        """
        future: Future = Future()
        self._inbox.put(_Requeue(job_id, future))
        return future

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """Register a listener for job changes; returns an unsubscribe function."""
        self._inbox.put(_Subscribe(listener))
        return lambda: self._inbox.put(_Unsubscribe(listener))

    def get(self, job_id: str) -> Optional[AudioJob]:
        job = self._view.get(job_id)
        return job.snapshot() if job else None

    def jobs(self) -> List[AudioJob]:
        return sorted((job.snapshot() for job in self._view.values()),
                      key=lambda job: job.enqueued_at)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is pending or running.

        Every message posted before this call is handled first.

        Returns:
            False if the timeout expired
        """
        idle = threading.Event()
        self._inbox.put(_Barrier(idle))
        return idle.wait(timeout)

    # Startup

    def _recover(self) -> None:
        self._jobs.clear()
        self._pending.clear()
        for job in self.store.list_jobs():
            if job.status.is_active:
                logger.warning(f"Resetting interrupted job {job.id} to pending")
                job.status = JobStatus.PENDING
                job.progress = 0.0
                self.store.save(job)

            if job.status is JobStatus.PENDING and not self.source_exists(job.source_path):
                logger.warning(f"Discarding stale job {job.id}: source not found: {job.source_path}")
                self.store.delete(job.id)
                continue

            self._jobs[job.id] = job
            if job.status is JobStatus.PENDING:
                self._pending.append(job.id)
        self._publish_view()

    # Worker

    def _run_worker(self) -> None:
        handlers = {
            _Enqueue: self._on_enqueue,
            _Cancel: self._on_cancel,
            _Requeue: self._on_requeue,
            _Subscribe: self._on_subscribe,
            _Unsubscribe: self._on_unsubscribe,
            _Progress: self._on_progress,
            _RunFinished: self._on_run_finished,
            _Barrier: self._on_barrier,
            _Stop: self._on_stop,
        }
        while True:
            message = self._inbox.get()
            try:
                handlers[type(message)](message)
            except Exception:
                logger.exception(f"Job queue failed to handle {type(message).__name__}")

            if self._stopping:
                if self._active_id is None:
                    break
                continue
            self._dispatch_next()
            self._release_idle_waiters()

        for idle in self._idle_waiters:
            idle.set()
        self._idle_waiters.clear()

    def _is_idle(self) -> bool:
        return self._active_id is None and not self._pending

    def _release_idle_waiters(self) -> None:
        if self._idle_waiters and self._is_idle():
            for idle in self._idle_waiters:
                idle.set()
            self._idle_waiters.clear()

    def _dispatch_next(self) -> None:
        while self._active_id is None and self._pending:
            job = self._jobs.get(self._pending.popleft())
            if job is None or job.status is not JobStatus.PENDING:
                continue
            try:
                self._start(job)
            except Exception as e:
                logger.exception(f"Could not start job {job.id}")
                self._active_id = None
                self._active_token = None
                error = ProcessingFailedError(f"Transcription failed: {e}")
                self._fail(job, error.user_message, error.kind)
                job.progress = 0.0
                try:
                    self._changed(job)
                except Exception:
                    logger.exception(f"Could not record failure of job {job.id}")
                    self._publish_view()

    def _start(self, job: AudioJob) -> None:
        job.status = JobStatus.CONVERTING
        job.progress = 0.0
        self._changed(job)

        self._run_seq += 1
        self._active_id = job.id
        self._active_token = CancellationToken()
        settings = self.settings_provider()
        logger.info(f"Starting job {job.id} ({job.source_path})")

        run_seq = self._run_seq
        future = self._lane.submit(self._execute, job.id, run_seq, job.source_path,
                                   settings, self._active_token)
        future.add_done_callback(
            lambda f, job_id=job.id, seq=run_seq: self._inbox.put(_RunFinished(job_id, seq, f))
        )

    def _execute(self, job_id: str, run_seq: int, source_path: str,
                 settings: TranscriptionSettings, token: CancellationToken):
        """Runs on the lane thread."""
        return self.orchestrator.run(
            source_path,
            settings,
            on_event=lambda event: self._inbox.put(_Progress(job_id, run_seq, event)),
            cancel_token=token,
            label=job_id,
        )

    # Handlers (worker thread only)

    def _on_enqueue(self, message: _Enqueue) -> None:
        job = message.job
        job.enqueued_at = utc_now()
        self._jobs[job.id] = job
        self._pending.append(job.id)
        logger.info(f"Enqueued job {job.id} ({job.source_path})")
        self._changed(job)

    def _on_cancel(self, message: _Cancel) -> None:
        job = self._jobs.get(message.job_id)
        if job is None:
            message.future.set_result(False)
            return

        if job.id == self._active_id:
            logger.info(f"Cancelling running job {job.id}")
            self._active_token.cancel()
            message.future.set_result(True)
            return

        if job.status is JobStatus.PENDING:
            logger.info(f"Removing pending job {job.id}")
            self._pending.remove(job.id)
            del self._jobs[job.id]
            self.store.delete(job.id)
            self._publish_view()
            self._notify(JobEvent(job.snapshot(), removed=True))
            message.future.set_result(True)
            return

        message.future.set_result(False)

    def _on_requeue(self, message: _Requeue) -> None:
        job = self._jobs.get(message.job_id)
        if job is None or not job.status.is_terminal:
            message.future.set_result(False)
            return

        if not self.source_exists(job.source_path):
            logger.warning(f"Cannot requeue job {job.id}: source not found: {job.source_path}")
            job.status = JobStatus.FAILED
            job.error = f"Source not found: {job.source_path}"
            job.error_kind = ErrorKind.PROCESSING_FAILED
            self._changed(job)
            message.future.set_result(False)
            return

        job.status = JobStatus.PENDING
        job.progress = 0.0
        job.result_text = None
        job.error = None
        job.error_kind = None
        job.provider_id = None
        job.enqueued_at = utc_now()
        self._pending.append(job.id)
        logger.info(f"Requeued job {job.id}")
        self._changed(job)
        message.future.set_result(True)

    def _on_subscribe(self, message: _Subscribe) -> None:
        self._listeners.append(message.listener)

    def _on_unsubscribe(self, message: _Unsubscribe) -> None:
        if message.listener in self._listeners:
            self._listeners.remove(message.listener)

    def _on_progress(self, message: _Progress) -> None:
        if message.job_id != self._active_id or message.run_seq != self._run_seq:
            return
        job = self._jobs[message.job_id]
        if job.status is JobStatus.CONVERTING:
            job.status = JobStatus.TRANSCRIBING
        job.progress = max(job.progress, min(max(message.event.fraction, 0.0), 1.0))
        job.provider_id = message.event.provider_id or job.provider_id
        self._changed(job)

    def _on_run_finished(self, message: _RunFinished) -> None:
        job = self._jobs[message.job_id]
        self._active_id = None
        self._active_token = None

        try:
            outcome = message.future.result()
        except TranscriptionCancelled:
            logger.info(f"Job {job.id} cancelled")
            self._fail(job, CANCELLED_MESSAGE, ErrorKind.CANCELLED)
            job.progress = 0.0
        except TranscriptionError as e:
            logger.error(f"Job {job.id} failed ({e.kind.value}): {e.user_message}")
            self._fail(job, e.user_message, e.kind)
            job.provider_id = e.provider_id
        except Exception as e:
            logger.exception(f"Job {job.id} failed with an unexpected error")
            error = ProcessingFailedError(f"Transcription failed: {e}")
            self._fail(job, error.user_message, error.kind)
        else:
            job.status = JobStatus.COMPLETED
            job.progress = 1.0
            job.result_text = outcome.text
            job.provider_id = outcome.provider_id
            job.error = None
            job.error_kind = None
            logger.info(f"Job {job.id} completed with {outcome.provider_id}")

        self._changed(job)

    def _fail(self, job: AudioJob, message: str, kind: ErrorKind) -> None:
        job.status = JobStatus.FAILED
        job.error = message
        job.error_kind = kind
        job.result_text = None

    def _on_barrier(self, message: _Barrier) -> None:
        self._idle_waiters.append(message.idle)

    def _on_stop(self, message: _Stop) -> None:
        self._stopping = True
        if message.cancel_active and self._active_token is not None:
            logger.info(f"Cancelling running job {self._active_id} for shutdown")
            self._active_token.cancel()

    # Publishing

    def _changed(self, job: AudioJob) -> None:
        self.store.save(job)
        self._publish_view()
        self._notify(JobEvent(job.snapshot()))

    def _publish_view(self) -> None:
        self._view = {job_id: job.snapshot() for job_id, job in self._jobs.items()}

    def _notify(self, event: JobEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Job listener raised an exception")
