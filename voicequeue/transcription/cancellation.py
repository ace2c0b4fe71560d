"""
Cooperative cancellation primitives.

CancellationToken is created by the job queue for each run and handed down
through the orchestrator to the provider. AbortFlag is the per-invocation
flag the local adapter passes into the blocking inference call: the cancel
path is its only writer and the inference loop its only reader.
"""

import logging
import threading
from typing import Callable, List, Optional

from voicequeue.transcription.errors import TranscriptionCancelled


logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe, one-shot cancellation signal with callbacks."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it.

        If the token is already cancelled the callback runs immediately.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)

        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TranscriptionCancelled()


class AbortFlag:
    """Abort flag observed by a blocking inference call.

    Must be released exactly once; a second release is a programming error.
    """

    def __init__(self):
        self._event = threading.Event()
        self._released = False

    def set(self) -> None:
        if self._released:
            logger.debug("Ignoring abort request on a released flag")
            return
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            raise RuntimeError("Abort flag released twice")
        self._released = True
