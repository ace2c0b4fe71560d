"""
Progress reporting types.

Providers report progress through a plain ``(fraction, message)`` callback.
The orchestrator wraps that callback in a ProgressRelay, which tags each
report with the provider id and enforces the reporting contract before
handing the event to the job queue's channel.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional


ProgressCallback = Callable[[float, str], None]


def monotonic_progress(callback: ProgressCallback) -> ProgressCallback:
    """Wrap a callback so reported fractions never go backwards.

    Used by providers whose phases restart, e.g. a retried upload.
    """
    highest = 0.0

    def report(fraction: float, message: str) -> None:
        nonlocal highest
        highest = max(highest, min(max(fraction, 0.0), 1.0))
        callback(highest, message)

    return report


@dataclass(frozen=True)
class ProgressEvent:
    """One progress report from the active provider.

    Attributes:
        provider_id: Provider that produced the report
        fraction: Overall progress in [0, 1], non-decreasing within a run
        message: Short human-readable status
    """
    provider_id: Optional[str]
    fraction: float
    message: str


class ProgressRelay:
    """Gate between a provider's callback and the run's event sink.

    - Fractions are clamped to [0, 1] and never go backwards, even when a
      fallback provider starts again from zero.
    - Once a provider call has returned, ``close()`` is called and any late
      report is dropped.
    """

    def __init__(self, sink: Optional[Callable[[ProgressEvent], None]]):
        self._sink = sink
        self._lock = threading.Lock()
        self._floor = 0.0
        self._provider_id: Optional[str] = None
        self._open = False

    @property
    def fraction(self) -> float:
        return self._floor

    def open(self, provider_id: str) -> ProgressCallback:
        """Start relaying for one provider call and return its callback."""
        with self._lock:
            self._provider_id = provider_id
            self._open = True
        return self._report

    def close(self) -> None:
        with self._lock:
            self._open = False

    def _report(self, fraction: float, message: str) -> None:
        with self._lock:
            if not self._open:
                return
            provider_id = self._provider_id
            self._floor = max(self._floor, min(max(float(fraction), 0.0), 1.0))
            event = ProgressEvent(provider_id, self._floor, message)
        self._emit(event)

    def emit(self, provider_id: Optional[str], fraction: float, message: str) -> None:
        """Emit an orchestrator-level event, bypassing the open/closed gate."""
        with self._lock:
            self._floor = max(self._floor, min(max(float(fraction), 0.0), 1.0))
            event = ProgressEvent(provider_id, self._floor, message)
        self._emit(event)

    def _emit(self, event: ProgressEvent) -> None:
        if self._sink is not None:
            self._sink(event)
