"""
Retry Logic with Exponential Backoff

Provides the retry loop used by remote transcription providers. Errors are
classified before they reach this module; permanent kinds are raised
immediately, everything else is retried with a capped exponential delay.
"""

import logging
from typing import Callable, Optional, TypeVar

from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.errors import TranscriptionCancelled, is_retryable


logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 10.0


def calculate_backoff_delay(attempt: int, cap: float = MAX_BACKOFF_SECONDS) -> float:
    """Calculate the delay after a failed attempt.

    Uses ``min(2 ** attempt, cap)`` with 1-indexed attempts:
    - After attempt 1: 2s
    - After attempt 2: 4s
    - After attempt 3: 8s
    - After attempt 4 and later: 10s

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        cap: Upper bound in seconds

    Returns:
        Delay in seconds
    """
    return min(float(2 ** attempt), cap)


class RetryPolicy:
    """Runs an operation with bounded attempts and cancellable backoff.

    Example:
        >>> policy = RetryPolicy(max_attempts=3)
        >>> text = policy.run(lambda attempt: upload(attempt), cancel_token=token)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        sleep: Optional[Callable[[float], None]] = None,
        log_retries: bool = True
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Maximum number of attempts (at least 1)
            sleep: Replacement wait function, used by tests; when None the
                wait is done on the cancellation token so it can be interrupted
            log_retries: Whether to log retry attempts
        """
        self.max_attempts = max(1, int(max_attempts))
        self.sleep = sleep
        self.log_retries = log_retries

    def run(
        self,
        operation: Callable[[int], T],
        cancel_token: Optional[CancellationToken] = None,
        name: str = "operation"
    ) -> T:
        """Call ``operation(attempt)`` until it succeeds or retries run out.

        Raises:
            TranscriptionCancelled: If cancelled before an attempt or during a wait
            TranscriptionError: The permanent error, or the last error observed
        """
        last_exception = None

        for attempt in range(1, self.max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            try:
                return operation(attempt)

            except Exception as e:
                if not is_retryable(e):
                    if self.log_retries:
                        logger.error(f"Permanent error in {name}: {type(e).__name__}: {e}")
                    raise

                last_exception = e

                if attempt < self.max_attempts:
                    delay = calculate_backoff_delay(attempt)
                    if self.log_retries:
                        logger.warning(
                            f"Transient error in {name} "
                            f"(attempt {attempt}/{self.max_attempts}): "
                            f"{type(e).__name__}: {e}. "
                            f"Retrying in {delay}s..."
                        )
                    self._wait(delay, cancel_token)
                elif self.log_retries:
                    logger.error(
                        f"All {self.max_attempts} attempts failed for {name}: "
                        f"{type(e).__name__}: {e}"
                    )

        raise last_exception

    def _wait(self, delay: float, cancel_token: Optional[CancellationToken]) -> None:
        if self.sleep is not None:
            self.sleep(delay)
            return
        if cancel_token is None:
            cancel_token = CancellationToken()
        if cancel_token.wait(delay):
            raise TranscriptionCancelled()
