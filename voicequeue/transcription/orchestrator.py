"""
Transcription Orchestrator

Drives one job run across the primary provider and its fallbacks:

    idle -> resolving -> running(provider) -> succeeded | failed

The first provider to succeed wins. When every candidate fails, the error of
the last candidate attempted is raised. Progress from the active provider is
relayed upward tagged with the provider id.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional

from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.config import TranscriptionSettings
from voicequeue.transcription.errors import (
    ProcessingFailedError,
    TranscriptionCancelled,
    TranscriptionError,
    UnconfiguredError,
)
from voicequeue.transcription.progress import ProgressEvent, ProgressRelay
from voicequeue.transcription.registry import ProviderRegistry
from voicequeue.transcription.text import is_no_speech

if TYPE_CHECKING:
    from voicequeue.postprocess.text_improvement import TextImprover


logger = logging.getLogger(__name__)

DEFAULT_MIN_IMPROVEMENT_LENGTH = 20


class RunState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TranscriptionOutcome:
    """Result of a successful run.

    Attributes:
        text: Final transcript (after optional improvement)
        provider_id: Provider that produced the transcript
        attempted: Provider ids tried, in order, including the winner
        improved: Whether the text-improvement pass changed the text
    """
    text: str
    provider_id: str
    attempted: List[str] = field(default_factory=list)
    improved: bool = False


class _RunLog:
    """Tracks and logs state transitions of a single run."""

    def __init__(self, label: str):
        self.label = label
        self.state = RunState.IDLE

    def move(self, state: RunState, provider_id: Optional[str] = None) -> None:
        target = f"{state.value}({provider_id})" if provider_id else state.value
        logger.info(f"[{self.label}] {self.state.value} -> {target}")
        self.state = state


class TranscriptionOrchestrator:
    """
    Runs transcription with primary/fallback ordering.

    Example:
        >>> orchestrator = TranscriptionOrchestrator(registry)
        >>> outcome = orchestrator.run("memo.wav", settings, on_event=print)
        >>> outcome.provider_id, outcome.text
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        text_improver: Optional["TextImprover"] = None,
        min_improvement_length: int = DEFAULT_MIN_IMPROVEMENT_LENGTH,
    ):
        self.registry = registry
        self.text_improver = text_improver
        self.min_improvement_length = min_improvement_length

    @staticmethod
    def candidate_order(settings: TranscriptionSettings) -> List[str]:
        """Primary first, then fallbacks in order if enabled, without duplicates."""
        order = [settings.primary_provider]
        if settings.enable_fallback:
            for provider_id in settings.fallback_providers:
                if provider_id not in order:
                    order.append(provider_id)
        return order

    def run(
        self,
        source_path: str,
        settings: TranscriptionSettings,
        on_event: Optional[Callable[[ProgressEvent], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
        label: Optional[str] = None,
    ) -> TranscriptionOutcome:
        """
        Transcribe ``source_path`` with the first provider that succeeds.

        Args:
            source_path: Audio file to transcribe
            settings: Settings snapshot for this run
            on_event: Receives ProgressEvent objects; must not block
            cancel_token: Cancellation signal for this run
            label: Name used in log lines (job id)

        Returns:
            TranscriptionOutcome of the winning provider

        Raises:
            TranscriptionCancelled: If cancelled at any checkpoint
            TranscriptionError: The last candidate's error when all fail
        """
        token = cancel_token or CancellationToken()
        run_log = _RunLog(label or source_path)
        relay = ProgressRelay(on_event)
        attempted: List[str] = []
        last_error: Optional[TranscriptionError] = None

        try:
            for provider_id in self.candidate_order(settings):
                token.raise_if_cancelled()
                attempted.append(provider_id)

                run_log.move(RunState.RESOLVING)
                try:
                    provider = self.registry.resolve(provider_id)
                    validation = provider.validate()
                except TranscriptionError as e:
                    last_error = e
                    logger.warning(f"Skipping {provider_id}: {e.user_message}")
                    continue
                except Exception as e:
                    logger.exception(f"Could not prepare {provider_id}")
                    last_error = ProcessingFailedError(
                        f"Transcription failed: {e}", provider_id=provider_id
                    )
                    continue

                for warning in validation.warnings:
                    logger.warning(f"{provider_id}: {warning}")
                if not validation.is_valid:
                    last_error = UnconfiguredError(
                        "; ".join(validation.errors) or None,
                        provider_id=provider_id,
                    )
                    logger.warning(f"Skipping {provider_id}: {last_error.user_message}")
                    continue

                run_log.move(RunState.RUNNING, provider_id)
                callback = relay.open(provider_id)
                try:
                    text = provider.transcribe(source_path, settings, callback, token)
                except TranscriptionCancelled:
                    raise
                except TranscriptionError as e:
                    last_error = e
                    logger.warning(f"{provider_id} failed ({e.kind.value}): {e.user_message}")
                    continue
                except Exception as e:
                    logger.exception(f"Unexpected error from {provider_id}")
                    last_error = ProcessingFailedError(
                        f"Transcription failed: {e}", provider_id=provider_id
                    )
                    continue
                finally:
                    relay.close()

                token.raise_if_cancelled()
                text, improved = self._post_process(text, provider_id, relay)
                relay.emit(provider_id, 1.0, "Transcription completed")
                run_log.move(RunState.SUCCEEDED, provider_id)
                return TranscriptionOutcome(text, provider_id, attempted, improved)

        except TranscriptionCancelled:
            run_log.move(RunState.FAILED)
            logger.info(f"[{run_log.label}] cancelled")
            raise

        run_log.move(RunState.FAILED)
        if last_error is None:
            last_error = UnconfiguredError("No transcription provider configured")
        raise last_error

    def _post_process(self, text: str, provider_id: str, relay: ProgressRelay):
        if self.text_improver is None:
            return text, False
        if is_no_speech(text) or len(text.strip()) < self.min_improvement_length:
            return text, False

        relay.emit(provider_id, relay.fraction, "Improving text...")
        try:
            improved = self.text_improver.improve(text)
        except Exception:
            logger.exception("Text improvement failed, keeping original text")
            return text, False
        return improved, improved != text
