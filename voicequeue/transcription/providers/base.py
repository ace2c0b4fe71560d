"""
Inference Provider Protocol

Defines the InferenceProvider protocol implemented by the local engine adapter
and every remote provider adapter. Callers select a provider through the
ProviderRegistry by id and never inspect its concrete type.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Protocol, Tuple, runtime_checkable

from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.config import TranscriptionSettings
from voicequeue.transcription.progress import ProgressCallback


@dataclass
class ValidationResult:
    """Outcome of InferenceProvider.validate().

    Attributes:
        is_valid: True when the provider can be used right now
        errors: Blocking problems, in user-readable form
        warnings: Non-blocking observations (slow timeout, ...)
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def valid(cls, warnings: Optional[List[str]] = None) -> "ValidationResult":
        return cls(True, [], list(warnings or []))

    @classmethod
    def invalid(cls, *errors: str, warnings: Optional[List[str]] = None) -> "ValidationResult":
        return cls(False, list(errors), list(warnings or []))


@runtime_checkable
class InferenceProvider(Protocol):
    """
    Protocol for transcription provider implementations.

    Implementations must provide:
    - Identity reporting (id and display name)
    - Supported language discovery
    - A local configuration check and a lightweight validation
    - Audio transcription with progress reporting and cancellation

    Example:
        >>> provider = registry.resolve("cloud-groq-whisper")
        >>> if provider.validate().is_valid:
        ...     text = provider.transcribe("audio.m4a", settings, on_progress)
    """

    def identity(self) -> Tuple[str, str]:
        """
        Return ``(provider_id, display_name)``.

        Example:
            >>> provider.identity()
            ('local-whisper', 'Local Whisper')
        """
        ...

    def supported_languages(self) -> FrozenSet[str]:
        """Return the language codes this provider accepts, including "auto"."""
        ...

    def is_configured(self) -> bool:
        """
        Check local configuration only, without touching the network.

        True when the local model artifact resolves, or when a remote
        provider is enabled and has a well-formed credential.
        """
        ...

    def validate(self) -> ValidationResult:
        """
        Check configuration and, for remote providers, credential validity.

        Never performs a real transcription as a side effect.
        """
        ...

    def transcribe(
        self,
        source_path: str,
        settings: TranscriptionSettings,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Transcribe the audio file and return the cleaned final text.

        Args:
            source_path: Path to the audio file
            settings: Immutable settings snapshot for this run
            on_progress: Called with ``(fraction, message)``; fractions are
                non-decreasing in [0, 1] and no call happens after return
            cancel_token: Cooperative cancellation signal for this run

        Returns:
            Transcript text, or the "no speech detected" sentinel

        Raises:
            TranscriptionError: A classified failure (see errors.ErrorKind)
        """
        ...
