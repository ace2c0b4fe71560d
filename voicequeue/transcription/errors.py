"""
Transcription Error Classes

This module defines the provider-agnostic error taxonomy for transcription.
Adapters catch transport and engine failures at their boundary and raise one
of these classes instead, so the orchestrator and the job queue only ever
decide on an ErrorKind.

Error Hierarchy:
    TranscriptionError (base)
    ├── UnconfiguredError
    │   ├── ConfigurationError
    │   └── ModelNotLoadedError
    ├── InvalidCredentialError
    ├── QuotaExceededError
    ├── UnsupportedLanguageError
    ├── PayloadTooLargeError
    ├── UnreachableError
    ├── ProcessingFailedError
    │   └── AudioFileError
    └── TranscriptionCancelled
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classified failure kinds shared by every provider."""
    UNCONFIGURED = "unconfigured"
    INVALID_CREDENTIAL = "invalid_credential"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNREACHABLE = "unreachable"
    PROCESSING_FAILED = "processing_failed"
    CANCELLED = "cancelled"


class TranscriptionError(Exception):
    """Base exception class for all transcription-related errors.

    Every subclass carries a fixed ``kind`` and a default human-readable
    message. Callers may pass a more specific message; ``user_message``
    is what ends up on a failed job.

    Example:
        try:
            provider.transcribe(audio_path, settings, on_progress)
        except TranscriptionError as e:
            logger.error(f"Transcription failed ({e.kind.value}): {e}")
    """

    kind = ErrorKind.PROCESSING_FAILED
    default_message = "Transcription failed"

    def __init__(self, message: Optional[str] = None, provider_id: Optional[str] = None):
        self.provider_id = provider_id
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class UnconfiguredError(TranscriptionError):
    """Raised when a provider is missing required setup.

    Never retried: this is not a transient condition.
    """
    kind = ErrorKind.UNCONFIGURED
    default_message = "Provider is not properly configured"


class ConfigurationError(UnconfiguredError):
    """Raised for invalid configuration values or unknown provider ids."""
    default_message = "Invalid transcription configuration"


class ModelNotLoadedError(UnconfiguredError):
    """Raised when the local model cannot be loaded.

    Kept distinct from ProcessingFailedError so the UI can send the user
    to model setup instead of offering a retry.
    """
    default_message = "Local model is not loaded"


class InvalidCredentialError(TranscriptionError):
    """Raised when the provider rejects the credential (HTTP 401)."""
    kind = ErrorKind.INVALID_CREDENTIAL
    default_message = "Invalid API key"


class QuotaExceededError(TranscriptionError):
    """Raised on HTTP 402/429. Retryable with backoff."""
    kind = ErrorKind.QUOTA_EXCEEDED
    default_message = "API quota exceeded"


class UnsupportedLanguageError(TranscriptionError):
    """Raised when the requested language is not supported by the provider."""
    kind = ErrorKind.UNSUPPORTED_LANGUAGE
    default_message = "Language is not supported by this provider"


class PayloadTooLargeError(TranscriptionError):
    """Raised when the audio exceeds the provider's size ceiling."""
    kind = ErrorKind.PAYLOAD_TOO_LARGE
    default_message = "Audio file exceeds the maximum upload size"

    def __init__(self, message: Optional[str] = None, provider_id: Optional[str] = None,
                 max_size: Optional[int] = None):
        self.max_size = max_size
        if message is None and max_size is not None:
            message = f"Audio file exceeds maximum size of {max_size} bytes"
        super().__init__(message, provider_id)


class UnreachableError(TranscriptionError):
    """Raised on network failures, timeouts and HTTP 5xx."""
    kind = ErrorKind.UNREACHABLE
    default_message = "Provider is currently unavailable"


class ProcessingFailedError(TranscriptionError):
    """Raised when the provider fails internally while processing audio.

    Retried by remote adapters, never by the local adapter.
    """
    kind = ErrorKind.PROCESSING_FAILED
    default_message = "Audio processing failed"


class AudioFileError(ProcessingFailedError):
    """Raised when the audio file is missing or cannot be decoded."""
    default_message = "Audio file could not be read"


class TranscriptionCancelled(TranscriptionError):
    """Raised when a run is cancelled by the user.

    Terminal, but not a failure to surface as an error banner.
    """
    kind = ErrorKind.CANCELLED
    default_message = "Transcription cancelled"


# Kinds a remote adapter must surface immediately instead of retrying
NON_RETRYABLE_KINDS = frozenset({
    ErrorKind.UNCONFIGURED,
    ErrorKind.INVALID_CREDENTIAL,
    ErrorKind.PAYLOAD_TOO_LARGE,
    ErrorKind.UNSUPPORTED_LANGUAGE,
    ErrorKind.CANCELLED,
})


def is_retryable(error: Exception) -> bool:
    """Check whether a remote attempt that raised ``error`` may be retried."""
    if isinstance(error, TranscriptionError):
        return error.kind not in NON_RETRYABLE_KINDS
    return False
