"""
Transcription Pipeline

Provider abstraction, configuration, retry, cancellation and the
orchestrator that runs one transcription with primary/fallback ordering.

Key Components:
    - providers/: InferenceProvider implementations (local Whisper, Groq, Mistral)
    - registry.py: ProviderRegistry resolving provider ids to live instances
    - orchestrator.py: TranscriptionOrchestrator driving a single run
    - config.py: Configuration with YAML loading and environment substitution
    - errors.py: Provider-agnostic error taxonomy

Usage:
    >>> from voicequeue.transcription import (
    ...     TranscriptionConfig, ProviderRegistry, TranscriptionOrchestrator,
    ...     EnvironmentSecretStore,
    ... )
    >>> config = TranscriptionConfig.load_from_yaml('config.yaml')
    >>> registry = ProviderRegistry(config, EnvironmentSecretStore())
    >>> outcome = TranscriptionOrchestrator(registry).run("memo.wav", config.current_settings())
"""

from voicequeue.transcription.cancellation import AbortFlag, CancellationToken
from voicequeue.transcription.config import (
    CLOUD_GROQ,
    CLOUD_MISTRAL,
    LOCAL_WHISPER,
    CleanupConfig,
    GroqConfig,
    MistralVoxtralConfig,
    TextImprovementConfig,
    TranscriptionConfig,
    TranscriptionSettings,
    WhisperLocalConfig,
)
from voicequeue.transcription.errors import (
    AudioFileError,
    ConfigurationError,
    ErrorKind,
    InvalidCredentialError,
    ModelNotLoadedError,
    PayloadTooLargeError,
    ProcessingFailedError,
    QuotaExceededError,
    TranscriptionCancelled,
    TranscriptionError,
    UnconfiguredError,
    UnreachableError,
    UnsupportedLanguageError,
)
from voicequeue.transcription.orchestrator import TranscriptionOrchestrator, TranscriptionOutcome
from voicequeue.transcription.progress import ProgressEvent
from voicequeue.transcription.registry import ProviderRegistry
from voicequeue.transcription.secrets import EnvironmentSecretStore, InMemorySecretStore, SecretStore
from voicequeue.transcription.text import NO_SPEECH_TEXT

__all__ = [
    "AbortFlag",
    "CancellationToken",
    "CLOUD_GROQ",
    "CLOUD_MISTRAL",
    "LOCAL_WHISPER",
    "CleanupConfig",
    "GroqConfig",
    "MistralVoxtralConfig",
    "TextImprovementConfig",
    "TranscriptionConfig",
    "TranscriptionSettings",
    "WhisperLocalConfig",
    "AudioFileError",
    "ConfigurationError",
    "ErrorKind",
    "InvalidCredentialError",
    "ModelNotLoadedError",
    "PayloadTooLargeError",
    "ProcessingFailedError",
    "QuotaExceededError",
    "TranscriptionCancelled",
    "TranscriptionError",
    "UnconfiguredError",
    "UnreachableError",
    "UnsupportedLanguageError",
    "TranscriptionOrchestrator",
    "TranscriptionOutcome",
    "ProgressEvent",
    "ProviderRegistry",
    "EnvironmentSecretStore",
    "InMemorySecretStore",
    "SecretStore",
    "NO_SPEECH_TEXT",
]
