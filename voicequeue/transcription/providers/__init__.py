"""
Transcription provider implementations.

All providers conform to the InferenceProvider protocol and are selected by
id through the ProviderRegistry.
"""

from voicequeue.transcription.providers.base import InferenceProvider, ValidationResult
from voicequeue.transcription.providers.engine import DecodeParams, InferenceEngine, Segment
from voicequeue.transcription.providers.local_whisper import LocalWhisperProvider
from voicequeue.transcription.providers.remote import RemoteTranscriptionProvider
from voicequeue.transcription.providers.cloud_groq import GroqWhisperProvider
from voicequeue.transcription.providers.cloud_mistral import MistralVoxtralProvider

__all__ = [
    "InferenceProvider",
    "ValidationResult",
    "DecodeParams",
    "InferenceEngine",
    "Segment",
    "LocalWhisperProvider",
    "RemoteTranscriptionProvider",
    "GroqWhisperProvider",
    "MistralVoxtralProvider",
]
