"""
Test doubles shared across the suite.

Injected through constructors: fake inference engines, fake providers and
a sleep function that records delays instead of waiting.
"""

import threading
import time
from typing import List, Optional, Sequence

from voicequeue.transcription.cancellation import AbortFlag
from voicequeue.transcription.config import TranscriptionConfig
from voicequeue.transcription.errors import TranscriptionCancelled
from voicequeue.transcription.providers.base import ValidationResult
from voicequeue.transcription.providers.engine import SAMPLE_RATE, Segment
from voicequeue.transcription.registry import ProviderRegistry
from voicequeue.transcription.secrets import InMemorySecretStore


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeEngine:
    """InferenceEngine that replays scripted segments.

    ``window_delay`` is slept before each segment so tests can cancel
    mid-decode.
    """

    def __init__(self, duration: float = 1.0, segments: Sequence[Segment] = (),
                 window_delay: float = 0.0, available: bool = True,
                 load_error: Optional[Exception] = None, load_delay: float = 0.0,
                 decode_error: Optional[Exception] = None):
        self.duration = duration
        self.segments = list(segments)
        self.window_delay = window_delay
        self.available = available
        self.load_error = load_error
        self.load_delay = load_delay
        self.decode_error = decode_error
        self.load_count = 0
        self.flags: List[AbortFlag] = []
        self.params = []
        self._lock = threading.Lock()

    def is_model_available(self, model):
        return self.available

    def load_model(self, model, device):
        with self._lock:
            self.load_count += 1
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.load_error is not None:
            raise self.load_error
        return object()

    def supported_languages(self):
        return frozenset({"auto", "en", "de"})

    def decode_audio(self, source_path):
        return [0.0] * int(self.duration * SAMPLE_RATE)

    def extract_features(self, context, samples):
        return samples

    def encode(self, context, features):
        return features

    def decode(self, context, encoded, params, abort_flag, on_segment):
        self.flags.append(abort_flag)
        self.params.append(params)
        if self.decode_error is not None:
            raise self.decode_error
        for segment in self.segments:
            if abort_flag.is_set():
                return
            if self.window_delay:
                time.sleep(self.window_delay)
            if abort_flag.is_set():
                return
            on_segment(segment)


def evenly_spaced_segments(duration: float, count: int, text: str = "word") -> List[Segment]:
    step = duration / count
    return [Segment(i * step, (i + 1) * step, f"{text}{i}") for i in range(count)]


class FakeProvider:
    """InferenceProvider with scripted behavior."""

    def __init__(self, provider_id: str, text: Optional[str] = "hello world",
                 error: Optional[Exception] = None, valid: bool = True,
                 steps: Sequence[float] = (0.5,), delay: float = 0.0):
        self.provider_id = provider_id
        self.text = text
        self.error = error
        self.valid = valid
        self.steps = list(steps)
        self.delay = delay
        self.calls: List[str] = []
        self.settings = []
        self.validate_calls = 0

    def identity(self):
        return (self.provider_id, self.provider_id.title())

    def supported_languages(self):
        return frozenset({"auto", "en"})

    def is_configured(self):
        return self.valid

    def validate(self):
        self.validate_calls += 1
        if self.valid:
            return ValidationResult.valid()
        return ValidationResult.invalid(f"{self.provider_id} is not configured")

    def transcribe(self, source_path, settings, on_progress, cancel_token=None):
        self.calls.append(source_path)
        self.settings.append(settings)
        for fraction in self.steps:
            on_progress(fraction, f"{self.provider_id} working")
        if self.delay:
            cancelled = cancel_token.wait(self.delay) if cancel_token else time.sleep(self.delay)
            if cancelled:
                raise TranscriptionCancelled(provider_id=self.provider_id)
        if self.error is not None:
            raise self.error
        return self.text


def make_registry(*providers: FakeProvider, config: Optional[TranscriptionConfig] = None) -> ProviderRegistry:
    builders = {p.provider_id: (lambda section, store, p=p: p) for p in providers}
    return ProviderRegistry(config or TranscriptionConfig(), InMemorySecretStore(), builders=builders)
