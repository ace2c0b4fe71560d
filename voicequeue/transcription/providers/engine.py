"""
Native inference engine contract.

The local adapter drives an engine through four blocking stages. Engine
internals (tensors, model weights) stay opaque to the adapter: it only
passes them from one stage to the next.
"""
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Optional, Protocol, runtime_checkable

from voicequeue.transcription.cancellation import AbortFlag
from voicequeue.transcription.config import TranscriptionSettings


SAMPLE_RATE = 16000


@dataclass(frozen=True)
class Segment:
    """An incrementally decoded piece of text with its time span in seconds."""
    start: float
    end: float
    text: str


@dataclass(frozen=True)
class DecodeParams:
    """Decoding parameters derived from TranscriptionSettings."""
    language: Optional[str]
    task: str
    temperature: float
    beam_size: Optional[int]
    initial_prompt: Optional[str]
    no_speech_threshold: float
    suppress_blank: bool
    with_timestamps: bool

    @classmethod
    def from_settings(cls, settings: TranscriptionSettings) -> "DecodeParams":
        return cls(
            language=None if settings.language == "auto" else settings.language,
            task="translate" if settings.translate else "transcribe",
            temperature=settings.temperature,
            beam_size=settings.beam_size if settings.use_beam_search else None,
            initial_prompt=settings.initial_prompt or None,
            no_speech_threshold=settings.no_speech_threshold,
            suppress_blank=settings.suppress_blank_audio,
            with_timestamps=settings.show_timestamps,
        )


SegmentCallback = Callable[[Segment], None]


@runtime_checkable
class InferenceEngine(Protocol):
    """Opaque, blocking speech-recognition capability."""

    def is_model_available(self, model: str) -> bool:
        ...

    def load_model(self, model: str, device: str) -> Any:
        """Load and return a model context. May take a long time."""
        ...

    def supported_languages(self) -> FrozenSet[str]:
        ...

    def decode_audio(self, source_path: str) -> Any:
        """Decode a file into mono 16 kHz float32 samples."""
        ...

    def extract_features(self, context: Any, samples: Any) -> Any:
        ...

    def encode(self, context: Any, features: Any) -> Any:
        ...

    def decode(
        self,
        context: Any,
        encoded: Any,
        params: DecodeParams,
        abort_flag: AbortFlag,
        on_segment: SegmentCallback,
    ) -> None:
        """Run the decoder, calling ``on_segment`` as segments become available.

        Must check ``abort_flag`` between internal steps and return early
        once it is set.
        """
        ...
