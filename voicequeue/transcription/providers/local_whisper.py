"""
Local Whisper Transcription Provider

Implements the LocalWhisperProvider on top of an InferenceEngine (WhisperEngine
by default). Audio is processed entirely on the local machine.

The provider holds a single model context. It is loaded lazily on first use,
and overlapping transcribe() calls are serialized because the context is not
safe to share between concurrent decode runs.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, FrozenSet, Iterator, List, Optional, Tuple

from voicequeue.transcription.cancellation import AbortFlag, CancellationToken
from voicequeue.transcription.config import LOCAL_WHISPER, TranscriptionSettings, WhisperLocalConfig
from voicequeue.transcription.errors import (
    AudioFileError,
    ConfigurationError,
    ModelNotLoadedError,
    ProcessingFailedError,
    TranscriptionCancelled,
    TranscriptionError,
)
from voicequeue.transcription.progress import ProgressCallback
from voicequeue.transcription.providers.base import ValidationResult
from voicequeue.transcription.providers.engine import (
    SAMPLE_RATE,
    DecodeParams,
    InferenceEngine,
    Segment,
)
from voicequeue.transcription.text import join_segments, normalize_transcript


logger = logging.getLogger(__name__)


class LocalWhisperProvider:
    """
    Transcribes audio using a locally loaded Whisper model.

    Configuration is provided via WhisperLocalConfig, which supports:
    - Model selection (tiny, base, small, medium, large) or a checkpoint path
    - Device selection (cpu, cuda, auto)
    - A custom download root for checkpoints

    Example:
        >>> from voicequeue.transcription.config import WhisperLocalConfig
        >>> provider = LocalWhisperProvider(WhisperLocalConfig(model="base"))
        >>> text = provider.transcribe("audio.wav", settings, on_progress)
    """

    DISPLAY_NAME = "Local Whisper"

    def __init__(self, config: WhisperLocalConfig, engine: Optional[InferenceEngine] = None):
        """
        Initialize the local Whisper provider with configuration.

        Args:
            config: WhisperLocalConfig instance with provider configuration
            engine: Inference engine to drive; defaults to WhisperEngine

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not isinstance(config, WhisperLocalConfig):
            raise ConfigurationError(
                f"Expected WhisperLocalConfig, got {type(config).__name__}"
            )

        self.config = config
        self._engine = engine
        self._context: Any = None
        self._load_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._flag_lock = threading.Lock()
        self._current_flag: Optional[AbortFlag] = None

    @property
    def engine(self) -> InferenceEngine:
        if self._engine is None:
            from voicequeue.transcription.providers.whisper_engine import WhisperEngine
            self._engine = WhisperEngine(download_root=self.config.download_root)
        return self._engine

    def identity(self) -> Tuple[str, str]:
        return (LOCAL_WHISPER, self.DISPLAY_NAME)

    def supported_languages(self) -> FrozenSet[str]:
        return self.engine.supported_languages()

    def is_configured(self) -> bool:
        return self.config.enabled and self.engine.is_model_available(self.config.model)

    def validate(self) -> ValidationResult:
        """
        Validate that the local model can be used.

        This method checks:
        - The provider is enabled
        - The model artifact resolves (named and downloaded, or a file path)

        It never loads the model.
        """
        if not self.config.enabled:
            return ValidationResult.invalid("Local Whisper is disabled")

        if not self.engine.is_model_available(self.config.model):
            return ValidationResult.invalid(
                f"Local Whisper model '{self.config.model}' is not available. "
                f"Download it before transcribing."
            )

        warnings = []
        if self.config.device == "cpu" and self.config.model.startswith("large"):
            warnings.append(
                f"Model '{self.config.model}' on CPU will be slow; "
                f"consider a smaller model or a GPU"
            )
        return ValidationResult.valid(warnings)

    def _ensure_model_loaded(self) -> Any:
        """Load the model once; callers racing the first load wait for it."""
        with self._load_lock:
            if self._context is None:
                try:
                    self._context = self.engine.load_model(self.config.model, self.config.device)
                except Exception as e:
                    raise ModelNotLoadedError(
                        f"Failed to load local Whisper model '{self.config.model}' "
                        f"on device '{self.config.device}': {e}",
                        provider_id=LOCAL_WHISPER,
                    ) from e
            return self._context

    def cancel(self) -> None:
        """Set the abort flag of the invocation currently running, if any."""
        with self._flag_lock:
            if self._current_flag is not None:
                self._current_flag.set()

    @contextmanager
    def _abort_flag(self, cancel_token: Optional[CancellationToken]) -> Iterator[AbortFlag]:
        flag = AbortFlag()
        with self._flag_lock:
            self._current_flag = flag
        unregister = cancel_token.on_cancel(flag.set) if cancel_token is not None else None
        try:
            yield flag
        finally:
            if unregister is not None:
                unregister()
            with self._flag_lock:
                self._current_flag = None
            flag.release()

    def transcribe(
        self,
        source_path: str,
        settings: TranscriptionSettings,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Run the local pipeline: decode audio, features, encode, decode.

        Cancellation is checked before every stage and observed by the
        engine between decode windows through a per-call abort flag.

        Raises:
            AudioFileError: If audio file doesn't exist or cannot be decoded
            ModelNotLoadedError: If the model cannot be loaded
            ProcessingFailedError: If inference fails
            TranscriptionCancelled: If cancelled at any checkpoint
        """
        if not os.path.exists(source_path):
            raise AudioFileError(f"Audio file not found: {source_path}", provider_id=LOCAL_WHISPER)

        with self._run_lock:
            with self._abort_flag(cancel_token) as flag:
                try:
                    return self._run(source_path, settings, on_progress, flag)
                except TranscriptionError:
                    raise
                except Exception as e:
                    logger.exception(f"Local Whisper transcription failed for {source_path}")
                    raise ProcessingFailedError(
                        f"Local Whisper transcription failed: {e}",
                        provider_id=LOCAL_WHISPER,
                    ) from e

    def _run(
        self,
        source_path: str,
        settings: TranscriptionSettings,
        on_progress: ProgressCallback,
        flag: AbortFlag,
    ) -> str:
        def checkpoint():
            if flag.is_set():
                raise TranscriptionCancelled(provider_id=LOCAL_WHISPER)

        checkpoint()
        on_progress(0.0, "Loading Whisper model...")
        context = self._ensure_model_loaded()

        checkpoint()
        on_progress(0.0, "Decoding audio...")
        try:
            samples = self.engine.decode_audio(source_path)
        except Exception as e:
            raise AudioFileError(
                f"Could not decode audio file {source_path}: {e}",
                provider_id=LOCAL_WHISPER,
            ) from e
        duration = len(samples) / SAMPLE_RATE

        checkpoint()
        features = self.engine.extract_features(context, samples)

        checkpoint()
        encoded = self.engine.encode(context, features)

        checkpoint()
        segments: List[Segment] = []
        reported = 0.0

        def on_segment(segment: Segment):
            nonlocal reported
            segments.append(segment)
            fraction = min(segment.end / duration, 1.0) if duration > 0 else 1.0
            reported = max(reported, fraction)
            on_progress(reported, f"Transcribed {segment.end:.1f}s of {duration:.1f}s")

        on_progress(0.0, "Transcribing...")
        self.engine.decode(context, encoded, DecodeParams.from_settings(settings), flag, on_segment)
        checkpoint()

        text = normalize_transcript(join_segments(segments, settings.show_timestamps))
        logger.debug(f"Local Whisper produced {len(segments)} segments for {source_path}")
        return text
