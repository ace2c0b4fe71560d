"""
Whisper Inference Engine

InferenceEngine implementation backed by the openai-whisper package. Audio
is processed in 30 second windows so the abort flag can be observed between
windows and one Segment is emitted as soon as each window is decoded.
"""
import logging
import os
from pathlib import Path
from typing import Any, FrozenSet, List, Optional, Tuple

import torch
import whisper
from whisper.tokenizer import LANGUAGES

from voicequeue.transcription.cancellation import AbortFlag
from voicequeue.transcription.providers.engine import (
    SAMPLE_RATE,
    DecodeParams,
    Segment,
    SegmentCallback,
)


logger = logging.getLogger(__name__)

WINDOW_SECONDS = whisper.audio.CHUNK_LENGTH
WINDOW_SAMPLES = whisper.audio.N_SAMPLES


class WhisperEngine:
    """
    Runs openai-whisper one window at a time.

    Example:
        >>> engine = WhisperEngine(download_root=None)
        >>> model = engine.load_model("base", "auto")
        >>> samples = engine.decode_audio("audio.wav")
    """

    def __init__(self, download_root: Optional[str] = None):
        self.download_root = download_root

    def _cache_dir(self) -> Path:
        if self.download_root:
            return Path(self.download_root)
        cache_home = os.getenv("XDG_CACHE_HOME", os.path.expanduser("~/.cache"))
        return Path(cache_home) / "whisper"

    def is_model_available(self, model: str) -> bool:
        """Check for a checkpoint path or an already downloaded named model."""
        if Path(model).is_file():
            return True
        if model not in whisper.available_models():
            return False
        url = whisper._MODELS[model]
        return (self._cache_dir() / os.path.basename(url)).is_file()

    def load_model(self, model: str, device: str) -> Any:
        logger.info(f"Loading Whisper model '{model}' (device: {device})")
        return whisper.load_model(
            model,
            device=None if device == "auto" else device,
            download_root=self.download_root,
        )

    def supported_languages(self) -> FrozenSet[str]:
        return frozenset(LANGUAGES) | {"auto"}

    def decode_audio(self, source_path: str) -> Any:
        return whisper.load_audio(source_path, sr=SAMPLE_RATE)

    def extract_features(self, context: Any, samples: Any) -> List[Tuple[float, float, Any]]:
        """Split samples into windows and compute one log-mel spectrogram each.

        Returns:
            List of ``(start_seconds, end_seconds, mel)`` tuples
        """
        duration = len(samples) / SAMPLE_RATE
        windows = []
        for offset in range(0, max(len(samples), 1), WINDOW_SAMPLES):
            chunk = whisper.pad_or_trim(samples[offset:offset + WINDOW_SAMPLES])
            mel = whisper.log_mel_spectrogram(chunk, n_mels=context.dims.n_mels)
            start = offset / SAMPLE_RATE
            windows.append((start, min(start + WINDOW_SECONDS, duration), mel.to(context.device)))
        return windows

    def encode(self, context: Any, features: List[Tuple[float, float, Any]]) -> List[Tuple[float, float, Any]]:
        encoded = []
        with torch.no_grad():
            for start, end, mel in features:
                encoded.append((start, end, context.embed_audio(mel[None])))
        return encoded

    def decode(
        self,
        context: Any,
        encoded: List[Tuple[float, float, Any]],
        params: DecodeParams,
        abort_flag: AbortFlag,
        on_segment: SegmentCallback,
    ) -> None:
        prompt = params.initial_prompt
        for start, end, audio_features in encoded:
            if abort_flag.is_set():
                logger.debug("Abort flag set, stopping Whisper decode")
                return

            options = whisper.DecodingOptions(
                task=params.task,
                language=params.language,
                temperature=params.temperature,
                beam_size=params.beam_size,
                prompt=prompt,
                suppress_blank=params.suppress_blank,
                without_timestamps=True,
                fp16=audio_features.dtype == torch.float16,
            )
            result = whisper.decode(context, audio_features, options)[0]

            if (result.no_speech_prob > params.no_speech_threshold
                    and result.avg_logprob < -1.0):
                logger.debug(f"Skipping silent window {start:.1f}s-{end:.1f}s")
                continue

            # Condition the next window on what was just decoded
            prompt = result.text or prompt
            on_segment(Segment(start=start, end=end, text=result.text))
