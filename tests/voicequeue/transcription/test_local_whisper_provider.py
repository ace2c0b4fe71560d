"""
Unit Tests: LocalWhisperProvider driven by a fake inference engine
"""

import threading
import time

import pytest

from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.config import TranscriptionSettings, WhisperLocalConfig
from voicequeue.transcription.errors import (
    AudioFileError,
    ConfigurationError,
    ErrorKind,
    ModelNotLoadedError,
    ProcessingFailedError,
    TranscriptionCancelled,
)
from voicequeue.transcription.providers.engine import Segment
from voicequeue.transcription.providers.local_whisper import LocalWhisperProvider
from voicequeue.transcription.text import NO_SPEECH_TEXT

from fakes import FakeEngine, evenly_spaced_segments


def make_provider(engine, **config):
    return LocalWhisperProvider(WhisperLocalConfig(**config), engine=engine)


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, fraction, message):
        self.events.append((time.monotonic(), fraction, message))

    @property
    def fractions(self):
        return [fraction for _, fraction, _ in self.events]


def test_rejects_wrong_config_type():
    with pytest.raises(ConfigurationError):
        LocalWhisperProvider({"model": "base"}, engine=FakeEngine())


def test_silent_clip_returns_no_speech_sentinel(audio_file):
    engine = FakeEngine(duration=0.5, segments=[])
    provider = make_provider(engine)

    text = provider.transcribe(audio_file, TranscriptionSettings(), Recorder())

    assert text == NO_SPEECH_TEXT


def test_segments_are_joined_and_progress_follows_audio_time(audio_file):
    engine = FakeEngine(duration=4.0, segments=evenly_spaced_segments(4.0, 4))
    provider = make_provider(engine)
    recorder = Recorder()

    text = provider.transcribe(audio_file, TranscriptionSettings(), recorder)

    assert text == "word0 word1 word2 word3"
    assert recorder.fractions == sorted(recorder.fractions)
    assert recorder.fractions[-4:] == [0.25, 0.5, 0.75, 1.0]


def test_timestamps_prefix_each_segment(audio_file):
    engine = FakeEngine(duration=3.0, segments=[
        Segment(0.0, 1.5, " hello"),
        Segment(1.5, 3.0, " world"),
    ])
    provider = make_provider(engine)

    text = provider.transcribe(audio_file, TranscriptionSettings(show_timestamps=True), Recorder())

    assert text == (
        "[00:00.000 --> 00:01.500] hello\n"
        "[00:01.500 --> 00:03.000] world"
    )


def test_non_speech_markers_are_stripped(audio_file):
    engine = FakeEngine(duration=2.0, segments=[
        Segment(0.0, 1.0, "[MUSIC]"),
        Segment(1.0, 2.0, " [BLANK_AUDIO]"),
    ])
    provider = make_provider(engine)

    assert provider.transcribe(audio_file, TranscriptionSettings(), Recorder()) == NO_SPEECH_TEXT


def test_settings_are_mapped_to_decode_params(audio_file):
    engine = FakeEngine(duration=1.0)
    provider = make_provider(engine)
    settings = TranscriptionSettings(language="de", translate=True, use_beam_search=True, beam_size=3)

    provider.transcribe(audio_file, settings, Recorder())

    params = engine.params[0]
    assert params.language == "de"
    assert params.task == "translate"
    assert params.beam_size == 3
    assert params.initial_prompt is None


def test_missing_file_raises_audio_file_error(tmp_path):
    provider = make_provider(FakeEngine())

    with pytest.raises(AudioFileError) as exc_info:
        provider.transcribe(str(tmp_path / "missing.wav"), TranscriptionSettings(), Recorder())

    assert exc_info.value.kind is ErrorKind.PROCESSING_FAILED


def test_model_load_failure_is_unconfigured(audio_file):
    engine = FakeEngine(load_error=RuntimeError("checkpoint corrupt"))
    provider = make_provider(engine)

    with pytest.raises(ModelNotLoadedError) as exc_info:
        provider.transcribe(audio_file, TranscriptionSettings(), Recorder())

    assert exc_info.value.kind is ErrorKind.UNCONFIGURED
    assert "checkpoint corrupt" in str(exc_info.value)


def test_engine_failure_is_wrapped(audio_file):
    engine = FakeEngine(segments=[Segment(0.0, 1.0, "hi")], decode_error=RuntimeError("kernel crashed"))
    provider = make_provider(engine)

    with pytest.raises(ProcessingFailedError, match="kernel crashed"):
        provider.transcribe(audio_file, TranscriptionSettings(), Recorder())


def test_model_is_loaded_once_for_concurrent_calls(audio_file):
    engine = FakeEngine(duration=1.0, segments=[Segment(0.0, 1.0, "hi")], load_delay=0.1)
    provider = make_provider(engine)
    results = []

    def run():
        results.append(provider.transcribe(audio_file, TranscriptionSettings(), Recorder()))

    threads = [threading.Thread(target=run) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert results == ["hi", "hi", "hi"]
    assert engine.load_count == 1


def test_abort_flag_released_once_on_success(audio_file):
    engine = FakeEngine(duration=1.0, segments=[Segment(0.0, 1.0, "hi")])
    provider = make_provider(engine)

    provider.transcribe(audio_file, TranscriptionSettings(), Recorder())
    provider.transcribe(audio_file, TranscriptionSettings(), Recorder())

    assert len(engine.flags) == 2
    assert engine.flags[0] is not engine.flags[1]
    assert all(flag.released for flag in engine.flags)


def test_abort_flag_released_on_failure(audio_file):
    engine = FakeEngine(decode_error=RuntimeError("boom"))
    provider = make_provider(engine)

    with pytest.raises(ProcessingFailedError):
        provider.transcribe(audio_file, TranscriptionSettings(), Recorder())

    assert engine.flags[0].released


def test_cancel_mid_decode_stops_promptly(audio_file):
    engine = FakeEngine(
        duration=5.0,
        segments=evenly_spaced_segments(5.0, 50),
        window_delay=0.1,
    )
    provider = make_provider(engine)
    token = CancellationToken()
    recorder = Recorder()
    cancelled_at = []

    def cancel_later():
        time.sleep(0.15)
        cancelled_at.append(time.monotonic())
        token.cancel()

    canceller = threading.Thread(target=cancel_later)
    canceller.start()
    with pytest.raises(TranscriptionCancelled):
        provider.transcribe(audio_file, TranscriptionSettings(), recorder, token)
    finished_at = time.monotonic()
    canceller.join()

    assert finished_at - cancelled_at[0] < 1.0
    assert all(at <= cancelled_at[0] for at, _, _ in recorder.events)
    assert engine.flags[0].released


def test_provider_cancel_sets_running_invocation_flag(audio_file):
    engine = FakeEngine(
        duration=5.0,
        segments=evenly_spaced_segments(5.0, 50),
        window_delay=0.05,
    )
    provider = make_provider(engine)
    errors = []

    def run():
        try:
            provider.transcribe(audio_file, TranscriptionSettings(), Recorder())
        except TranscriptionCancelled as e:
            errors.append(e)

    worker = threading.Thread(target=run)
    worker.start()
    deadline = time.monotonic() + 2.0
    while not engine.flags and time.monotonic() < deadline:
        time.sleep(0.01)
    provider.cancel()
    worker.join(2.0)

    assert not worker.is_alive()
    assert len(errors) == 1
    assert engine.flags[0].released


def test_provider_cancel_without_running_invocation_is_noop(audio_file):
    engine = FakeEngine(segments=[Segment(0.0, 1.0, "hello")])
    provider = make_provider(engine)

    provider.cancel()
    text = provider.transcribe(audio_file, TranscriptionSettings(), Recorder())

    assert text == "hello"


def test_already_cancelled_token_never_loads_model(audio_file):
    engine = FakeEngine(segments=[Segment(0.0, 1.0, "hi")])
    provider = make_provider(engine)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(TranscriptionCancelled):
        provider.transcribe(audio_file, TranscriptionSettings(), Recorder(), token)

    assert engine.load_count == 0
    assert engine.flags == []


def test_validate_reports_missing_model():
    provider = make_provider(FakeEngine(available=False), model="small")

    result = provider.validate()

    assert not result.is_valid
    assert "small" in result.errors[0]


def test_validate_disabled_provider():
    provider = make_provider(FakeEngine(), enabled=False)

    assert not provider.validate().is_valid
    assert not provider.is_configured()


def test_validate_warns_for_large_model_on_cpu():
    provider = make_provider(FakeEngine(), model="large-v3", device="cpu")

    result = provider.validate()

    assert result.is_valid
    assert result.warnings


def test_validate_never_loads_model():
    engine = FakeEngine()
    make_provider(engine).validate()

    assert engine.load_count == 0


def test_identity():
    provider = make_provider(FakeEngine())
    assert provider.identity() == ("local-whisper", "Local Whisper")
