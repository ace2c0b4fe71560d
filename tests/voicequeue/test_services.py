"""
Unit Tests: PipelineServices wiring and lifecycle
"""

import dataclasses
import time
from pathlib import Path

from voicequeue.jobs.models import JobStatus
from voicequeue.jobs.store import InMemoryJobStore
from voicequeue.postprocess.text_improvement import OpenAITextImprover
from voicequeue.services import PipelineServices
from voicequeue.transcription.config import LOCAL_WHISPER, TranscriptionConfig
from voicequeue.transcription.orchestrator import TranscriptionOrchestrator
from voicequeue.transcription.providers.engine import Segment
from voicequeue.transcription.registry import ProviderRegistry
from voicequeue.transcription.secrets import InMemorySecretStore
from voicequeue.transcription.text import NO_SPEECH_TEXT

from fakes import FakeEngine, evenly_spaced_segments


def build(engine, config=None):
    return PipelineServices.build(
        config or TranscriptionConfig(),
        secret_store=InMemorySecretStore(),
        local_engine=engine,
    )


def test_end_to_end_with_local_engine(audio_file):
    engine = FakeEngine(duration=1.0, segments=[Segment(0.0, 1.0, " hello world")])

    with build(engine) as services:
        job_id = services.queue.submit(audio_file, 1.0)
        assert services.queue.wait_until_idle(5)
        job = services.queue.get(job_id)

    assert job.status is JobStatus.COMPLETED
    assert job.result_text == "hello world"
    assert job.provider_id == LOCAL_WHISPER


def test_text_improver_wired_only_when_enabled():
    assert build(FakeEngine()).orchestrator.text_improver is None

    config = TranscriptionConfig()
    config.text_improvement = dataclasses.replace(config.text_improvement, enabled=True, min_text_length=50)
    services = build(FakeEngine(), config)

    assert isinstance(services.orchestrator.text_improver, OpenAITextImprover)
    assert services.orchestrator.min_improvement_length == 50


def test_queue_reads_current_settings_for_each_job():
    services = build(FakeEngine())
    config = TranscriptionConfig()
    config.settings = config.settings.with_overrides(language="fr")

    services.update_config(config)

    assert services.queue.settings_provider().language == "fr"
    assert services.registry.config is config


def test_direct_construction_wires_queue_and_cleanup():
    config = TranscriptionConfig()
    secret_store = InMemorySecretStore()
    registry = ProviderRegistry(config, secret_store, local_engine=FakeEngine())
    store = InMemoryJobStore()

    services = PipelineServices(config, secret_store, registry, TranscriptionOrchestrator(registry), store=store)

    assert services.queue.store is store
    assert services.queue.settings_provider() == config.current_settings()
    assert services.cleanup.in_use(Path("missing.wav")) is False


def test_source_of_unfinished_job_is_in_use(audio_file, tmp_path):
    engine = FakeEngine(duration=1.0, segments=[Segment(0.0, 1.0, " hi")], window_delay=0.3)

    with build(engine) as services:
        job_id = services.queue.submit(audio_file)
        deadline = time.monotonic() + 5
        while services.queue.get(job_id) is None or services.queue.get(job_id).status is JobStatus.PENDING:
            assert time.monotonic() < deadline
            time.sleep(0.01)

        assert services.is_in_use(Path(audio_file))
        assert not services.is_in_use(tmp_path / "other.wav")

        services.queue.wait_until_idle(5)
        assert not services.is_in_use(Path(audio_file))


def local_only(services):
    config = services.config
    config.settings = config.settings.with_overrides(enable_fallback=False)
    services.update_config(config)
    return services


def test_silent_clip_completes_with_sentinel(audio_file):
    with local_only(build(FakeEngine(duration=0.5, segments=[]))) as services:
        job_id = services.queue.submit(audio_file, 0.5)
        services.queue.wait_until_idle(5)
        job = services.queue.get(job_id)

    assert job.status is JobStatus.COMPLETED
    assert job.result_text == NO_SPEECH_TEXT


def test_cancel_shortly_after_start_settles_promptly(audio_file):
    engine = FakeEngine(duration=5.0, segments=evenly_spaced_segments(5.0, 50), window_delay=0.1)
    events = []

    with local_only(build(engine)) as services:
        services.queue.subscribe(lambda event: events.append(event.job))
        job_id = services.queue.submit(audio_file, 5.0)
        time.sleep(0.1)
        cancelled_at = time.monotonic()
        services.queue.cancel(job_id).result(5)
        assert services.queue.wait_until_idle(5)
        settled_at = time.monotonic()
        job = services.queue.get(job_id)

    assert settled_at - cancelled_at < 2.0
    assert job.status is JobStatus.FAILED
    assert job.was_cancelled
    assert events[-1].status is JobStatus.FAILED
    assert all(flag.released for flag in engine.flags)
