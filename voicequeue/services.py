"""
Service wiring.

PipelineServices constructs the queue, registry, orchestrator and helpers
once, wires them together, and owns their start/shutdown lifecycle. Tests
build the pieces directly and inject fakes instead.
"""

import logging
from pathlib import Path
from typing import Optional

from voicequeue.jobs.queue import JobQueue
from voicequeue.jobs.store import InMemoryJobStore, JobStore
from voicequeue.maintenance.cleanup import ArtifactCleanupService
from voicequeue.postprocess.text_improvement import OpenAITextImprover
from voicequeue.transcription.config import TranscriptionConfig, TranscriptionSettings
from voicequeue.transcription.orchestrator import TranscriptionOrchestrator
from voicequeue.transcription.providers.engine import InferenceEngine
from voicequeue.transcription.registry import ProviderRegistry
from voicequeue.transcription.secrets import EnvironmentSecretStore, SecretStore


logger = logging.getLogger(__name__)


class PipelineServices:
    """
    Process-wide services with an explicit lifecycle.

    Example:
        >>> with PipelineServices.build(TranscriptionConfig()) as services:
        ...     job_id = services.queue.submit("memo.wav", 4.0)
        ...     services.queue.wait_until_idle()
    """

    def __init__(
        self,
        config: TranscriptionConfig,
        secret_store: SecretStore,
        registry: ProviderRegistry,
        orchestrator: TranscriptionOrchestrator,
        store: Optional[JobStore] = None,
    ):
        self.config = config
        self.secret_store = secret_store
        self.registry = registry
        self.orchestrator = orchestrator
        self.queue = JobQueue(
            orchestrator,
            store=store if store is not None else InMemoryJobStore(),
            settings_provider=self.current_settings,
        )
        self.cleanup = ArtifactCleanupService(config.cleanup, in_use=self.is_in_use)

    @classmethod
    def build(
        cls,
        config: Optional[TranscriptionConfig] = None,
        secret_store: Optional[SecretStore] = None,
        store: Optional[JobStore] = None,
        local_engine: Optional[InferenceEngine] = None,
    ) -> "PipelineServices":
        config = config or TranscriptionConfig()
        secret_store = secret_store or EnvironmentSecretStore()

        registry = ProviderRegistry(config, secret_store, local_engine=local_engine)
        text_improver = None
        if config.text_improvement.enabled:
            text_improver = OpenAITextImprover(config.text_improvement, secret_store)
        orchestrator = TranscriptionOrchestrator(
            registry,
            text_improver=text_improver,
            min_improvement_length=config.text_improvement.min_text_length,
        )

        return cls(config, secret_store, registry, orchestrator, store=store)

    def current_settings(self) -> TranscriptionSettings:
        """Settings snapshot for the job about to start."""
        return self.config.current_settings()

    def update_config(self, config: TranscriptionConfig) -> None:
        """Apply new configuration; running jobs keep their snapshot."""
        self.config = config
        self.registry.config = config
        logger.info("Configuration updated")

    def is_in_use(self, path: Path) -> bool:
        """True if a pending or running job still references ``path``."""
        resolved = Path(path).resolve()
        return any(
            not job.status.is_terminal and Path(job.source_path).resolve() == resolved
            for job in self.queue.jobs()
        )

    def start(self) -> None:
        self.queue.start()

    def shutdown(self, cancel_active: bool = True, timeout: Optional[float] = None) -> None:
        self.queue.shutdown(cancel_active=cancel_active, timeout=timeout)

    def __enter__(self) -> "PipelineServices":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
