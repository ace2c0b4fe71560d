"""
Provider Registry

Resolves a provider id to a live InferenceProvider. Instances are built
lazily, cached, and rebuilt when the provider's configuration section
changes or after an explicit invalidation.
"""

import dataclasses
import logging
import threading
from typing import Any, Callable, Dict, Optional, Set, Tuple

from voicequeue.transcription.config import (
    CLOUD_GROQ,
    CLOUD_MISTRAL,
    LOCAL_WHISPER,
    TranscriptionConfig,
)
from voicequeue.transcription.errors import ConfigurationError
from voicequeue.transcription.providers.base import InferenceProvider
from voicequeue.transcription.providers.cloud_groq import GroqWhisperProvider
from voicequeue.transcription.providers.cloud_mistral import MistralVoxtralProvider
from voicequeue.transcription.providers.engine import InferenceEngine
from voicequeue.transcription.providers.local_whisper import LocalWhisperProvider
from voicequeue.transcription.secrets import SecretStore


logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[Any, SecretStore], InferenceProvider]


class ProviderRegistry:
    """Registry of transcription providers with caching and invalidation.

    This registry handles:
    - Provider instantiation based on provider id
    - Caching keyed on a fingerprint of the provider's config section
    - Invalidation when configuration or credentials change
    - Local-only checks of which providers are offerable

    Example:
        >>> registry = ProviderRegistry(config, EnvironmentSecretStore())
        >>> provider = registry.resolve("local-whisper")
        >>> registry.list_configured()
        {'local-whisper'}
    """

    def __init__(
        self,
        config: TranscriptionConfig,
        secret_store: SecretStore,
        builders: Optional[Dict[str, ProviderBuilder]] = None,
        local_engine: Optional[InferenceEngine] = None,
    ):
        """Initialize the registry.

        Args:
            config: Transcription configuration with all provider sections
            secret_store: Credential source handed to remote providers
            builders: Override of provider constructors by id
            local_engine: Engine for the local provider (defaults to Whisper)
        """
        self._config = config
        self.secret_store = secret_store
        self._lock = threading.Lock()
        self._cache: Dict[str, Tuple[Tuple, InferenceProvider]] = {}
        self._builders: Dict[str, ProviderBuilder] = {
            LOCAL_WHISPER: lambda section, _store: LocalWhisperProvider(section, engine=local_engine),
            CLOUD_GROQ: GroqWhisperProvider,
            CLOUD_MISTRAL: MistralVoxtralProvider,
        }
        if builders:
            self._builders.update(builders)

    @property
    def config(self) -> TranscriptionConfig:
        return self._config

    @config.setter
    def config(self, config: TranscriptionConfig) -> None:
        # Cached instances are rebuilt lazily when their section differs
        with self._lock:
            self._config = config

    @property
    def provider_ids(self) -> Tuple[str, ...]:
        return tuple(self._builders)

    def resolve(self, provider_id: str) -> InferenceProvider:
        """Return a live provider for ``provider_id``.

        Raises:
            ConfigurationError: If the provider id is unknown
        """
        with self._lock:
            builder = self._builders.get(provider_id)
            if builder is None:
                raise ConfigurationError(
                    f"Unknown provider: {provider_id}. "
                    f"Valid options: {', '.join(self._builders)}",
                    provider_id=provider_id,
                )

            section = self._config.provider_config(provider_id)
            fingerprint = dataclasses.astuple(section)
            cached = self._cache.get(provider_id)
            if cached is not None and cached[0] == fingerprint:
                return cached[1]

            if cached is not None:
                logger.info(f"Configuration changed for {provider_id}, rebuilding provider")
            provider = builder(section, self.secret_store)
            self._cache[provider_id] = (fingerprint, provider)
            return provider

    def invalidate(self, provider_id: str) -> None:
        with self._lock:
            self._cache.pop(provider_id, None)
        logger.debug(f"Invalidated provider {provider_id}")

    def invalidate_all(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.debug("Invalidated all providers")

    def set_credential(self, provider_id: str, value: Optional[str]) -> None:
        """Store a credential and force the provider to be rebuilt."""
        self.secret_store.set_credential(provider_id, value)
        self.invalidate(provider_id)

    def list_configured(self) -> Set[str]:
        """Providers whose configuration passes local checks (no network)."""
        configured = set()
        for provider_id in self.provider_ids:
            try:
                if self.resolve(provider_id).is_configured():
                    configured.add(provider_id)
            except Exception as e:
                logger.warning(f"Could not check provider {provider_id}: {e}")
        return configured
