"""
Credential storage for transcription providers.

The pipeline never persists credentials itself. Providers receive a
SecretStore and call get_credential() once per attempt, keeping the value
only for the lifetime of that attempt.
"""

import os
import threading
from typing import Dict, Optional, Protocol, runtime_checkable

from voicequeue.transcription.config import CLOUD_GROQ, CLOUD_MISTRAL


TEXT_IMPROVEMENT = "text-improvement"


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for credential stores (keychain, environment, vault, ...)."""

    def get_credential(self, provider_id: str) -> Optional[str]:
        ...

    def set_credential(self, provider_id: str, value: Optional[str]) -> None:
        ...


class InMemorySecretStore:
    """Process-local secret store, mainly for tests and embedding."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._values: Dict[str, str] = dict(initial or {})

    def get_credential(self, provider_id: str) -> Optional[str]:
        with self._lock:
            return self._values.get(provider_id)

    def set_credential(self, provider_id: str, value: Optional[str]) -> None:
        with self._lock:
            if value:
                self._values[provider_id] = value
            else:
                self._values.pop(provider_id, None)


class EnvironmentSecretStore(InMemorySecretStore):
    """Reads credentials from environment variables.

    Values set through set_credential() take precedence over the
    environment for the lifetime of the process.
    """

    ENV_VARS = {
        CLOUD_GROQ: "GROQ_API_KEY",
        CLOUD_MISTRAL: "MISTRAL_API_KEY",
        TEXT_IMPROVEMENT: "OPENROUTER_API_KEY",
    }

    def get_credential(self, provider_id: str) -> Optional[str]:
        value = super().get_credential(provider_id)
        if value:
            return value
        env_var = self.ENV_VARS.get(provider_id)
        if env_var is None:
            return None
        return os.getenv(env_var) or None
