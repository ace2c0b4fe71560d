"""
Text Improvement Post-Processor

Optional pass that sends a finished transcript to an OpenAI-compatible chat
completion API (OpenRouter by default) and returns the improved text. Any
failure returns the original text unchanged.
"""

import logging
from typing import Callable, Optional, Protocol, runtime_checkable

import openai

from voicequeue.transcription.config import TextImprovementConfig
from voicequeue.transcription.secrets import TEXT_IMPROVEMENT, SecretStore


logger = logging.getLogger(__name__)

# Rough characters-per-token ratio used for input truncation
CHARS_PER_TOKEN = 4
MIN_INPUT_TOKENS = 500


@runtime_checkable
class TextImprover(Protocol):
    """Takes transcript text and returns improved text, or the original."""

    def improve(self, text: str) -> str:
        ...


class OpenAITextImprover:
    """
    Improves transcripts with a chat completion request.

    The API key is read from the secret store for every request and handed
    straight to a short-lived client.

    Example:
        >>> improver = OpenAITextImprover(config.text_improvement, secret_store)
        >>> improver.improve("so um the meeting is uh tomorrow")
    """

    def __init__(
        self,
        config: TextImprovementConfig,
        secret_store: SecretStore,
        client_factory: Optional[Callable[..., openai.OpenAI]] = None,
    ):
        self.config = config
        self.secret_store = secret_store
        self._client_factory = client_factory or openai.OpenAI

    def is_configured(self) -> bool:
        return self.config.enabled and bool(self.secret_store.get_credential(TEXT_IMPROVEMENT))

    def _truncate(self, text: str) -> str:
        if not self.config.max_tokens:
            return text
        max_input_tokens = max(self.config.max_tokens // 2, MIN_INPUT_TOKENS)
        if len(text) / CHARS_PER_TOKEN > max_input_tokens:
            logger.warning(
                f"Transcript too long for text improvement, truncating to "
                f"~{max_input_tokens} tokens"
            )
            return text[:max_input_tokens * CHARS_PER_TOKEN]
        return text

    def improve(self, text: str) -> str:
        if not self.config.enabled:
            return text

        credential = self.secret_store.get_credential(TEXT_IMPROVEMENT)
        if not credential:
            logger.warning("Text improvement enabled but no API key configured")
            return text

        params = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": self.config.custom_prompt},
                {"role": "user", "content": self._truncate(text)},
            ],
        }
        if self.config.temperature is not None:
            params["temperature"] = self.config.temperature
        if self.config.max_tokens:
            params["max_tokens"] = self.config.max_tokens

        try:
            client = self._client_factory(
                api_key=credential,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
            )
            response = client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            logger.warning(f"Text improvement failed, keeping original text: {e}")
            return text

        if not response.choices:
            logger.warning("Text improvement returned no choices, keeping original text")
            return text

        improved = (response.choices[0].message.content or "").strip()
        if not improved:
            logger.warning("Text improvement returned empty text, keeping original text")
            return text
        return improved
