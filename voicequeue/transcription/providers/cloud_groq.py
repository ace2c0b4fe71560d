"""
Groq Whisper Transcription Provider

Transcribes audio through Groq's OpenAI-compatible Whisper endpoint.
Supports prompts, temperature, translation (whisper-large-v3 only) and
segment/word timestamps through the verbose_json response format.
"""
import logging
import re

from voicequeue.transcription.config import CLOUD_GROQ, GroqConfig, TranscriptionSettings
from voicequeue.transcription.providers.remote import FormFields, RemoteTranscriptionProvider


logger = logging.getLogger(__name__)

WHISPER_LANGUAGES = frozenset({
    "auto", "en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh",
    "ar", "hi", "tr", "pl", "nl", "sv", "da", "no", "fi", "cs", "sk",
    "hu", "ro", "bg", "hr", "sl", "et", "lv", "lt", "mt", "ga", "cy",
})

TRANSLATION_MODEL = "whisper-large-v3"

_KEY_RE = re.compile(r"^gsk_[A-Za-z0-9]+$")


class GroqWhisperProvider(RemoteTranscriptionProvider):
    """
    Transcribes audio using the Groq Whisper API.

    Example:
        >>> provider = GroqWhisperProvider(GroqConfig(enabled=True), secret_store)
        >>> text = provider.transcribe("audio.m4a", settings, on_progress)
    """

    PROVIDER_ID = CLOUD_GROQ
    DISPLAY_NAME = "Groq Whisper"
    CONFIG_CLASS = GroqConfig
    SUPPORTED_LANGUAGES = WHISPER_LANGUAGES

    def _auth_headers(self, credential: str) -> dict:
        return {"Authorization": f"Bearer {credential}"}

    def _is_well_formed(self, credential: str) -> bool:
        # gsk_ prefix, alphanumeric body, 50+ characters in total
        return len(credential) >= 50 and bool(_KEY_RE.match(credential))

    def _translates(self, settings: TranscriptionSettings) -> bool:
        return settings.translate and self.config.model == TRANSLATION_MODEL

    def _endpoint(self, settings: TranscriptionSettings) -> str:
        if self._translates(settings):
            return re.sub(r"/transcriptions/?$", "/translations", self.config.endpoint)
        if settings.translate:
            logger.warning(
                f"Translation requires model '{TRANSLATION_MODEL}', "
                f"transcribing with '{self.config.model}' instead"
            )
        return self.config.endpoint

    def _build_fields(self, settings: TranscriptionSettings) -> FormFields:
        fields: FormFields = [("model", self.config.model)]
        if not self._translates(settings):
            fields.extend(self._language_field(settings))
        if settings.initial_prompt:
            fields.append(("prompt", settings.initial_prompt))
        if settings.show_timestamps:
            fields.append(("response_format", "verbose_json"))
            fields.append(("timestamp_granularities[]", "segment"))
            fields.append(("timestamp_granularities[]", "word"))
        else:
            fields.append(("response_format", "json"))
        if settings.temperature > 0:
            fields.append(("temperature", str(settings.temperature)))
        return fields
