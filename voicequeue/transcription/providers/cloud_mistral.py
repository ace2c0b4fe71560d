"""
Mistral Voxtral Transcription Provider

Transcribes audio through the Mistral audio transcription endpoint.
Voxtral does not translate and ignores prompts; segment timestamps are
requested when the settings ask for them.
"""
from voicequeue.transcription.config import CLOUD_MISTRAL, MistralVoxtralConfig, TranscriptionSettings
from voicequeue.transcription.providers.cloud_groq import WHISPER_LANGUAGES
from voicequeue.transcription.providers.remote import FormFields, RemoteTranscriptionProvider


class MistralVoxtralProvider(RemoteTranscriptionProvider):
    """Transcribes audio using the Mistral Voxtral API."""

    PROVIDER_ID = CLOUD_MISTRAL
    DISPLAY_NAME = "Mistral Voxtral"
    CONFIG_CLASS = MistralVoxtralConfig
    SUPPORTED_LANGUAGES = WHISPER_LANGUAGES

    def _auth_headers(self, credential: str) -> dict:
        return {"x-api-key": credential}

    def _is_well_formed(self, credential: str) -> bool:
        return len(credential) > 10

    def _build_fields(self, settings: TranscriptionSettings) -> FormFields:
        fields: FormFields = [("model", self.config.model)]
        fields.extend(self._language_field(settings))
        if settings.show_timestamps:
            fields.append(("timestamp_granularities[]", "segment"))
        return fields
