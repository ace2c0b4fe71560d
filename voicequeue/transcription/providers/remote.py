"""
Remote Transcription Provider Base

Shared implementation for HTTP transcription APIs: size check, multipart
upload through requests, HTTP status classification, response parsing and
retry with backoff. Concrete providers supply authentication headers,
credential format rules and the form fields they accept.

Credentials are read from the SecretStore at the start of every attempt and
only live in local variables of that attempt.
"""
import logging
import mimetypes
import os
from typing import Any, Callable, FrozenSet, List, Optional, Tuple, Union

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.config import TranscriptionSettings
from voicequeue.transcription.errors import (
    AudioFileError,
    InvalidCredentialError,
    PayloadTooLargeError,
    ProcessingFailedError,
    QuotaExceededError,
    TranscriptionError,
    UnconfiguredError,
    UnreachableError,
    UnsupportedLanguageError,
)
from voicequeue.transcription.progress import ProgressCallback, monotonic_progress
from voicequeue.transcription.providers.base import ValidationResult
from voicequeue.transcription.retry import RetryPolicy
from voicequeue.transcription.secrets import SecretStore
from voicequeue.transcription.text import join_segments, normalize_transcript


logger = logging.getLogger(__name__)

FormFields = List[Tuple[str, str]]

VALIDATION_TIMEOUT = 10.0
SLOW_TIMEOUT_WARNING = 30.0


class ResponseSegment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: float = 0.0
    end: float = 0.0
    text: str = ""


class TranscriptionResponse(BaseModel):
    """Success body: ``{"text": ...}`` plus optional verbose fields."""
    model_config = ConfigDict(extra="ignore")

    text: str = ""
    language: Optional[str] = None
    duration: Optional[float] = None
    segments: Optional[List[ResponseSegment]] = None


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: Optional[str] = None
    type: Optional[str] = None


class ErrorEnvelope(BaseModel):
    """Error body: ``{"error": {"message": ...}}`` or ``{"message": ...}``."""
    model_config = ConfigDict(extra="ignore")

    error: Optional[Union[ErrorDetail, str]] = None
    message: Optional[str] = None

    def message_text(self) -> str:
        if isinstance(self.error, ErrorDetail) and self.error.message:
            return self.error.message
        if isinstance(self.error, str) and self.error:
            return self.error
        return self.message or ""


class RemoteTranscriptionProvider:
    """
    Base class for remote HTTP transcription providers.

    Subclasses set PROVIDER_ID, DISPLAY_NAME and SUPPORTED_LANGUAGES and
    implement _auth_headers(), _is_well_formed() and _build_fields().

    Example:
        >>> provider = GroqWhisperProvider(GroqConfig(enabled=True), secret_store)
        >>> text = provider.transcribe("audio.m4a", settings, on_progress)
    """

    PROVIDER_ID = ""
    DISPLAY_NAME = ""
    CONFIG_CLASS: type = object
    SUPPORTED_LANGUAGES: FrozenSet[str] = frozenset({"auto"})

    def __init__(
        self,
        config: Any,
        secret_store: SecretStore,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the remote provider.

        Args:
            config: Provider configuration section
            secret_store: Source of the API key, read once per attempt
            session: HTTP session; a new requests.Session when None
            sleep: Replacement for the backoff wait (tests)

        Raises:
            UnconfiguredError: If config has the wrong type
        """
        if not isinstance(config, self.CONFIG_CLASS):
            raise UnconfiguredError(
                f"Expected {self.CONFIG_CLASS.__name__}, got {type(config).__name__}",
                provider_id=self.PROVIDER_ID,
            )
        self.config = config
        self.secret_store = secret_store
        self.session = session or requests.Session()
        self._sleep = sleep

    # Hooks

    def _auth_headers(self, credential: str) -> dict:
        raise NotImplementedError

    def _is_well_formed(self, credential: str) -> bool:
        raise NotImplementedError

    def _build_fields(self, settings: TranscriptionSettings) -> FormFields:
        raise NotImplementedError

    def _endpoint(self, settings: TranscriptionSettings) -> str:
        return self.config.endpoint

    # InferenceProvider

    def identity(self) -> Tuple[str, str]:
        return (self.PROVIDER_ID, self.DISPLAY_NAME)

    def supported_languages(self) -> FrozenSet[str]:
        return self.SUPPORTED_LANGUAGES

    @property
    def max_file_size(self) -> int:
        return int(self.config.max_file_size_mb * 1024 * 1024)

    def is_configured(self) -> bool:
        if not self.config.enabled:
            return False
        credential = self.secret_store.get_credential(self.PROVIDER_ID)
        return bool(credential) and self._is_well_formed(credential.strip())

    def _language_field(self, settings: TranscriptionSettings) -> FormFields:
        language = settings.language
        if language != "auto" and language in self.SUPPORTED_LANGUAGES:
            return [("language", language)]
        return []

    def _credential(self) -> str:
        credential = self.secret_store.get_credential(self.PROVIDER_ID)
        if not credential:
            raise UnconfiguredError(
                f"{self.DISPLAY_NAME} API key is not configured",
                provider_id=self.PROVIDER_ID,
            )
        credential = credential.strip()
        if not self._is_well_formed(credential):
            raise UnconfiguredError(
                f"{self.DISPLAY_NAME} API key format is invalid",
                provider_id=self.PROVIDER_ID,
            )
        return credential

    def validate(self) -> ValidationResult:
        """
        Check configuration and credential validity.

        The credential is confirmed with a deliberately malformed multipart
        request: the API answers 401 for a bad key and 400/422 for a good
        one, so no transcription is billed.
        """
        if not self.config.enabled:
            return ValidationResult.invalid(f"{self.DISPLAY_NAME} is disabled")

        credential = self.secret_store.get_credential(self.PROVIDER_ID)
        if not credential:
            return ValidationResult.invalid(f"{self.DISPLAY_NAME} API key is not configured")
        credential = credential.strip()
        if not self._is_well_formed(credential):
            return ValidationResult.invalid(f"{self.DISPLAY_NAME} API key format is invalid")

        warnings = []
        if self.config.timeout > SLOW_TIMEOUT_WARNING:
            warnings.append(
                f"Timeout of {self.config.timeout:g}s may delay failure reporting "
                f"for {self.DISPLAY_NAME}"
            )

        headers = self._auth_headers(credential)
        headers["Content-Type"] = "multipart/form-data; boundary=test"
        try:
            response = self.session.post(
                self.config.endpoint,
                headers=headers,
                data=b"--test\r\n--test--\r\n",
                timeout=VALIDATION_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.warning(f"{self.DISPLAY_NAME} validation request failed: {e}")
            return ValidationResult.invalid("Network is unreachable", warnings=warnings)

        if response.status_code == 401:
            return ValidationResult.invalid(f"Invalid {self.DISPLAY_NAME} API key", warnings=warnings)

        logger.debug(f"{self.DISPLAY_NAME} validation returned HTTP {response.status_code}")
        return ValidationResult.valid(warnings)

    def transcribe(
        self,
        source_path: str,
        settings: TranscriptionSettings,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Upload the audio and return the cleaned transcript.

        Raises:
            UnconfiguredError: If disabled or the API key is missing
            AudioFileError: If the file does not exist
            PayloadTooLargeError: If the file exceeds the size ceiling
            TranscriptionError: The classified error of the last attempt
        """
        report = monotonic_progress(on_progress)
        report(0.0, f"Preparing audio for {self.DISPLAY_NAME}...")

        if not self.config.enabled:
            raise UnconfiguredError(f"{self.DISPLAY_NAME} is disabled", provider_id=self.PROVIDER_ID)

        if not os.path.exists(source_path):
            raise AudioFileError(f"Audio file not found: {source_path}", provider_id=self.PROVIDER_ID)

        file_size = os.path.getsize(source_path)
        if file_size > self.max_file_size:
            raise PayloadTooLargeError(
                f"File too large: {file_size / (1024 * 1024):.1f}MB. "
                f"Maximum size for {self.DISPLAY_NAME}: {self.config.max_file_size_mb}MB",
                provider_id=self.PROVIDER_ID,
                max_size=self.max_file_size,
            )

        policy = RetryPolicy(max_attempts=self.config.max_retries, sleep=self._sleep)
        text = policy.run(
            lambda attempt: self._attempt(attempt, source_path, settings, report),
            cancel_token=cancel_token,
            name=f"{self.DISPLAY_NAME} transcription",
        )
        report(1.0, "Transcription completed")
        return text

    def _attempt(
        self,
        attempt: int,
        source_path: str,
        settings: TranscriptionSettings,
        report: ProgressCallback,
    ) -> str:
        report(0.1, f"Uploading audio to {self.DISPLAY_NAME} (attempt {attempt})...")
        credential = self._credential()
        headers = self._auth_headers(credential)
        fields = self._build_fields(settings)
        url = self._endpoint(settings)
        mime_type = mimetypes.guess_type(source_path)[0] or "application/octet-stream"

        with open(source_path, "rb") as audio_file:
            report(0.3, f"Sending audio to {self.DISPLAY_NAME}...")
            try:
                response = self.session.post(
                    url,
                    headers=headers,
                    files={"file": (os.path.basename(source_path), audio_file, mime_type)},
                    data=fields,
                    timeout=self.config.timeout,
                )
            except requests.Timeout:
                raise UnreachableError(
                    f"{self.DISPLAY_NAME} request timed out after {self.config.timeout:g}s",
                    provider_id=self.PROVIDER_ID,
                )
            except requests.ConnectionError:
                raise UnreachableError(
                    f"Could not connect to {self.DISPLAY_NAME}",
                    provider_id=self.PROVIDER_ID,
                )
            except requests.RequestException as e:
                raise UnreachableError(
                    f"{self.DISPLAY_NAME} request failed: {e}",
                    provider_id=self.PROVIDER_ID,
                )

        report(0.8, f"Processing response from {self.DISPLAY_NAME}...")
        if not 200 <= response.status_code < 300:
            raise self._classify(response)
        return self._parse(response, settings)

    def _error_message(self, response: requests.Response) -> str:
        try:
            return ErrorEnvelope.model_validate_json(response.content).message_text()
        except (ValidationError, ValueError):
            return (response.text or "")[:200]

    def _classify(self, response: requests.Response) -> TranscriptionError:
        """Map a non-2xx response to a provider-agnostic error."""
        status = response.status_code
        message = self._error_message(response)
        logger.debug(f"{self.DISPLAY_NAME} returned HTTP {status}: {message}")
        name = self.DISPLAY_NAME

        if status == 401:
            return InvalidCredentialError(f"Invalid {name} API key", provider_id=self.PROVIDER_ID)
        if status in (402, 429):
            return QuotaExceededError(f"{name} quota or rate limit exceeded", provider_id=self.PROVIDER_ID)
        if status == 413:
            return PayloadTooLargeError(
                f"Audio file is too large for {name}",
                provider_id=self.PROVIDER_ID,
                max_size=self.max_file_size,
            )
        if status == 422:
            if "language" in message.lower():
                return UnsupportedLanguageError(
                    f"Specified language is not supported by {name}",
                    provider_id=self.PROVIDER_ID,
                )
            return ProcessingFailedError(
                f"{name} could not process the audio: {message or 'Unprocessable entity'}",
                provider_id=self.PROVIDER_ID,
            )
        if 500 <= status < 600:
            return UnreachableError(
                f"{name} is currently unavailable (HTTP {status})",
                provider_id=self.PROVIDER_ID,
            )
        return ProcessingFailedError(
            f"{name} returned HTTP {status}: {message or 'Unknown error'}",
            provider_id=self.PROVIDER_ID,
        )

    def _parse(self, response: requests.Response, settings: TranscriptionSettings) -> str:
        try:
            body = TranscriptionResponse.model_validate_json(response.content)
        except (ValidationError, ValueError) as e:
            raise ProcessingFailedError(
                f"Invalid response from {self.DISPLAY_NAME}: {e}",
                provider_id=self.PROVIDER_ID,
            )

        if settings.show_timestamps and body.segments:
            return normalize_transcript(join_segments(body.segments, show_timestamps=True),
                                        strip_markers=False)
        return normalize_transcript(body.text, strip_markers=False)
