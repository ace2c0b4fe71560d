"""
Unit Tests: Remote transcription providers (Groq Whisper, Mistral Voxtral)

The HTTP session is a Mock; no network access happens.
"""

import json
from unittest.mock import Mock

import pytest
import requests

from voicequeue.transcription.cancellation import CancellationToken
from voicequeue.transcription.config import (
    CLOUD_GROQ,
    CLOUD_MISTRAL,
    GroqConfig,
    MistralVoxtralConfig,
    TranscriptionSettings,
)
from voicequeue.transcription.errors import (
    AudioFileError,
    ErrorKind,
    InvalidCredentialError,
    PayloadTooLargeError,
    TranscriptionCancelled,
    UnconfiguredError,
)
from voicequeue.transcription.providers.cloud_groq import GroqWhisperProvider
from voicequeue.transcription.providers.cloud_mistral import MistralVoxtralProvider
from voicequeue.transcription.secrets import InMemorySecretStore
from voicequeue.transcription.text import NO_SPEECH_TEXT

from fakes import RecordingSleep


GROQ_KEY = "gsk_" + "A1b2" * 12
MISTRAL_KEY = "mistral-test-key-123"


def make_response(status_code=200, body=None, raw=None):
    response = requests.Response()
    response.status_code = status_code
    if raw is not None:
        response._content = raw
    else:
        response._content = json.dumps(body if body is not None else {"text": "hello world"}).encode()
    return response


def make_session(*responses):
    session = Mock()
    session.post.side_effect = list(responses)
    return session


def groq(session, key=GROQ_KEY, sleep=None, **config):
    config.setdefault("enabled", True)
    store = InMemorySecretStore({CLOUD_GROQ: key} if key else {})
    return GroqWhisperProvider(GroqConfig(**config), store, session=session, sleep=sleep or RecordingSleep())


def mistral(session, key=MISTRAL_KEY, **config):
    config.setdefault("enabled", True)
    store = InMemorySecretStore({CLOUD_MISTRAL: key} if key else {})
    return MistralVoxtralProvider(MistralVoxtralConfig(**config), store, session=session, sleep=RecordingSleep())


def noop_progress(fraction, message):
    pass


class TestTranscribe:
    def test_success_returns_text(self, audio_file):
        session = make_session(make_response(body={"text": "  hello   world \n"}))
        provider = groq(session)

        assert provider.transcribe(audio_file, TranscriptionSettings(), noop_progress) == "hello world"
        assert session.post.call_count == 1

    def test_empty_text_returns_sentinel(self, audio_file):
        provider = groq(make_session(make_response(body={"text": ""})))

        assert provider.transcribe(audio_file, TranscriptionSettings(), noop_progress) == NO_SPEECH_TEXT

    def test_progress_is_monotonic_and_completes(self, audio_file):
        session = make_session(make_response(503), make_response(body={"text": "ok"}))
        provider = groq(session)
        fractions = []

        provider.transcribe(audio_file, TranscriptionSettings(), lambda f, m: fractions.append(f))

        assert fractions == sorted(fractions)
        assert fractions[-1] == 1.0

    def test_verbose_segments_joined_with_timestamps(self, audio_file):
        body = {
            "text": "hello world",
            "segments": [
                {"start": 0.0, "end": 1.0, "text": " hello"},
                {"start": 1.0, "end": 2.5, "text": " world", "tokens": [1, 2]},
            ],
        }
        provider = groq(make_session(make_response(body=body)))

        text = provider.transcribe(audio_file, TranscriptionSettings(show_timestamps=True), noop_progress)

        assert text == "[00:00.000 --> 00:01.000] hello\n[00:01.000 --> 00:02.500] world"

    def test_malformed_body_is_processing_failure(self, audio_file):
        provider = groq(make_session(*[make_response(raw=b"<html>")] * 3))

        with pytest.raises(Exception) as exc_info:
            provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

        assert exc_info.value.kind is ErrorKind.PROCESSING_FAILED

    def test_oversize_file_fails_before_any_request(self, tmp_path):
        path = tmp_path / "big.wav"
        path.write_bytes(b"\x00" * (1024 * 1024 + 1))
        session = make_session()
        provider = groq(session, max_file_size_mb=1)

        with pytest.raises(PayloadTooLargeError) as exc_info:
            provider.transcribe(str(path), TranscriptionSettings(), noop_progress)

        assert exc_info.value.max_size == 1024 * 1024
        session.post.assert_not_called()

    def test_missing_file(self, tmp_path):
        session = make_session()
        with pytest.raises(AudioFileError):
            groq(session).transcribe(str(tmp_path / "none.wav"), TranscriptionSettings(), noop_progress)
        session.post.assert_not_called()

    def test_missing_key_is_unconfigured_and_not_sent(self, audio_file):
        session = make_session()
        provider = groq(session, key=None)

        with pytest.raises(UnconfiguredError):
            provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

        session.post.assert_not_called()

    def test_disabled_provider_is_unconfigured(self, audio_file):
        session = make_session()
        with pytest.raises(UnconfiguredError):
            groq(session, enabled=False).transcribe(audio_file, TranscriptionSettings(), noop_progress)
        session.post.assert_not_called()

    def test_credential_is_fetched_for_every_attempt(self, audio_file):
        store = Mock()
        store.get_credential.return_value = GROQ_KEY
        session = make_session(make_response(500), make_response(body={"text": "ok"}))
        provider = GroqWhisperProvider(GroqConfig(enabled=True), store, session=session, sleep=RecordingSleep())

        provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

        assert store.get_credential.call_count == 2
        assert GROQ_KEY not in vars(provider).values()


@pytest.mark.parametrize("status,body,kind", [
    (401, {"error": {"message": "Invalid API Key"}}, ErrorKind.INVALID_CREDENTIAL),
    (402, {}, ErrorKind.QUOTA_EXCEEDED),
    (429, {"error": {"message": "Rate limit"}}, ErrorKind.QUOTA_EXCEEDED),
    (413, {}, ErrorKind.PAYLOAD_TOO_LARGE),
    (422, {"error": {"message": "language 'xx' is not supported"}}, ErrorKind.UNSUPPORTED_LANGUAGE),
    (422, {"message": "could not decode audio"}, ErrorKind.PROCESSING_FAILED),
    (500, {}, ErrorKind.UNREACHABLE),
    (503, {}, ErrorKind.UNREACHABLE),
    (400, {"error": "bad request"}, ErrorKind.PROCESSING_FAILED),
])
def test_status_classification(audio_file, status, body, kind):
    session = make_session(*[make_response(status, body)] * 3)
    provider = groq(session)

    with pytest.raises(Exception) as exc_info:
        provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

    assert exc_info.value.kind is kind
    assert exc_info.value.provider_id == CLOUD_GROQ


@pytest.mark.parametrize("status", [401, 413, 422])
def test_non_retryable_statuses_make_one_request(audio_file, status):
    body = {"error": {"message": "unsupported language"}} if status == 422 else {}
    session = make_session(make_response(status, body), make_response())
    sleep = RecordingSleep()
    provider = groq(session, sleep=sleep)

    with pytest.raises(Exception):
        provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

    assert session.post.call_count == 1
    assert sleep.delays == []


def test_retries_three_times_with_backoff(audio_file):
    session = make_session(make_response(500), make_response(503), make_response(502))
    sleep = RecordingSleep()
    provider = groq(session, sleep=sleep)

    with pytest.raises(Exception) as exc_info:
        provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

    assert exc_info.value.kind is ErrorKind.UNREACHABLE
    assert session.post.call_count == 3
    assert sleep.delays == [2.0, 4.0]


def test_quota_error_is_retried_then_succeeds(audio_file):
    session = make_session(make_response(429), make_response(body={"text": "done"}))
    provider = groq(session)

    assert provider.transcribe(audio_file, TranscriptionSettings(), noop_progress) == "done"
    assert session.post.call_count == 2


@pytest.mark.parametrize("error", [
    requests.Timeout("read timed out"),
    requests.ConnectionError("connection refused"),
])
def test_transport_errors_are_unreachable(audio_file, error):
    session = Mock()
    session.post.side_effect = error
    provider = groq(session, max_retries=1)

    with pytest.raises(Exception) as exc_info:
        provider.transcribe(audio_file, TranscriptionSettings(), noop_progress)

    assert exc_info.value.kind is ErrorKind.UNREACHABLE


def test_cancellation_during_backoff(audio_file):
    token = CancellationToken()
    session = Mock()

    def fail_and_cancel(*args, **kwargs):
        token.cancel()
        return make_response(500)

    session.post.side_effect = fail_and_cancel
    store = InMemorySecretStore({CLOUD_GROQ: GROQ_KEY})
    provider = GroqWhisperProvider(GroqConfig(enabled=True), store, session=session)

    with pytest.raises(TranscriptionCancelled):
        provider.transcribe(audio_file, TranscriptionSettings(), noop_progress, token)

    assert session.post.call_count == 1


class TestGroqRequest:
    def test_bearer_auth_and_basic_fields(self, audio_file):
        session = make_session(make_response())
        groq(session).transcribe(audio_file, TranscriptionSettings(language="de"), noop_progress)

        _, kwargs = session.post.call_args
        assert kwargs["headers"] == {"Authorization": f"Bearer {GROQ_KEY}"}
        assert ("model", "whisper-large-v3-turbo") in kwargs["data"]
        assert ("language", "de") in kwargs["data"]
        assert ("response_format", "json") in kwargs["data"]
        assert kwargs["files"]["file"][0] == "clip.wav"

    def test_timestamps_request_verbose_json_with_repeated_granularities(self, audio_file):
        session = make_session(make_response())
        settings = TranscriptionSettings(show_timestamps=True, temperature=0.2, initial_prompt="Names: Ada")
        groq(session).transcribe(audio_file, settings, noop_progress)

        data = session.post.call_args[1]["data"]
        assert ("response_format", "verbose_json") in data
        granularities = [value for key, value in data if key == "timestamp_granularities[]"]
        assert granularities == ["segment", "word"]
        assert ("temperature", "0.2") in data
        assert ("prompt", "Names: Ada") in data

    def test_auto_language_is_omitted(self, audio_file):
        session = make_session(make_response())
        groq(session).transcribe(audio_file, TranscriptionSettings(), noop_progress)

        data = session.post.call_args[1]["data"]
        assert "language" not in dict(data)
        assert "temperature" not in dict(data)

    def test_translation_uses_translations_endpoint_for_large_v3(self, audio_file):
        session = make_session(make_response())
        provider = groq(session, model="whisper-large-v3")
        provider.transcribe(audio_file, TranscriptionSettings(translate=True, language="de"), noop_progress)

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.groq.com/openai/v1/audio/translations"
        assert "language" not in dict(kwargs["data"])

    def test_translation_ignored_for_other_models(self, audio_file):
        session = make_session(make_response())
        groq(session).transcribe(audio_file, TranscriptionSettings(translate=True), noop_progress)

        assert session.post.call_args[0][0].endswith("/transcriptions")

    @pytest.mark.parametrize("key,expected", [
        (GROQ_KEY, True),
        ("gsk_short", False),
        ("sk_" + "a" * 60, False),
        ("gsk_" + "a" * 40 + "-" + "b" * 10, False),
    ])
    def test_key_format(self, key, expected):
        assert groq(make_session(), key=key).is_configured() is expected


class TestMistralRequest:
    def test_api_key_header_and_fields(self, audio_file):
        session = make_session(make_response(body={"text": "bonjour"}))
        text = mistral(session).transcribe(
            audio_file, TranscriptionSettings(language="fr", show_timestamps=True), noop_progress
        )

        _, kwargs = session.post.call_args
        assert text == "bonjour"
        assert kwargs["headers"] == {"x-api-key": MISTRAL_KEY}
        assert kwargs["data"] == [
            ("model", "voxtral-mini-latest"),
            ("language", "fr"),
            ("timestamp_granularities[]", "segment"),
        ]

    def test_short_key_is_not_configured(self):
        assert mistral(make_session(), key="short").is_configured() is False


class TestValidate:
    def test_invalid_key_on_401(self):
        session = Mock()
        session.post.return_value = make_response(401)

        result = groq(session).validate()

        assert not result.is_valid
        assert "Invalid" in result.errors[0]

    @pytest.mark.parametrize("status", [400, 422])
    def test_valid_key_on_rejected_body(self, status):
        session = Mock()
        session.post.return_value = make_response(status)

        result = groq(session).validate()

        assert result.is_valid
        headers = session.post.call_args[1]["headers"]
        assert headers["Content-Type"] == "multipart/form-data; boundary=test"

    def test_network_failure(self):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("down")

        result = groq(session).validate()

        assert result.errors == ["Network is unreachable"]

    def test_missing_key_skips_request(self):
        session = Mock()

        result = groq(session, key=None).validate()

        assert not result.is_valid
        session.post.assert_not_called()

    def test_slow_timeout_warning(self):
        session = Mock()
        session.post.return_value = make_response(422)

        result = groq(session, timeout=120).validate()

        assert result.is_valid
        assert result.warnings

    def test_disabled(self):
        assert not groq(Mock(), enabled=False).validate().is_valid
