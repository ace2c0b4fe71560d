"""
Pytest configuration and fixtures for test isolation.
"""
import os

import pytest

from voicequeue.transcription.secrets import EnvironmentSecretStore


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Remove credentials and config overrides picked up from the environment."""
    for name in list(os.environ):
        if name.startswith("VOICEQUEUE_") or name in EnvironmentSecretStore.ENV_VARS.values():
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def audio_file(tmp_path):
    """Create a small fake audio file."""
    path = tmp_path / "clip.wav"
    path.write_bytes(b"RIFF" + b"\x00" * 1024)
    return str(path)
