"""
setup.py

Packaging metadata and CLI entry point for voice-queue.

Version: 0.1.0: single-lane transcription queue with local Whisper and
remote (Groq, Mistral Voxtral) providers, fallback, retry and cancellation.
"""
from setuptools import setup, find_packages

setup(
    name="voice-queue",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click",
        "pydantic>=2.0",
        "openai-whisper",
        "torch",
        "requests",
        "pyyaml",
        "openai",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest",
            "hypothesis",
        ],
    },
    entry_points={
        "console_scripts": [
            "voice-queue=cli:cli",
        ],
    },
    python_requires=">=3.8",
)
