"""
voice-queue: audio transcription pipeline.

A persistent single-lane job queue in front of interchangeable speech
recognition providers (local Whisper, Groq, Mistral Voxtral) with
fallback, retry and cooperative cancellation.
"""

__version__ = "0.1.0"
