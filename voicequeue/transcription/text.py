"""
Transcript text normalization shared by local and remote providers.
"""

import re
from typing import Iterable, Optional


NO_SPEECH_TEXT = "No speech detected in the audio"

# Non-speech markers emitted by Whisper-family models
NON_SPEECH_MARKERS = ("[MUSIC]", "[BLANK_AUDIO]")

_WHITESPACE_RE = re.compile(r"[ \t]+")


def normalize_transcript(text: Optional[str], strip_markers: bool = True) -> str:
    """Strip markers and whitespace, substituting the sentinel for empty text.

    Args:
        text: Raw transcript text (None is treated as empty)
        strip_markers: Remove known non-speech markers first

    Returns:
        Cleaned text, or NO_SPEECH_TEXT when nothing is left
    """
    text = text or ""
    if strip_markers:
        for marker in NON_SPEECH_MARKERS:
            text = text.replace(marker, "")
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    cleaned = "\n".join(line for line in lines if line)
    return cleaned if cleaned else NO_SPEECH_TEXT


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``MM:SS.mmm``."""
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    return f"{minutes:02d}:{seconds - minutes * 60:06.3f}"


def join_segments(segments: Iterable, show_timestamps: bool = False) -> str:
    """Concatenate segment text, optionally prefixed with ``[t0 --> t1]``."""
    if show_timestamps:
        return "\n".join(
            f"[{format_timestamp(s.start)} --> {format_timestamp(s.end)}] {s.text.strip()}"
            for s in segments
            if s.text.strip()
        )
    return " ".join(s.text.strip() for s in segments if s.text.strip())


def is_no_speech(text: Optional[str]) -> bool:
    return (text or "").strip() == NO_SPEECH_TEXT
