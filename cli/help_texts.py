"""
Centralized Help Text Constants

This module provides all CLI help text constants for commands and options,
plus the exit codes shared by every subcommand.
"""

from voicequeue.transcription.errors import ErrorKind


# Exit codes for different error types
class ExitCodes:
    SUCCESS = 0
    GENERAL_ERROR = 1
    MISSING_REQUIRED_OPTION = 2
    INVALID_CONFIGURATION = 3
    PROVIDER_NOT_AVAILABLE = 4
    AUTHENTICATION_ERROR = 5
    FILE_NOT_FOUND = 6
    NETWORK_ERROR = 8
    CANCELLED = 130


EXIT_CODES_BY_KIND = {
    ErrorKind.UNCONFIGURED: ExitCodes.PROVIDER_NOT_AVAILABLE,
    ErrorKind.INVALID_CREDENTIAL: ExitCodes.AUTHENTICATION_ERROR,
    ErrorKind.UNREACHABLE: ExitCodes.NETWORK_ERROR,
    ErrorKind.CANCELLED: ExitCodes.CANCELLED,
}

# Command help texts
MAIN_HELP = """Voice Queue CLI - Transcribe audio files with local and cloud providers.

Audio files are processed one at a time through a persistent job queue.
Each job tries the primary provider first and, when fallback is enabled,
the configured fallback providers in order.
"""

TRANSCRIBE_HELP = "Transcribe one or more audio files through the job queue."
PROVIDERS_HELP = "List transcription providers and whether they are configured."
CLEANUP_HELP = "Delete audio artifacts older than the retention period."

# Option help texts - shared
CONFIG_HELP = "Path to configuration file (YAML)"
LOG_LEVEL_HELP = "Logging level"

# Option help texts - Transcribe command
TRANSCRIBE_PROVIDER_HELP = (
    "Primary provider. local-whisper runs on this machine; "
    "cloud-groq-whisper and cloud-mistral-voxtral need an API key "
    "(GROQ_API_KEY, MISTRAL_API_KEY)."
)
TRANSCRIBE_FALLBACK_HELP = "Try the configured fallback providers when the primary fails"
TRANSCRIBE_LANGUAGE_HELP = "Language code (e.g. en, de) or 'auto' to detect"
TRANSCRIBE_TIMESTAMPS_HELP = "Prefix each segment with its time range"

# Option help texts - Providers command
PROVIDERS_VALIDATE_HELP = (
    "Also validate each provider. Remote providers send a lightweight "
    "request to check the API key; no audio is transcribed."
)

# Option help texts - Cleanup command
CLEANUP_DAYS_HELP = "Retention period in days (overrides config)"
CLEANUP_DRY_RUN_HELP = "Report what would be deleted without deleting anything"
