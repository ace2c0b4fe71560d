"""
Transcription Configuration Management

This module provides configuration classes for transcription providers, the
per-job TranscriptionSettings value object, and the ancillary sections used
by post-processing and cleanup. Configuration is loaded from YAML files with
environment variable substitution and precedence rules.

Configuration Precedence (highest to lowest):
1. Explicit values in the YAML file (after ${VAR:-default} substitution)
2. Environment variables (VOICEQUEUE_*)
3. System defaults

Credentials are deliberately absent from every class here; they live in a
SecretStore and are fetched by providers at call time.
"""

import dataclasses
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union, get_args, get_origin, get_type_hints

import yaml

from voicequeue.transcription.errors import ConfigurationError


LOCAL_WHISPER = "local-whisper"
CLOUD_GROQ = "cloud-groq-whisper"
CLOUD_MISTRAL = "cloud-mistral-voxtral"


@dataclass
class WhisperLocalConfig:
    """Configuration for the local Whisper provider.

    Attributes:
        enabled: Whether the provider may be offered
        priority: Ordering hint (lower is preferred)
        model: Whisper model name (tiny, base, ...) or path to a checkpoint
        device: Device to use (cpu, cuda, auto)
        download_root: Directory holding downloaded checkpoints
        timeout: Operation timeout in seconds
        max_retries: Kept for symmetry; local failures are not retried
    """
    enabled: bool = True
    priority: int = 1
    model: str = "base"
    device: str = "auto"
    download_root: Optional[str] = None
    timeout: float = 300.0
    max_retries: int = 1


@dataclass
class GroqConfig:
    """Configuration for the Groq Whisper API provider."""
    enabled: bool = False
    priority: int = 2
    endpoint: str = "https://api.groq.com/openai/v1/audio/transcriptions"
    model: str = "whisper-large-v3-turbo"
    max_retries: int = 3
    timeout: float = 60.0
    max_file_size_mb: int = 25


@dataclass
class MistralVoxtralConfig:
    """Configuration for the Mistral Voxtral API provider."""
    enabled: bool = False
    priority: int = 3
    endpoint: str = "https://api.mistral.ai/v1/audio/transcriptions"
    model: str = "voxtral-mini-latest"
    max_retries: int = 3
    timeout: float = 60.0
    max_file_size_mb: int = 25


@dataclass
class TextImprovementConfig:
    """Configuration for the optional text-improvement pass.

    Attributes:
        enabled: Run the pass on successful transcripts
        base_url: OpenAI-compatible API base URL
        model: Chat model to use
        custom_prompt: System prompt sent with every request
        temperature: Optional sampling temperature (0.0 to 1.0)
        max_tokens: Optional response limit; also caps the input length
        min_text_length: Transcripts shorter than this are left alone
        timeout: Request timeout in seconds
    """
    enabled: bool = False
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "openai/gpt-4o-mini"
    custom_prompt: str = (
        "Improve the following transcribed text for clarity and coherence "
        "without changing its meaning:"
    )
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    min_text_length: int = 20
    timeout: float = 30.0


@dataclass
class CleanupConfig:
    """Configuration for stale artifact cleanup."""
    retention_days: int = 30
    batch_size: int = 50
    max_concurrent_deletions: int = 5


@dataclass(frozen=True)
class TranscriptionSettings:
    """Immutable per-job transcription settings.

    A snapshot is taken when a job starts running; later preference
    changes do not reach an in-flight job.
    """
    language: str = "auto"
    translate: bool = False
    show_timestamps: bool = False
    temperature: float = 0.0
    use_beam_search: bool = False
    beam_size: int = 5
    initial_prompt: str = ""
    no_speech_threshold: float = 0.6
    suppress_blank_audio: bool = False
    primary_provider: str = LOCAL_WHISPER
    enable_fallback: bool = True
    fallback_providers: Tuple[str, ...] = (CLOUD_MISTRAL,)

    def __post_init__(self):
        if not 0.0 <= self.temperature <= 1.0:
            raise ConfigurationError("temperature must be between 0.0 and 1.0")
        if self.beam_size <= 0:
            raise ConfigurationError("beam_size must be positive")
        # Accept lists from YAML while keeping the instance hashable
        object.__setattr__(self, "fallback_providers", tuple(self.fallback_providers))

    def with_overrides(self, **changes) -> "TranscriptionSettings":
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)


@dataclass
class TranscriptionConfig:
    """Main configuration class for the transcription pipeline.

    Attributes:
        whisper_local: Local Whisper provider configuration
        groq: Groq Whisper API configuration
        mistral_voxtral: Mistral Voxtral API configuration
        settings: Global transcription preferences
        text_improvement: Post-processing configuration
        cleanup: Artifact cleanup configuration
        log_level: Logging level (debug, info, warning, error)
        log_file: Optional log file path
    """
    whisper_local: WhisperLocalConfig = field(default_factory=WhisperLocalConfig)
    groq: GroqConfig = field(default_factory=GroqConfig)
    mistral_voxtral: MistralVoxtralConfig = field(default_factory=MistralVoxtralConfig)
    settings: TranscriptionSettings = field(default_factory=TranscriptionSettings)
    text_improvement: TextImprovementConfig = field(default_factory=TextImprovementConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    log_level: str = "info"
    log_file: Optional[str] = None

    def provider_config(self, provider_id: str):
        """Return the ProviderConfig section for a provider id."""
        sections = {
            LOCAL_WHISPER: self.whisper_local,
            CLOUD_GROQ: self.groq,
            CLOUD_MISTRAL: self.mistral_voxtral,
        }
        try:
            return sections[provider_id]
        except KeyError:
            raise ConfigurationError(
                f"Unknown provider: {provider_id}. "
                f"Valid options: {', '.join(sections)}"
            )

    def current_settings(self) -> TranscriptionSettings:
        """Snapshot of the global settings for a job that is about to start."""
        return self.settings

    @classmethod
    def load_from_yaml(cls, config_path: str) -> "TranscriptionConfig":
        """Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to config.yaml file

        Returns:
            TranscriptionConfig instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If config file is invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        logging_data = config_data.get('logging') or {}

        try:
            return cls(
                whisper_local=cls._build_section(
                    WhisperLocalConfig, config_data.get('whisper_local'), 'VOICEQUEUE_WHISPER_LOCAL'
                ),
                groq=cls._build_section(GroqConfig, config_data.get('groq'), 'VOICEQUEUE_GROQ'),
                mistral_voxtral=cls._build_section(
                    MistralVoxtralConfig, config_data.get('mistral_voxtral'), 'VOICEQUEUE_MISTRAL'
                ),
                settings=cls._build_section(
                    TranscriptionSettings, config_data.get('transcription'), 'VOICEQUEUE'
                ),
                text_improvement=cls._build_section(
                    TextImprovementConfig, config_data.get('text_improvement'), 'VOICEQUEUE_TEXT_IMPROVEMENT'
                ),
                cleanup=cls._build_section(CleanupConfig, config_data.get('cleanup'), 'VOICEQUEUE_CLEANUP'),
                log_level=cls._resolve_value(logging_data.get('level'), 'VOICEQUEUE_LOG_LEVEL', 'info'),
                log_file=cls._resolve_value(logging_data.get('file'), 'VOICEQUEUE_LOG_FILE', None),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}")

    @classmethod
    def _build_section(cls, section_cls, data: Optional[Dict[str, Any]], env_prefix: str):
        """Build one dataclass section, resolving each field through _resolve_value."""
        data = data or {}
        unknown = set(data) - {f.name for f in dataclasses.fields(section_cls)}
        if unknown:
            raise ConfigurationError(
                f"Unknown keys for {section_cls.__name__}: {', '.join(sorted(unknown))}"
            )

        defaults = section_cls()
        hints = get_type_hints(section_cls)
        values = {}
        for f in dataclasses.fields(section_cls):
            default = getattr(defaults, f.name)
            env_var = f"{env_prefix}_{f.name.upper()}"
            raw = cls._resolve_value(data.get(f.name), env_var, default)
            values[f.name] = cls._coerce(raw, hints[f.name])
        return section_cls(**values)

    @staticmethod
    def _coerce(value: Any, field_type: Any) -> Any:
        """Coerce string values from YAML/env into the field's declared type.

        Optional[X] is coerced as X.
        """
        if not isinstance(value, str):
            return value
        if get_origin(field_type) is Union:
            members = [t for t in get_args(field_type) if t is not type(None)]
            if len(members) != 1:
                return value
            field_type = members[0]
        if field_type is bool:
            return value.strip().lower() in ("1", "true", "yes", "on")
        if field_type is int:
            return int(value)
        if field_type is float:
            return float(value)
        if field_type is tuple or get_origin(field_type) is tuple:
            return tuple(item.strip() for item in value.split(',') if item.strip())
        return value

    @staticmethod
    def _resolve_value(config_value: Any, env_var: str, default: Any) -> Any:
        """Resolve configuration value with precedence rules.

        Precedence (highest to lowest):
        1. Explicit config value (if not None and not empty string)
        2. Environment variable
        3. Default value

        Supports environment variable substitution syntax: ${VAR_NAME:-default}
        """
        if isinstance(config_value, str) and '${' in config_value:
            # Pattern: ${VAR_NAME:-default_value} or ${VAR_NAME}
            pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

            def replace_env_var(match):
                var_name = match.group(1)
                var_default = match.group(2) if match.group(2) is not None else ''
                return os.getenv(var_name, var_default)

            config_value = re.sub(pattern, replace_env_var, config_value)

            if config_value == '':
                config_value = None

        if config_value is not None and config_value != '':
            return config_value

        env_value = os.getenv(env_var)
        if env_value is not None and env_value != '':
            return env_value

        return default
