"""
Shared CLI Option Decorators

This module provides reusable Click decorators for common CLI options,
plus the configuration loading every subcommand starts with.
"""

import logging
import sys
from typing import Optional

import click

from voicequeue.transcription.config import TranscriptionConfig
from voicequeue.transcription.errors import ConfigurationError
from voicequeue.utils.logging_config import logging_config

from .help_texts import CONFIG_HELP, LOG_LEVEL_HELP, ExitCodes


def config_option(help=None):
    """Decorator for configuration file options."""
    def decorator(f):
        return click.option(
            '--config',
            default=None,
            type=click.Path(dir_okay=False),
            help=help or CONFIG_HELP
        )(f)
    return decorator


def log_level_option(help=None):
    """Decorator for logging level options."""
    def decorator(f):
        return click.option(
            '--log-level',
            default=None,
            type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
            help=help or LOG_LEVEL_HELP
        )(f)
    return decorator


def load_config(config_path: Optional[str], log_level: Optional[str]) -> TranscriptionConfig:
    """Load configuration and set up logging; exits on invalid configuration."""
    try:
        config = TranscriptionConfig.load_from_yaml(config_path) if config_path else TranscriptionConfig()
    except (FileNotFoundError, ConfigurationError) as e:
        logging_config.configure_logging(level=log_level or "info")
        logging.getLogger(__name__).error(f"Could not load configuration: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(ExitCodes.INVALID_CONFIGURATION)

    logging_config.configure_logging(level=log_level or config.log_level, log_file=config.log_file, force=True)
    logging_config.log_configuration_details(config)
    return config
