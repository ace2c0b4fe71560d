"""
Providers Subcommand Module

Lists the known transcription providers with their configuration state
and, on request, validates each one.
"""

import sys

import click

from voicequeue.services import PipelineServices

from .help_texts import PROVIDERS_HELP, PROVIDERS_VALIDATE_HELP, ExitCodes
from .shared_options import config_option, load_config, log_level_option


@click.command(help=PROVIDERS_HELP)
@click.option("--validate", "run_validation", is_flag=True, default=False, help=PROVIDERS_VALIDATE_HELP)
@config_option()
@log_level_option()
def providers(run_validation, config, log_level):
    transcription_config = load_config(config, log_level)
    registry = PipelineServices.build(transcription_config).registry
    configured = registry.list_configured()

    any_valid = False
    for provider_id in registry.provider_ids:
        provider = registry.resolve(provider_id)
        _, display_name = provider.identity()
        state = "configured" if provider_id in configured else "not configured"
        click.echo(f"{provider_id:<24} {display_name:<18} {state}")

        if not run_validation:
            continue
        result = provider.validate()
        any_valid = any_valid or result.is_valid
        click.echo(f"  {'valid' if result.is_valid else 'invalid'}")
        for error in result.errors:
            click.echo(f"  error: {error}")
        for warning in result.warnings:
            click.echo(f"  warning: {warning}")

    if run_validation and not any_valid:
        sys.exit(ExitCodes.PROVIDER_NOT_AVAILABLE)
