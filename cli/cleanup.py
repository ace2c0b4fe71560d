"""
Cleanup Subcommand Module

Deletes stale audio artifacts from a directory with bounded concurrency.
"""

import sys

import click

from voicequeue.maintenance.cleanup import ArtifactCleanupService

from .help_texts import CLEANUP_DAYS_HELP, CLEANUP_DRY_RUN_HELP, CLEANUP_HELP, ExitCodes
from .shared_options import config_option, load_config, log_level_option


@click.command(help=CLEANUP_HELP)
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--days", type=click.IntRange(min=0), default=None, help=CLEANUP_DAYS_HELP)
@click.option("--dry-run", is_flag=True, default=False, help=CLEANUP_DRY_RUN_HELP)
@config_option()
@log_level_option()
def cleanup(directory, days, dry_run, config, log_level):
    transcription_config = load_config(config, log_level)
    service = ArtifactCleanupService(transcription_config.cleanup)
    result = service.cleanup_directory(directory, retention_days=days, dry_run=dry_run)

    verb = "Would delete" if dry_run else "Deleted"
    size_mb = result.deleted_bytes / (1024 * 1024)
    click.echo(f"{verb} {result.deleted_count} file(s), {size_mb:.1f}MB in {result.duration:.2f}s")
    for error in result.errors:
        click.echo(f"  {error}", err=True)

    if result.errors and not result.deleted_count:
        sys.exit(ExitCodes.GENERAL_ERROR)
