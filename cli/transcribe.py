"""
Transcribe Subcommand Module

Submits audio files to the job queue, shows per-job progress, and prints
the transcripts once the queue is idle.
"""

import logging
import sys
import time
from typing import Dict

import click

from voicequeue.jobs.models import JobEvent, JobStatus
from voicequeue.services import PipelineServices
from voicequeue.transcription.config import CLOUD_GROQ, CLOUD_MISTRAL, LOCAL_WHISPER
from voicequeue.utils.logging_config import ProgressIndicator, logging_config

from .help_texts import (
    EXIT_CODES_BY_KIND,
    TRANSCRIBE_FALLBACK_HELP,
    TRANSCRIBE_HELP,
    TRANSCRIBE_LANGUAGE_HELP,
    TRANSCRIBE_PROVIDER_HELP,
    TRANSCRIBE_TIMESTAMPS_HELP,
    ExitCodes,
)
from .shared_options import config_option, load_config, log_level_option


PROVIDER_CHOICES = [LOCAL_WHISPER, CLOUD_GROQ, CLOUD_MISTRAL]


@click.command(help=TRANSCRIBE_HELP)
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--provider", "-p", default=None, type=click.Choice(PROVIDER_CHOICES), help=TRANSCRIBE_PROVIDER_HELP)
@click.option("--fallback/--no-fallback", default=None, help=TRANSCRIBE_FALLBACK_HELP)
@click.option("--language", "-l", default=None, help=TRANSCRIBE_LANGUAGE_HELP)
@click.option("--timestamps", is_flag=True, default=False, help=TRANSCRIBE_TIMESTAMPS_HELP)
@config_option()
@log_level_option()
def transcribe(files, provider, fallback, language, timestamps, config, log_level):
    """Transcribe audio files through the job queue."""
    transcription_config = load_config(config, log_level)
    logger = logging.getLogger(__name__)

    overrides = {}
    if provider:
        overrides["primary_provider"] = provider
    if fallback is not None:
        overrides["enable_fallback"] = fallback
    if language:
        overrides["language"] = language
    if timestamps:
        overrides["show_timestamps"] = True
    if overrides:
        transcription_config.settings = transcription_config.settings.with_overrides(**overrides)

    settings = transcription_config.settings
    services = PipelineServices.build(transcription_config)
    logging_config.log_provider_selection(
        services.orchestrator.candidate_order(settings),
        sorted(services.registry.list_configured()),
    )

    indicators: Dict[str, ProgressIndicator] = {}

    def on_job_event(event: JobEvent):
        job = event.job
        indicator = indicators.get(job.id)
        if indicator is None or event.removed:
            return
        if job.status is JobStatus.TRANSCRIBING:
            indicator.update(job.progress)
        elif job.status is JobStatus.COMPLETED:
            indicator.finish()
        elif job.status is JobStatus.FAILED:
            indicator.finish(f"{indicator.description} failed", ok=False)

    started = time.time()
    services.queue.subscribe(on_job_event)
    job_ids = []
    # Indicators must exist before the worker publishes the first event.
    for path in files:
        job_id = services.queue.submit(path)
        indicators[job_id] = ProgressIndicator(f"Transcribing {click.format_filename(path)}")
        job_ids.append(job_id)

    try:
        services.start()
        services.queue.wait_until_idle()
    except KeyboardInterrupt:
        click.echo("\nCancelling...", err=True)
        for job_id in job_ids:
            services.queue.cancel(job_id)
        services.shutdown(cancel_active=True)
        sys.exit(ExitCodes.CANCELLED)

    services.shutdown()
    logging_config.log_operation_timing("Transcription", time.time() - started)

    exit_code = ExitCodes.SUCCESS
    for job_id in job_ids:
        job = services.queue.get(job_id)
        if job is None:
            continue
        if job.status is JobStatus.COMPLETED:
            click.echo(f"== {job.source_path} ({job.provider_id}) ==")
            click.echo(job.result_text)
        else:
            logger.error(f"Transcription failed for {job.source_path}: {job.error}")
            click.echo(f"Failed: {job.source_path}: {job.error}", err=True)
            exit_code = EXIT_CODES_BY_KIND.get(job.error_kind, ExitCodes.GENERAL_ERROR)

    sys.exit(exit_code)
