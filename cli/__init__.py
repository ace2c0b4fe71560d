"""
CLI Package for Voice Queue

This package provides a modular CLI architecture using Click groups and subcommands.
Each subcommand is implemented in its own module.

The cli() function serves as the console script entry point for setup.py.
"""

import os

import click
from dotenv import load_dotenv

from voicequeue import __version__

# Load API keys from .env files
# Priority: .env.dev (if exists) overrides .env
if os.path.exists('.env.dev'):
    load_dotenv('.env.dev')
elif os.path.exists('.env'):
    load_dotenv('.env')

from .cleanup import cleanup
from .help_texts import MAIN_HELP
from .providers import providers
from .transcribe import transcribe


@click.group(help=MAIN_HELP)
@click.version_option(version=__version__, prog_name='voice-queue')
def main():
    pass


# Register subcommands
main.add_command(transcribe)
main.add_command(providers)
main.add_command(cleanup)


# Entry point for setup.py console script
def cli():
    """Console script entry point."""
    main()
