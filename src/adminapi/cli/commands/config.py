"""
Configuration commands.
"""

import json

import click

from adminapi.cli.base import load_settings
from adminapi.config import config_file_candidates


@click.group()
def config():
    """Configuration management."""
    pass


@config.command("show")
def config_show():
    """Display current configuration (the token is masked)."""
    settings = load_settings()
    click.echo(json.dumps(settings.masked(), indent=2))


@config.command("paths")
def config_paths():
    """List the config file locations, in lookup order."""
    for path in config_file_candidates():
        marker = "*" if path.exists() else " "
        click.echo(f"{marker} {path}")
