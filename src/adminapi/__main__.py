"""
adminapi CLI entry point.

Usage:
    adminapi query QUERY [-a ATTRS] [--order ATTR] [--one] [--format FMT]
    adminapi parse QUERY [--format json|text]
    adminapi new-object SERVERTYPE
    adminapi config show|paths
"""

import click
from pydantic import ValidationError

from adminapi import __version__
from adminapi.cli.commands import config, new_object_command, parse, query
from adminapi.config import Settings, get_settings
from adminapi.exceptions import AdminapiError
from adminapi.logging import setup_logging


def _logging_settings() -> Settings:
    try:
        return get_settings()
    except (AdminapiError, ValidationError):
        # Commands that need the settings report the error themselves
        return Settings.model_construct()


@click.group()
@click.version_option(__version__)
@click.option("--log-level", default=None,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log level (default from SERVERADMIN_LOG_LEVEL)")
@click.option("--log-json/--no-log-json", default=None, help="Log as JSON lines")
def cli(log_level: str | None, log_json: bool | None):
    """adminapi - query the Serveradmin inventory"""
    settings = _logging_settings()
    setup_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_json if log_json is None else log_json,
    )


cli.add_command(query)
cli.add_command(parse)
cli.add_command(new_object_command)
cli.add_command(config)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
