"""Shared CLI decorators and utilities."""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable
from typing import Any

import click
import httpx
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from adminapi.config import Settings, get_settings
from adminapi.exceptions import AdminapiError, APIError, QueryParseError
from adminapi.filters import Filters
from adminapi.parse import parse_query


def format_option(
    choices: list[str] | None = None,
    default: str | None = None,
) -> Callable[..., Any]:
    """Add ``--format`` / ``-f`` option with configurable choices.

    The Python parameter is named ``output_format`` to avoid shadowing the
    built-in ``format``.
    """
    if choices is None:
        choices = ["table", "json", "csv"]
    if default is None:
        default = choices[0]

    def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
        @click.option(
            "--format", "-f", "output_format",
            type=click.Choice(choices),
            default=default,
            show_default=True,
            help="Output format",
        )
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return f(*args, **kwargs)
        return wrapper
    return decorator


def spinner(description: str = "Working...") -> Progress:
    """Create a spinner on stderr for requests of unknown duration."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=Console(stderr=True),
        transient=True,
    )


def validate_query(ctx: click.Context, param: click.Parameter, value: str | None) -> Filters | None:
    """Parse the QUERY argument into filters."""
    if value is None:
        return None
    try:
        return parse_query(value)
    except QueryParseError as e:
        raise click.BadParameter(f"Invalid query: {e}") from e


def split_attributes(ctx: click.Context, param: click.Parameter, value: str) -> list[str]:
    """Turn ``-a hostname,intern_ip`` into a list of attribute names."""
    attributes = [a.strip() for a in value.split(",") if a.strip()]
    if not attributes:
        raise click.BadParameter("At least one attribute is required")
    return attributes


def load_settings() -> Settings:
    """Load settings, exiting with a message when they are invalid."""
    try:
        return get_settings()
    except (AdminapiError, ValidationError) as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)


def handle_error(e: Exception) -> None:
    """Print a user-friendly message for a failed request and exit."""
    if isinstance(e, httpx.TimeoutException):
        click.echo("Error: Request timed out", err=True)
    elif isinstance(e, httpx.ConnectError):
        click.echo(f"Error: Cannot connect to Serveradmin: {e}", err=True)
    elif isinstance(e, APIError):
        click.echo(f"Error: {e.message}", err=True)
    else:
        click.echo(f"Error: {e}", err=True)
    sys.exit(1)
