"""
Commands for creating objects.
"""

from __future__ import annotations

import sys

import click
import httpx

from adminapi.cli.base import format_option, handle_error, load_settings
from adminapi.cli.output import OutputFormatter
from adminapi.client import AdminapiClient
from adminapi.exceptions import AdminapiError
from adminapi.query import new_object


@click.command("new-object")
@click.argument("servertype")
@format_option(["table", "json"])
def new_object_command(servertype: str, output_format: str):
    """Show the default attributes of a new SERVERTYPE object."""
    settings = load_settings()

    try:
        client = AdminapiClient.from_settings(settings)
    except AdminapiError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with client:
        try:
            obj = new_object(servertype, client=client)
        except (AdminapiError, httpx.HTTPError) as e:
            handle_error(e)

    OutputFormatter(output_format).print_single(dict(obj.attributes))
