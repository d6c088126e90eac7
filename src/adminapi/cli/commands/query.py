"""
Query and parse commands.
"""

from __future__ import annotations

import json
import logging
import sys

import click
import httpx

from adminapi.cli.base import (
    format_option,
    handle_error,
    load_settings,
    spinner,
    split_attributes,
    validate_query,
)
from adminapi.cli.output import OutputFormatter
from adminapi.client import AdminapiClient
from adminapi.exceptions import AdminapiError
from adminapi.filters import Filters
from adminapi.query import Query

logger = logging.getLogger(__name__)


@click.command()
@click.argument("query_filters", metavar="QUERY", callback=validate_query)
@click.option("--attributes", "-a", default="hostname", callback=split_attributes,
              show_default=True, help="Comma-separated attributes to fetch")
@click.option("--order", "order_by", default=None, help="Attribute to order the result by")
@click.option("--one", "only_one", is_flag=True,
              help="Fail unless exactly one object matches")
@format_option(["plain", "table", "json", "csv"])
def query(query_filters: Filters, attributes: list[str], order_by: str | None,
          only_one: bool, output_format: str):
    """Fetch the objects matching QUERY.

    Query Grammar:
        hostname=web01                  - Exact value
        hostname=regexp(web.*)          - Operator call
        game_world=any(1 2 3)           - Several arguments
        hostname=not(empty())           - Nested operators
        description="two words"         - Quoted string

    Examples:
        adminapi query "hostname=regexp(web.*) state=online"
        adminapi query -a hostname,intern_ip --order hostname "project=shop"
        adminapi query --one --format json "hostname=db01"
    """
    settings = load_settings()

    try:
        client = AdminapiClient.from_settings(settings)
    except AdminapiError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with client:
        q = Query(query_filters, restrict=attributes, order_by=order_by, client=client)
        try:
            with spinner() as progress:
                progress.add_task("Querying Serveradmin", total=None)
                objects = q.all()
        except (AdminapiError, httpx.HTTPError) as e:
            handle_error(e)

    if only_one and len(objects) != 1:
        click.echo(f"Error: Expected exactly one server object, got {len(objects)}", err=True)
        sys.exit(1)

    rows = [{a: obj.get(a) for a in attributes} for obj in objects]
    OutputFormatter(output_format).print_table(rows, columns=attributes)


@click.command("parse")
@click.argument("query_filters", metavar="QUERY", callback=validate_query)
@format_option(["json", "text"])
def parse(query_filters: Filters, output_format: str):
    """Show how QUERY is understood, without contacting Serveradmin.

    Examples:
        adminapi parse "hostname=not(empty())"
        adminapi parse --format text "HOSTNAME=REGEXP(web.*)"
    """
    if output_format == "text":
        try:
            click.echo(query_filters.to_query())
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        return
    click.echo(json.dumps(query_filters.to_wire()))
