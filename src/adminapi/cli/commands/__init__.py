"""CLI command modules."""

from adminapi.cli.commands.config import config
from adminapi.cli.commands.objects import new_object_command
from adminapi.cli.commands.query import parse, query

__all__ = [
    "config",
    "new_object_command",
    "parse",
    "query",
]
