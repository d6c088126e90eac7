"""Structured output formatting for CLI commands."""

from __future__ import annotations

import csv
import io
import json
from typing import Any

import click


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ",".join(_cell(v) for v in value)
    return str(value)


class OutputFormatter:
    """Format command output as plain text, table, JSON, or CSV.

    Usage::

        fmt = OutputFormatter(output_format)
        fmt.print_table(rows, columns=["hostname", "object_id"])
    """

    def __init__(self, output_format: str = "table") -> None:
        self.format = output_format

    def print_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str] | None = None,
    ) -> None:
        """Print *data* as plain lines, a table, a JSON array, or CSV.

        The table header is printed even when *data* is empty.
        """
        if columns is None:
            columns = list(data[0].keys()) if data else []

        if self.format == "json":
            click.echo(json.dumps(data, indent=2, default=str))
            return

        if self.format == "plain":
            for row in data:
                click.echo(" ".join(_cell(row.get(c)) for c in columns))
            return

        if self.format == "csv":
            buf = io.StringIO()
            writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore")
            writer.writeheader()
            writer.writerows({c: _cell(row.get(c)) for c in columns} for row in data)
            click.echo(buf.getvalue().rstrip())
            return

        if not columns:
            return

        widths: dict[str, int] = {c: len(c) for c in columns}
        for row in data:
            for c in columns:
                widths[c] = max(widths[c], len(_cell(row.get(c))))
        # Cap widths at 50 chars
        widths = {c: min(w, 50) for c, w in widths.items()}

        header = "  ".join(c.ljust(widths[c]) for c in columns)
        click.echo(header)
        click.echo("-" * len(header))

        for row in data:
            parts: list[str] = []
            for c in columns:
                val = _cell(row.get(c))
                if len(val) > widths[c]:
                    val = val[: widths[c] - 3] + "..."
                parts.append(val.ljust(widths[c]))
            click.echo("  ".join(parts).rstrip())

    def print_single(self, data: dict[str, Any]) -> None:
        """Print a single key-value record."""
        if self.format == "json":
            click.echo(json.dumps(data, indent=2, default=str))
        else:
            for key, value in data.items():
                click.echo(f"  {key}: {_cell(value)}")
