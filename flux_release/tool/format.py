"""Library for formatting output."""

from typing import Any, Generator, TextIO

import sys
import yaml


PADDING = 4


def column_format_string(rows: list[list[str]]) -> str:
    """Produce a format string based on max width of columns."""
    num_cols = len(rows[0])
    widths = [0] * num_cols
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(str(value)))
    return "".join([f"{{:{w+PADDING}}}" for w in widths])


def format_columns(
    headers: list[str], rows: list[list[str]]
) -> Generator[str, None, None]:
    """Print the specified output rows in a column format."""
    data = [headers] + rows
    format_string = column_format_string(data)
    for row in data:
        yield format_string.format(*[str(x) for x in row]).rstrip()


class PrintFormatter:
    """A formatter that prints human readable console output."""

    def __init__(self, keys: list[str] | None = None):
        """Initialize the PrintFormatter with optional keys to print."""
        self._keys = keys

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        if not data:
            return
        keys = self._keys if self._keys is not None else list(data[0])
        rows = [[str(row[key]) for key in keys] for row in data]
        cols = [col.upper() for col in keys]
        yield from format_columns(cols, rows)

    def print(self, data: list[dict[str, Any]], file: TextIO | None = None) -> None:
        """Output the data objects."""
        for result in self.format(data):
            print(result, file=file or sys.stdout)


class YamlFormatter:
    """A formatter that prints yaml output."""

    def print(self, data: list[dict[str, Any]], file: TextIO | None = None) -> None:
        """Output the data objects as yaml documents."""
        print(
            yaml.safe_dump_all(data, sort_keys=False, explicit_start=True),
            end="",
            file=file or sys.stdout,
        )
