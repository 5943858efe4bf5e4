"""Library for formatting output."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Generator, Any

from typing import TextIO
import yaml
import json

from flux_fleet.events import Event
from flux_fleet.resource import Resource, ResourceKind


PADDING = 4
MESSAGE_WIDTH = 35
UNKNOWN_STATUS = "Unknown"
SUSPENDED_STATUS = "Suspended"


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
    if format_string:
        for row in data:
            yield format_string.format(*[str(x) for x in row])


def format_age(age: timedelta) -> str:
    """Render an age with its coarsest unit, e.g. `42s`, `5m`, `3h` or `2d`."""
    seconds = max(int(age.total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def truncate(value: str, width: int = MESSAGE_WIDTH) -> str:
    """Shorten a value to `width` characters, marking the cut with `...`."""
    if len(value) <= width:
        return value
    return value[: width - 3] + "..."


def resource_status(resource: Resource) -> str:
    """The status shown for a resource."""
    if not resource.ready and resource.suspended:
        return SUSPENDED_STATUS
    return resource.status or UNKNOWN_STATUS


def resource_detail(resource: Resource) -> tuple[str, str]:
    """Return the kind specific column name and value for a resource."""
    if resource.kind in (ResourceKind.GIT_REPOSITORY, ResourceKind.HELM_REPOSITORY):
        return ("url", resource.url or "")
    if resource.kind == ResourceKind.KUSTOMIZATION:
        source = resource.source_name or ""
        if resource.path:
            source = f"{source}/{resource.path}"
        return ("source", source)
    chart = resource.chart or ""
    if resource.version:
        chart = f"{chart}:{resource.version}"
    return ("chart", chart)


def resource_row(resource: Resource, wide: bool = False) -> dict[str, str]:
    """Render a resource as a row of display values."""
    row = {
        "name": resource.namespaced_name,
        "ready": str(resource.ready),
        "status": resource_status(resource),
        "age": format_age(resource.age),
        "message": resource.message if wide else truncate(resource.message),
    }
    key, value = resource_detail(resource)
    row[key] = value
    if wide:
        row["revision"] = resource.revision or ""
        row["suspended"] = str(resource.suspended)
    return row


def event_row(event: Event, now: datetime) -> dict[str, str]:
    """Render an event as a row of display values."""
    when = event.last_timestamp or event.first_timestamp
    return {
        "type": event.type,
        "reason": event.reason,
        "object": event.object,
        "message": truncate(event.message, 60),
        "time": format_age(now - when) if when else "",
        "count": str(event.count) if event.count > 1 else "",
    }


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
        rows = []
        for row in data:
            rows.append([str(row[key]) for key in keys])
        cols = [col.upper() for col in keys]
        for result in format_columns(cols, rows):
            yield result

    def print(self, data: list[dict[str, Any]], file: TextIO | None = None) -> None:
        """Output the data objects."""
        for result in self.format(data):
            print(result, file=file)


class StructFormatter(ABC):
    """A formatter that prints objects."""

    @abstractmethod
    def format(self, data: Any) -> Generator[str, None, None]:
        """Format the data objects."""

    @abstractmethod
    def print(self, data: Any, file: TextIO | None = None) -> None:
        """Print the data objects."""


class YamlFormatter(StructFormatter):
    """A formatter that prints yaml output."""

    def format(self, data: Any) -> Generator[str, None, None]:
        """Format the data objects."""
        for line in yaml.dump_all(data, sort_keys=False, explicit_start=True).split(
            "\n"
        ):
            yield line

    def print(self, data: Any, file: TextIO | None = None) -> None:
        """Format the data objects."""
        print(
            yaml.dump_all(data, sort_keys=False, explicit_start=True), end="", file=file
        )


class JsonFormatter(StructFormatter):
    """A formatter that prints json output."""

    def format(self, data: Any) -> Generator[str, None, None]:
        """Format the data objects."""
        for line in json.dumps(data, indent=4, sort_keys=False).split("\n"):
            yield line

    def print(self, data: Any, file: TextIO | None = None) -> None:
        """Format the data objects."""
        json.dump(data, sort_keys=False, indent=4, fp=file)
        print(file=file)
