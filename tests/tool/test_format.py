"""Tests for the format library."""

from datetime import datetime, timedelta, timezone

import pytest

from flux_fleet.events import Event
from flux_fleet.resource import Resource, ResourceKind
from flux_fleet.tool.format import (
    JsonFormatter,
    PrintFormatter,
    YamlFormatter,
    event_row,
    format_age,
    format_columns,
    resource_row,
    truncate,
)

NOW = datetime(2024, 5, 2, 12, 0, 0, tzinfo=timezone.utc)


def test_format_columns_empty() -> None:
    """Tests with no rows."""
    assert list(format_columns([], [])) == []


def test_format_columns_empty_rows() -> None:
    """Tests with no rows."""
    assert list(format_columns(["a", "b", "c"], [])) == ["a    b    c    "]


def test_format_columns_rows() -> None:
    """Tests format with normal rows"""
    assert list(
        format_columns(
            ["name", "cluster"], [["podinfo", "alpha"], ["metallb", "beta"]]
        )
    ) == [
        "name       cluster    ",
        "podinfo    alpha      ",
        "metallb    beta       ",
    ]


def test_print_formatter() -> None:
    """Print formatting with empty data."""
    formatter = PrintFormatter()
    assert list(formatter.format([])) == []


def test_print_formatter_keys() -> None:
    """Print formatting with column names."""
    formatter = PrintFormatter(keys=["name"])
    assert list(
        formatter.format(
            [
                {"name": "podinfo", "status": "InstallFailed"},
                {"name": "metallb", "status": "Succeeded"},
            ],
        )
    ) == [
        "NAME       ",
        "podinfo    ",
        "metallb    ",
    ]


def test_yaml_formatter() -> None:
    """Print formatting as yaml documents."""
    formatter = YamlFormatter()
    assert list(formatter.format([{"name": "podinfo", "ready": False}])) == [
        "---",
        "name: podinfo",
        "ready: false",
        "",
    ]


def test_json_formatter() -> None:
    """Print formatting as json."""
    formatter = JsonFormatter()
    assert list(formatter.format([{"name": "podinfo"}])) == [
        "[",
        "    {",
        '        "name": "podinfo"',
        "    }",
        "]",
    ]


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (timedelta(seconds=-5), "0s"),
        (timedelta(seconds=42), "42s"),
        (timedelta(minutes=5, seconds=59), "5m"),
        (timedelta(hours=3, minutes=10), "3h"),
        (timedelta(days=2, hours=23), "2d"),
    ],
)
def test_format_age(age: timedelta, expected: str) -> None:
    """Test rendering ages with their coarsest unit."""
    assert format_age(age) == expected


def test_truncate() -> None:
    """Test shortening long messages."""
    assert truncate("short") == "short"
    assert truncate("x" * 35) == "x" * 35
    assert truncate("x" * 40) == "x" * 32 + "..."
    assert truncate("abcdef", 5) == "ab..."


def test_kustomization_row() -> None:
    """Test the columns of a kustomization."""
    resource = Resource(
        kind=ResourceKind.KUSTOMIZATION,
        name="apps",
        namespace="flux-system",
        ready=True,
        status="ReconciliationSucceeded",
        message="Applied revision: main@sha1:0123456789abcdef0123456789",
        age=timedelta(hours=5),
        path="./apps",
        source_kind="GitRepository",
        source_name="flux-system",
        revision="main@sha1:abc",
    )
    assert resource_row(resource) == {
        "name": "flux-system/apps",
        "ready": "True",
        "status": "ReconciliationSucceeded",
        "age": "5h",
        "message": "Applied revision: main@sha1:0123...",
        "source": "flux-system/./apps",
    }
    wide = resource_row(resource, wide=True)
    assert wide["message"] == resource.message
    assert wide["revision"] == "main@sha1:abc"
    assert wide["suspended"] == "False"


def test_helm_release_row() -> None:
    """Test the columns of a suspended helm release."""
    resource = Resource(
        kind=ResourceKind.HELM_RELEASE,
        name="podinfo",
        namespace="podinfo",
        suspended=True,
        chart="podinfo",
        version="6.5.0",
    )
    row = resource_row(resource)
    assert row["status"] == "Suspended"
    assert row["chart"] == "podinfo:6.5.0"
    assert row["age"] == "0s"


def test_repository_row() -> None:
    """Test the columns of a repository without conditions."""
    resource = Resource(
        kind=ResourceKind.HELM_REPOSITORY,
        name="podinfo",
        namespace="flux-system",
        url="https://stefanprodan.github.io/podinfo",
    )
    row = resource_row(resource)
    assert row["status"] == "Unknown"
    assert row["url"] == "https://stefanprodan.github.io/podinfo"


def test_event_row() -> None:
    """Test the columns of an event."""
    event = Event(
        type="Warning",
        reason="InstallFailed",
        message="install retries exhausted",
        object_kind="HelmRelease",
        object_name="podinfo",
        count=3,
        last_timestamp=NOW - timedelta(minutes=2),
    )
    assert event_row(event, NOW) == {
        "type": "Warning",
        "reason": "InstallFailed",
        "object": "HelmRelease/podinfo",
        "message": "install retries exhausted",
        "time": "2m",
        "count": "3",
    }

    event = Event(
        type="Normal",
        reason="Progressing",
        message="",
        object_kind="Kustomization",
        object_name="apps",
    )
    row = event_row(event, NOW)
    assert row["time"] == ""
    assert row["count"] == ""
