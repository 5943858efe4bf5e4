"""Tests for the configuration objects."""

from datetime import timedelta
from pathlib import Path

import pytest

from flux_fleet.config import (
    ClusterConfig,
    Config,
    ConfigException,
    format_duration,
    parse_duration,
    read_config,
    write_config,
)

CONFIG = """\
clusters:
- name: staging
  context: kind-staging
- name: production
  context: prod
  kubeconfig: /etc/kube/prod.yaml
  namespace: flux
  description: Production cluster
defaults:
  namespace: gitops
  refresh_interval: 1m30s
  max_concurrent_clusters: 3
  events_enabled: false
debug: true
log_level: DEBUG
"""


def test_defaults() -> None:
    """Test the default configuration values."""
    config = Config()
    assert config.clusters == []
    assert config.defaults.namespace == "flux-system"
    assert config.defaults.refresh_interval == timedelta(seconds=5)
    assert config.defaults.max_concurrent_clusters == 10
    assert config.defaults.events_enabled
    assert config.default_cluster_name == "default"


def test_parse_yaml() -> None:
    """Test parsing a configuration file."""
    config = Config.parse_yaml(CONFIG)
    assert [c.name for c in config.clusters] == ["staging", "production"]
    production = config.get_cluster("production")
    assert production == ClusterConfig(
        name="production",
        context="prod",
        kubeconfig="/etc/kube/prod.yaml",
        namespace="flux",
        description="Production cluster",
    )
    assert config.defaults.namespace == "gitops"
    assert config.defaults.refresh_interval == timedelta(seconds=90)
    assert config.defaults.max_concurrent_clusters == 3
    assert not config.defaults.events_enabled
    assert config.debug
    assert config.log_level == "DEBUG"
    assert config.get_cluster("missing") is None


def test_parse_empty_yaml() -> None:
    """Test parsing an empty configuration file."""
    assert Config.parse_yaml("") == Config()


@pytest.mark.parametrize(
    "content",
    [
        "defaults:\n  refresh_interval: soon\n",
        "defaults:\n  refresh_interval: 0s\n",
        "defaults:\n  max_concurrent_clusters: 0\n",
        "clusters:\n- context: missing-name\n",
    ],
)
def test_parse_invalid_yaml(content: str) -> None:
    """Test that invalid configuration is rejected."""
    with pytest.raises(ConfigException):
        Config.parse_yaml(content)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("5s", timedelta(seconds=5)),
        ("1m30s", timedelta(seconds=90)),
        ("2h", timedelta(hours=2)),
        ("500ms", timedelta(milliseconds=500)),
        ("1.5s", timedelta(seconds=1.5)),
        ("10", timedelta(seconds=10)),
        (7, timedelta(seconds=7)),
    ],
)
def test_parse_duration(value: str | int, expected: timedelta) -> None:
    """Test parsing durations."""
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "5x", "s5", "1m 30s"])
def test_parse_invalid_duration(value: str) -> None:
    """Test parsing invalid durations."""
    with pytest.raises(ConfigException):
        parse_duration(value)


def test_format_duration() -> None:
    """Test rendering durations."""
    assert format_duration(timedelta(seconds=5)) == "5s"
    assert format_duration(timedelta(seconds=90)) == "1m30s"
    assert format_duration(timedelta(hours=1)) == "1h"
    assert format_duration(timedelta(milliseconds=1500)) == "1.5s"


def test_resolve_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that command line values take precedence."""
    monkeypatch.setenv("KUBECONFIG", "/from/env")
    config = Config().resolve("/from/flag", "prod", "apps")
    assert config.current_kubeconfig == "/from/flag"
    assert config.current_context == "prod"
    assert config.current_namespace == "apps"
    assert config.default_cluster_name == "prod"


def test_resolve_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test falling back to the environment and defaults."""
    monkeypatch.setenv("KUBECONFIG", "/from/env")
    config = Config.parse_yaml(CONFIG).resolve()
    assert config.current_kubeconfig == "/from/env"
    assert config.current_context is None
    assert config.current_namespace == "gitops"


def test_resolve_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test falling back to the kubeconfig in the home directory."""
    monkeypatch.delenv("KUBECONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    config = Config().resolve()
    assert config.current_kubeconfig == str(tmp_path / ".kube" / "config")


def test_add_and_remove_cluster() -> None:
    """Test editing the configured clusters."""
    config = Config.parse_yaml(CONFIG)
    config.add_cluster(ClusterConfig(name="staging", context="kind-staging-2"))
    config.add_cluster(ClusterConfig(name="dev", context="kind-dev"))
    assert [c.name for c in config.clusters] == ["staging", "production", "dev"]
    assert config.clusters[0].context == "kind-staging-2"

    assert config.remove_cluster("production")
    assert not config.remove_cluster("production")
    assert [c.name for c in config.clusters] == ["staging", "dev"]


async def test_read_missing_config(tmp_path: Path) -> None:
    """Test reading a configuration file that does not exist."""
    assert await read_config(tmp_path / "missing.yaml") == Config()


async def test_write_and_read_config(tmp_path: Path) -> None:
    """Test that runtime fields are not persisted."""
    config = Config.parse_yaml(CONFIG).resolve("/from/flag", "prod", "apps")
    path = tmp_path / "nested" / "config.yaml"
    await write_config(path, config)

    content = path.read_text()
    assert "current_kubeconfig" not in content
    assert "current_context" not in content
    assert "current_namespace" not in content
    assert "refresh_interval: 1m30s" in content

    result = await read_config(path)
    assert result.clusters == config.clusters
    assert result.defaults == config.defaults
    assert result.current_context is None
