"""Configuration objects for flux-fleet.

The configuration file is YAML, for example:

```yaml
clusters:
- name: staging
  context: kind-staging
- name: production
  context: prod
  kubeconfig: ~/.kube/prod.yaml
  namespace: flux-system
defaults:
  namespace: flux-system
  refresh_interval: 5s
  max_concurrent_clusters: 10
  events_enabled: true
```

The `current_*` fields are never read from or written to the file. They are
filled in by `Config.resolve` from command line flags and the environment.
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging
import os
from pathlib import Path
import re
from typing import Any, cast

import aiofiles
from mashumaro import DataClassDictMixin, field_options
from mashumaro.codecs.yaml import yaml_decode, yaml_encode
from mashumaro.config import BaseConfig

from .exceptions import FleetException

__all__ = [
    "ClusterConfig",
    "DefaultsConfig",
    "Config",
    "read_config",
    "write_config",
    "parse_duration",
    "format_duration",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "flux-system"
DEFAULT_REFRESH_INTERVAL = timedelta(seconds=5)
DEFAULT_MAX_CONCURRENT_CLUSTERS = 10
DEFAULT_CLUSTER_NAME = "default"
DEFAULT_CONFIG_PATH = Path("~/.flux-fleet/config.yaml")
KUBECONFIG_ENV = "KUBECONFIG"

_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class ConfigException(FleetException):
    """Raised when the configuration is invalid."""


def parse_duration(value: Any) -> timedelta:
    """Parse a duration such as `5s`, `1m30s` or a plain number of seconds."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    text = str(value).strip()
    if not text:
        raise ConfigException("Invalid empty duration")
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass
    total = timedelta(0)
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ConfigException(f"Invalid duration '{value}'")
    return total


def format_duration(value: timedelta) -> str:
    """Render a duration the way `parse_duration` reads it."""
    seconds = value.total_seconds()
    if seconds.is_integer():
        seconds = int(seconds)
        hours, seconds = divmod(seconds, 3600)
        minutes, seconds = divmod(seconds, 60)
        parts = []
        if hours:
            parts.append(f"{hours}h")
        if minutes:
            parts.append(f"{minutes}m")
        if seconds or not parts:
            parts.append(f"{seconds}s")
        return "".join(parts)
    return f"{seconds}s"


@dataclass
class ClusterConfig(DataClassDictMixin):
    """A cluster connected in addition to the default one."""

    name: str
    """Name the cluster is registered and reported under."""

    context: str | None = None
    """The kubeconfig context, defaults to the current context."""

    kubeconfig: str | None = None
    """Path to the kubeconfig, defaults to the resolved kubeconfig."""

    namespace: str | None = None
    """Namespace scope of the connection, defaults to the default namespace."""

    description: str | None = None

    class Config(BaseConfig):
        omit_none = True


@dataclass
class DefaultsConfig(DataClassDictMixin):
    """Settings shared by every cluster."""

    namespace: str = DEFAULT_NAMESPACE
    refresh_interval: timedelta = field(
        default=DEFAULT_REFRESH_INTERVAL,
        metadata=field_options(
            serialize=format_duration, deserialize=parse_duration
        ),
    )
    max_concurrent_clusters: int = DEFAULT_MAX_CONCURRENT_CLUSTERS
    events_enabled: bool = True

    def __post_init__(self) -> None:
        if self.refresh_interval <= timedelta(0):
            raise ConfigException(
                f"refresh_interval must be positive, got {self.refresh_interval}"
            )
        if self.max_concurrent_clusters < 1:
            raise ConfigException(
                "max_concurrent_clusters must be at least 1, got "
                f"{self.max_concurrent_clusters}"
            )


@dataclass
class Config(DataClassDictMixin):
    """The flux-fleet configuration."""

    clusters: list[ClusterConfig] = field(default_factory=list)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    debug: bool = False
    log_level: str | None = None

    current_kubeconfig: str | None = field(metadata={"serialize": "omit"}, default=None)
    """Kubeconfig of the default cluster, resolved at runtime."""

    current_context: str | None = field(metadata={"serialize": "omit"}, default=None)
    """Context of the default cluster, resolved at runtime."""

    current_namespace: str | None = field(metadata={"serialize": "omit"}, default=None)
    """Initially selected namespace, resolved at runtime."""

    @property
    def default_cluster_name(self) -> str:
        """Name the default cluster is registered under."""
        return self.current_context or DEFAULT_CLUSTER_NAME

    def resolve(
        self,
        kubeconfig: str | None = None,
        context: str | None = None,
        namespace: str | None = None,
    ) -> "Config":
        """Fill in the runtime fields from overrides and the environment.

        The kubeconfig comes from the override, then `KUBECONFIG`, then
        `~/.kube/config`. The namespace falls back to the default namespace.
        """
        if kubeconfig:
            self.current_kubeconfig = kubeconfig
        elif not self.current_kubeconfig:
            if env := os.environ.get(KUBECONFIG_ENV):
                self.current_kubeconfig = env
            else:
                self.current_kubeconfig = str(Path.home() / ".kube" / "config")
        if context:
            self.current_context = context
        if namespace:
            self.current_namespace = namespace
        elif not self.current_namespace:
            self.current_namespace = self.defaults.namespace
        return self

    def get_cluster(self, name: str) -> ClusterConfig | None:
        """Return the configured cluster with the given name."""
        for cluster in self.clusters:
            if cluster.name == name:
                return cluster
        return None

    def add_cluster(self, cluster: ClusterConfig) -> None:
        """Add a cluster, replacing a configured cluster with the same name."""
        for i, existing in enumerate(self.clusters):
            if existing.name == cluster.name:
                self.clusters[i] = cluster
                return
        self.clusters.append(cluster)

    def remove_cluster(self, name: str) -> bool:
        """Remove a cluster, returning True if it was configured."""
        for i, cluster in enumerate(self.clusters):
            if cluster.name == name:
                del self.clusters[i]
                return True
        return False

    @classmethod
    def parse_yaml(cls, content: str) -> "Config":
        """Parse a serialized configuration."""
        try:
            return yaml_decode(content or "{}", cls)
        except ConfigException:
            raise
        except Exception as err:
            raise ConfigException(f"Invalid configuration: {err}") from err

    def yaml(self) -> str:
        """Return a YAML string representation of the configuration."""
        return cast(str, yaml_encode(self, self.__class__))

    class Config(BaseConfig):
        omit_none = True


async def read_config(path: Path | str | None = None) -> Config:
    """Read the configuration file, returning defaults when it does not exist."""
    config_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    if not config_path.exists():
        _LOGGER.debug("No configuration at %s, using defaults", config_path)
        return Config()
    async with aiofiles.open(str(config_path)) as config_file:
        content = await config_file.read()
    _LOGGER.debug("Read configuration from %s", config_path)
    return Config.parse_yaml(content)


async def write_config(path: Path | str, config: Config) -> None:
    """Write the configuration file, without the runtime fields."""
    config_path = Path(path).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(str(config_path), mode="w") as config_file:
        await config_file.write(config.yaml())
