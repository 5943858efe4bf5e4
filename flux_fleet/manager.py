"""Multi-cluster manager for flux resources.

The `Manager` is the entry point for a presentation layer. It connects the
default cluster and every configured cluster, runs the refresh and event loops
in the background and exposes their results as three async iterables:

```python
manager = Manager(config.resolve(), KubectlClient())
await manager.start()
async for update in manager.resource_updates:
    ...
await manager.stop()
```

Mutations and direct listing target the currently selected cluster and
namespace, which starts out as the default cluster and namespace.
"""

import logging

from .bus import ErrorUpdate, EventUpdate, ResourceUpdate, UpdateBus, UpdateChannel
from .client import ClusterClient
from .config import ClusterConfig, Config
from .engine import EventEngine, RefreshEngine
from .engine.refresh import list_resources, utcnow
from .exceptions import (
    ClusterConnectionError,
    ClusterNotConnectedError,
    FleetException,
)
from .mutation import MUTATION_TIMEOUT, MutationService
from .registry import ClusterConnection, ConnectionRegistry
from .resource import Resource, ResourceKind
from .task import TaskServiceImpl

__all__ = [
    "Manager",
]

_LOGGER = logging.getLogger(__name__)


class Manager:
    """Aggregates flux resources across clusters."""

    def __init__(
        self,
        config: Config,
        client: ClusterClient,
        event_interval: float | None = None,
    ) -> None:
        """Initialize Manager with a resolved configuration."""
        self._config = config
        self._client = client
        self._registry = ConnectionRegistry(
            client, namespace=config.current_namespace or config.defaults.namespace
        )
        self._bus = UpdateBus()
        self._tasks = TaskServiceImpl()
        self._mutations = MutationService(client, self._registry)
        self._refresh_engine = RefreshEngine(
            client,
            self._registry,
            self._bus,
            self._tasks,
            interval=config.defaults.refresh_interval.total_seconds(),
            max_concurrent_clusters=config.defaults.max_concurrent_clusters,
        )
        event_args = {"interval": event_interval} if event_interval else {}
        self._event_engine = EventEngine(
            client, self._registry, self._bus, self._tasks, **event_args
        )
        self._started = False
        self._stopped = False

    @property
    def config(self) -> Config:
        """The configuration the manager was created with."""
        return self._config

    @property
    def registry(self) -> ConnectionRegistry:
        """The registry of connected clusters."""
        return self._registry

    @property
    def refresh_engine(self) -> RefreshEngine:
        """The engine refreshing resources in the background."""
        return self._refresh_engine

    @property
    def resource_updates(self) -> UpdateChannel[ResourceUpdate]:
        """Snapshots of one kind in one cluster."""
        return self._bus.resource_updates

    @property
    def event_updates(self) -> UpdateChannel[EventUpdate]:
        """Batches of recent flux events of one cluster."""
        return self._bus.event_updates

    @property
    def error_updates(self) -> UpdateChannel[ErrorUpdate]:
        """Failures that happened in the background."""
        return self._bus.error_updates

    async def connect(self) -> None:
        """Connect the default cluster and then every configured cluster.

        A failure to reach the default cluster is raised. Failures of the
        configured clusters are published as error updates and the cluster is
        left out of the registry.
        """
        if self._stopped:
            raise FleetException("Manager was stopped")
        default = self._config.default_cluster_name
        await self._registry.connect(
            default,
            self._config.current_kubeconfig,
            self._config.current_context,
            self._config.current_namespace or self._config.defaults.namespace,
        )
        if self._registry.current_cluster is None:
            self._registry.set_current(default)
        for cluster in self._config.clusters:
            try:
                await self._connect_cluster(cluster)
            except ClusterConnectionError as err:
                await self._bus.publish_error(cluster.name, err)

    async def _connect_cluster(self, cluster: ClusterConfig) -> ClusterConnection:
        return await self._registry.connect(
            cluster.name,
            cluster.kubeconfig or self._config.current_kubeconfig,
            cluster.context,
            cluster.namespace or self._config.defaults.namespace,
        )

    async def start(self) -> None:
        """Connect the clusters and start the background loops."""
        if self._started:
            raise FleetException("Manager already started")
        await self.connect()
        self._started = True
        self._tasks.create_background_task(
            self._refresh_engine.run(), name="refresh-engine"
        )
        if self._config.defaults.events_enabled:
            self._tasks.create_background_task(
                self._event_engine.run(), name="event-engine"
            )
        _LOGGER.info(
            "Watching %d clusters: %s",
            len(self._registry.names()),
            ", ".join(sorted(self._registry.names())),
        )

    async def stop(self) -> None:
        """Stop the background loops and close the update channels.

        Every loop and worker has finished by the time the channels close, so
        no message is delivered after this returns except ones already queued.
        """
        if self._stopped:
            return
        self._stopped = True
        await self._tasks.shutdown()
        self._bus.close()
        _LOGGER.debug("Manager stopped")

    async def refresh(self) -> None:
        """Refresh every kind in every connected cluster once."""
        if self._stopped:
            raise FleetException("Manager was stopped")
        await self._refresh_engine.refresh()

    async def add_cluster(self, cluster: ClusterConfig) -> ClusterConnection:
        """Add a cluster to the configuration and connect it."""
        self._config.add_cluster(cluster)
        return await self._connect_cluster(cluster)

    def remove_cluster(self, name: str) -> bool:
        """Disconnect a cluster and remove it from the configuration."""
        removed = self._config.remove_cluster(name)
        return self._registry.remove(name) or removed

    def get_clusters(self) -> list[str]:
        """Return the names of the connected clusters."""
        return sorted(self._registry.names())

    def set_current_cluster(self, name: str) -> None:
        """Select the cluster targeted by mutations and listing."""
        self._registry.set_current(name)

    @property
    def current_cluster(self) -> str | None:
        """The selected cluster."""
        return self._registry.current_cluster

    def set_current_namespace(self, namespace: str | None) -> None:
        """Select the namespace targeted by mutations and listing."""
        self._registry.set_current_namespace(namespace)

    @property
    def current_namespace(self) -> str | None:
        """The selected namespace."""
        return self._registry.current_namespace

    async def list_resources(
        self, kind: ResourceKind | str, all_namespaces: bool = False
    ) -> list[Resource]:
        """List objects of a kind in the selected cluster and namespace."""
        kind = ResourceKind.parse(kind)
        cluster, namespace = self._registry.current()
        if cluster is None:
            raise ClusterNotConnectedError(self._registry.current_cluster)
        return await list_resources(
            self._client,
            cluster,
            kind,
            None if all_namespaces else namespace,
            utcnow(),
            MUTATION_TIMEOUT,
        )

    async def suspend_resource(self, kind: ResourceKind | str, name: str) -> None:
        """Suspend an object in the selected cluster and namespace."""
        await self._mutations.suspend(kind, name)

    async def resume_resource(self, kind: ResourceKind | str, name: str) -> None:
        """Resume an object in the selected cluster and namespace."""
        await self._mutations.resume(kind, name)

    async def reconcile_resource(self, kind: ResourceKind | str, name: str) -> str:
        """Request reconciliation of an object in the selected cluster."""
        return await self._mutations.reconcile(kind, name)
