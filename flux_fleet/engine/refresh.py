"""Periodic refresh of the flux objects of every connected cluster.

Each tick takes a snapshot of the registry and spawns one worker per cluster.
Workers are admitted through a semaphore so that at most
`max_concurrent_clusters` clusters are being listed at any time. A worker
visits the kinds one after another, publishing a full snapshot of each kind,
or an error when listing it failed, and always moves on to the next kind.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from enum import StrEnum
import logging

from flux_fleet.bus import ResourceUpdate, UpdateBus
from flux_fleet.client import ClusterClient
from flux_fleet.exceptions import FleetException, ListError
from flux_fleet.registry import ClusterConnection, ConnectionRegistry
from flux_fleet.resource import Resource, ResourceKind, normalize
from flux_fleet.task import TaskService

__all__ = [
    "RefreshEngine",
    "RefreshState",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0
DEFAULT_MAX_CONCURRENT_CLUSTERS = 10
LIST_TIMEOUT = 10.0


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


async def list_resources(
    client: ClusterClient,
    cluster: ClusterConnection,
    kind: ResourceKind,
    namespace: str | None,
    now: datetime,
    timeout: float = LIST_TIMEOUT,
) -> list[Resource]:
    """List and normalize the objects of one kind in one cluster."""
    try:
        async with asyncio.timeout(timeout):
            docs = await client.list(cluster.connection, kind, namespace)
    except TimeoutError as err:
        raise ListError(str(kind), f"timed out after {timeout}s") from err
    return [normalize(kind, doc, now) for doc in docs]


class RefreshState(StrEnum):
    """Lifecycle of the refresh loop."""

    IDLE = "idle"
    """Waiting for the next tick."""

    TICKING = "ticking"
    """A tick fired and the connections are being snapshotted."""

    REFRESHING = "refreshing"
    """Workers are listing the clusters."""

    STOPPED = "stopped"
    """The loop exited and will not tick again."""


class RefreshEngine:
    """Lists every kind in every connected cluster on an interval."""

    def __init__(
        self,
        client: ClusterClient,
        registry: ConnectionRegistry,
        bus: UpdateBus,
        tasks: TaskService,
        interval: float = DEFAULT_INTERVAL,
        max_concurrent_clusters: int = DEFAULT_MAX_CONCURRENT_CLUSTERS,
        list_timeout: float = LIST_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize RefreshEngine."""
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")
        if max_concurrent_clusters < 1:
            raise ValueError(
                f"Concurrency limit must be at least 1, got {max_concurrent_clusters}"
            )
        self._client = client
        self._registry = registry
        self._bus = bus
        self._tasks = tasks
        self._interval = interval
        self._list_timeout = list_timeout
        self._clock = clock
        self._state = RefreshState.IDLE
        # Shared by every tick, including overlapping on demand refreshes
        self._semaphore = asyncio.Semaphore(max_concurrent_clusters)

    @property
    def state(self) -> RefreshState:
        """The current state of the refresh loop."""
        return self._state

    async def run(self) -> None:
        """Tick until cancelled."""
        _LOGGER.debug("Refreshing resources every %ss", self._interval)
        try:
            while True:
                await asyncio.sleep(self._interval)
                await self.refresh()
        finally:
            self._state = RefreshState.STOPPED
            _LOGGER.debug("Resource refresh stopped")

    async def refresh(self) -> None:
        """Run a single tick, returning once every worker finished."""
        self._state = RefreshState.TICKING
        clusters = self._registry.snapshot()
        if not clusters:
            _LOGGER.debug("No connected clusters to refresh")
            self._state = RefreshState.IDLE
            return
        self._state = RefreshState.REFRESHING
        workers = [
            self._tasks.create_task(
                self._refresh_cluster(cluster),
                name=f"refresh-{cluster.name}",
            )
            for cluster in clusters.values()
        ]
        await asyncio.gather(*workers, return_exceptions=True)
        if self._state != RefreshState.STOPPED:
            self._state = RefreshState.IDLE

    async def _refresh_cluster(self, cluster: ClusterConnection) -> None:
        async with self._semaphore:
            for kind in ResourceKind:
                now = self._clock()
                try:
                    resources = await list_resources(
                        self._client, cluster, kind, None, now, self._list_timeout
                    )
                except FleetException as err:
                    await self._bus.publish_error(cluster.name, err)
                    continue
                except Exception as err:  # pylint: disable=broad-except
                    _LOGGER.exception("Unexpected error listing %s", kind)
                    await self._bus.publish_error(
                        cluster.name, ListError(str(kind), str(err))
                    )
                    continue
                _LOGGER.debug(
                    "Cluster %s has %d %s", cluster.name, len(resources), kind
                )
                update = ResourceUpdate(
                    cluster=cluster.name, kind=kind, resources=resources
                )
                if not await self._bus.publish_resources(update):
                    return
