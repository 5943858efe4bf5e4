"""Periodic collection of the events emitted for flux objects."""

import asyncio
import logging

from flux_fleet.bus import EventUpdate, UpdateBus
from flux_fleet.client import ClusterClient
from flux_fleet.exceptions import FleetException, ListError
from flux_fleet.registry import ClusterConnection, ConnectionRegistry
from flux_fleet.resource import ResourceKind
from flux_fleet.task import TaskService

__all__ = [
    "EventEngine",
]

_LOGGER = logging.getLogger(__name__)

EVENT_INTERVAL = 2.0
EVENT_TIMEOUT = 5.0
DEFAULT_MAX_CONCURRENT_FETCHES = 10


class EventEngine:
    """Fetches flux events from every connected cluster on a fixed interval.

    A tick waits for all of its fetches before the next one is scheduled and
    the fetches of a tick share a concurrency limit, so slow clusters delay
    the next tick rather than piling up requests.
    """

    def __init__(
        self,
        client: ClusterClient,
        registry: ConnectionRegistry,
        bus: UpdateBus,
        tasks: TaskService,
        interval: float = EVENT_INTERVAL,
        timeout: float = EVENT_TIMEOUT,
        max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES,
    ) -> None:
        """Initialize EventEngine."""
        self._client = client
        self._registry = registry
        self._bus = bus
        self._tasks = tasks
        self._interval = interval
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrent_fetches)
        self._kinds = set(ResourceKind)

    async def run(self) -> None:
        """Tick until cancelled."""
        _LOGGER.debug("Collecting events every %ss", self._interval)
        try:
            while True:
                await asyncio.sleep(self._interval)
                await self.refresh()
        finally:
            _LOGGER.debug("Event collection stopped")

    async def refresh(self) -> None:
        """Fetch the events of every connected cluster once."""
        clusters = self._registry.snapshot()
        fetches = [
            self._tasks.create_task(
                self._fetch(cluster), name=f"events-{cluster.name}"
            )
            for cluster in clusters.values()
        ]
        if fetches:
            await asyncio.gather(*fetches, return_exceptions=True)

    async def _fetch(self, cluster: ClusterConnection) -> None:
        async with self._semaphore:
            try:
                async with asyncio.timeout(self._timeout):
                    events = await self._client.list_events(
                        cluster.connection, None, self._kinds
                    )
            except TimeoutError as err:
                await self._bus.publish_error(
                    cluster.name,
                    ListError("Event", f"timed out after {self._timeout}s"),
                )
                _LOGGER.debug("Event fetch timed out: %s", err)
                return
            except FleetException as err:
                await self._bus.publish_error(cluster.name, err)
                return
            except Exception as err:  # pylint: disable=broad-except
                _LOGGER.exception("Unexpected error listing events")
                await self._bus.publish_error(cluster.name, ListError("Event", str(err)))
                return
        _LOGGER.debug("Cluster %s has %d flux events", cluster.name, len(events))
        await self._bus.publish_events(EventUpdate(cluster=cluster.name, events=events))
