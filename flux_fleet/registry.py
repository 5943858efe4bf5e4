"""Registry of the named cluster connections and the active selection.

The registry is read far more often than it is written: every refresh tick
copies the connection map while writes only happen when a cluster is
connected, removed or selected. It is guarded by a reader/writer lock that is
only ever held for in-memory operations, never across a cluster call, so it
is safe to use from the event loop as well as from other threads.
"""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import threading

from .client import ClusterClient, Connection
from .exceptions import ClusterConnectionError, NotFoundError

__all__ = [
    "ClusterConnection",
    "ConnectionRegistry",
]

_LOGGER = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0


@dataclass(frozen=True)
class ClusterConnection:
    """A reachable cluster registered under a name."""

    name: str
    connection: Connection

    @property
    def namespace(self) -> str | None:
        """The namespace scope of the connection."""
        return self.connection.namespace


class ReadWriteLock:
    """A lock allowing many concurrent readers or one exclusive writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode."""
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock in exclusive mode."""
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ConnectionRegistry:
    """Owns the named connections and the current cluster and namespace."""

    def __init__(
        self,
        client: ClusterClient,
        namespace: str | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        """Initialize ConnectionRegistry."""
        self._client = client
        self._connect_timeout = connect_timeout
        self._lock = ReadWriteLock()
        self._connections: dict[str, ClusterConnection] = {}
        self._current_cluster: str | None = None
        self._current_namespace = namespace

    async def connect(
        self,
        name: str,
        kubeconfig: str | None,
        context: str | None,
        namespace: str | None,
    ) -> ClusterConnection:
        """Connect a cluster and store it under `name`.

        The connection is probed for reachability first and nothing is stored
        when the probe fails. A previous entry with the same name is replaced.
        """
        try:
            async with asyncio.timeout(self._connect_timeout):
                connection = await self._client.connect(kubeconfig, context, namespace)
                await self._client.test_connection(
                    connection, self._connect_timeout
                )
        except TimeoutError as err:
            raise ClusterConnectionError(
                name, f"connection test timed out after {self._connect_timeout}s"
            ) from err
        except ClusterConnectionError as err:
            if err.cluster == name:
                raise
            raise ClusterConnectionError(name, err.reason) from err

        cluster = ClusterConnection(name=name, connection=connection)
        with self._lock.write():
            replaced = name in self._connections
            self._connections[name] = cluster
        _LOGGER.info(
            "%s cluster %s (context %s)",
            "Reconnected" if replaced else "Connected",
            name,
            connection,
        )
        return cluster

    def remove(self, name: str) -> bool:
        """Forget a connection, returning True if it was registered."""
        with self._lock.write():
            removed = self._connections.pop(name, None) is not None
            if removed and self._current_cluster == name:
                self._current_cluster = None
        if removed:
            _LOGGER.info("Removed cluster %s", name)
        return removed

    def names(self) -> set[str]:
        """Return the names of the connected clusters."""
        with self._lock.read():
            return set(self._connections)

    def snapshot(self) -> dict[str, ClusterConnection]:
        """Return a copy of the connection map, safe to iterate without locks."""
        with self._lock.read():
            return dict(self._connections)

    def get(self, name: str) -> ClusterConnection | None:
        """Return the connection registered under `name`, if any."""
        with self._lock.read():
            return self._connections.get(name)

    def set_current(self, name: str) -> None:
        """Select the cluster targeted by mutations and direct listing."""
        with self._lock.write():
            if name not in self._connections:
                raise NotFoundError(f"cluster {name} not found")
            self._current_cluster = name
        _LOGGER.debug("Current cluster is now %s", name)

    @property
    def current_cluster(self) -> str | None:
        """Name of the currently selected cluster."""
        with self._lock.read():
            return self._current_cluster

    @property
    def current_namespace(self) -> str | None:
        """The currently selected namespace, None for all namespaces."""
        with self._lock.read():
            return self._current_namespace

    def set_current_namespace(self, namespace: str | None) -> None:
        """Select the namespace targeted by mutations and direct listing."""
        with self._lock.write():
            self._current_namespace = namespace or None
        _LOGGER.debug("Current namespace is now %s", namespace)

    def current(self) -> tuple[ClusterConnection | None, str | None]:
        """Return the selected connection and namespace as one consistent read."""
        with self._lock.read():
            if self._current_cluster is None:
                return None, self._current_namespace
            return (
                self._connections.get(self._current_cluster),
                self._current_namespace,
            )
