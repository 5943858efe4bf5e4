"""Module for an in memory cluster client.

Holds raw objects for any number of fake clusters keyed by context name. It
behaves like the api server for the operations the manager needs: objects are
copied on the way in and out, and updates are checked against the
resourceVersion they were read at.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
import logging
from typing import Any

from flux_fleet.events import Event, filter_events
from flux_fleet.exceptions import (
    ClusterConnectionError,
    ListError,
    NotFoundError,
    UpdateConflictError,
)
from flux_fleet.resource import ResourceKind

from .client import ClusterClient, Connection

_LOGGER = logging.getLogger(__name__)

ObjectKey = tuple[ResourceKind, str, str]


@dataclass
class InMemoryCluster:
    """State of one fake cluster."""

    context: str
    reachable: bool = True
    objects: dict[ObjectKey, dict[str, Any]] = field(default_factory=dict)
    events: list[dict[str, Any]] = field(default_factory=list)

    def add_object(self, doc: dict[str, Any]) -> None:
        """Add or replace a raw object, bumping its resourceVersion."""
        for kind in ResourceKind:
            if kind.matches(doc):
                break
        else:
            raise ValueError(f"Object is not a supported flux kind: {doc}")
        doc = copy.deepcopy(doc)
        metadata = doc.setdefault("metadata", {})
        key = (kind, metadata.get("namespace", ""), metadata.get("name", ""))
        previous = self.objects.get(key)
        version = int(previous["metadata"]["resourceVersion"]) if previous else 0
        metadata["resourceVersion"] = str(version + 1)
        self.objects[key] = doc

    def get_object(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> dict[str, Any] | None:
        """Return a copy of a stored object, if present."""
        if (doc := self.objects.get((kind, namespace, name))) is None:
            return None
        return copy.deepcopy(doc)


class InMemoryClusterClient(ClusterClient):
    """In-memory implementation of the ClusterClient interface."""

    def __init__(self) -> None:
        """Initialize the InMemoryClusterClient."""
        self._clusters: dict[str, InMemoryCluster] = {}

    def add_cluster(self, context: str, reachable: bool = True) -> InMemoryCluster:
        """Create a fake cluster reachable through the given context name."""
        cluster = InMemoryCluster(context=context, reachable=reachable)
        self._clusters[context] = cluster
        return cluster

    def cluster(self, connection: Connection) -> InMemoryCluster:
        """Return the fake cluster behind a connection."""
        if (cluster := self._clusters.get(connection.context or "")) is None:
            raise ClusterConnectionError(str(connection), "unknown context")
        return cluster

    async def connect(
        self, kubeconfig: str | None, context: str | None, namespace: str | None
    ) -> Connection:
        """Build a connection handle for a known context."""
        if (context or "") not in self._clusters:
            raise ClusterConnectionError(
                context or "<current-context>", f"context {context} does not exist"
            )
        return Connection(kubeconfig=kubeconfig, context=context, namespace=namespace)

    async def test_connection(self, connection: Connection, timeout: float) -> None:
        """Fail when the fake cluster is marked unreachable."""
        if not self.cluster(connection).reachable:
            raise ClusterConnectionError(str(connection), "connection refused")

    def _reachable(self, connection: Connection, kind: str) -> InMemoryCluster:
        try:
            cluster = self.cluster(connection)
        except ClusterConnectionError as err:
            raise ListError(kind, str(err)) from err
        if not cluster.reachable:
            raise ListError(kind, f"cluster {connection} is unreachable")
        return cluster

    async def list(
        self, connection: Connection, kind: ResourceKind, namespace: str | None
    ) -> list[dict[str, Any]]:
        """List copies of the stored objects of a kind."""
        cluster = self._reachable(connection, str(kind))
        return [
            copy.deepcopy(doc)
            for (obj_kind, obj_namespace, _), doc in cluster.objects.items()
            if obj_kind == kind and (namespace is None or obj_namespace == namespace)
        ]

    async def get(
        self, connection: Connection, kind: ResourceKind, namespace: str, name: str
    ) -> dict[str, Any]:
        """Fetch a copy of a stored object."""
        cluster = self._reachable(connection, str(kind))
        if (doc := cluster.get_object(kind, namespace, name)) is None:
            raise NotFoundError(f"{kind} {namespace}/{name} not found")
        return doc

    async def update(
        self, connection: Connection, kind: ResourceKind, obj: dict[str, Any]
    ) -> None:
        """Replace a stored object unless it changed since it was read."""
        cluster = self._reachable(connection, str(kind))
        metadata = obj.get("metadata") or {}
        namespace, name = metadata.get("namespace", ""), metadata.get("name", "")
        if (current := cluster.get_object(kind, namespace, name)) is None:
            raise NotFoundError(f"{kind} {namespace}/{name} not found")
        if current["metadata"]["resourceVersion"] != metadata.get("resourceVersion"):
            raise UpdateConflictError(
                f"{kind} {namespace}/{name} was modified concurrently"
            )
        _LOGGER.debug("Updating %s %s/%s in %s", kind, namespace, name, connection)
        cluster.add_object(obj)

    async def list_events(
        self,
        connection: Connection,
        namespace: str | None,
        kinds: set[ResourceKind],
    ) -> list[Event]:
        """List the stored events about objects of the given kinds."""
        cluster = self._reachable(connection, "Event")
        docs = [
            doc
            for doc in cluster.events
            if namespace is None
            or (doc.get("metadata") or {}).get("namespace") == namespace
        ]
        return filter_events(docs, kinds)
