"""Client interface for reaching the flux objects of a single cluster."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from flux_fleet.events import Event
from flux_fleet.resource import ResourceKind


@dataclass(frozen=True)
class Connection:
    """Identity used to reach one cluster's api."""

    kubeconfig: str | None
    """Path to the kubeconfig file, or None for the default loading rules."""

    context: str | None
    """The kubeconfig context, or None for the current context."""

    namespace: str | None = None
    """The namespace scope of the connection."""

    def __str__(self) -> str:
        return self.context or "<current-context>"


class ClusterClient(ABC):
    """Abstract base class for the transport to a cluster api.

    Implementations raise the exceptions from `flux_fleet.exceptions`:
    `ClusterConnectionError` from `connect` and `test_connection`,
    `ListError` from the list calls, `NotFoundError` or `GetError` from `get`,
    and `UpdateConflictError`, `NotFoundError` or `UpdateError` from `update`.
    """

    @abstractmethod
    async def connect(
        self, kubeconfig: str | None, context: str | None, namespace: str | None
    ) -> Connection:
        """Build a connection handle for a cluster."""

    @abstractmethod
    async def test_connection(self, connection: Connection, timeout: float) -> None:
        """Probe that the cluster is reachable within `timeout` seconds."""

    @abstractmethod
    async def list(
        self, connection: Connection, kind: ResourceKind, namespace: str | None
    ) -> list[dict[str, Any]]:
        """List raw objects of a kind, across all namespaces when None."""

    @abstractmethod
    async def get(
        self, connection: Connection, kind: ResourceKind, namespace: str, name: str
    ) -> dict[str, Any]:
        """Fetch a single raw object."""

    @abstractmethod
    async def update(
        self, connection: Connection, kind: ResourceKind, obj: dict[str, Any]
    ) -> None:
        """Submit a modified object previously returned by `get`.

        The update must be rejected with `UpdateConflictError` when the object
        was changed by someone else since it was fetched.
        """

    @abstractmethod
    async def list_events(
        self,
        connection: Connection,
        namespace: str | None,
        kinds: set[ResourceKind],
    ) -> list[Event]:
        """List events about objects of the given kinds, most recent first."""
