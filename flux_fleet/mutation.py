"""Point mutations of a single flux object in the selected cluster.

Every mutation fetches the object, modifies it locally and submits it back. The
update carries the version the object was fetched at, so a concurrent writer
makes it fail with `UpdateConflictError` rather than being overwritten. There
is no retry loop: the caller decides whether to try again.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
import logging
from typing import Any

from .client import ClusterClient
from .exceptions import (
    ClusterNotConnectedError,
    GetError,
    UpdateError,
)
from .registry import ClusterConnection, ConnectionRegistry
from .resource import ResourceKind

__all__ = [
    "MutationService",
    "format_requested_at",
]

_LOGGER = logging.getLogger(__name__)

MUTATION_TIMEOUT = 10.0
REQUESTED_AT_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_requested_at(value: datetime) -> str:
    """Render a reconcile request time as RFC 3339 UTC with microseconds."""
    return value.astimezone(timezone.utc).strftime(REQUESTED_AT_FORMAT)


class MutationService:
    """Suspends, resumes and requests reconciliation of flux objects."""

    def __init__(
        self,
        client: ClusterClient,
        registry: ConnectionRegistry,
        timeout: float = MUTATION_TIMEOUT,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """Initialize MutationService."""
        self._client = client
        self._registry = registry
        self._timeout = timeout
        self._clock = clock
        self._last_requested_at: datetime | None = None

    async def suspend(self, kind: ResourceKind | str, name: str) -> None:
        """Ask the controller to stop acting on the object."""
        await self._mutate(
            kind, name, "suspend", lambda k, doc: k.set_suspend(doc, True)
        )

    async def resume(self, kind: ResourceKind | str, name: str) -> None:
        """Let the controller act on the object again."""
        await self._mutate(
            kind, name, "resume", lambda k, doc: k.set_suspend(doc, False)
        )

    async def reconcile(self, kind: ResourceKind | str, name: str) -> str:
        """Ask the controller to reconcile the object now.

        Returns the request time written to the object. Requests made through
        the same service are strictly increasing even when the clock is not.
        """
        requested_at = format_requested_at(self._next_requested_at())
        await self._mutate(
            kind,
            name,
            "reconcile",
            lambda k, doc: k.request_reconcile(doc, requested_at),
        )
        return requested_at

    def _next_requested_at(self) -> datetime:
        now = self._clock().astimezone(timezone.utc)
        if self._last_requested_at is not None and now <= self._last_requested_at:
            now = self._last_requested_at + timedelta(microseconds=1)
        self._last_requested_at = now
        return now

    def _target(self) -> tuple[ClusterConnection, str]:
        cluster, namespace = self._registry.current()
        if cluster is None:
            raise ClusterNotConnectedError(self._registry.current_cluster)
        namespace = namespace or cluster.namespace
        if not namespace:
            raise GetError("no namespace selected for the current cluster")
        return cluster, namespace

    async def _mutate(
        self,
        kind: ResourceKind | str,
        name: str,
        verb: str,
        modify: Callable[[ResourceKind, dict[str, Any]], None],
    ) -> None:
        kind = ResourceKind.parse(kind)
        cluster, namespace = self._target()
        _LOGGER.info("%s %s %s/%s in %s", verb, kind, namespace, name, cluster.name)
        try:
            async with asyncio.timeout(self._timeout):
                doc = await self._client.get(cluster.connection, kind, namespace, name)
                modify(kind, doc)
                await self._client.update(cluster.connection, kind, doc)
        except TimeoutError as err:
            raise UpdateError(
                f"{verb} {kind} {namespace}/{name} timed out after {self._timeout}s"
            ) from err
