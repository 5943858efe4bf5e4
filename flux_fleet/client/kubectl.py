"""Cluster client that shells out to `kubectl`.

Credentials, authentication and the wire protocol are all handled by kubectl
and the kubeconfig it is pointed at.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from flux_fleet import command
from flux_fleet.events import Event, filter_events
from flux_fleet.exceptions import (
    ClusterConnectionError,
    CommandException,
    GetError,
    ListError,
    NotFoundError,
    UpdateConflictError,
    UpdateError,
)
from flux_fleet.resource import ResourceKind

from .client import ClusterClient, Connection

_LOGGER = logging.getLogger(__name__)

KUBECTL_BIN = "kubectl"
REQUEST_TIMEOUT = 30.0

_NOT_FOUND_TOKENS = ("(NotFound)", "not found")
_CONFLICT_TOKENS = ("(Conflict)", "the object has been modified")


def _has_token(err: CommandException, tokens: tuple[str, ...]) -> bool:
    text = err.stderr or str(err)
    return any(token in text for token in tokens)


def _decode(out: str) -> dict[str, Any]:
    try:
        doc = json.loads(out)
    except json.JSONDecodeError as err:
        raise CommandException(f"kubectl returned invalid json: {err}") from err
    if not isinstance(doc, dict):
        raise CommandException("kubectl returned a non-object json document")
    return doc


class KubectlClient(ClusterClient):
    """A `ClusterClient` issuing kubectl commands for each call."""

    def __init__(
        self, kubectl: str = KUBECTL_BIN, request_timeout: float = REQUEST_TIMEOUT
    ) -> None:
        """Initialize KubectlClient."""
        self._kubectl = kubectl
        self._request_timeout = request_timeout

    def _command(
        self, connection: Connection, args: list[str], timeout: float | None = None
    ) -> command.Command:
        timeout = timeout or self._request_timeout
        cmd = [self._kubectl]
        env = None
        if connection.kubeconfig and os.pathsep in connection.kubeconfig:
            # A list of files is only understood through the environment
            env = {"KUBECONFIG": connection.kubeconfig}
        elif connection.kubeconfig:
            cmd.extend(["--kubeconfig", connection.kubeconfig])
        if connection.context:
            cmd.extend(["--context", connection.context])
        cmd.append(f"--request-timeout={max(1, int(timeout))}s")
        return command.Command(cmd + args, env=env, timeout=timeout)

    async def connect(
        self, kubeconfig: str | None, context: str | None, namespace: str | None
    ) -> Connection:
        """Build a connection handle, checking the kubeconfig exists."""
        if kubeconfig and os.pathsep not in kubeconfig:
            path = Path(kubeconfig).expanduser()
            if not path.exists():
                raise ClusterConnectionError(
                    context or kubeconfig, f"kubeconfig {kubeconfig} does not exist"
                )
            kubeconfig = str(path)
        return Connection(
            kubeconfig=kubeconfig,
            context=context,
            namespace=namespace,
        )

    async def test_connection(self, connection: Connection, timeout: float) -> None:
        """Probe the cluster by reading the default namespace."""
        cmd = self._command(
            connection, ["get", "namespace", "default", "-o", "name"], timeout
        )
        try:
            await command.run(cmd)
        except CommandException as err:
            raise ClusterConnectionError(
                str(connection), f"connection test failed: {err}"
            ) from err

    async def list(
        self, connection: Connection, kind: ResourceKind, namespace: str | None
    ) -> list[dict[str, Any]]:
        """List raw objects of a kind with `kubectl get -o json`."""
        args = ["get", kind.resource_name, "-o", "json"]
        args.extend(["-n", namespace] if namespace else ["--all-namespaces"])
        try:
            doc = _decode(await command.run(self._command(connection, args)))
        except CommandException as err:
            raise ListError(str(kind), str(err)) from err
        items = doc.get("items") or []
        _LOGGER.debug("Listed %d %s from %s", len(items), kind, connection)
        return [item for item in items if isinstance(item, dict)]

    async def get(
        self, connection: Connection, kind: ResourceKind, namespace: str, name: str
    ) -> dict[str, Any]:
        """Fetch a raw object with `kubectl get -o json`."""
        args = ["get", kind.resource_name, name, "-n", namespace, "-o", "json"]
        try:
            return _decode(await command.run(self._command(connection, args)))
        except CommandException as err:
            if _has_token(err, _NOT_FOUND_TOKENS):
                raise NotFoundError(f"{kind} {namespace}/{name} not found") from err
            raise GetError(f"failed to get {kind} {namespace}/{name}: {err}") from err

    async def update(
        self, connection: Connection, kind: ResourceKind, obj: dict[str, Any]
    ) -> None:
        """Submit the object with `kubectl replace`.

        The object keeps the resourceVersion it was fetched with, so the api
        server rejects the write when it was modified in the meantime.
        """
        metadata = obj.get("metadata") or {}
        name = f"{metadata.get('namespace')}/{metadata.get('name')}"
        cmd = self._command(connection, ["replace", "-f", "-", "-o", "name"])
        try:
            await command.run(cmd, stdin=json.dumps(obj).encode())
        except CommandException as err:
            if _has_token(err, _CONFLICT_TOKENS):
                raise UpdateConflictError(
                    f"{kind} {name} was modified concurrently"
                ) from err
            if _has_token(err, _NOT_FOUND_TOKENS):
                raise NotFoundError(f"{kind} {name} not found") from err
            raise UpdateError(f"failed to update {kind} {name}: {err}") from err

    async def list_events(
        self,
        connection: Connection,
        namespace: str | None,
        kinds: set[ResourceKind],
    ) -> list[Event]:
        """List core events and keep the ones about flux objects."""
        args = ["get", "events", "-o", "json"]
        args.extend(["-n", namespace] if namespace else ["--all-namespaces"])
        try:
            doc = _decode(await command.run(self._command(connection, args)))
        except CommandException as err:
            raise ListError("Event", str(err)) from err
        return filter_events(doc.get("items") or [], kinds)
