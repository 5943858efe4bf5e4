"""Shared fixtures for flux-fleet tests."""

from collections.abc import Callable
from datetime import datetime, timezone
import logging
from typing import Any

import pytest

from flux_fleet.client import InMemoryCluster, InMemoryClusterClient
from flux_fleet.config import Config

_LOGGER = logging.getLogger(__name__)

NAMESPACE = "flux-system"
CREATED = "2024-05-01T12:00:00Z"


def _status(ready: str, reason: str, message: str) -> dict[str, Any]:
    return {
        "conditions": [
            {
                "type": "Ready",
                "status": ready,
                "reason": reason,
                "message": message,
                "lastTransitionTime": CREATED,
            }
        ]
    }


def _metadata(name: str) -> dict[str, Any]:
    return {
        "name": name,
        "namespace": NAMESPACE,
        "creationTimestamp": CREATED,
    }


def git_repository(name: str = "flux-system") -> dict[str, Any]:
    return {
        "apiVersion": "source.toolkit.fluxcd.io/v1",
        "kind": "GitRepository",
        "metadata": _metadata(name),
        "spec": {"url": "https://github.com/example/fleet", "interval": "1m"},
        "status": {
            **_status("True", "Succeeded", "stored artifact for revision main@sha1:abc"),
            "artifact": {"revision": "main@sha1:abc"},
        },
    }


def helm_repository(name: str = "podinfo") -> dict[str, Any]:
    return {
        "apiVersion": "source.toolkit.fluxcd.io/v1",
        "kind": "HelmRepository",
        "metadata": _metadata(name),
        "spec": {"url": "https://stefanprodan.github.io/podinfo"},
        "status": {
            **_status("True", "Succeeded", "stored artifact"),
            "artifact": {"revision": "sha256:1234"},
        },
    }


def kustomization(name: str = "apps", suspend: bool | None = None) -> dict[str, Any]:
    spec: dict[str, Any] = {
        "path": "./apps",
        "sourceRef": {"kind": "GitRepository", "name": "flux-system"},
    }
    if suspend is not None:
        spec["suspend"] = suspend
    return {
        "apiVersion": "kustomize.toolkit.fluxcd.io/v1",
        "kind": "Kustomization",
        "metadata": _metadata(name),
        "spec": spec,
        "status": {
            **_status("True", "ReconciliationSucceeded", "Applied revision"),
            "lastAppliedRevision": "main@sha1:abc",
        },
    }


def helm_release(name: str = "podinfo") -> dict[str, Any]:
    return {
        "apiVersion": "helm.toolkit.fluxcd.io/v2",
        "kind": "HelmRelease",
        "metadata": _metadata(name),
        "spec": {
            "chart": {
                "spec": {
                    "chart": "podinfo",
                    "version": "6.5.0",
                    "sourceRef": {"kind": "HelmRepository", "name": "podinfo"},
                }
            }
        },
        "status": {
            **_status("False", "InstallFailed", "install retries exhausted"),
            "history": [{"chartVersion": "6.5.0"}],
        },
    }


def event(
    name: str, reason: str, last: str, kind: str = "Kustomization", count: int = 1
) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Event",
        "metadata": {"name": f"{name}.{reason}", "namespace": NAMESPACE},
        "type": "Normal",
        "reason": reason,
        "message": f"{reason} for {name}",
        "count": count,
        "firstTimestamp": last,
        "lastTimestamp": last,
        "involvedObject": {
            "apiVersion": "kustomize.toolkit.fluxcd.io/v1"
            if kind == "Kustomization"
            else "v1",
            "kind": kind,
            "name": name,
            "namespace": NAMESPACE,
        },
    }


def populate(cluster: InMemoryCluster) -> InMemoryCluster:
    """Add one object of every kind and a few events to a fake cluster."""
    for doc in (git_repository(), helm_repository(), kustomization(), helm_release()):
        cluster.add_object(doc)
    cluster.events.extend(
        [
            event("apps", "ReconciliationSucceeded", "2024-05-02T10:00:00Z"),
            event("apps", "Progressing", "2024-05-02T11:00:00Z", count=3),
            event("nginx", "Scheduled", "2024-05-02T12:00:00Z", kind="Pod"),
        ]
    )
    return cluster


@pytest.fixture(name="now")
def now_fixture() -> datetime:
    """A fixed snapshot time one day after the objects were created."""
    return datetime(2024, 5, 2, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(name="client")
def client_fixture() -> InMemoryClusterClient:
    """A client with a reachable `alpha` cluster holding one object of each kind."""
    client = InMemoryClusterClient()
    populate(client.add_cluster("alpha"))
    return client


@pytest.fixture(name="alpha")
def alpha_fixture(client: InMemoryClusterClient) -> InMemoryCluster:
    """The `alpha` fake cluster."""
    return client._clusters["alpha"]


@pytest.fixture(name="config")
def config_fixture() -> Config:
    """A resolved configuration with `alpha` as the default cluster."""
    return Config(
        current_kubeconfig="/dev/null",
        current_context="alpha",
        current_namespace=NAMESPACE,
    )


@pytest.fixture(name="add_cluster")
def add_cluster_fixture(
    client: InMemoryClusterClient,
) -> Callable[..., InMemoryCluster]:
    """A factory adding populated fake clusters to the client."""

    def _add(context: str, reachable: bool = True) -> InMemoryCluster:
        return populate(client.add_cluster(context, reachable=reachable))

    return _add
