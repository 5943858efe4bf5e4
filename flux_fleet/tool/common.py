"""Shared flags and setup for the flux-fleet actions."""

from argparse import ArgumentParser, ArgumentTypeError
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import logging

from flux_fleet.client import ClusterClient, KubectlClient
from flux_fleet.config import read_config
from flux_fleet.exceptions import UnsupportedKindError
from flux_fleet.manager import Manager
from flux_fleet.resource import ResourceKind

_LOGGER = logging.getLogger(__name__)

KIND_CHOICES = [
    "gitrepositories",
    "gitrepo",
    "helmrepositories",
    "helmrepo",
    "kustomizations",
    "ks",
    "helmreleases",
    "hr",
]


def create_client() -> ClusterClient:
    """Create the client used to reach the clusters."""
    return KubectlClient()


def parse_kind(value: str) -> ResourceKind:
    """Parse a resource kind command line argument."""
    try:
        return ResourceKind.parse(value)
    except UnsupportedKindError as err:
        raise ArgumentTypeError(str(err)) from err


def add_kind_flag(args: ArgumentParser) -> None:
    """Add the positional argument selecting a resource kind."""
    args.add_argument(
        "kind",
        type=parse_kind,
        help=f"Resource kind, one of: {', '.join(KIND_CHOICES)}",
    )


def add_cluster_flag(args: ArgumentParser) -> None:
    """Add the flag selecting the targeted cluster."""
    args.add_argument(
        "--cluster",
        default=None,
        help="Name of the cluster to target, defaults to the current context",
    )


@asynccontextmanager
async def connected_manager(  # type: ignore[no-untyped-def]
    start: bool = False,
    config: str | None = None,
    kubeconfig: str | None = None,
    context: str | None = None,
    namespace: str | None = None,
    cluster: str | None = None,
    **kwargs,  # pylint: disable=unused-argument
) -> AsyncGenerator[Manager, None]:
    """Build a manager from the command line flags and connect its clusters.

    The background loops are only started when `start` is set. The manager is
    stopped when the context exits.
    """
    fleet_config = (await read_config(config)).resolve(kubeconfig, context, namespace)
    manager = Manager(fleet_config, create_client())
    try:
        await (manager.start() if start else manager.connect())
        if cluster:
            manager.set_current_cluster(cluster)
        yield manager
    finally:
        await manager.stop()
