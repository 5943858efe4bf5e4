"""Tests for the connection registry."""

import asyncio
import threading

import pytest

from flux_fleet.client import Connection, InMemoryClusterClient
from flux_fleet.exceptions import ClusterConnectionError, NotFoundError
from flux_fleet.registry import ConnectionRegistry, ReadWriteLock


@pytest.fixture(name="registry")
def registry_fixture(client: InMemoryClusterClient) -> ConnectionRegistry:
    """A registry using the in memory client."""
    return ConnectionRegistry(client, namespace="flux-system")


async def test_connect(registry: ConnectionRegistry) -> None:
    """Test connecting a reachable cluster."""
    cluster = await registry.connect("alpha", None, "alpha", "flux-system")
    assert cluster.name == "alpha"
    assert cluster.namespace == "flux-system"
    assert registry.names() == {"alpha"}
    assert registry.get("alpha") == cluster
    assert registry.snapshot() == {"alpha": cluster}


async def test_connect_replaces(
    registry: ConnectionRegistry, client: InMemoryClusterClient
) -> None:
    """Test that connecting a name again replaces the previous connection."""
    client.add_cluster("beta")
    await registry.connect("main", None, "alpha", None)
    cluster = await registry.connect("main", None, "beta", None)
    assert registry.names() == {"main"}
    assert registry.get("main") == cluster
    assert cluster.connection.context == "beta"


async def test_connect_unreachable(
    registry: ConnectionRegistry, client: InMemoryClusterClient
) -> None:
    """Test that an unreachable cluster is not stored."""
    client.add_cluster("down", reachable=False)
    with pytest.raises(
        ClusterConnectionError, match="failed to connect to cluster beta"
    ) as exc_info:
        await registry.connect("beta", None, "down", None)
    assert exc_info.value.cluster == "beta"
    assert registry.names() == set()


async def test_connect_unknown_context(registry: ConnectionRegistry) -> None:
    """Test connecting a context that does not exist."""
    with pytest.raises(ClusterConnectionError, match="cluster gamma"):
        await registry.connect("gamma", None, "missing", None)
    assert registry.get("gamma") is None


class HangingClient(InMemoryClusterClient):
    """A client whose reachability probe never answers."""

    async def test_connection(self, connection: Connection, timeout: float) -> None:
        await asyncio.sleep(60)


async def test_connect_timeout() -> None:
    """Test that the reachability probe is bounded in time."""
    client = HangingClient()
    client.add_cluster("slow")
    registry = ConnectionRegistry(client, connect_timeout=0.05)
    with pytest.raises(ClusterConnectionError, match="timed out"):
        await registry.connect("slow", None, "slow", None)
    assert registry.names() == set()


async def test_remove(registry: ConnectionRegistry) -> None:
    """Test removing a cluster."""
    await registry.connect("alpha", None, "alpha", None)
    registry.set_current("alpha")
    assert registry.remove("alpha")
    assert not registry.remove("alpha")
    assert registry.names() == set()
    assert registry.current_cluster is None


async def test_selection(registry: ConnectionRegistry) -> None:
    """Test selecting the current cluster and namespace."""
    assert registry.current_cluster is None
    assert registry.current_namespace == "flux-system"
    assert registry.current() == (None, "flux-system")

    with pytest.raises(NotFoundError):
        registry.set_current("alpha")

    cluster = await registry.connect("alpha", None, "alpha", None)
    registry.set_current("alpha")
    registry.set_current_namespace("apps")
    assert registry.current_cluster == "alpha"
    assert registry.current_namespace == "apps"
    assert registry.current() == (cluster, "apps")

    registry.set_current_namespace("")
    assert registry.current_namespace is None


async def test_snapshot_is_a_copy(registry: ConnectionRegistry) -> None:
    """Test that a snapshot is not affected by later changes."""
    await registry.connect("alpha", None, "alpha", None)
    snapshot = registry.snapshot()
    registry.remove("alpha")
    assert list(snapshot) == ["alpha"]


def test_read_write_lock() -> None:
    """Test that readers share the lock and writers exclude them."""
    lock = ReadWriteLock()
    order: list[str] = []
    reader_entered = threading.Event()
    release_reader = threading.Event()

    def reader() -> None:
        with lock.read():
            order.append("read")
            reader_entered.set()
            release_reader.wait(5)

    def writer() -> None:
        with lock.write():
            order.append("write")

    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    assert reader_entered.wait(5)

    # A second reader enters while the first still holds the lock
    with lock.read():
        order.append("read")

    writer_thread = threading.Thread(target=writer)
    writer_thread.start()
    writer_thread.join(0.1)
    assert writer_thread.is_alive()

    release_reader.set()
    reader_thread.join(5)
    writer_thread.join(5)
    assert order == ["read", "read", "write"]
