"""
The client module is the transport used to reach the flux objects of a cluster.

- `ClusterClient` is the abstract interface consumed by the manager.
- `KubectlClient` delegates to kubectl and the kubeconfig it reads.
- `InMemoryClusterClient` holds fake clusters, useful for embedding and tests.
"""

from .client import ClusterClient, Connection
from .in_memory import InMemoryCluster, InMemoryClusterClient
from .kubectl import KubectlClient

__all__ = [
    "ClusterClient",
    "Connection",
    "InMemoryCluster",
    "InMemoryClusterClient",
    "KubectlClient",
]
