"""
flux-fleet watches flux resources across many clusters.

The library connects a default cluster and any number of configured clusters,
refreshes their GitRepository, HelmRepository, Kustomization and HelmRelease
objects in the background and publishes normalized snapshots, events and
errors for a consumer to render. It also suspends, resumes and requests
reconciliation of individual objects.
"""

__all__ = [
    "bus",
    "client",
    "config",
    "exceptions",
    "manager",
    "resource",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
