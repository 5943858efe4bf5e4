"""Exceptions related to flux-fleet."""

__all__ = [
    "FleetException",
    "CommandException",
    "ClusterConnectionError",
    "ClusterNotConnectedError",
    "ListError",
    "GetError",
    "UpdateError",
    "UpdateConflictError",
    "NotFoundError",
    "UnsupportedKindError",
]


class FleetException(Exception):
    """Generic base exception used for this library."""


class CommandException(FleetException):
    """Raised when there is a failure running a subcommand."""

    def __init__(
        self, message: str, returncode: int | None = None, stderr: str = ""
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ClusterConnectionError(FleetException):
    """Raised when a named cluster could not be reached at connect time."""

    def __init__(self, cluster: str, message: str) -> None:
        super().__init__(f"failed to connect to cluster {cluster}: {message}")
        self.cluster = cluster
        self.reason = message


class ClusterNotConnectedError(FleetException):
    """Raised when an operation addresses a cluster that is not connected."""

    def __init__(self, cluster: str | None) -> None:
        super().__init__(f"cluster {cluster or '<none>'} not connected")
        self.cluster = cluster


class ListError(FleetException):
    """Raised when listing objects of one kind in a cluster failed."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(f"failed to list {kind}: {message}")
        self.kind = kind


class GetError(FleetException):
    """Raised when fetching a single object failed."""


class UpdateError(FleetException):
    """Raised when submitting an object update failed."""


class UpdateConflictError(UpdateError):
    """Raised when an update lost a race against a concurrent write."""


class NotFoundError(FleetException):
    """Raised when a target object or cluster does not exist."""


class UnsupportedKindError(FleetException):
    """Raised for a resource kind outside the supported flux kinds."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"unsupported resource type: {kind}")
        self.kind = kind
