"""Canonical representation of flux objects observed in a cluster.

Every flux kind reports its status a little differently. This module maps a
raw kubernetes object of one of the supported kinds into a single `Resource`
value that consumers can display without knowing about the kind.

The normalizer never fails: objects that are partially populated or malformed
degrade to empty values so that a consumer always has something to show.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .exceptions import UnsupportedKindError

__all__ = [
    "ResourceKind",
    "Condition",
    "Resource",
    "normalize",
]

_LOGGER = logging.getLogger(__name__)


# Resources are addressed by plural and group only so that the server picks its
# preferred version, which keeps working across flux api upgrades.
SOURCE_DOMAIN = "source.toolkit.fluxcd.io"
FLUXTOMIZE_DOMAIN = "kustomize.toolkit.fluxcd.io"
HELM_RELEASE_DOMAIN = "helm.toolkit.fluxcd.io"

READY_CONDITION = "Ready"
CONDITION_TRUE = "True"
RECONCILE_ANNOTATION = "reconcile.fluxcd.io/requestedAt"


def _get(doc: Any, *keys: str) -> Any:
    """Walk nested mappings, returning None when any level is missing."""
    for key in keys:
        if not isinstance(doc, dict):
            return None
        doc = doc.get(key)
    return doc


def _str(value: Any) -> str:
    """Coerce a scalar into a string, treating missing values as empty."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def _optional_str(value: Any) -> str | None:
    return _str(value) or None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a kubernetes RFC 3339 timestamp into an aware datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        _LOGGER.debug("Ignoring unparseable timestamp %r", value)
        return None


def _repository_fields(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "url": _optional_str(_get(doc, "spec", "url")),
        "revision": _optional_str(_get(doc, "status", "artifact", "revision")),
    }


def _kustomization_fields(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "path": _optional_str(_get(doc, "spec", "path")),
        "source_kind": _optional_str(_get(doc, "spec", "sourceRef", "kind")),
        "source_name": _optional_str(_get(doc, "spec", "sourceRef", "name")),
        "revision": _optional_str(_get(doc, "status", "lastAppliedRevision")),
    }


def _helm_release_fields(doc: dict[str, Any]) -> dict[str, Any]:
    if chart_ref := _get(doc, "spec", "chartRef"):
        source_ref = chart_ref
        chart = _get(chart_ref, "name")
        version = None
    else:
        chart_spec = _get(doc, "spec", "chart", "spec")
        source_ref = _get(chart_spec, "sourceRef")
        chart = _get(chart_spec, "chart")
        version = _get(chart_spec, "version")
    revision = _get(doc, "status", "lastAppliedRevision")
    if not revision:
        # helm.toolkit.fluxcd.io/v2 replaced lastAppliedRevision with a history
        history = _get(doc, "status", "history")
        if isinstance(history, list) and history:
            revision = _get(history[0], "chartVersion")
    return {
        "chart": _optional_str(chart),
        "version": _optional_str(version),
        "source_kind": _optional_str(_get(source_ref, "kind")),
        "source_name": _optional_str(_get(source_ref, "name")),
        "revision": _optional_str(revision),
    }


class ResourceKind(Enum):
    """The flux kinds that are observed, with the api details of each.

    Listing, fetching, suspending and requesting reconciliation all go through
    the members of this enum so a new kind is added in exactly one place.
    """

    GIT_REPOSITORY = (
        "GitRepository",
        SOURCE_DOMAIN,
        "gitrepositories",
        _repository_fields,
    )
    HELM_REPOSITORY = (
        "HelmRepository",
        SOURCE_DOMAIN,
        "helmrepositories",
        _repository_fields,
    )
    KUSTOMIZATION = (
        "Kustomization",
        FLUXTOMIZE_DOMAIN,
        "kustomizations",
        _kustomization_fields,
    )
    HELM_RELEASE = (
        "HelmRelease",
        HELM_RELEASE_DOMAIN,
        "helmreleases",
        _helm_release_fields,
    )

    def __init__(
        self,
        kind: str,
        group: str,
        plural: str,
        fields: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> None:
        self.kind = kind
        self.group = group
        self.plural = plural
        self._fields = fields

    def __str__(self) -> str:
        return self.kind

    @property
    def resource_name(self) -> str:
        """The fully qualified resource name e.g. `kustomizations.kustomize.toolkit.fluxcd.io`."""
        return f"{self.plural}.{self.group}"

    @classmethod
    def parse(cls, value: "str | ResourceKind") -> "ResourceKind":
        """Look up a kind by name, plural, or common short alias."""
        if isinstance(value, ResourceKind):
            return value
        lookup = str(value).lower()
        for member in cls:
            if lookup in (member.kind.lower(), member.plural, member.resource_name):
                return member
        if (member := _ALIASES.get(lookup)) is not None:
            return member
        raise UnsupportedKindError(str(value))

    def matches(self, doc: Any) -> bool:
        """Return True if the raw object is of this kind."""
        if not isinstance(doc, dict) or doc.get("kind") != self.kind:
            return False
        api_version = doc.get("apiVersion")
        return not api_version or str(api_version).startswith(self.group)

    def extract_fields(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Extract the kind specific fields of a `Resource`."""
        return self._fields(doc)

    def set_suspend(self, doc: dict[str, Any], suspend: bool) -> None:
        """Set the flag asking the controller to stop acting on the object."""
        spec = doc.get("spec")
        if not isinstance(spec, dict):
            spec = {}
            doc["spec"] = spec
        spec["suspend"] = suspend

    def request_reconcile(self, doc: dict[str, Any], requested_at: str) -> None:
        """Overwrite the annotation asking the controller to reconcile now."""
        metadata = doc.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
            doc["metadata"] = metadata
        annotations = metadata.get("annotations")
        if not isinstance(annotations, dict):
            annotations = {}
            metadata["annotations"] = annotations
        annotations[RECONCILE_ANNOTATION] = requested_at


_ALIASES = {
    "gitrepo": ResourceKind.GIT_REPOSITORY,
    "helmrepo": ResourceKind.HELM_REPOSITORY,
    "ks": ResourceKind.KUSTOMIZATION,
    "hr": ResourceKind.HELM_RELEASE,
}


@dataclass(frozen=True)
class Condition(DataClassDictMixin):
    """A timestamped status assertion attached to an object."""

    type: str
    """The type of condition e.g. Ready, Reconciling, Stalled."""

    status: str
    """One of True, False or Unknown."""

    reason: str = ""
    """Machine readable reason for the last transition."""

    message: str = ""
    """Human readable details about the last transition."""

    last_transition_time: datetime | None = None
    """When the condition last changed status."""

    @classmethod
    def parse_doc(cls, doc: Any) -> "Condition | None":
        """Parse a condition entry from an object status, if it looks like one."""
        if not isinstance(doc, dict):
            return None
        return cls(
            type=_str(doc.get("type")),
            status=_str(doc.get("status")),
            reason=_str(doc.get("reason")),
            message=_str(doc.get("message")),
            last_transition_time=parse_timestamp(doc.get("lastTransitionTime")),
        )

    class Config(BaseConfig):
        omit_none = True


@dataclass(frozen=True)
class Resource(DataClassDictMixin):
    """Snapshot of one flux object instance in a cluster."""

    kind: ResourceKind = field(
        metadata=field_options(serialize=str, deserialize=ResourceKind.parse)
    )
    name: str
    namespace: str
    ready: bool = False
    status: str = ""
    """Summary taken from the reason of the Ready condition."""
    message: str = ""
    age: timedelta = timedelta(0)
    """Age of the object relative to `last_update`."""
    last_update: datetime | None = None
    """The snapshot time this value was produced at."""
    conditions: list[Condition] = field(default_factory=list)
    suspended: bool = False

    url: str | None = None
    """Source URL for repository kinds."""

    path: str | None = None
    """The path within the source for a Kustomization."""

    source_kind: str | None = None
    """Kind of the soft reference to the source providing this object."""

    source_name: str | None = None
    """Name of the soft reference to the source providing this object."""

    chart: str | None = None
    """The chart name of a HelmRelease."""

    version: str | None = None
    """The chart version constraint of a HelmRelease."""

    revision: str | None = None
    """Last applied revision or, for repository kinds, the artifact revision."""

    @property
    def namespaced_name(self) -> str:
        """Return the namespace and name concatenated as an id."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespaced_name}"

    class Config(BaseConfig):
        omit_none = True


def _find_ready(conditions: list[Condition]) -> Condition | None:
    # Iterates the full list so the last Ready condition wins.
    ready = None
    for condition in conditions:
        if condition.type == READY_CONDITION:
            ready = condition
    return ready


def normalize(kind: ResourceKind, doc: Any, now: datetime) -> Resource:
    """Map a raw object of the given kind into a `Resource`.

    The result only depends on the arguments: `now` is the snapshot time of
    the refresh producing the value and the age is computed against it.
    """
    if not isinstance(doc, dict):
        _LOGGER.debug("Normalizing non-mapping %s object: %r", kind, doc)
        doc = {}
    metadata = doc.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    raw_conditions = _get(doc, "status", "conditions")
    conditions = [
        condition
        for raw in (raw_conditions if isinstance(raw_conditions, list) else [])
        if (condition := Condition.parse_doc(raw)) is not None
    ]
    ready = _find_ready(conditions)

    age = timedelta(0)
    if created := parse_timestamp(metadata.get("creationTimestamp")):
        try:
            age = max(now - created, timedelta(0))
        except TypeError:
            # Naive and aware datetimes cannot be subtracted
            _LOGGER.debug("Cannot compute age of %s against %s", created, now)

    return Resource(
        kind=kind,
        name=_str(metadata.get("name")),
        namespace=_str(metadata.get("namespace")),
        ready=ready is not None and ready.status == CONDITION_TRUE,
        status=ready.reason if ready else "",
        message=ready.message if ready else "",
        age=age,
        last_update=now,
        conditions=conditions,
        suspended=_get(doc, "spec", "suspend") is True,
        **kind.extract_fields(doc),
    )
