"""Kubernetes events emitted for flux objects."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .resource import ResourceKind, parse_timestamp

__all__ = [
    "Event",
    "parse_event",
    "filter_events",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event(DataClassDictMixin):
    """A lifecycle event reported by a flux controller about an object."""

    type: str
    """Normal or Warning."""

    reason: str
    message: str
    object_kind: str
    object_name: str
    namespace: str = ""
    count: int = 1
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None

    @property
    def object(self) -> str:
        """The involved object rendered as Kind/name."""
        return f"{self.object_kind}/{self.object_name}"

    class Config(BaseConfig):
        omit_none = True


def _count(value: Any) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return 1


def parse_event(doc: dict[str, Any]) -> Event:
    """Parse a core/v1 Event object, tolerating missing fields."""
    involved = doc.get("involvedObject") or {}
    metadata = doc.get("metadata") or {}
    first = parse_timestamp(doc.get("firstTimestamp")) or parse_timestamp(
        doc.get("eventTime")
    )
    last = (
        parse_timestamp(doc.get("lastTimestamp"))
        or parse_timestamp(doc.get("eventTime"))
        or first
    )
    return Event(
        type=str(doc.get("type") or ""),
        reason=str(doc.get("reason") or ""),
        message=str(doc.get("message") or ""),
        object_kind=str(involved.get("kind") or ""),
        object_name=str(involved.get("name") or ""),
        namespace=str(involved.get("namespace") or metadata.get("namespace") or ""),
        count=_count(doc.get("count")),
        first_timestamp=first,
        last_timestamp=last,
    )


def _is_flux_object(involved: Any, kinds: set[ResourceKind]) -> bool:
    if not isinstance(involved, dict):
        return False
    return any(kind.matches(involved) for kind in kinds)


def filter_events(
    docs: Iterable[Any], kinds: Iterable[ResourceKind]
) -> list[Event]:
    """Return events about objects of the given kinds, most recent first."""
    wanted = set(kinds)
    events = [
        parse_event(doc)
        for doc in docs
        if isinstance(doc, dict) and _is_flux_object(doc.get("involvedObject"), wanted)
    ]
    _LOGGER.debug("Kept %d flux events", len(events))
    return sorted(
        events,
        key=lambda event: event.last_timestamp.timestamp()
        if event.last_timestamp
        else 0.0,
        reverse=True,
    )
