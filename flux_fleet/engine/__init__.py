"""Background loops feeding the update bus.

- `RefreshEngine` lists every kind in every connected cluster.
- `EventEngine` collects the events emitted for flux objects.
"""

from .events import EventEngine
from .refresh import RefreshEngine, RefreshState

__all__ = ["EventEngine", "RefreshEngine", "RefreshState"]
