"""Task tracking module for flux-fleet.

This module provides a simple task tracking service that allows the engines
to track their workers and the manager to join all of them on shutdown.
"""

from .service import TaskService, TaskServiceImpl

__all__ = ["TaskService", "TaskServiceImpl"]
