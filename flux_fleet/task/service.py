"""Task tracking service for flux-fleet.

This service provides a simple way to track and shut down the
asynchronous tasks spawned by the refresh and event engines.
"""

import asyncio
from functools import partial
import logging
from typing import Any, Coroutine, Set
from abc import ABC, abstractmethod

_LOGGER = logging.getLogger(__name__)

__all__: list[str] = []


class TaskService(ABC):
    """Service for tracking and waiting for asynchronous tasks."""

    @abstractmethod
    def create_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new short lived task.

        Args:
            coro: The coroutine to run as a task

        Returns:
            The created task
        """

    @abstractmethod
    def create_background_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new long running background task.

        Args:
            coro: The coroutine to run as a task

        Returns:
            The created task
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """Cancel every tracked task and wait until all of them finished.

        No task created before the call is still running when it returns, and
        no new task may be created afterwards.
        """


class TaskServiceImpl(TaskService):
    """Service for tracking and waiting for asynchronous tasks."""

    def __init__(self) -> None:
        """Initialize the task service."""
        self._active_tasks: Set[asyncio.Task[Any]] = set()
        self._background_tasks: Set[asyncio.Task[Any]] = set()
        self._closed = False

    def _create(
        self,
        task_set: Set[asyncio.Task[Any]],
        coro: Coroutine[None, None, Any],
        name: str | None,
    ) -> asyncio.Task[Any]:
        if self._closed:
            coro.close()
            raise RuntimeError("Task service is shut down")
        task = asyncio.create_task(coro, name=name)
        task_set.add(task)
        task.add_done_callback(partial(self._task_done, task_set))
        return task

    def create_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new task."""
        return self._create(self._active_tasks, coro, name)

    def create_background_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new background task."""
        return self._create(self._background_tasks, coro, name)

    def _task_done(
        self, task_set: Set[asyncio.Task[Any]], task: asyncio.Task[Any]
    ) -> None:
        """Callback when a task is done."""
        try:
            # This will raise any exception that occurred in the task
            task.result()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            _LOGGER.error("Task %s failed: %s", task.get_name(), e)
        finally:
            task_set.discard(task)

    async def shutdown(self) -> None:
        """Cancel every tracked task and wait until all of them finished."""
        self._closed = True
        tasks = list(self._background_tasks | self._active_tasks)
        _LOGGER.debug("Shutting down %d tasks", len(tasks))
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        # Background tasks may have spawned workers before observing the cancel
        if remaining := list(self._active_tasks | self._background_tasks):
            for task in remaining:
                task.cancel()
            await asyncio.gather(*remaining, return_exceptions=True)

    @property
    def closed(self) -> bool:
        """Return True once the service was shut down."""
        return self._closed
