"""Flux-fleet watch action.

Starts the background loops and prints every update as it arrives until
interrupted, or until the requested number of resource updates was printed.
"""

import asyncio
import logging
from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
from datetime import datetime
import sys
from typing import cast

from flux_fleet.manager import Manager
from flux_fleet.resource import ResourceKind

from .common import connected_manager, parse_kind
from .format import PrintFormatter, event_row, resource_row

_LOGGER = logging.getLogger(__name__)


class WatchAction:
    """Flux-fleet watch action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "watch",
                help="Watch the flux resources of every cluster",
                description=(
                    "Continuously print the flux resources and events of the "
                    "default cluster and every configured cluster"
                ),
            ),
        )
        args.add_argument(
            "--kind",
            "-k",
            dest="kinds",
            type=parse_kind,
            action="append",
            help="Only print updates for this kind, may be repeated",
        )
        args.add_argument(
            "--max-updates",
            type=int,
            default=None,
            help="Exit after printing this many resource updates",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        kinds: list[ResourceKind] | None,
        max_updates: int | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        async with connected_manager(start=True, **kwargs) as manager:
            printer = asyncio.create_task(
                self._print_resources(manager, set(kinds or ResourceKind), max_updates)
            )
            others = [
                asyncio.create_task(self._print_events(manager)),
                asyncio.create_task(self._print_errors(manager)),
            ]
            try:
                # Refresh right away instead of waiting for the first tick
                await manager.refresh()
                await printer
            finally:
                printer.cancel()
                for task in others:
                    task.cancel()
                await asyncio.gather(printer, *others, return_exceptions=True)

    async def _print_resources(
        self, manager: Manager, kinds: set[ResourceKind], max_updates: int | None
    ) -> None:
        printed = 0
        async for update in manager.resource_updates:
            if update.kind not in kinds:
                continue
            print(f"==> {update.cluster} {update.kind} ({len(update.resources)})")
            PrintFormatter().print([resource_row(r) for r in update.resources])
            printed += 1
            if max_updates is not None and printed >= max_updates:
                return

    async def _print_events(self, manager: Manager) -> None:
        latest: dict[str, datetime] = {}
        async for update in manager.event_updates:
            since = latest.get(update.cluster)
            fresh = [
                event
                for event in update.events
                if event.last_timestamp
                and (since is None or event.last_timestamp > since)
            ]
            if not fresh:
                continue
            latest[update.cluster] = max(
                cast(datetime, event.last_timestamp) for event in fresh
            )
            now = datetime.now(tz=cast(datetime, fresh[0].last_timestamp).tzinfo)
            print(f"==> {update.cluster} events ({len(fresh)})")
            PrintFormatter().print([event_row(event, now) for event in fresh])

    async def _print_errors(self, manager: Manager) -> None:
        async for update in manager.error_updates:
            print(f"flux-fleet error: {update}", file=sys.stderr)
