"""Flux-fleet suspend, resume and reconcile actions."""

import logging
from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
from typing import cast

from flux_fleet.manager import Manager
from flux_fleet.resource import ResourceKind

from .common import add_cluster_flag, add_kind_flag, connected_manager

_LOGGER = logging.getLogger(__name__)


class MutationAction:
    """Base class for actions changing a single flux object."""

    name = ""
    help = ""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(cls.name, help=cls.help, description=cls.help),
        )
        add_kind_flag(args)
        args.add_argument("name", help="Name of the flux object")
        add_cluster_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        kind: ResourceKind,
        name: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        async with connected_manager(**kwargs) as manager:
            result = await self.mutate(manager, kind, name)
            target = f"{kind} {manager.current_namespace}/{name}"
            print(f"{target} {result} in {manager.current_cluster}")

    async def mutate(self, manager: Manager, kind: ResourceKind, name: str) -> str:
        """Apply the change, returning a description of what was done."""
        raise NotImplementedError


class SuspendAction(MutationAction):
    """Flux-fleet suspend action."""

    name = "suspend"
    help = "Suspend reconciliation of a flux object"

    async def mutate(self, manager: Manager, kind: ResourceKind, name: str) -> str:
        await manager.suspend_resource(kind, name)
        return "suspended"


class ResumeAction(MutationAction):
    """Flux-fleet resume action."""

    name = "resume"
    help = "Resume reconciliation of a flux object"

    async def mutate(self, manager: Manager, kind: ResourceKind, name: str) -> str:
        await manager.resume_resource(kind, name)
        return "resumed"


class ReconcileAction(MutationAction):
    """Flux-fleet reconcile action."""

    name = "reconcile"
    help = "Request immediate reconciliation of a flux object"

    async def mutate(self, manager: Manager, kind: ResourceKind, name: str) -> str:
        requested_at = await manager.reconcile_resource(kind, name)
        return f"reconcile requested at {requested_at}"
