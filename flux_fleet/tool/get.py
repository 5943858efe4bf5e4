"""Flux-fleet get action."""

import logging
from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
from typing import cast

from flux_fleet.resource import ResourceKind

from .common import add_cluster_flag, add_kind_flag, connected_manager
from .format import (
    JsonFormatter,
    PrintFormatter,
    StructFormatter,
    YamlFormatter,
    resource_row,
)

_LOGGER = logging.getLogger(__name__)


class GetAction:
    """Flux-fleet get action."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "get",
                help="Print the flux resources of a cluster",
                description="Print the flux resources of one kind in a cluster",
            ),
        )
        add_kind_flag(args)
        add_cluster_flag(args)
        args.add_argument(
            "-A",
            "--all-namespaces",
            action="store_true",
            help="List the resources across all namespaces",
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["wide", "yaml", "json"],
            default=None,
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        kind: ResourceKind,
        all_namespaces: bool,
        output: str | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        async with connected_manager(**kwargs) as manager:
            resources = await manager.list_resources(kind, all_namespaces)
        _LOGGER.debug("Found %d %s", len(resources), kind)

        if output in ("yaml", "json"):
            formatter: StructFormatter = (
                YamlFormatter() if output == "yaml" else JsonFormatter()
            )
            formatter.print([resource.to_dict() for resource in resources])
            return

        if not resources:
            print(f"No {kind} objects found")
            return
        rows = [resource_row(resource, wide=output == "wide") for resource in resources]
        PrintFormatter().print(rows)
