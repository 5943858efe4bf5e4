"""Command line tool for watching and operating flux resources across clusters."""

import argparse
import asyncio
import logging
import sys
import traceback

from flux_fleet.exceptions import FleetException
from . import action, get, watch

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for flux resources across clusters.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the configuration file, defaults to ~/.flux-fleet/config.yaml",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to the kubeconfig, defaults to $KUBECONFIG or ~/.kube/config",
    )
    parser.add_argument(
        "--context",
        default=None,
        help="Kubeconfig context of the default cluster",
    )
    parser.add_argument(
        "--namespace",
        "-n",
        default=None,
        help="Namespace to target, defaults to the configured default namespace",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    get.GetAction.register(subparsers)
    watch.WatchAction.register(subparsers)
    action.SuspendAction.register(subparsers)
    action.ResumeAction.register(subparsers)
    action.ReconcileAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Flux-fleet command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    command = args.cls()
    try:
        asyncio.run(command.run(**vars(args)))
    except FleetException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("flux-fleet error: ", err, file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        _LOGGER.debug("Interrupted")


if __name__ == "__main__":
    main()
