"""
Entry point of the ``cortexgrid`` command.

Builds the argument parser, configures logging, installs signal handlers
for a clean shutdown and dispatches to the command implementations.
"""

import argparse
import logging
import signal
import sys
from typing import Dict, List, Optional, Type

from cortexgrid import __version__

from .commands import BaseCommand, ListHeadsetsCommand, RunCommand


LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class CLI:
    """
    The ``cortexgrid`` command line interface.

    Owns the shutdown flag that long-running commands poll.
    """

    COMMANDS: Dict[str, Type[BaseCommand]] = {
        "run": RunCommand,
        "list-headsets": ListHeadsetsCommand,
    }

    def __init__(self) -> None:
        self._shutdown_requested = False
        self._parser = self._build_parser()

    @property
    def shutdown_requested(self) -> bool:
        """Whether Ctrl+C or SIGTERM was received."""
        return self._shutdown_requested

    def request_shutdown(self, signum: Optional[int] = None, frame=None) -> None:
        """Signal handler: ask the running command to stop."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        print("\nShutting down...", file=sys.stderr)

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="cortexgrid",
            description="Multi-headset hold-to-confirm selection grid for Emotiv Cortex.",
        )
        parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
        parser.add_argument(
            "-v", "--verbose",
            action="store_true",
            help="Enable debug logging",
        )
        parser.add_argument(
            "-c", "--config",
            help="YAML configuration file (credentials fall back to EMOTIV_* variables)",
        )

        subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

        run = subparsers.add_parser("run", help="Run the selection grid until interrupted")
        run.add_argument(
            "--headset",
            action="append",
            dest="headsets",
            metavar="ID",
            help="Headset to use; repeat for several. Defaults to every headset found.",
        )
        run.add_argument("--hold-duration", type=float, help="Seconds of push needed to lock")
        run.add_argument("--push-threshold", type=float, help="Minimum push power (0-1)")
        run.add_argument("--tilt-threshold", type=float, help="Degrees of tilt that count")
        run.add_argument("--smoothing", action="store_true", help="Smooth head motion")
        run.add_argument("--show-progress", action="store_true", help="Print hold progress")
        run.add_argument(
            "--items",
            nargs="+",
            metavar="ITEM",
            help="Names of the grid cells, row by row",
        )

        subparsers.add_parser("list-headsets", help="List the headsets Cortex can see")

        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        """
        Parse arguments and execute the selected command.

        Args:
            argv: Arguments, defaulting to ``sys.argv[1:]``.

        Returns:
            Exit code.
        """
        args = self._parser.parse_args(argv)

        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format=LOG_FORMAT,
        )

        if not args.command:
            self._parser.print_help()
            return 1

        signal.signal(signal.SIGINT, self.request_shutdown)
        signal.signal(signal.SIGTERM, self.request_shutdown)

        command = self.COMMANDS[args.command](self)
        return command.execute(args)


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Console script entry point."""
    sys.exit(CLI().run(argv))


if __name__ == "__main__":
    run_cli()
