"""
Run command implementation.

Starts the headset pipeline with a console publisher and keeps it running
until Ctrl+C or SIGTERM.
"""

import argparse
import time
from dataclasses import replace

from cortexgrid.core.config import Config
from cortexgrid.core.exceptions import ConfigurationError, CortexGridError
from cortexgrid.core.pipeline import HeadsetPipeline
from cortexgrid.publishers.console import ConsolePublisher

from .base import BaseCommand


class RunCommand(BaseCommand):
    """Command to run the selection grid."""

    def execute(self, args: argparse.Namespace) -> int:
        """
        Execute the run command.

        Args:
            args: Parsed command-line arguments.

        Returns:
            Exit code.
        """
        try:
            config = self._build_config(args)
        except (ConfigurationError, ValueError) as e:
            self.error(str(e))
            return 1

        if args.verbose:
            self._print_config(config)

        publisher = ConsolePublisher(show_progress=args.show_progress)
        try:
            pipeline = HeadsetPipeline(config, publishers=[publisher], item_ids=args.items)
        except ValueError as e:
            self.error(str(e))
            return 1

        try:
            headsets = pipeline.start()
        except CortexGridError as e:
            self.error(f"Failed to start: {e}")
            return 1

        print(f"Running with {len(headsets)} headset(s). Press Ctrl+C to stop.")
        try:
            while not self.shutdown_requested:
                time.sleep(0.1)
        finally:
            pipeline.stop()

        print("Stopped.")
        return 0

    def _build_config(self, args: argparse.Namespace) -> Config:
        """
        Load the configuration and apply command-line overrides.

        Raises:
            ConfigurationError: If the configuration cannot be loaded.
            ValueError: If an override is out of range.
        """
        config = self.load_config(args)

        overrides = {}
        if args.hold_duration is not None:
            overrides["hold_duration"] = args.hold_duration
        if args.push_threshold is not None:
            overrides["push_threshold"] = args.push_threshold
        if args.tilt_threshold is not None:
            overrides["tilt_threshold"] = args.tilt_threshold
        if overrides:
            config.selection = replace(config.selection, **overrides)

        if args.smoothing:
            config.smoothing = replace(config.smoothing, enabled=True)
        if args.headsets:
            config.headsets = tuple(args.headsets)

        return config

    def _print_config(self, config: Config) -> None:
        """Print configuration summary."""
        selection = config.selection
        print("\nConfiguration:")
        print(f"  Cortex: {config.cortex.url}")
        print(f"  Headsets: {', '.join(config.headsets) or 'all available'}")
        print(f"  Grid: {selection.rows}x{selection.columns}")
        print(f"  Hold: {selection.hold_duration}s at push >= {selection.push_threshold}")
        print(f"  Tilt: {selection.tilt_threshold} deg for {selection.frames_to_trigger} frames")
        print(f"  Smoothing: {'on' if config.smoothing.enabled else 'off'}")
        print()
