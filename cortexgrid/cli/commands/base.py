"""
Base command class for CLI commands.

Provides common interface and utilities for all commands.
"""

from abc import ABC, abstractmethod
import argparse
import sys
from typing import TYPE_CHECKING

from cortexgrid.core.config import Config

if TYPE_CHECKING:
    from ..main import CLI


class BaseCommand(ABC):
    """
    Abstract base class for CLI commands.

    All commands should inherit from this class and implement the execute method.
    """

    def __init__(self, cli: "CLI"):
        """
        Initialize the command.

        Args:
            cli: The parent CLI instance.
        """
        self._cli = cli

    @property
    def cli(self) -> "CLI":
        """Get the parent CLI instance."""
        return self._cli

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown was requested."""
        return self._cli.shutdown_requested

    @abstractmethod
    def execute(self, args: argparse.Namespace) -> int:
        """
        Execute the command.

        Args:
            args: Parsed command-line arguments.

        Returns:
            Exit code (0 for success, non-zero for failure).
        """
        pass

    def load_config(self, args: argparse.Namespace) -> Config:
        """
        Load the configuration file given with ``--config``, or the environment.

        Raises:
            ConfigurationError: If the configuration is missing or invalid.
        """
        if args.config:
            return Config.from_yaml(args.config)
        return Config.from_env()

    def error(self, message: str) -> None:
        """
        Print an error message to stderr.

        Args:
            message: The error message.
        """
        print(f"Error: {message}", file=sys.stderr)
