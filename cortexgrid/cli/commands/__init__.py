"""
CLI command implementations.

Each command is implemented as a separate module with a consistent interface.
"""

from .base import BaseCommand
from .run import RunCommand
from .list_headsets import ListHeadsetsCommand

__all__ = ["BaseCommand", "RunCommand", "ListHeadsetsCommand"]
