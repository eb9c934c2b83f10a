"""
Command line interface for cortexgrid.

Provides the ``cortexgrid`` command to run the selection grid and inspect
headsets from a terminal.
"""

from .main import CLI, run_cli

__all__ = ["CLI", "run_cli"]
