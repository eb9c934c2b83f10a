"""
List headsets command implementation.

Lists the Emotiv headsets the Cortex service can see.
"""

import argparse
from typing import List

from cortexgrid.core.bus import EventBus
from cortexgrid.core.exceptions import ConfigurationError, CortexGridError
from cortexgrid.cortex.client import HeadsetInfo, MultiHeadsetClient

from .base import BaseCommand


class ListHeadsetsCommand(BaseCommand):
    """Command to list available Emotiv headsets."""

    def execute(self, args: argparse.Namespace) -> int:
        """
        Execute the list-headsets command.

        Args:
            args: Parsed command-line arguments.

        Returns:
            Exit code.
        """
        try:
            config = self.load_config(args)
        except ConfigurationError as e:
            self.error(str(e))
            return 1

        client = MultiHeadsetClient(config.cortex, EventBus())
        try:
            client.initialize()
            headsets = client.query_headsets()
        except CortexGridError as e:
            self.error(f"Failed to query the Cortex service: {e}")
            return 1
        finally:
            client.disconnect()

        if not headsets:
            print("No Emotiv headsets found.")
            print("\nTroubleshooting tips:")
            print("  1. Ensure your headset is powered on")
            print("  2. Check that the USB dongle is connected")
            print("  3. Verify the Emotiv Launcher is running")
            return 0

        self._print_headsets(headsets)
        return 0

    def _print_headsets(self, headsets: List[HeadsetInfo]) -> None:
        """
        Print headsets in a readable list.

        Args:
            headsets: Headsets reported by the service.
        """
        print(f"Found {len(headsets)} headset(s):\n")

        for headset in headsets:
            print(f"  {headset.id}")
            print(f"    Status: {headset.status}")
            if headset.connected_by:
                print(f"    Connected by: {headset.connected_by}")
            if headset.firmware:
                print(f"    Firmware: {headset.firmware}")
            if headset.motion_sensors:
                print(f"    Motion sensors: {', '.join(headset.motion_sensors)}")
            print()
