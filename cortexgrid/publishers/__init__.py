"""Publishers module for cortexgrid.

Publishers receive headset status changes and selection outcomes from a
HeadsetPipeline and present them.

Available Publishers:
    - Publisher: Abstract base class defining the publisher protocol
    - ConsolePublisher: Prints one line per outcome to a text stream

Example:
    from cortexgrid.publishers import ConsolePublisher

    with ConsolePublisher(prefix="[grid]") as publisher:
        publisher.publish(event)
"""

from cortexgrid.publishers.base import Publisher
from cortexgrid.publishers.console import ConsolePublisher

__all__ = [
    "Publisher",
    "ConsolePublisher",
]
