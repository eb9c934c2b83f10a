"""Abstract base class for event processors.

Processors sit between the stream demultiplexer and the selection engine.
Each one receives a headset event and returns it unchanged, a transformed
copy, or None to drop it.
"""

from abc import ABC, abstractmethod
from typing import Optional

from cortexgrid.core.events import HeadsetEvent


class Processor(ABC):
    """Abstract base class defining the processor interface.

    Example:
        >>> class LoggingProcessor(Processor):
        ...     def process(self, event: HeadsetEvent) -> Optional[HeadsetEvent]:
        ...         print(f"Processing: {event}")
        ...         return event
        ...
        ...     def reset(self, headset_id: Optional[str] = None) -> None:
        ...         pass
    """

    @abstractmethod
    def process(self, event: HeadsetEvent) -> Optional[HeadsetEvent]:
        """Process an incoming event.

        Args:
            event: The event to process.

        Returns:
            The processed event, or None if the event should be filtered out.

        Note:
            Events are frozen; processors that change one should use
            dataclasses.replace() to build a new instance.
        """
        pass

    @abstractmethod
    def reset(self, headset_id: Optional[str] = None) -> None:
        """Clear accumulated state for one headset, or for all of them."""
        pass
