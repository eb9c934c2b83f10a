"""Base publisher protocol for cortexgrid.

Publishers are the outcome sinks of a HeadsetPipeline: they receive headset
status changes and selection outcomes and present them somewhere (a
terminal, a socket, a UI).
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cortexgrid.core.events import HeadsetEvent


class Publisher(ABC):
    """Abstract base class for all outcome publishers.

    Lifecycle:
        1. Create publisher instance
        2. Call start() to initialize resources
        3. Call publish() to handle events
        4. Call stop() to release resources

    Example:
        publisher = ConcretePublisher()
        publisher.start()
        try:
            for event in outcomes:
                if publisher.is_ready:
                    publisher.publish(event)
        finally:
            publisher.stop()
    """

    @abstractmethod
    def publish(self, event: "HeadsetEvent") -> None:
        """Publish a headset event.

        Args:
            event: The event to publish.

        Raises:
            RuntimeError: If the publisher is not ready (start() not called).
        """
        pass

    @abstractmethod
    def start(self) -> None:
        """Initialize publisher resources.

        Raises:
            RuntimeError: If initialization fails.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release publisher resources. Safe to call multiple times."""
        pass

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True if start() has been called and stop() has not."""
        pass

    def __enter__(self) -> "Publisher":
        """Context manager entry - starts the publisher."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - stops the publisher."""
        self.stop()
