"""Console publisher for running the selection grid from a terminal.

Prints one line per headset status change and selection outcome, which is
enough to drive a session without any UI.
"""

import sys
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Optional, TextIO

from cortexgrid.core.events import (
    AllSelectionsLockedEvent,
    CortexWarningEvent,
    FocusChangedEvent,
    HeadsetStatusEvent,
    HoldProgressEvent,
    SelectionLockedEvent,
)
from cortexgrid.publishers.base import Publisher

if TYPE_CHECKING:
    from cortexgrid.core.colors import HeadsetColorRegistry
    from cortexgrid.core.events import HeadsetEvent


class ConsolePublisher(Publisher):
    """Publisher that prints headset events to a text stream.

    Attributes:
        format_string: Template for each line. Supports placeholders:
            - {timestamp}: Current ISO timestamp
            - {event_type}: Type name of the event
            - {headset}: Headset id
            - {color}: Headset color, if a color registry was given
            - {event}: Human readable description of the event
        stream: Output stream (defaults to sys.stdout)
        prefix: Optional prefix for all messages

    Example:
        publisher = ConsolePublisher(prefix="[grid]")
        with publisher:
            publisher.publish(selection_locked_event)
        # Output: [grid] [2024-01-15T10:30:00] EPOCX-1: locked cell 4 (4)
    """

    DEFAULT_FORMAT = "[{timestamp}] {headset}: {event}"

    def __init__(
        self,
        format_string: Optional[str] = None,
        stream: Optional[TextIO] = None,
        prefix: Optional[str] = None,
        include_timestamp: bool = True,
        show_progress: bool = False,
        colors: Optional["HeadsetColorRegistry"] = None,
    ) -> None:
        """Initialize the console publisher.

        Args:
            format_string: Custom format string for output. Uses DEFAULT_FORMAT
                if not specified.
            stream: Output stream. Defaults to sys.stdout.
            prefix: Optional prefix prepended to all output lines.
            include_timestamp: Whether to fill in {timestamp}.
            show_progress: Also print every hold progress update.
            colors: Registry used to fill in {color}.
        """
        self._format_string = format_string or self.DEFAULT_FORMAT
        self._stream = stream or sys.stdout
        self._prefix = prefix
        self._include_timestamp = include_timestamp
        self._show_progress = show_progress
        self._colors = colors
        self._is_ready = False
        self._event_count = 0
        self._write_lock = threading.Lock()

    def start(self) -> None:
        self._is_ready = True
        self._event_count = 0
        self._write_line("Console publisher started")

    def stop(self) -> None:
        """Flush the stream and mark the publisher as not ready."""
        if self._is_ready:
            self._write_line(f"Console publisher stopped (published {self._event_count} events)")
            self._stream.flush()
            self._is_ready = False

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    @property
    def event_count(self) -> int:
        """Number of lines published since start()."""
        return self._event_count

    def publish(self, event: "HeadsetEvent") -> None:
        """Print the event.

        Hold progress updates are skipped unless ``show_progress`` is set.

        Raises:
            RuntimeError: If the publisher has not been started.
        """
        if not self._is_ready:
            raise RuntimeError("Console publisher not started. Call start() first.")

        if isinstance(event, HoldProgressEvent) and not self._show_progress:
            return

        self._write_line(self._format_event(event))
        self._event_count += 1

    def _format_event(self, event: "HeadsetEvent") -> str:
        timestamp = datetime.now().isoformat(timespec="seconds") if self._include_timestamp else ""
        color = self._colors.color_for(event.headset_id) if self._colors is not None else ""
        return self._format_string.format(
            timestamp=timestamp,
            event_type=type(event).__name__,
            headset=event.headset_id,
            color=color,
            event=describe(event),
        )

    def _write_line(self, message: str) -> None:
        if self._prefix:
            message = f"{self._prefix} {message}"
        with self._write_lock:
            self._stream.write(message + "\n")


def describe(event: "HeadsetEvent") -> str:
    """One-line description of an event for humans."""
    if isinstance(event, HeadsetStatusEvent):
        text = event.status.value
        return f"{text} ({event.message})" if event.message else text
    if isinstance(event, FocusChangedEvent):
        return f"focus {event.previous_index} -> {event.focus_index} ({event.direction.value})"
    if isinstance(event, HoldProgressEvent):
        return f"hold {event.progress:.0%} on cell {event.focus_index} [{event.phase.name}]"
    if isinstance(event, SelectionLockedEvent):
        return f"locked cell {event.index} ({event.item_id})"
    if isinstance(event, AllSelectionsLockedEvent):
        picks = ", ".join(f"{h}={item}" for h, item in sorted(event.selections.items()))
        return f"all headsets locked: {picks}"
    if isinstance(event, CortexWarningEvent):
        return f"warning {event.code}: {event.message}"
    return repr(event)
