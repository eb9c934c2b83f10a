"""Stable per-headset color assignment.

The application root owns one HeadsetColorRegistry and hands it to whatever
renders headsets, so every view agrees on which color belongs to which
headset for the whole session.
"""

import threading
from typing import Dict, Optional, Sequence


HEADSET_COLORS = (
    "hsl(0, 84%, 60%)",     # Red
    "hsl(142, 76%, 36%)",   # Green
    "hsl(217, 91%, 60%)",   # Blue
    "hsl(280, 67%, 55%)",   # Purple
    "hsl(25, 95%, 53%)",    # Orange
    "hsl(340, 82%, 52%)",   # Pink
    "hsl(191, 97%, 42%)",   # Cyan
    "hsl(48, 96%, 53%)",    # Yellow
)


class HeadsetColorRegistry:
    """Assigns palette colors to headsets in first-seen order.

    Colors cycle once the palette is exhausted.
    """

    def __init__(self, palette: Optional[Sequence[str]] = None) -> None:
        self._palette = tuple(palette) if palette else HEADSET_COLORS
        self._assigned: Dict[str, str] = {}
        self._lock = threading.Lock()

    def color_for(self, headset_id: str) -> str:
        """Return the headset's color, assigning the next one if new."""
        with self._lock:
            color = self._assigned.get(headset_id)
            if color is None:
                color = self._palette[len(self._assigned) % len(self._palette)]
                self._assigned[headset_id] = color
            return color

    def assigned(self) -> Dict[str, str]:
        """Copy of every assignment made so far."""
        with self._lock:
            return dict(self._assigned)

    def reset(self) -> None:
        """Forget all assignments, e.g. for a new session."""
        with self._lock:
            self._assigned.clear()
