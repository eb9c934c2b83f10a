"""Adaptive smoothing of head motion.

The One Euro filter smooths heavily while the head is nearly still, which
removes sensor jitter, and follows closely during fast turns, which keeps
navigation responsive.

Reference: http://cristal.univ-lille.fr/~casiez/1euro/
"""

import logging
import math
import threading
from typing import Dict, Optional, Tuple

from cortexgrid.core.bus import EventBus
from cortexgrid.core.config import SmoothingConfig
from cortexgrid.core.events import HeadsetEvent, MotionEvent, SmoothedMotionEvent
from cortexgrid.processors.base import Processor


logger = logging.getLogger(__name__)


class OneEuroFilter:
    """One Euro low-pass filter for a single scalar signal.

    Example:
        >>> f = OneEuroFilter(min_cutoff=1.0, beta=0.007)
        >>> f.filter(10.0, 0.0)
        10.0
        >>> f.filter(12.0, 0.1) < 12.0
        True
    """

    def __init__(self, min_cutoff: float = 1.0, beta: float = 0.007, d_cutoff: float = 1.0) -> None:
        """Initialize the filter.

        Args:
            min_cutoff: Minimum cutoff frequency in Hz. Lower is smoother.
            beta: Speed coefficient. Higher follows fast movement more closely.
            d_cutoff: Cutoff frequency for the derivative, in Hz.
        """
        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff
        self._x_prev: Optional[float] = None
        self._dx_prev = 0.0
        self._t_prev: Optional[float] = None

    @staticmethod
    def _alpha(elapsed: float, cutoff: float) -> float:
        r = 2.0 * math.pi * cutoff * elapsed
        return r / (r + 1.0)

    def filter(self, x: float, timestamp: float) -> float:
        """Filter a new sample.

        Args:
            x: Raw value.
            timestamp: Sample time in seconds.

        Returns:
            The filtered value. The first sample passes through unchanged.
        """
        if self._x_prev is None or self._t_prev is None:
            self._x_prev = x
            self._t_prev = timestamp
            return x

        elapsed = timestamp - self._t_prev
        if elapsed <= 0:
            # Duplicate or out-of-order sample
            return self._x_prev
        self._t_prev = timestamp

        a_d = self._alpha(elapsed, self.d_cutoff)
        dx = (x - self._x_prev) / elapsed
        dx_hat = a_d * dx + (1.0 - a_d) * self._dx_prev

        cutoff = self.min_cutoff + self.beta * abs(dx_hat)
        a = self._alpha(elapsed, cutoff)
        x_hat = a * x + (1.0 - a) * self._x_prev

        self._x_prev = x_hat
        self._dx_prev = dx_hat
        return x_hat

    def reset(self) -> None:
        self._x_prev = None
        self._dx_prev = 0.0
        self._t_prev = None


class MotionSmoother(Processor):
    """Applies a One Euro filter per headset to pitch, roll and rotation.

    Other events pass through unchanged. When attached to a bus the smoother
    republishes raw motion as SmoothedMotionEvent, which the selection
    engine consumes instead of the raw stream.
    """

    def __init__(self, config: Optional[SmoothingConfig] = None) -> None:
        self._config = config or SmoothingConfig(enabled=True)
        self._filters: Dict[str, Tuple[OneEuroFilter, OneEuroFilter, OneEuroFilter]] = {}
        self._lock = threading.Lock()
        self._bus: Optional[EventBus] = None

    def _new_filter(self) -> OneEuroFilter:
        return OneEuroFilter(self._config.min_cutoff, self._config.beta, self._config.d_cutoff)

    def _filters_for(self, headset_id: str) -> Tuple[OneEuroFilter, OneEuroFilter, OneEuroFilter]:
        with self._lock:
            filters = self._filters.get(headset_id)
            if filters is None:
                filters = (self._new_filter(), self._new_filter(), self._new_filter())
                self._filters[headset_id] = filters
            return filters

    def process(self, event: HeadsetEvent) -> Optional[HeadsetEvent]:
        if not isinstance(event, MotionEvent) or isinstance(event, SmoothedMotionEvent):
            return event

        pitch_filter, roll_filter, rotation_filter = self._filters_for(event.headset_id)
        return SmoothedMotionEvent(
            timestamp=event.timestamp,
            headset_id=event.headset_id,
            pitch=pitch_filter.filter(event.pitch, event.timestamp),
            roll=roll_filter.filter(event.roll, event.timestamp),
            rotation=rotation_filter.filter(event.rotation, event.timestamp),
            acc_x=event.acc_x,
            acc_y=event.acc_y,
            acc_z=event.acc_z,
            counter=event.counter,
            interpolated=event.interpolated,
        )

    def reset(self, headset_id: Optional[str] = None) -> None:
        with self._lock:
            if headset_id is None:
                self._filters.clear()
            else:
                self._filters.pop(headset_id, None)
        logger.debug("Motion smoothing reset for %s", headset_id or "all headsets")

    def attach(self, bus: EventBus) -> None:
        """Republish every raw motion event from ``bus`` in smoothed form."""
        self._bus = bus
        bus.subscribe(MotionEvent, self._on_motion)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(MotionEvent, self._on_motion)
        self._bus = None

    def _on_motion(self, event: MotionEvent) -> None:
        if isinstance(event, SmoothedMotionEvent) or self._bus is None:
            return
        smoothed = self.process(event)
        if smoothed is not None:
            self._bus.publish(smoothed)
