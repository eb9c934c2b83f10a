"""Processors module for cortexgrid.

Processors transform headset events before the selection engine sees them.

Example:
    >>> from cortexgrid.processors import MotionSmoother
    >>> smoother = MotionSmoother(SmoothingConfig(enabled=True, beta=0.01))
    >>> smoother.attach(bus)  # republishes motion as SmoothedMotionEvent
"""

from cortexgrid.processors.base import Processor
from cortexgrid.processors.smoothing import MotionSmoother, OneEuroFilter

__all__ = [
    "Processor",
    "MotionSmoother",
    "OneEuroFilter",
]
