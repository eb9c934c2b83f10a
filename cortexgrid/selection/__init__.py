"""Selection module for cortexgrid.

Hold-to-confirm selection with decay and tilt-driven grid navigation, one
independent state machine per headset.

Example:
    >>> from cortexgrid.selection import SelectionEngine
    >>> engine = SelectionEngine(SelectionConfig(rows=2, columns=4))
    >>> engine.attach(bus)
    >>> engine.register("EPOCX-1")
"""

from cortexgrid.selection.grid import GridNavigator
from cortexgrid.selection.state import HoldPhase, SelectionSnapshot, SelectionState, TiltDirection
from cortexgrid.selection.engine import SelectionEngine

__all__ = [
    "GridNavigator",
    "HoldPhase",
    "SelectionEngine",
    "SelectionSnapshot",
    "SelectionState",
    "TiltDirection",
]
