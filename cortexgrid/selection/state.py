"""Per-headset selection state.

A SelectionState is owned by exactly one headset and is only touched while
that headset's lock is held. SelectionSnapshot is the read-only view handed
to consumers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from cortexgrid.core.events import HoldPhase, TiltDirection


@dataclass
class SelectionState:
    """Mutable hold and navigation state for one headset.

    Attributes:
        focus_index: Grid cell currently focused.
        phase: Hold-to-confirm phase.
        locked_index: Cell locked by a completed hold, if any.
        hold_accumulated: Seconds of hold accumulated so far.
        pushing: Whether the latest command frame was a qualifying push.
        last_update: Timestamp the hold accumulator was last advanced to.
        tilt_counters: Sustained-frame counter per direction.
        baseline: ``(horizontal, vertical)`` angles treated as neutral.
    """

    focus_index: int = 0
    phase: HoldPhase = HoldPhase.IDLE
    locked_index: Optional[int] = None
    hold_accumulated: float = 0.0
    pushing: bool = False
    last_update: Optional[float] = None
    tilt_counters: Dict[TiltDirection, int] = field(
        default_factory=lambda: {d: 0 for d in TiltDirection}
    )
    baseline: Optional[tuple] = None

    def reset_hold(self) -> None:
        self.phase = HoldPhase.IDLE
        self.locked_index = None
        self.hold_accumulated = 0.0
        self.pushing = False
        self.last_update = None

    def reset_tilt(self) -> None:
        for direction in self.tilt_counters:
            self.tilt_counters[direction] = 0


@dataclass(frozen=True)
class SelectionSnapshot:
    """What a consumer may know about one headset's selection."""

    headset_id: str
    focus_index: int
    progress: float
    phase: HoldPhase
    locked_index: Optional[int] = None
    locked_item: Any = None

    @property
    def is_locked(self) -> bool:
        return self.phase == HoldPhase.LOCKED


__all__ = [
    "HoldPhase",
    "TiltDirection",
    "SelectionState",
    "SelectionSnapshot",
]
