"""Hold-to-confirm selection engine driven by mental commands and head tilt.

Each registered headset runs its own state machine:

    IDLE --qualifying push--> HOLDING --hold complete--> LOCKED
      ^                          |
      +---- hold fully decayed --+

While HOLDING, every qualifying ``push`` frame adds the elapsed time to the
hold accumulator. Any other frame does not cancel the hold: the accumulator
decays linearly at ``decay_rate`` until a qualifying push returns or it
reaches zero, which drops the headset back to IDLE. A brief signal dropout
therefore costs a little progress rather than the whole hold.

While IDLE, sustained head tilt moves the focus across a row-major grid.
Navigation is frozen while HOLDING, and LOCKED is left only through
``reset``.

Time comes from the event timestamps, so the engine behaves the same live
and in replays.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type

from cortexgrid.core.bus import EventBus
from cortexgrid.core.config import SelectionConfig
from cortexgrid.core.events import (
    AllSelectionsLockedEvent,
    FocusChangedEvent,
    HeadsetEvent,
    HoldPhase,
    HoldProgressEvent,
    MentalCommandEvent,
    MotionEvent,
    SelectionLockedEvent,
    TiltDirection,
)
from cortexgrid.selection.grid import GridNavigator
from cortexgrid.selection.state import SelectionSnapshot, SelectionState


logger = logging.getLogger(__name__)


PUSH_LABEL = "push"

# Opposite direction on the same axis, zeroed when its partner counts
_OPPOSITE = {
    TiltDirection.LEFT: TiltDirection.RIGHT,
    TiltDirection.RIGHT: TiltDirection.LEFT,
    TiltDirection.UP: TiltDirection.DOWN,
    TiltDirection.DOWN: TiltDirection.UP,
}


@dataclass
class _Device:
    state: SelectionState
    lock: threading.Lock = field(default_factory=threading.Lock)


class SelectionEngine:
    """Per-headset hold-to-confirm and grid navigation.

    Example:
        >>> engine = SelectionEngine(SelectionConfig(hold_duration=8.0))
        >>> engine.attach(bus)
        >>> engine.register("EPOCX-1")
        >>> bus.subscribe(SelectionLockedEvent, on_locked)

    Thread Safety:
        Each headset has its own lock and its own state; frames for one
        headset never wait on another. Outcome events are published after
        the headset lock is released.
    """

    def __init__(
        self,
        config: Optional[SelectionConfig] = None,
        bus: Optional[EventBus] = None,
        item_ids: Optional[Sequence[Any]] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: State machine tuning and grid shape.
            bus: Bus receiving outcome events. ``attach`` sets it too.
            item_ids: Optional id per grid cell, reported on lock instead of
                the bare index.
        """
        self._config = config or SelectionConfig()
        self._bus = bus
        self._motion_event: Type[MotionEvent] = MotionEvent
        self._grid = GridNavigator(self._config.cell_count, self._config.columns)
        self._item_ids: Optional[List[Any]] = None
        if item_ids is not None:
            self.set_items(item_ids)

        self._devices: Dict[str, _Device] = {}
        self._devices_lock = threading.Lock()

        self._locked: Dict[str, Any] = {}
        self._round_lock = threading.Lock()
        self._round_complete = False

    @property
    def config(self) -> SelectionConfig:
        return self._config

    @property
    def grid(self) -> GridNavigator:
        return self._grid

    @property
    def headsets(self) -> List[str]:
        """Ids of the registered headsets."""
        with self._devices_lock:
            return list(self._devices)

    def set_items(self, item_ids: Sequence[Any]) -> None:
        """Name the grid cells.

        Raises:
            ValueError: If the count does not match the grid.
        """
        item_ids = list(item_ids)
        if len(item_ids) != self._grid.cell_count:
            raise ValueError(
                f"Expected {self._grid.cell_count} item ids, got {len(item_ids)}"
            )
        self._item_ids = item_ids

    def item_for(self, index: int) -> Any:
        if self._item_ids is None:
            return index
        return self._item_ids[index]

    def attach(self, bus: EventBus, motion_event: Type[MotionEvent] = MotionEvent) -> None:
        """Consume command and motion events from ``bus`` and publish there.

        Args:
            bus: Bus to subscribe to and publish outcomes on.
            motion_event: Motion event class to navigate with. Pass
                SmoothedMotionEvent to follow a MotionSmoother instead of
                the raw stream.
        """
        self._bus = bus
        self._motion_event = motion_event
        bus.subscribe(MentalCommandEvent, self.handle_command)
        bus.subscribe(motion_event, self.handle_motion)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(MentalCommandEvent, self.handle_command)
        bus.unsubscribe(self._motion_event, self.handle_motion)

    # -------------------------------------------------------------------------
    # Device Registration
    # -------------------------------------------------------------------------

    def register(self, headset_id: str) -> None:
        """Start tracking a headset. Registering twice keeps its state."""
        with self._devices_lock:
            if headset_id in self._devices:
                return
            self._devices[headset_id] = _Device(SelectionState())
        with self._round_lock:
            self._round_complete = False
        logger.info("Selection engine tracking headset %s", headset_id)

    def unregister(self, headset_id: str) -> None:
        with self._devices_lock:
            removed = self._devices.pop(headset_id, None)
        with self._round_lock:
            self._locked.pop(headset_id, None)
        if removed is not None:
            logger.info("Selection engine no longer tracking headset %s", headset_id)

    def clear(self) -> None:
        """Forget every headset."""
        with self._devices_lock:
            self._devices.clear()
        with self._round_lock:
            self._locked.clear()
            self._round_complete = False

    def _device(self, headset_id: str) -> Optional[_Device]:
        with self._devices_lock:
            return self._devices.get(headset_id)

    # -------------------------------------------------------------------------
    # Consumer View
    # -------------------------------------------------------------------------

    def _progress(self, state: SelectionState) -> float:
        if state.phase == HoldPhase.LOCKED:
            return 1.0
        return max(0.0, min(1.0, state.hold_accumulated / self._config.hold_duration))

    def _snapshot(self, headset_id: str, state: SelectionState) -> SelectionSnapshot:
        return SelectionSnapshot(
            headset_id=headset_id,
            focus_index=state.focus_index,
            progress=self._progress(state),
            phase=state.phase,
            locked_index=state.locked_index,
            locked_item=(
                self.item_for(state.locked_index) if state.locked_index is not None else None
            ),
        )

    def snapshot(self, headset_id: str) -> SelectionSnapshot:
        """Current focus, progress and lock of one headset.

        Raises:
            KeyError: If the headset is not registered.
        """
        device = self._device(headset_id)
        if device is None:
            raise KeyError(headset_id)
        with device.lock:
            return self._snapshot(headset_id, device.state)

    def snapshots(self) -> Dict[str, SelectionSnapshot]:
        return {h: self.snapshot(h) for h in self.headsets}

    # -------------------------------------------------------------------------
    # Hold-to-confirm
    # -------------------------------------------------------------------------

    def _advance_hold(self, headset_id: str, state: SelectionState, now: float) -> List[HeadsetEvent]:
        """Bring the hold accumulator forward to ``now``."""
        last = state.last_update if state.last_update is not None else now
        state.last_update = now
        if state.phase != HoldPhase.HOLDING:
            return []

        elapsed = max(0.0, now - last)
        if state.pushing:
            state.hold_accumulated += elapsed
            if state.hold_accumulated >= self._config.hold_duration:
                return self._lock_selection(headset_id, state, now)
        else:
            state.hold_accumulated -= elapsed * self._config.decay_rate
            if state.hold_accumulated <= 0.0:
                state.hold_accumulated = 0.0
                state.pushing = False
                state.phase = HoldPhase.IDLE
                logger.debug("Headset %s hold decayed back to idle", headset_id)
        return []

    def _lock_selection(self, headset_id: str, state: SelectionState, now: float) -> List[HeadsetEvent]:
        state.phase = HoldPhase.LOCKED
        state.locked_index = state.focus_index
        state.hold_accumulated = self._config.hold_duration
        state.pushing = False
        state.reset_tilt()

        item_id = self.item_for(state.locked_index)
        logger.info("Headset %s locked cell %d (%s)", headset_id, state.locked_index, item_id)
        return [SelectionLockedEvent(
            timestamp=now,
            headset_id=headset_id,
            index=state.locked_index,
            item_id=item_id,
        )]

    def _progress_event(self, headset_id: str, state: SelectionState, now: float) -> HoldProgressEvent:
        return HoldProgressEvent(
            timestamp=now,
            headset_id=headset_id,
            progress=self._progress(state),
            phase=state.phase,
            focus_index=state.focus_index,
        )

    def _is_qualifying(self, event: MentalCommandEvent) -> bool:
        return event.label == PUSH_LABEL and event.power >= self._config.push_threshold

    def handle_command(self, event: MentalCommandEvent) -> None:
        """Feed one mental command frame to its headset's hold machine."""
        device = self._device(event.headset_id)
        if device is None:
            logger.debug("Ignoring command for untracked headset %s", event.headset_id)
            return

        with device.lock:
            state = device.state
            if state.phase == HoldPhase.LOCKED:
                return

            was_active = state.phase != HoldPhase.IDLE
            outcomes = self._advance_hold(event.headset_id, state, event.timestamp)

            if state.phase != HoldPhase.LOCKED:
                qualifying = self._is_qualifying(event)
                if state.phase == HoldPhase.IDLE and qualifying:
                    state.phase = HoldPhase.HOLDING
                    state.hold_accumulated = 0.0
                    state.reset_tilt()
                    logger.debug("Headset %s started holding cell %d", event.headset_id, state.focus_index)
                if state.phase == HoldPhase.HOLDING:
                    state.pushing = qualifying

            if was_active or state.phase != HoldPhase.IDLE:
                outcomes.insert(0, self._progress_event(event.headset_id, state, event.timestamp))

        self._emit(outcomes)

    def advance(self, headset_id: str, now: float) -> Optional[SelectionSnapshot]:
        """Let time pass for a headset without a new command frame.

        Decay keeps running while the command stream is silent; callers with
        a UI tick use this to keep progress current.

        Returns:
            The updated snapshot, or None if the headset is not tracked.
        """
        device = self._device(headset_id)
        if device is None:
            return None

        with device.lock:
            state = device.state
            was_holding = state.phase == HoldPhase.HOLDING
            outcomes = self._advance_hold(headset_id, state, now)
            if was_holding:
                outcomes.insert(0, self._progress_event(headset_id, state, now))
            snapshot = self._snapshot(headset_id, state)

        self._emit(outcomes)
        return snapshot

    # -------------------------------------------------------------------------
    # Tilt Navigation
    # -------------------------------------------------------------------------

    def _axes(self, event: MotionEvent) -> tuple:
        horizontal = event.roll if self._config.horizontal_axis == "roll" else event.rotation
        return horizontal, event.pitch

    def calibrate(self, headset_id: str, event: Optional[MotionEvent] = None) -> None:
        """Take a pose as the neutral position.

        Without ``event`` the next motion frame becomes the baseline.
        """
        device = self._device(headset_id)
        if device is None:
            return
        with device.lock:
            device.state.baseline = self._axes(event) if event is not None else None
            device.state.reset_tilt()

    def _count_axis(
        self,
        counters: Dict[TiltDirection, int],
        value: float,
        positive: TiltDirection,
        negative: TiltDirection,
    ) -> None:
        threshold = self._config.tilt_threshold
        if value > threshold:
            tilted = positive
        elif value < -threshold:
            tilted = negative
        else:
            counters[positive] = 0
            counters[negative] = 0
            return
        counters[tilted] += 1
        counters[_OPPOSITE[tilted]] = 0

    def handle_motion(self, event: MotionEvent) -> None:
        """Feed one motion frame to its headset's tilt counters."""
        device = self._device(event.headset_id)
        if device is None:
            return

        outcomes: List[HeadsetEvent] = []
        with device.lock:
            state = device.state
            if state.phase != HoldPhase.IDLE:
                return

            raw_horizontal, raw_vertical = self._axes(event)
            if state.baseline is None:
                state.baseline = (raw_horizontal, raw_vertical)
                logger.debug("Headset %s neutral pose captured: %s", event.headset_id, state.baseline)
                return

            horizontal = raw_horizontal - state.baseline[0]
            vertical = raw_vertical - state.baseline[1]
            if self._config.invert_horizontal:
                horizontal = -horizontal
            if self._config.invert_vertical:
                vertical = -vertical

            counters = state.tilt_counters
            self._count_axis(counters, horizontal, TiltDirection.RIGHT, TiltDirection.LEFT)
            self._count_axis(counters, vertical, TiltDirection.UP, TiltDirection.DOWN)

            for direction in TiltDirection:
                if counters[direction] < self._config.frames_to_trigger:
                    continue
                counters[direction] = 0
                previous = state.focus_index
                state.focus_index = self._grid.move(previous, direction)
                logger.debug(
                    "Headset %s focus %d -> %d (%s)",
                    event.headset_id, previous, state.focus_index, direction.value,
                )
                outcomes.append(FocusChangedEvent(
                    timestamp=event.timestamp,
                    headset_id=event.headset_id,
                    previous_index=previous,
                    focus_index=state.focus_index,
                    direction=direction,
                ))

        self._emit(outcomes)

    # -------------------------------------------------------------------------
    # Rounds
    # -------------------------------------------------------------------------

    def reset(self, headset_id: str, focus_index: Optional[int] = None) -> None:
        """Re-arm a headset for a new round.

        Args:
            headset_id: Headset to re-arm.
            focus_index: Optional cell to focus; the focus stays put if
                omitted.
        """
        if focus_index is not None and not 0 <= focus_index < self._grid.cell_count:
            raise IndexError(f"Cell {focus_index} is outside the grid")

        device = self._device(headset_id)
        if device is None:
            return

        with device.lock:
            state = device.state
            now = state.last_update if state.last_update is not None else 0.0
            state.reset_hold()
            state.reset_tilt()
            if focus_index is not None:
                state.focus_index = focus_index
            event = self._progress_event(headset_id, state, now)

        with self._round_lock:
            self._locked.pop(headset_id, None)
            self._round_complete = False

        logger.info("Headset %s selection reset", headset_id)
        self._emit([event])

    def reset_all(self) -> None:
        for headset_id in self.headsets:
            self.reset(headset_id)

    def _emit(self, outcomes: List[HeadsetEvent]) -> None:
        for outcome in outcomes:
            if self._bus is not None:
                self._bus.publish(outcome)
            if isinstance(outcome, SelectionLockedEvent):
                self._record_lock(outcome)

    def _record_lock(self, event: SelectionLockedEvent) -> None:
        with self._round_lock:
            self._locked[event.headset_id] = event.item_id
            expected = set(self.headsets)
            if self._round_complete or not expected or not expected.issubset(self._locked):
                return
            self._round_complete = True
            selections = {h: self._locked[h] for h in expected}

        logger.info("All headsets locked: %s", selections)
        if self._bus is not None:
            self._bus.publish(AllSelectionsLockedEvent(
                timestamp=event.timestamp,
                headset_id=event.headset_id,
                selections=selections,
            ))
