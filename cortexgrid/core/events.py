"""Event data classes for cortexgrid.

This module defines the typed events that cross module seams: the decoded
push frames coming out of the stream demultiplexer (mental commands, head
motion, performance metrics, system/training events) and the outcomes the
selection engine emits for the UI layer (focus moves, hold progress, locked
selections).
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional, Tuple


class MentalCommand(Enum):
    """Mental commands reported by the Cortex ``com`` stream.

    Values are the labels used on the wire.
    """

    NEUTRAL = "neutral"
    PUSH = "push"
    PULL = "pull"
    LIFT = "lift"
    DROP = "drop"
    LEFT = "left"
    RIGHT = "right"
    ROTATE_LEFT = "rotateLeft"
    ROTATE_RIGHT = "rotateRight"
    DISAPPEAR = "disappear"

    @classmethod
    def from_string(cls, command_name: str) -> "MentalCommand":
        """Convert a wire label or enum name to a MentalCommand.

        Args:
            command_name: Wire label (``"rotateLeft"``) or case-insensitive
                enum name (``"ROTATE_LEFT"``, ``"rotate-left"``).

        Returns:
            The corresponding MentalCommand.

        Raises:
            ValueError: If the command name is not recognized.
        """
        try:
            return cls(command_name)
        except ValueError:
            pass

        normalized = command_name.upper().replace("-", "_").replace(" ", "_")
        try:
            return cls[normalized]
        except KeyError:
            valid_commands = ", ".join(cmd.value for cmd in cls)
            raise ValueError(
                f"Unknown mental command: '{command_name}'. "
                f"Valid commands are: {valid_commands}"
            )


class CortexStream(Enum):
    """Cortex data streams understood by the demultiplexer."""

    COM = "com"  # Mental commands
    MOT = "mot"  # Motion sensors
    MET = "met"  # Performance metrics
    SYS = "sys"  # System and training events

    @classmethod
    def from_string(cls, stream_name: str) -> "CortexStream":
        """Convert a stream name to CortexStream.

        Raises:
            ValueError: If the stream name is not recognized.
        """
        try:
            return cls(stream_name.lower())
        except ValueError:
            valid_streams = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Unknown stream: '{stream_name}'. "
                f"Valid streams are: {valid_streams}"
            )


class HeadsetStatus(Enum):
    """Coarse lifecycle status of a headset and its session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    ERROR = "error"


class HoldPhase(Enum):
    """Phases of the per-headset hold-to-confirm state machine."""

    IDLE = auto()
    HOLDING = auto()
    LOCKED = auto()


class TiltDirection(Enum):
    """Discrete grid navigation directions driven by head tilt."""

    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class HeadsetEvent:
    """Base class for every per-headset event.

    Attributes:
        timestamp: Seconds, as reported by the Cortex service (``time``)
            or ``time.time()`` for locally generated events.
        headset_id: Identifier of the headset the event belongs to.
    """

    timestamp: float
    headset_id: str


@dataclass(frozen=True)
class MentalCommandEvent(HeadsetEvent):
    """A classified mental command from the ``com`` stream.

    Attributes:
        label: Raw command label as sent by the service.
        power: Confidence of the command, 0.0 to 1.0.
        command: Parsed command, or None for labels this library
            does not know.
    """

    label: str
    power: float
    command: Optional[MentalCommand] = None

    def __post_init__(self) -> None:
        """Validate the power value is within acceptable range."""
        if not 0.0 <= self.power <= 1.0:
            raise ValueError(f"Power must be between 0.0 and 1.0, got {self.power}")


@dataclass(frozen=True)
class MotionEvent(HeadsetEvent):
    """Head orientation and acceleration decoded from the ``mot`` stream.

    Angles are in degrees. Rotation is the yaw angle.
    """

    pitch: float
    roll: float
    rotation: float
    acc_x: float = 0.0
    acc_y: float = 0.0
    acc_z: float = 0.0
    counter: Optional[int] = None
    interpolated: bool = False


@dataclass(frozen=True)
class SmoothedMotionEvent(MotionEvent):
    """MotionEvent whose angles went through the motion smoother."""


@dataclass(frozen=True)
class PerformanceMetricsEvent(HeadsetEvent):
    """Performance metrics decoded from the ``met`` stream.

    Each value lies in 0.0 to 1.0, or is 0.0 when the service flagged the
    metric as inactive for that sample.
    """

    excitement: float = 0.0
    engagement: float = 0.0
    stress: float = 0.0
    relaxation: float = 0.0
    interest: float = 0.0
    focus: float = 0.0


@dataclass(frozen=True)
class SystemEvent(HeadsetEvent):
    """System or training event from the ``sys`` stream.

    Attributes:
        event_type: First element of the frame (e.g. ``"mentalCommand"``).
        event_name: Second element (e.g. ``"MC_Succeeded"``).
        args: Remaining elements, untouched.
    """

    event_type: str
    event_name: str = ""
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class CortexWarningEvent(HeadsetEvent):
    """Warning pushed by the Cortex service outside any request."""

    code: Optional[int] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HeadsetStatusEvent(HeadsetEvent):
    """A headset moved to a new lifecycle status."""

    status: HeadsetStatus
    message: Optional[str] = None


@dataclass(frozen=True)
class FocusChangedEvent(HeadsetEvent):
    """Tilt navigation moved a headset's focus to another grid cell."""

    previous_index: int
    focus_index: int
    direction: TiltDirection


@dataclass(frozen=True)
class HoldProgressEvent(HeadsetEvent):
    """Hold-to-confirm progress changed.

    Attributes:
        progress: Fraction of the configured hold duration, 0.0 to 1.0.
        phase: Phase after the update.
        focus_index: Grid cell the hold applies to.
    """

    progress: float
    phase: HoldPhase
    focus_index: int


@dataclass(frozen=True)
class SelectionLockedEvent(HeadsetEvent):
    """A headset completed a hold and locked its focused cell."""

    index: int
    item_id: Any


@dataclass(frozen=True)
class AllSelectionsLockedEvent(HeadsetEvent):
    """Every registered headset has locked a selection.

    ``headset_id`` is the headset whose lock completed the round.
    """

    selections: Dict[str, Any] = field(default_factory=dict)
