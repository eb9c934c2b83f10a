"""Stream demultiplexer for Cortex push frames.

Responses are matched by the transport before anything reaches this
module, so every message handled here is a push frame. Each frame is
classified by its top-level key, tied to a headset through the session
registry, decoded, and published on the event bus as a typed event.

Classification priority (exactly one handler per frame):

    com -> mot -> met -> sys -> warning -> error

A malformed frame, a frame for an unknown session, or a metrics frame that
arrives before its schema is logged and dropped. Nothing raised while
handling one frame escapes to the delivery path, so a bad frame for one
headset never holds up frames for another.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from cortexgrid.core.bus import EventBus
from cortexgrid.core.events import (
    CortexStream,
    CortexWarningEvent,
    MentalCommand,
    MentalCommandEvent,
    MotionEvent,
    SystemEvent,
)
from cortexgrid.core.exceptions import SchemaNotReadyError, UnresolvedSessionError
from cortexgrid.cortex.metrics import MetricsColumnMapper
from cortexgrid.cortex.motion import decode_motion
from cortexgrid.cortex.registry import UNKNOWN_HEADSET, SessionRegistry


logger = logging.getLogger(__name__)


class StreamDemultiplexer:
    """Routes push frames to typed, per-headset events.

    Example:
        >>> demux = StreamDemultiplexer(registry, MetricsColumnMapper(), bus)
        >>> transport = CortexTransport(on_push=demux.handle)
    """

    def __init__(
        self,
        registry: SessionRegistry,
        metrics_mapper: MetricsColumnMapper,
        bus: EventBus,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Initialize the demultiplexer.

        Args:
            registry: Session registry used to resolve ``sid`` to a headset.
            metrics_mapper: Holds the ``met`` column schema.
            bus: Event bus receiving the decoded events.
            clock: Fallback timestamp source for frames without ``time``.
        """
        self._registry = registry
        self._metrics = metrics_mapper
        self._bus = bus
        self._clock = clock or time.time

        self._handlers = (
            (CortexStream.COM.value, self._handle_command),
            (CortexStream.MOT.value, self._handle_motion),
            (CortexStream.MET.value, self._handle_metrics),
            (CortexStream.SYS.value, self._handle_system),
            ("warning", self._handle_warning),
            ("error", self._handle_error),
        )

        self._stats_lock = threading.Lock()
        self._stats: Dict[str, int] = {key: 0 for key, _ in self._handlers}
        self._stats.update(dropped=0, ignored=0)

    @property
    def statistics(self) -> Dict[str, int]:
        """Frames handled per stream, plus dropped and ignored counts."""
        with self._stats_lock:
            return dict(self._stats)

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    def handle(self, message: Dict[str, Any]) -> None:
        """Classify and dispatch one push frame."""
        for key, handler in self._handlers:
            if key not in message:
                continue
            try:
                handled = handler(message)
            except (ValueError, TypeError, KeyError, IndexError) as e:
                logger.warning("Dropping malformed %r frame: %s (%s)", key, e, message)
                handled = False
            self._count(key if handled else "dropped")
            return

        logger.debug("Unhandled message: %s", message)
        self._count("ignored")

    def _timestamp(self, message: Dict[str, Any]) -> float:
        value = message.get("time")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        return self._clock()

    def _resolve(self, message: Dict[str, Any], stream: str) -> Optional[str]:
        """Return the owning headset, or None (after logging) if unknown."""
        session_id = message.get("sid")
        headset_id = self._registry.resolve_headset(session_id)
        if headset_id == UNKNOWN_HEADSET:
            error = UnresolvedSessionError(session_id)
            logger.warning("Dropping %r frame: %s", stream, error)
            return None
        return headset_id

    # -------------------------------------------------------------------------
    # Stream Handlers
    # -------------------------------------------------------------------------

    def _handle_command(self, message: Dict[str, Any]) -> bool:
        """Handle a ``com`` frame: ``[label, power]``."""
        com_data = message["com"]
        if not isinstance(com_data, list) or len(com_data) < 2:
            raise ValueError(f"Invalid mental command data: {com_data!r}")

        label, power = com_data[0], com_data[1]
        if not isinstance(label, str) or isinstance(power, bool) or not isinstance(power, (int, float)):
            raise TypeError(f"Invalid mental command types: label={label!r}, power={power!r}")

        headset_id = self._resolve(message, "com")
        if headset_id is None:
            return False

        try:
            command: Optional[MentalCommand] = MentalCommand.from_string(label)
        except ValueError:
            logger.debug("Unknown mental command label: %s", label)
            command = None

        event = MentalCommandEvent(
            timestamp=self._timestamp(message),
            headset_id=headset_id,
            label=label,
            power=max(0.0, min(1.0, float(power))),
            command=command,
        )
        logger.debug("Mental command from %s: %s (%.2f)", headset_id, label, event.power)
        self._bus.publish(event)
        return True

    def _handle_motion(self, message: Dict[str, Any]) -> bool:
        """Handle a ``mot`` frame: fixed-order 12-field sample."""
        sample = decode_motion(message["mot"])

        headset_id = self._resolve(message, "mot")
        if headset_id is None:
            return False

        self._bus.publish(MotionEvent(
            timestamp=self._timestamp(message),
            headset_id=headset_id,
            pitch=sample.pitch,
            roll=sample.roll,
            rotation=sample.rotation,
            acc_x=sample.acc_x,
            acc_y=sample.acc_y,
            acc_z=sample.acc_z,
            counter=sample.counter,
            interpolated=sample.interpolated,
        ))
        return True

    def _handle_metrics(self, message: Dict[str, Any]) -> bool:
        """Handle a ``met`` frame, interpreted through the captured schema."""
        met_data = message["met"]
        if not isinstance(met_data, list):
            raise ValueError(f"Invalid performance metrics data: {met_data!r}")

        headset_id = self._resolve(message, "met")
        if headset_id is None:
            return False

        try:
            event = self._metrics.to_event(met_data, headset_id, self._timestamp(message))
        except SchemaNotReadyError:
            # Expected only in the first instant after subscribing
            logger.debug("Dropping metrics frame for %s: no schema yet", headset_id)
            return False

        logger.debug("Performance metrics from %s: %s", headset_id, event)
        self._bus.publish(event)
        return True

    def _handle_system(self, message: Dict[str, Any]) -> bool:
        """Handle a ``sys`` frame: ``[eventType, eventName, *args]``."""
        sys_data = message["sys"]
        if not isinstance(sys_data, list) or not sys_data:
            raise ValueError(f"Invalid system event data: {sys_data!r}")

        headset_id = self._resolve(message, "sys")
        if headset_id is None:
            return False

        event = SystemEvent(
            timestamp=self._timestamp(message),
            headset_id=headset_id,
            event_type=str(sys_data[0]),
            event_name=str(sys_data[1]) if len(sys_data) > 1 else "",
            args=tuple(sys_data[2:]),
        )
        logger.debug("System event from %s: %s %s", headset_id, event.event_type, event.event_name)
        self._bus.publish(event)
        return True

    def _handle_warning(self, message: Dict[str, Any]) -> bool:
        """Handle an unsolicited ``warning`` from the service."""
        warning = message["warning"]
        if not isinstance(warning, dict):
            warning = {"message": warning}

        detail = warning.get("message")
        data: Dict[str, Any] = detail if isinstance(detail, dict) else {}
        text = str(detail) if not isinstance(detail, dict) else str(detail.get("behavior", detail))

        headset_id = data.get("headsetId")
        if not headset_id:
            headset_id = self._registry.resolve_headset(data.get("sessionId") or message.get("sid"))

        logger.warning("Cortex warning [%s] for %s: %s", warning.get("code"), headset_id, text)
        self._bus.publish(CortexWarningEvent(
            timestamp=self._timestamp(message),
            headset_id=str(headset_id),
            code=warning.get("code"),
            message=text,
            data=data,
        ))
        return True

    def _handle_error(self, message: Dict[str, Any]) -> bool:
        """Log an ``error`` that matched no pending request."""
        error = message["error"]
        if isinstance(error, dict):
            logger.error("Cortex error [%s]: %s", error.get("code"), error.get("message"))
        else:
            logger.error("Cortex error: %s", error)
        return True
