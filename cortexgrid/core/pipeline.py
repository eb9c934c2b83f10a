"""Headset pipeline - application root wiring every component together.

Architecture:
    Cortex socket -> MultiHeadsetClient -> StreamDemultiplexer -> EventBus
    EventBus -> [MotionSmoother] -> SelectionEngine -> EventBus
    EventBus (status and outcomes) -> [Publishers]

The pipeline owns the event bus, the session registry, the headset color
registry, the client, the optional smoother and the selection engine, and
hands each of them to whatever needs it. Nothing is shared through module
state.

Thread Safety:
    Lifecycle transitions are guarded by a lock, but the lock is never held
    across a network call. Events flow on the client's socket thread and
    fan out to an immutable publisher snapshot without taking the lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from cortexgrid.core.bus import EventBus
from cortexgrid.core.colors import HeadsetColorRegistry
from cortexgrid.core.config import Config
from cortexgrid.core.events import (
    AllSelectionsLockedEvent,
    CortexWarningEvent,
    FocusChangedEvent,
    HeadsetEvent,
    HeadsetStatus,
    HeadsetStatusEvent,
    HoldProgressEvent,
    SelectionLockedEvent,
    SmoothedMotionEvent,
    MotionEvent,
)
from cortexgrid.core.exceptions import CortexGridError
from cortexgrid.cortex.client import MultiHeadsetClient
from cortexgrid.processors.smoothing import MotionSmoother
from cortexgrid.publishers.base import Publisher
from cortexgrid.selection.engine import SelectionEngine


logger = logging.getLogger(__name__)


# Events fanned out to publishers
PUBLISHED_EVENTS = (
    HeadsetStatusEvent,
    CortexWarningEvent,
    FocusChangedEvent,
    HoldProgressEvent,
    SelectionLockedEvent,
    AllSelectionsLockedEvent,
)


class HeadsetPipeline:
    """Runs a multi-headset selection session from connect to teardown.

    Startup sequence:
        1. Start all publishers
        2. Subscribe engine, smoother and publishers to the bus
        3. Connect and authorize the client
        4. Bring up every headset; one failing does not stop the others

    Shutdown sequence:
        1. Disconnect the client (every session closes)
        2. Clear engine, smoother and color state
        3. Stop all publishers

    Example:
        >>> config = Config.from_yaml("cortexgrid.yaml")
        >>> with HeadsetPipeline(config, publishers=[ConsolePublisher()]) as pipeline:
        ...     print(pipeline.ready_headsets)
        ...     wait_for_round_to_finish()
    """

    def __init__(
        self,
        config: Config,
        client: Optional[MultiHeadsetClient] = None,
        bus: Optional[EventBus] = None,
        engine: Optional[SelectionEngine] = None,
        publishers: Iterable[Publisher] = (),
        item_ids: Optional[Sequence[Any]] = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Complete configuration.
            client: Cortex client; built from ``config.cortex`` if omitted.
            bus: Event bus; the client's bus must be the same one.
            engine: Selection engine; built from ``config.selection`` if
                omitted.
            publishers: Outcome sinks.
            item_ids: Optional id per grid cell, used by a built engine.
        """
        self._config = config
        self._bus = bus if bus is not None else EventBus()
        self._colors = HeadsetColorRegistry()
        self._client = client if client is not None else MultiHeadsetClient(config.cortex, self._bus)
        self._engine = engine if engine is not None else SelectionEngine(
            config.selection, item_ids=item_ids
        )
        self._smoother = MotionSmoother(config.smoothing) if config.smoothing.enabled else None
        self._publishers: Tuple[Publisher, ...] = tuple(publishers)

        self._lock = threading.Lock()
        self._running = False
        self._transitioning = False
        self._ready_headsets: List[str] = []

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def client(self) -> MultiHeadsetClient:
        return self._client

    @property
    def engine(self) -> SelectionEngine:
        return self._engine

    @property
    def colors(self) -> HeadsetColorRegistry:
        return self._colors

    @property
    def smoother(self) -> Optional[MotionSmoother]:
        return self._smoother

    @property
    def publishers(self) -> List[Publisher]:
        return list(self._publishers)

    @property
    def ready_headsets(self) -> List[str]:
        """Headsets brought up successfully and still connected."""
        with self._lock:
            return list(self._ready_headsets)

    @property
    def statistics(self) -> Dict[str, int]:
        """Frame counters of the stream demultiplexer."""
        return self._client.demultiplexer.statistics

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> List[str]:
        """Start publishers, connect, and bring up every headset.

        Returns:
            Ids of the headsets that came up.

        Raises:
            CortexGridError: If the client cannot connect or authorize.
            Exception: If a publisher fails to start.
        """
        with self._lock:
            if self._running or self._transitioning:
                logger.warning("Pipeline already running, ignoring start() call")
                return list(self._ready_headsets)
            self._transitioning = True

        try:
            logger.info("Starting headset pipeline...")
            self._start_publishers()
            self._wire()

            try:
                self._client.initialize()
            except CortexGridError:
                logger.error("Failed to connect to Cortex, rolling back")
                self._unwire()
                self._stop_publishers()
                raise

            with self._lock:
                self._running = True

            for headset_id in self._headsets_to_start():
                self.add_headset(headset_id)
        finally:
            with self._lock:
                self._transitioning = False

        ready = self.ready_headsets
        if not ready:
            logger.warning("No headset came up; waiting with an empty grid")
        logger.info("Headset pipeline started with %s", ready)
        return ready

    def _headsets_to_start(self) -> List[str]:
        if self._config.headsets:
            return list(self._config.headsets)
        try:
            return [h.id for h in self._client.query_headsets()]
        except CortexGridError as e:
            logger.error("Could not list headsets: %s", e)
            return []

    def add_headset(self, headset_id: str) -> bool:
        """Bring up one headset and start tracking its selection.

        Returns:
            Whether the headset came up. Failures are logged, not raised.
        """
        self._engine.register(headset_id)
        try:
            self._client.initialize_headset(headset_id)
        except CortexGridError as e:
            logger.error("Headset %s failed to start: %s", headset_id, e)
            self._engine.unregister(headset_id)
            return False

        color = self._colors.color_for(headset_id)
        with self._lock:
            if headset_id not in self._ready_headsets:
                self._ready_headsets.append(headset_id)
        logger.info("Headset %s ready (color %s)", headset_id, color)
        return True

    def remove_headset(self, headset_id: str) -> None:
        """Tear down one headset; the others keep running."""
        self._client.disconnect_headset(headset_id)
        self._forget(headset_id)

    def reset_round(self) -> None:
        """Re-arm every headset for a new selection round."""
        self._engine.reset_all()

    def stop(self) -> None:
        """Disconnect, clear all selection state, and stop publishers.

        Idempotent. Errors while stopping are logged so that every component
        still gets stopped.
        """
        with self._lock:
            if not self._running or self._transitioning:
                logger.debug("Pipeline not running, ignoring stop() call")
                return
            self._transitioning = True

        try:
            logger.info("Stopping headset pipeline...")

            # Joins the socket thread; must run without the lock
            try:
                self._client.disconnect()
            except CortexGridError as e:
                logger.warning("Error disconnecting client: %s", e)

            self._unwire()
            self._engine.clear()
            if self._smoother is not None:
                self._smoother.reset()
            self._colors.reset()
            self._stop_publishers()
        finally:
            with self._lock:
                self._ready_headsets.clear()
                self._running = False
                self._transitioning = False

        logger.info("Headset pipeline stopped. Frames: %s", self.statistics)

    def __enter__(self) -> HeadsetPipeline:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    def _wire(self) -> None:
        if self._smoother is not None:
            self._smoother.attach(self._bus)
            self._engine.attach(self._bus, motion_event=SmoothedMotionEvent)
        else:
            self._engine.attach(self._bus, motion_event=MotionEvent)
        self._bus.subscribe(HeadsetStatusEvent, self._on_status)
        for event_type in PUBLISHED_EVENTS:
            self._bus.subscribe(event_type, self._on_outcome)

    def _unwire(self) -> None:
        for event_type in PUBLISHED_EVENTS:
            self._bus.unsubscribe(event_type, self._on_outcome)
        self._bus.unsubscribe(HeadsetStatusEvent, self._on_status)
        self._engine.detach(self._bus)
        if self._smoother is not None:
            self._smoother.detach(self._bus)

    def _forget(self, headset_id: str) -> None:
        self._engine.unregister(headset_id)
        if self._smoother is not None:
            self._smoother.reset(headset_id)
        with self._lock:
            if headset_id in self._ready_headsets:
                self._ready_headsets.remove(headset_id)

    def _on_status(self, event: HeadsetStatusEvent) -> None:
        if event.status == HeadsetStatus.DISCONNECTED:
            self._forget(event.headset_id)

    def _on_outcome(self, event: HeadsetEvent) -> None:
        """Fan an event out to every ready publisher."""
        for publisher in self.publishers:
            if not publisher.is_ready:
                logger.debug("Skipping publisher %s (not ready)", type(publisher).__name__)
                continue
            try:
                publisher.publish(event)
            except Exception as e:
                logger.error(
                    "Publisher %s raised exception: %s",
                    type(publisher).__name__,
                    e,
                    exc_info=True,
                )

    def _start_publishers(self) -> None:
        started: List[Publisher] = []
        try:
            for publisher in self._publishers:
                logger.debug("Starting publisher: %s", type(publisher).__name__)
                publisher.start()
                started.append(publisher)
        except Exception as e:
            logger.error("Failed to start publisher: %s", e)
            for publisher in started:
                try:
                    publisher.stop()
                except Exception as stop_error:
                    logger.warning("Error stopping publisher during rollback: %s", stop_error)
            raise

    def _stop_publishers(self) -> None:
        for publisher in self._publishers:
            try:
                logger.debug("Stopping publisher: %s", type(publisher).__name__)
                publisher.stop()
            except Exception as e:
                logger.warning("Error stopping publisher %s: %s", type(publisher).__name__, e)
