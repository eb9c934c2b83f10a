"""Multi-headset client for the Emotiv Cortex API.

One MultiHeadsetClient authenticates once over a single transport and then
opens an independent session per headset:

1. Connect to the WebSocket
2. ``getCortexInfo`` and ``requestAccess`` (the user approves the app in
   the Emotiv Launcher the first time)
3. ``authorize`` with the client credentials
4. Per headset: ``queryHeadsets``, ``controlDevice`` if it is not yet
   connected, ``createSession``, optional ``setupProfile``, ``subscribe``

Push frames from every session arrive on the same socket and are routed by
the StreamDemultiplexer onto the event bus. Headset lifecycle changes are
published as HeadsetStatusEvent.
"""

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Sequence

from cortexgrid.core.bus import EventBus
from cortexgrid.core.config import CortexConfig
from cortexgrid.core.events import HeadsetStatus, HeadsetStatusEvent
from cortexgrid.core.exceptions import (
    AuthenticationError,
    ConnectionLost,
    CortexGridError,
    DeviceNotFoundError,
    RequestError,
    SessionError,
    TransportError,
)
from cortexgrid.cortex.demux import StreamDemultiplexer
from cortexgrid.cortex.metrics import MetricsColumnMapper
from cortexgrid.cortex.registry import HeadsetSession, SessionRegistry
from cortexgrid.cortex.transport import CortexTransport


logger = logging.getLogger(__name__)


class ClientState(Enum):
    """States of the client-wide connection."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    AUTHORIZING = auto()
    READY = auto()
    ERROR = auto()


@dataclass(frozen=True)
class HeadsetInfo:
    """A headset as reported by ``queryHeadsets``."""

    id: str
    status: str
    firmware: Optional[str] = None
    connected_by: Optional[str] = None
    dongle_serial: Optional[str] = None
    sensors: List[str] = field(default_factory=list)
    motion_sensors: List[str] = field(default_factory=list)

    @property
    def is_connected(self) -> bool:
        return self.status == "connected"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeadsetInfo":
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status", "unknown")),
            firmware=data.get("firmware"),
            connected_by=data.get("connectedBy"),
            dongle_serial=data.get("dongle"),
            sensors=list(data.get("sensors") or []),
            motion_sensors=list(data.get("motionSensors") or []),
        )


class MultiHeadsetClient:
    """Cortex client managing one session per headset over one socket.

    Example usage:
        >>> bus = EventBus()
        >>> bus.subscribe(MentalCommandEvent, lambda e: print(e.headset_id, e.label))
        >>> client = MultiHeadsetClient(CortexConfig.from_env(), bus)
        >>> client.initialize()
        >>> for headset in client.query_headsets():
        ...     client.initialize_headset(headset.id)
        >>> # ... events flow on the bus ...
        >>> client.disconnect()

    Every public method blocks until its response arrives, waiting at most
    ``config.request_timeout`` seconds per request.
    """

    def __init__(
        self,
        config: CortexConfig,
        bus: EventBus,
        registry: Optional[SessionRegistry] = None,
        metrics_mapper: Optional[MetricsColumnMapper] = None,
        transport: Optional[CortexTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection and credential settings.
            bus: Bus receiving decoded stream events and status changes.
            registry: Session registry; a new one is created if omitted.
            metrics_mapper: Metrics schema holder; created if omitted.
            transport: Transport to use; one for ``config.url`` is created
                if omitted.
            sleep: Used to wait for a headset to finish connecting.
        """
        self._config = config
        self._bus = bus
        self._registry = registry if registry is not None else SessionRegistry()
        self._metrics = metrics_mapper if metrics_mapper is not None else MetricsColumnMapper()
        self._demux = StreamDemultiplexer(self._registry, self._metrics, bus)
        self._transport = transport if transport is not None else CortexTransport(config.url)
        self._transport.on_push = self._demux.handle
        self._transport.on_close = self._on_transport_closed
        self._sleep = sleep

        self._lock = threading.Lock()
        self._state = ClientState.DISCONNECTED
        self._cortex_token: Optional[str] = None

    @property
    def state(self) -> ClientState:
        """Current state of the client-wide connection."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Whether the client is authorized and can open sessions."""
        return self._state == ClientState.READY

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def demultiplexer(self) -> StreamDemultiplexer:
        return self._demux

    @property
    def metrics_mapper(self) -> MetricsColumnMapper:
        return self._metrics

    @property
    def transport(self) -> CortexTransport:
        return self._transport

    def connected_sessions(self) -> Dict[str, HeadsetSession]:
        """Snapshot of every headset session."""
        return self._registry.sessions()

    # -------------------------------------------------------------------------
    # Request Plumbing
    # -------------------------------------------------------------------------

    def wait(self, future: Future, method: str = "request", headset_id: Optional[str] = None) -> Any:
        """Wait for a transport future with the configured request timeout.

        Raises:
            TransportError: If no response arrives in time.
        """
        try:
            return future.result(timeout=self._config.request_timeout)
        except FuturesTimeoutError as e:
            self._transport.discard(future)
            raise TransportError(
                f"Timed out waiting for {method} after {self._config.request_timeout}s",
                headset_id=headset_id,
                cause=e,
            ) from e

    def _request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        headset_id: Optional[str] = None,
    ) -> Any:
        future = self._transport.call(method, params or {}, tag=headset_id)
        return self.wait(future, method, headset_id)

    def _require_token(self) -> str:
        token = self._cortex_token
        if not token:
            raise AuthenticationError("Not authorized. Call initialize() first.")
        return token

    def _publish_status(
        self,
        headset_id: str,
        status: HeadsetStatus,
        message: Optional[str] = None,
    ) -> None:
        logger.info("Headset %s: %s%s", headset_id, status.value, f" ({message})" if message else "")
        self._bus.publish(HeadsetStatusEvent(
            timestamp=time.time(),
            headset_id=headset_id,
            status=status,
            message=message,
        ))

    # -------------------------------------------------------------------------
    # Connection and Authorization
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """Connect the transport and authorize.

        Raises:
            TransportError: If the Cortex service cannot be reached.
            AuthenticationError: If authorization fails.
        """
        with self._lock:
            if self._state not in (ClientState.DISCONNECTED, ClientState.ERROR):
                raise TransportError(f"Cannot initialize: client is {self._state.name}")
            self._state = ClientState.CONNECTING

        try:
            self._transport.connect(timeout=self._config.request_timeout)
            self._state = ClientState.AUTHORIZING
            self.get_cortex_info()
            self.request_access()
            self.authorize()
        except CortexGridError:
            self._state = ClientState.ERROR
            logger.error("Cortex client initialization failed")
            raise

        self._state = ClientState.READY
        logger.info("Cortex client authenticated and ready")

    def get_cortex_info(self) -> Any:
        result = self._request("getCortexInfo")
        logger.debug("Cortex info: %s", result)
        return result

    def request_access(self) -> bool:
        """Ask the Launcher to grant this app access.

        Returns:
            Whether access is granted. A pending approval is not an error;
            ``authorize`` reports the definitive outcome.
        """
        result = self._request("requestAccess", {
            "clientId": self._config.client_id,
            "clientSecret": self._config.client_secret,
        })
        granted = bool(result.get("accessGranted")) if isinstance(result, dict) else False
        message = result.get("message", "") if isinstance(result, dict) else ""
        if granted:
            logger.info("Access granted: %s", message)
        else:
            logger.warning("Access not granted yet: %s", message)
        return granted

    def authorize(self) -> str:
        """Authorize and store the Cortex token.

        Raises:
            AuthenticationError: If the service rejects the credentials or
                returns no token.
        """
        params: Dict[str, Any] = {
            "clientId": self._config.client_id,
            "clientSecret": self._config.client_secret,
            "debit": self._config.debit,
        }
        if self._config.license_id:
            params["license"] = self._config.license_id

        try:
            result = self._request("authorize", params)
        except RequestError as e:
            raise AuthenticationError(f"Authorization rejected: {e.message}") from e

        token = result.get("cortexToken") if isinstance(result, dict) else None
        if not token:
            raise AuthenticationError("No cortexToken in authorize response")

        self._cortex_token = token
        logger.info("Authorized, token received")
        return token

    # -------------------------------------------------------------------------
    # Headsets and Sessions
    # -------------------------------------------------------------------------

    def query_headsets(self) -> List[HeadsetInfo]:
        """List every headset the Cortex service knows about."""
        result = self._request("queryHeadsets")
        headsets = [HeadsetInfo.from_dict(h) for h in (result or []) if isinstance(h, dict)]
        logger.info("Available headsets: %s", [h.id for h in headsets])
        return headsets

    def connect_headset(self, headset_id: str) -> Any:
        """Ask the service to connect a discovered headset."""
        result = self._request("controlDevice", {
            "command": "connect",
            "headset": headset_id,
        }, headset_id=headset_id)
        logger.info("Headset %s connection initiated", headset_id)
        return result

    def create_session(self, headset_id: str) -> str:
        """Open an active session for a headset and register it.

        A headset has at most one session: a new one replaces the old
        mapping.

        Raises:
            SessionError: If the service returns no session id.
        """
        token = self._require_token()
        result = self._request("createSession", {
            "cortexToken": token,
            "headset": headset_id,
            "status": "active",
        }, headset_id=headset_id)

        session_id = result.get("id") if isinstance(result, dict) else None
        if not session_id:
            raise SessionError("No session ID in createSession response", headset_id=headset_id)

        self._registry.put(headset_id, session_id, HeadsetStatus.CONNECTING)
        logger.info("Session created for headset %s: %s", headset_id, session_id)
        return session_id

    def _session_for(self, headset_id: str) -> HeadsetSession:
        session = self._registry.get(headset_id)
        if session is None:
            raise SessionError(f"No session found for headset {headset_id}", headset_id=headset_id)
        return session

    def subscribe(self, headset_id: str, streams: Optional[Sequence[str]] = None) -> List[str]:
        """Subscribe a headset's session to data streams.

        The ``met`` acknowledgment carries the metrics column schema, which
        is captured here.

        Returns:
            Names of the streams the service accepted.

        Raises:
            SessionError: If the headset has no session or no stream was
                accepted.
        """
        token = self._require_token()
        session = self._session_for(headset_id)
        streams = list(streams or self._config.streams)

        result = self._request("subscribe", {
            "cortexToken": token,
            "session": session.session_id,
            "streams": streams,
        }, headset_id=headset_id)
        result = result if isinstance(result, dict) else {}

        accepted: List[str] = []
        for success in result.get("success") or []:
            name = success.get("streamName")
            accepted.append(name)
            if name == "met" and success.get("cols"):
                self._metrics.set_schema(success["cols"])

        for failure in result.get("failure") or []:
            logger.warning(
                "Headset %s: failed to subscribe %s [%s]: %s",
                headset_id, failure.get("streamName"), failure.get("code"), failure.get("message"),
            )

        if streams and not accepted:
            raise SessionError(
                f"No stream accepted out of {streams}",
                headset_id=headset_id,
                session_id=session.session_id,
            )

        logger.info("Headset %s subscribed to %s", headset_id, accepted)
        return accepted

    def query_profiles(self) -> List[str]:
        """Names of the trained profiles available to this user."""
        token = self._require_token()
        result = self._request("queryProfile", {"cortexToken": token})
        names = []
        for profile in result or []:
            names.append(profile.get("name") if isinstance(profile, dict) else str(profile))
        return [n for n in names if n]

    def load_profile(self, headset_id: str, profile: str) -> Any:
        """Load a trained mental command profile onto a headset."""
        token = self._require_token()
        result = self._request("setupProfile", {
            "cortexToken": token,
            "headset": headset_id,
            "profile": profile,
            "status": "load",
        }, headset_id=headset_id)
        logger.info("Profile %r loaded for headset %s", profile, headset_id)
        return result

    def train(self, headset_id: str, action: str, status: str = "start") -> Any:
        """Drive a mental command training step for a headset.

        Training progress arrives as SystemEvent on the bus.

        Args:
            action: Command being trained (``"neutral"``, ``"push"``, ...).
            status: ``"start"``, ``"accept"``, ``"reject"``, ``"reset"`` or
                ``"erase"``.
        """
        token = self._require_token()
        session = self._session_for(headset_id)
        return self._request("training", {
            "cortexToken": token,
            "session": session.session_id,
            "detection": "mentalCommand",
            "action": action,
            "status": status,
        }, headset_id=headset_id)

    def initialize_headset(self, headset_id: str) -> str:
        """Run the full per-headset flow and report it on the bus.

        Returns:
            The session id.

        Raises:
            DeviceNotFoundError: If the service does not know the headset.
            CortexGridError: If any step fails; the headset is then
                reported as ``error`` and a session it opened is closed.
        """
        self._publish_status(headset_id, HeadsetStatus.CONNECTING)
        try:
            headsets = self.query_headsets()
            headset = next((h for h in headsets if h.id == headset_id), None)
            if headset is None:
                raise DeviceNotFoundError(
                    f"Headset {headset_id} not found",
                    headset_id=headset_id,
                    available=[h.id for h in headsets],
                )

            if not headset.is_connected:
                self.connect_headset(headset_id)
                self._sleep(self._config.headset_connect_delay)

            session_id = self.create_session(headset_id)
            self._load_profile_if_available(headset_id)
            self.subscribe(headset_id)
        except CortexGridError as e:
            # Close a session left half-built
            session = self._registry.remove(headset_id)
            if session is not None:
                self._close_session(session.session_id, headset_id)
            self._publish_status(headset_id, HeadsetStatus.ERROR, str(e))
            raise

        self._registry.set_status(headset_id, HeadsetStatus.READY)
        self._publish_status(headset_id, HeadsetStatus.READY)
        return session_id

    def _load_profile_if_available(self, headset_id: str) -> None:
        try:
            profile = self._config.profile
            if profile is None:
                profiles = self.query_profiles()
                profile = profiles[0] if profiles else None
            if profile:
                self.load_profile(headset_id, profile)
        except (RequestError, AuthenticationError) as e:
            logger.info("No profile loaded for headset %s, continuing without: %s", headset_id, e)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def disconnect_headset(self, headset_id: str) -> None:
        """Tear down one headset's session, leaving the others untouched.

        Pending calls for the headset fail immediately with ConnectionLost.
        The session close request is sent without waiting for its answer.
        """
        session = self._registry.remove(headset_id)
        self._transport.fail_pending(
            headset_id, ConnectionLost("Headset disconnected", headset_id=headset_id)
        )

        if session is None:
            logger.debug("Headset %s has no session to disconnect", headset_id)
            return

        self._close_session(session.session_id, headset_id)
        self._publish_status(headset_id, HeadsetStatus.DISCONNECTED)

    def _close_session(self, session_id: str, headset_id: str) -> None:
        """Send ``updateSession`` close without waiting for the answer."""
        token = self._cortex_token
        if not token or not self._transport.is_open:
            return
        future = self._transport.call("updateSession", {
            "cortexToken": token,
            "session": session_id,
            "status": "close",
        })
        future.add_done_callback(
            lambda f: self._log_close_result(f, headset_id)
        )

    @staticmethod
    def _log_close_result(future: Future, headset_id: str) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning("Closing session for headset %s failed: %s", headset_id, error)

    def disconnect(self) -> None:
        """Close the transport and drop every session.

        All pending calls are rejected. Safe to call even if not connected.
        """
        with self._lock:
            was = self._state
            self._state = ClientState.DISCONNECTED

        if was != ClientState.DISCONNECTED:
            logger.info("Disconnecting from Cortex...")

        self._transport.close()
        self._drop_sessions(HeadsetStatus.DISCONNECTED, None)

    def _drop_sessions(self, status: HeadsetStatus, message: Optional[str]) -> None:
        sessions = self._registry.sessions()
        self._registry.clear()
        self._metrics.reset()
        self._cortex_token = None
        for headset_id in sessions:
            self._publish_status(headset_id, status, message)

    def _on_transport_closed(self, code: Optional[int], message: Optional[str]) -> None:
        """Socket closed underneath us: every session is gone."""
        with self._lock:
            if self._state == ClientState.DISCONNECTED:
                return
            self._state = ClientState.ERROR

        logger.error("Connection to Cortex lost: %s - %s", code, message)
        self._drop_sessions(HeadsetStatus.ERROR, message or "Connection to Cortex lost")

    def __enter__(self) -> "MultiHeadsetClient":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()
