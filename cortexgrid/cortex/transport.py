"""Correlated JSON-RPC transport over the Cortex WebSocket.

One CortexTransport owns the single socket to the local Cortex service.
Outgoing calls get a monotonically increasing request id and a
``concurrent.futures.Future`` that settles when the matching response
arrives. Every inbound message is first matched against the pending calls;
anything that is not a response is handed to the push handler, which in
practice is the stream demultiplexer.

The socket runs on a background thread (``websocket.WebSocketApp``), and
that thread is the only delivery path for inbound messages, so frames are
processed in arrival order.

See: https://emotiv.gitbook.io/cortex-api/
"""

import json
import logging
import ssl
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import websocket

from cortexgrid.core.config import DEFAULT_CORTEX_URL
from cortexgrid.core.exceptions import ConnectionLost, RequestError, TransportError


logger = logging.getLogger(__name__)


PushHandler = Callable[[Dict[str, Any]], None]
CloseHandler = Callable[[Optional[int], Optional[str]], None]


@dataclass
class PendingCall:
    """One in-flight request.

    Attributes:
        request_id: Id the response will carry.
        method: Cortex method name, kept for error messages.
        future: Settled exactly once with the result or an exception.
        tag: Optional owner (a headset id) used for targeted cancellation.
    """

    request_id: int
    method: str
    future: Future
    tag: Optional[str] = None


def _settle(
    future: Future,
    result: Any = None,
    error: Optional[BaseException] = None,
) -> None:
    """Resolve a future unless its caller already cancelled it."""
    if not future.set_running_or_notify_cancel():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


class CortexTransport:
    """Single WebSocket connection with request/response correlation.

    Example:
        >>> transport = CortexTransport(on_push=demux.handle)
        >>> transport.connect()
        >>> info = transport.call("getCortexInfo").result(timeout=5)
        >>> transport.close()

    Thread Safety:
        ``call`` may be used from any thread. Writes to the socket are
        serialized; many calls may be in flight at once. The transport never
        times out a call on its own; callers wait on the future with their
        own timeout.
    """

    def __init__(
        self,
        url: str = DEFAULT_CORTEX_URL,
        on_push: Optional[PushHandler] = None,
        on_close: Optional[CloseHandler] = None,
        verify_ssl: bool = False,
    ) -> None:
        """Initialize the transport.

        Args:
            url: WebSocket URL of the Cortex service.
            on_push: Called with every decoded message that is not a response.
            on_close: Called after the socket closed and pending calls failed.
            verify_ssl: Verify the service certificate. Cortex ships a
                self-signed certificate, so this is off by default.
        """
        self._url = url
        self._verify_ssl = verify_ssl
        self.on_push = on_push
        self.on_close = on_close

        self._ws: Optional[websocket.WebSocketApp] = None
        self._ws_thread: Optional[threading.Thread] = None
        self._opened = threading.Event()
        self._open_error: Optional[BaseException] = None
        self._is_open = False

        self._pending: Dict[int, PendingCall] = {}
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._last_request_id = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        """Whether the socket is open and accepting calls."""
        with self._lock:
            return self._is_open

    @property
    def pending_count(self) -> int:
        """Number of calls still waiting for a response."""
        with self._lock:
            return len(self._pending)

    def connect(self, timeout: Optional[float] = None) -> None:
        """Open the socket and block until the service accepts it.

        Args:
            timeout: Optional seconds to wait for the socket to open.

        Raises:
            TransportError: If already connected, if the socket errors or
                closes before opening, or if ``timeout`` elapses first.
        """
        with self._lock:
            if self._ws is not None:
                raise TransportError("Transport already connected or connecting")
            self._opened.clear()
            self._open_error = None
            self._ws = websocket.WebSocketApp(
                self._url,
                on_open=self._on_ws_open,
                on_message=self._on_ws_message,
                on_error=self._on_ws_error,
                on_close=self._on_ws_close,
            )

        logger.info("Connecting to Cortex service at %s...", self._url)

        self._ws_thread = threading.Thread(
            target=self._run_websocket,
            daemon=True,
            name="CortexTransport",
        )
        self._ws_thread.start()

        if not self._opened.wait(timeout):
            self.close()
            raise TransportError(f"Timed out connecting to {self._url}")

        if not self.is_open:
            error = self._open_error
            self.close()
            raise TransportError(
                f"Failed to connect to Cortex service at {self._url}. "
                "Make sure the Emotiv Launcher is running.",
                cause=error,
            )

    def _run_websocket(self) -> None:
        """Run the WebSocket event loop with SSL configured."""
        ws = self._ws
        if ws is None:
            return

        sslopt: Dict[str, Any] = {}
        if self._url.startswith("wss://") and not self._verify_ssl:
            # Cortex uses a self-signed certificate
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
            sslopt = {"context": ssl_context}

        try:
            ws.run_forever(sslopt=sslopt)
        finally:
            # Unblock connect() whatever happened
            self._opened.set()

    def call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        tag: Optional[str] = None,
    ) -> Future:
        """Send a request and return a future for its result.

        Args:
            method: Cortex method name.
            params: Method parameters.
            tag: Optional owner recorded on the pending call, used by
                ``fail_pending`` to cancel one headset's calls.

        Returns:
            A future resolving to the response ``result`` or failing with
            RequestError (service error), ConnectionLost (socket closed
            first) or TransportError (socket not open).
        """
        future: Future = Future()

        with self._lock:
            ws = self._ws
            if not self._is_open or ws is None:
                _settle(future, error=TransportError(
                    f"Cannot call {method}: transport is not connected",
                    headset_id=tag,
                ))
                return future

            self._last_request_id += 1
            request_id = self._last_request_id
            self._pending[request_id] = PendingCall(request_id, method, future, tag)

        request = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or {},
            "id": request_id,
        }

        logger.debug("Sending request %d: %s", request_id, method)
        try:
            with self._send_lock:
                ws.send(json.dumps(request))
        except (websocket.WebSocketException, OSError) as e:
            with self._lock:
                pending = self._pending.pop(request_id, None)
            if pending is not None:
                _settle(future, error=TransportError(
                    f"Failed to send {method}", headset_id=tag, cause=e
                ))

        return future

    def fail_pending(self, tag: str, error: BaseException) -> int:
        """Fail every pending call carrying ``tag``.

        Returns:
            Number of calls failed.
        """
        with self._lock:
            doomed = [p for p in self._pending.values() if p.tag == tag]
            for pending in doomed:
                del self._pending[pending.request_id]

        for pending in doomed:
            _settle(pending.future, error=error)
        if doomed:
            logger.debug("Failed %d pending call(s) for %s", len(doomed), tag)
        return len(doomed)

    def discard(self, future: Future) -> bool:
        """Forget a pending call the caller gave up on, cancelling its future.

        A response arriving later for it is then treated as unsolicited.
        """
        with self._lock:
            for request_id, pending in self._pending.items():
                if pending.future is future:
                    del self._pending[request_id]
                    break
            else:
                return False
        future.cancel()
        return True

    def _fail_all(self, error: BaseException) -> None:
        with self._lock:
            doomed: List[PendingCall] = list(self._pending.values())
            self._pending.clear()

        for pending in doomed:
            _settle(pending.future, error=error)
        if doomed:
            logger.warning("Rejected %d pending call(s): %s", len(doomed), error)

    def close(self) -> None:
        """Close the socket and reject every pending call.

        Safe to call even if not connected.
        """
        with self._lock:
            ws = self._ws
            self._ws = None
            self._is_open = False

        if ws is not None:
            logger.info("Closing Cortex transport...")
            ws.close()

        self._fail_all(ConnectionLost("Transport closed"))

        thread = self._ws_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._ws_thread = None

    # -------------------------------------------------------------------------
    # WebSocket Event Handlers
    # -------------------------------------------------------------------------

    def _on_ws_open(self, ws: websocket.WebSocket) -> None:
        """Handle WebSocket connection opened."""
        with self._lock:
            self._is_open = True
        logger.info("WebSocket connected")
        self._opened.set()

    def _on_ws_message(self, ws: websocket.WebSocket, message: str) -> None:
        """Route one inbound message: response first, push frame otherwise."""
        try:
            data = json.loads(message)
        except (TypeError, ValueError) as e:
            logger.error("Failed to parse message from Cortex: %s", e)
            return

        if not isinstance(data, dict):
            logger.warning("Ignoring non-object message: %r", data)
            return

        if self._resolve_response(data):
            return

        if self.on_push is None:
            logger.debug("No push handler, dropping message: %s", data)
            return

        try:
            self.on_push(data)
        except Exception:
            logger.exception("Push handler failed on message: %s", data)

    def _resolve_response(self, data: Dict[str, Any]) -> bool:
        """Settle the pending call matching ``data["id"]``, if any."""
        request_id = data.get("id")
        if request_id is None:
            return False

        with self._lock:
            pending = self._pending.pop(request_id, None)
        if pending is None:
            return False

        if "error" in data:
            error = data.get("error") or {}
            if isinstance(error, dict):
                message = error.get("message", "Unknown error")
                code = error.get("code")
            else:
                message, code = str(error), None
            logger.error("Cortex API error for %s [%s]: %s", pending.method, code, message)
            _settle(pending.future, error=RequestError(
                message, code=code, method=pending.method, headset_id=pending.tag
            ))
        else:
            logger.debug("Response %d for %s", request_id, pending.method)
            _settle(pending.future, result=data.get("result"))
        return True

    def _on_ws_error(self, ws: websocket.WebSocket, error: Exception) -> None:
        """Handle WebSocket error."""
        logger.error("WebSocket error: %s", error)
        if not self._opened.is_set():
            self._open_error = error
            self._opened.set()

    def _on_ws_close(
        self,
        ws: websocket.WebSocket,
        close_status_code: Optional[int],
        close_msg: Optional[str],
    ) -> None:
        """Handle WebSocket connection closed."""
        logger.info("WebSocket closed: %s - %s", close_status_code, close_msg)

        with self._lock:
            self._is_open = False
            if self._ws is ws:
                self._ws = None

        self._fail_all(ConnectionLost(close_msg or "Connection to Cortex service closed"))
        self._opened.set()

        if self.on_close is not None:
            try:
                self.on_close(close_status_code, close_msg)
            except Exception:
                logger.exception("Close handler failed")
