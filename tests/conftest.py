"""Shared fixtures for the cortexgrid test suite."""

import json
from typing import List
from unittest.mock import MagicMock

import pytest

from cortexgrid.core.bus import EventBus
from cortexgrid.core.config import CortexConfig
from cortexgrid.core.events import HeadsetEvent
from cortexgrid.cortex.transport import CortexTransport


@pytest.fixture
def cortex_config():
    """Provide sample Cortex credentials for testing."""
    return CortexConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",
        license_id="test-license-id",
        headset_connect_delay=0.0,
        request_timeout=1.0,
    )


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket object."""
    ws = MagicMock()
    ws.send = MagicMock()
    ws.close = MagicMock()
    return ws


@pytest.fixture
def open_transport(mock_websocket):
    """A CortexTransport that believes its socket is open, writing to a mock."""
    transport = CortexTransport("wss://localhost:6868")
    transport._ws = mock_websocket
    transport._on_ws_open(mock_websocket)
    return transport


def sent_requests(mock_websocket) -> List[dict]:
    """Decode every request written to a mock socket."""
    return [json.loads(c.args[0]) for c in mock_websocket.send.call_args_list]


def respond(transport, mock_websocket, request_id, result=None, error=None) -> None:
    """Deliver a response for ``request_id`` through the message handler."""
    message = {"jsonrpc": "2.0", "id": request_id}
    if error is not None:
        message["error"] = error
    else:
        message["result"] = result
    transport._on_ws_message(mock_websocket, json.dumps(message))


class EventCollector:
    """Bus subscriber recording every event it sees."""

    def __init__(self) -> None:
        self.events: List[HeadsetEvent] = []

    def __call__(self, event: HeadsetEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def collector(bus):
    """Collect every event published on ``bus``."""
    events = EventCollector()
    bus.subscribe(HeadsetEvent, events)
    return events
