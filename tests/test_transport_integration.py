"""Integration tests against a fake Cortex service.

A ``websockets`` server on a background event loop answers the JSON-RPC
methods the client uses and pushes stream frames for the sessions it hands
out. The real CortexTransport, MultiHeadsetClient and HeadsetPipeline talk
to it over ``ws://`` on localhost.
"""

import asyncio
import io
import json
import threading

import pytest
import websockets

from cortexgrid.core.config import Config, CortexConfig
from cortexgrid.core.events import (
    HeadsetStatus,
    HeadsetStatusEvent,
    MentalCommandEvent,
)
from cortexgrid.core.exceptions import ConnectionLost, RequestError
from cortexgrid.core.pipeline import HeadsetPipeline
from cortexgrid.cortex.client import MultiHeadsetClient
from cortexgrid.cortex.transport import CortexTransport
from cortexgrid.publishers import ConsolePublisher


pytestmark = pytest.mark.integration


WAIT = 5.0

IDENTITY_MOTION = [1, 0, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0]


# ====================================================================
#     FAKE CORTEX SERVICE
# ====================================================================


def _result(request, result):
    return json.dumps({"jsonrpc": "2.0", "id": request["id"], "result": result})


async def fake_cortex_server(websocket):
    """Answers Cortex methods; ``subscribe`` is followed by stream frames."""
    async for msg in websocket:
        request = json.loads(msg)
        method = request.get("method")
        params = request.get("params") or {}

        if method == "getCortexInfo":
            await websocket.send(_result(request, {"version": "fake"}))
        elif method == "requestAccess":
            await websocket.send(_result(request, {"accessGranted": True, "message": "ok"}))
        elif method == "authorize":
            await websocket.send(_result(request, {"cortexToken": "FAKE_TOKEN"}))
        elif method == "queryHeadsets":
            await websocket.send(_result(request, [
                {"id": "EPOCX-1", "status": "connected"},
                {"id": "EPOCX-2", "status": "connected"},
                {"id": "EPOCX-3", "status": "discovered"},
            ]))
        elif method == "controlDevice":
            # Cortex reports the pairing before answering the call
            await websocket.send(json.dumps({
                "warning": {
                    "code": 104,
                    "message": {"headsetId": params["headset"], "behavior": "Headset connected"},
                },
            }))
            await websocket.send(_result(request, {"command": "connect"}))
        elif method == "createSession":
            await websocket.send(_result(request, {"id": "session-" + params["headset"]}))
        elif method == "queryProfile":
            await websocket.send(_result(request, []))
        elif method == "subscribe":
            sid = params["session"]
            # A push frame may arrive before the acknowledgment
            await websocket.send(json.dumps({"sys": ["mentalCommand", "MC_Neutral"], "sid": sid, "time": 0.5}))
            await websocket.send(_result(request, {
                "success": [
                    {"streamName": s, "cols": [], "sid": sid} for s in params["streams"]
                ],
                "failure": [],
            }))
            await websocket.send(json.dumps({"com": ["push", 0.7], "sid": sid, "time": 1.0}))
            await websocket.send(json.dumps({"mot": IDENTITY_MOTION, "sid": sid, "time": 1.0}))
        elif method == "updateSession":
            await websocket.send(_result(request, {"status": "closed"}))
        elif method == "explode":
            await websocket.send(json.dumps({
                "jsonrpc": "2.0",
                "id": request["id"],
                "error": {"code": -32601, "message": "Method not found"},
            }))
        elif method == "silent":
            pass
        elif method == "hangup":
            await websocket.close()
            return
        else:
            await websocket.send(_result(request, {"echo": method, "params": params}))


@pytest.fixture(scope="module")
def fake_server():
    """Runs the fake service on an ephemeral port; yields its URL."""
    loop = asyncio.new_event_loop()
    started = threading.Event()
    address = {}

    def run():
        asyncio.set_event_loop(loop)

        async def start():
            return await websockets.serve(fake_cortex_server, "127.0.0.1", 0)

        server = loop.run_until_complete(start())
        address["port"] = next(iter(server.sockets)).getsockname()[1]
        address["server"] = server
        started.set()
        loop.run_forever()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    assert started.wait(WAIT), "Fake Cortex server did not start"

    yield f"ws://127.0.0.1:{address['port']}"

    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=WAIT)


@pytest.fixture
def transport(fake_server):
    transport = CortexTransport(fake_server)
    transport.connect(timeout=WAIT)
    yield transport
    transport.close()


# ====================================================================
#     TRANSPORT
# ====================================================================


class TestTransportAgainstFakeServer:
    """CortexTransport over a real socket."""

    def test_call_round_trip(self, transport):
        result = transport.call("ping", {"n": 1}).result(timeout=WAIT)

        assert result == {"echo": "ping", "params": {"n": 1}}

    def test_concurrent_calls_resolve_to_their_own_results(self, transport):
        futures = [transport.call(f"method-{i}") for i in range(20)]

        results = [f.result(timeout=WAIT)["echo"] for f in futures]

        assert results == [f"method-{i}" for i in range(20)]

    def test_error_response_fails_only_that_call(self, transport):
        failing = transport.call("explode")
        healthy = transport.call("ping")

        with pytest.raises(RequestError) as exc_info:
            failing.result(timeout=WAIT)
        assert exc_info.value.code == -32601
        assert exc_info.value.method == "explode"
        assert healthy.result(timeout=WAIT)["echo"] == "ping"

    def test_server_close_fails_pending_calls(self, transport):
        closed = threading.Event()
        transport.on_close = lambda code, message: closed.set()
        unanswered = transport.call("silent")

        transport.call("hangup")

        with pytest.raises(ConnectionLost):
            unanswered.result(timeout=WAIT)
        assert closed.wait(WAIT)
        assert transport.is_open is False
        assert transport.pending_count == 0

    def test_push_frames_reach_handler(self, transport):
        frames = []
        received = threading.Event()

        def on_push(frame):
            frames.append(frame)
            if "mot" in frame:
                received.set()

        transport.on_push = on_push
        transport.call("subscribe", {"session": "s-1", "streams": ["com"]}).result(timeout=WAIT)

        assert received.wait(WAIT)
        assert [next(k for k in ("sys", "com", "mot") if k in f) for f in frames] == ["sys", "com", "mot"]


# ====================================================================
#     CLIENT
# ====================================================================


class TestClientAgainstFakeServer:
    """MultiHeadsetClient end to end over a real socket."""

    @pytest.fixture
    def client(self, fake_server, bus):
        config = CortexConfig(
            client_id="id",
            client_secret="secret",
            url=fake_server,
            streams=("com", "mot"),
            request_timeout=WAIT,
        )
        client = MultiHeadsetClient(config, bus)
        yield client
        client.disconnect()

    def test_two_headsets_stream_to_the_bus(self, client, bus):
        commands = []
        both = threading.Event()

        def on_command(event):
            commands.append(event)
            if {e.headset_id for e in commands} == {"EPOCX-1", "EPOCX-2"}:
                both.set()

        bus.subscribe(MentalCommandEvent, on_command)

        client.initialize()
        assert client.initialize_headset("EPOCX-1") == "session-EPOCX-1"
        assert client.initialize_headset("EPOCX-2") == "session-EPOCX-2"

        assert both.wait(WAIT)
        assert all(e.label == "push" and e.power == 0.7 for e in commands)
        assert set(client.connected_sessions()) == {"EPOCX-1", "EPOCX-2"}

    def test_disconnect_one_headset_keeps_the_other(self, client, bus):
        statuses = []
        bus.subscribe(HeadsetStatusEvent, statuses.append)

        client.initialize()
        client.initialize_headset("EPOCX-1")
        client.initialize_headset("EPOCX-2")

        client.disconnect_headset("EPOCX-1")

        assert list(client.connected_sessions()) == ["EPOCX-2"]
        assert client.transport.is_open is True
        last = statuses[-1]
        assert (last.headset_id, last.status) == ("EPOCX-1", HeadsetStatus.DISCONNECTED)


# ====================================================================
#     PIPELINE
# ====================================================================


class TestPipelineAgainstFakeServer:
    """HeadsetPipeline with a real client while frames arrive during startup."""

    @pytest.fixture
    def pipeline_config(self, fake_server):
        return Config(
            cortex=CortexConfig(
                client_id="id",
                client_secret="secret",
                url=fake_server,
                streams=("com", "mot"),
                request_timeout=2.0,
                headset_connect_delay=0.0,
            ),
            headsets=("EPOCX-3", "EPOCX-1"),
        )

    def test_start_survives_frames_published_during_startup(self, pipeline_config):
        output = io.StringIO()
        pipeline = HeadsetPipeline(
            pipeline_config,
            publishers=[ConsolePublisher(stream=output, include_timestamp=False)],
        )

        try:
            ready = pipeline.start()
        finally:
            pipeline.stop()

        assert ready == ["EPOCX-3", "EPOCX-1"]
        assert "EPOCX-3: warning 104: Headset connected" in output.getvalue()
        assert "EPOCX-1: ready" in output.getvalue()

    def test_stop_while_frames_are_flowing(self, pipeline_config):
        statuses = []
        pipeline = HeadsetPipeline(pipeline_config)
        pipeline.bus.subscribe(HeadsetStatusEvent, statuses.append)
        pipeline.start()

        pipeline.stop()

        assert pipeline.is_running is False
        assert pipeline.ready_headsets == []
        assert {e.headset_id for e in statuses if e.status == HeadsetStatus.DISCONNECTED} == {
            "EPOCX-3", "EPOCX-1",
        }
