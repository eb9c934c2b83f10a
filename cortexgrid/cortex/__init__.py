"""Emotiv Cortex protocol layer.

One CortexTransport carries every headset session. The StreamDemultiplexer
turns the push frames into per-headset events using the SessionRegistry,
the motion decoder and the metrics column mapper. MultiHeadsetClient drives
the authorization and per-headset session flow on top.
"""

from cortexgrid.cortex.transport import CortexTransport, PendingCall
from cortexgrid.cortex.registry import UNKNOWN_HEADSET, HeadsetSession, SessionRegistry
from cortexgrid.cortex.motion import MotionSample, decode_motion, quaternion_to_euler
from cortexgrid.cortex.metrics import MetricsColumnMapper
from cortexgrid.cortex.demux import StreamDemultiplexer
from cortexgrid.cortex.client import ClientState, HeadsetInfo, MultiHeadsetClient

__all__ = [
    "CortexTransport",
    "PendingCall",
    "UNKNOWN_HEADSET",
    "HeadsetSession",
    "SessionRegistry",
    "MotionSample",
    "decode_motion",
    "quaternion_to_euler",
    "MetricsColumnMapper",
    "StreamDemultiplexer",
    "ClientState",
    "HeadsetInfo",
    "MultiHeadsetClient",
]
