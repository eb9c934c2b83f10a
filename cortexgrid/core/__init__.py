"""Core module for cortexgrid.

This module provides the foundational components of the library:
- Event data classes for decoded frames and selection outcomes
- The typed event bus
- Configuration management
- Custom exceptions for error handling
- The HeadsetPipeline application root

Example usage:
    >>> from cortexgrid.core import Config, EventBus, HeadsetPipeline, SelectionLockedEvent
    >>>
    >>> config = Config.from_yaml("cortexgrid.yaml")
    >>> pipeline = HeadsetPipeline(config)
    >>> pipeline.bus.subscribe(SelectionLockedEvent, print)
    >>> with pipeline:
    ...     input("Press Enter to stop...")
"""

from .events import (
    AllSelectionsLockedEvent,
    CortexStream,
    CortexWarningEvent,
    FocusChangedEvent,
    HeadsetEvent,
    HeadsetStatus,
    HeadsetStatusEvent,
    HoldPhase,
    HoldProgressEvent,
    MentalCommand,
    MentalCommandEvent,
    MotionEvent,
    PerformanceMetricsEvent,
    SelectionLockedEvent,
    SmoothedMotionEvent,
    SystemEvent,
    TiltDirection,
)
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionLost,
    CortexGridError,
    DeviceNotFoundError,
    RequestError,
    SchemaNotReadyError,
    SessionError,
    TransportError,
    UnresolvedSessionError,
)
from .config import (
    Config,
    CortexConfig,
    SelectionConfig,
    SmoothingConfig,
)
from .bus import EventBus
from .colors import HEADSET_COLORS, HeadsetColorRegistry
from .pipeline import HeadsetPipeline

__all__ = [
    # Events
    "AllSelectionsLockedEvent",
    "CortexStream",
    "CortexWarningEvent",
    "FocusChangedEvent",
    "HeadsetEvent",
    "HeadsetStatus",
    "HeadsetStatusEvent",
    "HoldPhase",
    "HoldProgressEvent",
    "MentalCommand",
    "MentalCommandEvent",
    "MotionEvent",
    "PerformanceMetricsEvent",
    "SelectionLockedEvent",
    "SmoothedMotionEvent",
    "SystemEvent",
    "TiltDirection",
    # Bus and shared registries
    "EventBus",
    "HEADSET_COLORS",
    "HeadsetColorRegistry",
    # Pipeline
    "HeadsetPipeline",
    # Configuration
    "Config",
    "CortexConfig",
    "SelectionConfig",
    "SmoothingConfig",
    # Exceptions
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionLost",
    "CortexGridError",
    "DeviceNotFoundError",
    "RequestError",
    "SchemaNotReadyError",
    "SessionError",
    "TransportError",
    "UnresolvedSessionError",
]
