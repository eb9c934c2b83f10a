"""Configuration management for cortexgrid.

This module provides configuration dataclasses and utilities for loading
configuration from YAML files and environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple

import yaml

from .events import CortexStream
from .exceptions import ConfigurationError


DEFAULT_CORTEX_URL = "wss://localhost:6868"
DEFAULT_STREAMS = tuple(stream.value for stream in CortexStream)

_HORIZONTAL_AXES = ("roll", "rotation")


@dataclass(frozen=True)
class CortexConfig:
    """Connection and authentication settings for the Cortex service.

    Attributes:
        client_id: Cortex API client ID.
        client_secret: Cortex API client secret.
        license_id: Optional license sent with ``authorize``.
        url: WebSocket URL of the local Cortex service.
        debit: Number of sessions to debit from the license; one per
            headset expected to connect.
        streams: Streams subscribed for every headset session.
        profile: Trained profile to load for each headset. If None, the
            first profile returned by ``queryProfile`` is tried.
        headset_connect_delay: Seconds to wait after ``controlDevice``
            before creating a session for a headset that was not connected.
        request_timeout: Seconds a caller waits for any single response.
    """

    client_id: str
    client_secret: str
    license_id: Optional[str] = None
    url: str = DEFAULT_CORTEX_URL
    debit: int = 10
    streams: Tuple[str, ...] = DEFAULT_STREAMS
    profile: Optional[str] = None
    headset_connect_delay: float = 2.0
    request_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate required credentials are provided."""
        if not self.client_id:
            raise ConfigurationError("Cortex client_id is required", parameter="client_id")
        if not self.client_secret:
            raise ConfigurationError(
                "Cortex client_secret is required", parameter="client_secret"
            )
        if self.debit < 0:
            raise ConfigurationError("debit must be non-negative", parameter="debit")
        if self.request_timeout <= 0:
            raise ConfigurationError(
                "request_timeout must be positive", parameter="request_timeout"
            )
        try:
            streams = tuple(CortexStream.from_string(s).value for s in self.streams)
        except (ValueError, AttributeError) as e:
            raise ConfigurationError(str(e), parameter="streams") from e
        # Lists coming from YAML are frozen into tuples
        object.__setattr__(self, "streams", streams)

    @classmethod
    def from_env(cls) -> CortexConfig:
        """Create CortexConfig from environment variables.

        Reads the following environment variables:
        - EMOTIV_CLIENT_ID (required)
        - EMOTIV_CLIENT_SECRET (required)
        - EMOTIV_LICENSE_ID (optional)
        - EMOTIV_PROFILE (optional)
        - CORTEX_URL (optional)

        Raises:
            ConfigurationError: If required environment variables are not set.
        """
        client_id = os.environ.get("EMOTIV_CLIENT_ID", "")
        client_secret = os.environ.get("EMOTIV_CLIENT_SECRET", "")

        if not client_id:
            raise ConfigurationError(
                "Environment variable EMOTIV_CLIENT_ID is required",
                parameter="EMOTIV_CLIENT_ID",
            )
        if not client_secret:
            raise ConfigurationError(
                "Environment variable EMOTIV_CLIENT_SECRET is required",
                parameter="EMOTIV_CLIENT_SECRET",
            )

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            license_id=os.environ.get("EMOTIV_LICENSE_ID") or None,
            profile=os.environ.get("EMOTIV_PROFILE") or None,
            url=os.environ.get("CORTEX_URL") or DEFAULT_CORTEX_URL,
        )


@dataclass(frozen=True)
class SelectionConfig:
    """Tuning of the hold-to-confirm and tilt navigation state machine.

    Attributes:
        push_threshold: Minimum ``push`` power that counts as holding.
        hold_duration: Seconds of sustained push needed to lock a selection.
        decay_rate: Seconds of accumulated hold lost per second without a
            qualifying push.
        tilt_threshold: Degrees away from the calibrated neutral pose an
            axis must exceed to count as a tilt.
        frames_to_trigger: Consecutive tilted motion frames needed to move
            focus by one cell.
        rows: Grid rows.
        columns: Grid columns.
        horizontal_axis: Motion angle driving left/right, ``"roll"`` (head
            tilt) or ``"rotation"`` (head turn).
        invert_horizontal: Flip the sign of the horizontal axis.
        invert_vertical: Flip the sign of the vertical (pitch) axis.
    """

    push_threshold: float = 0.1
    hold_duration: float = 5.0
    decay_rate: float = 0.75
    tilt_threshold: float = 10.0
    frames_to_trigger: int = 21
    rows: int = 3
    columns: int = 3
    horizontal_axis: str = "roll"
    invert_horizontal: bool = False
    invert_vertical: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.push_threshold <= 1.0:
            raise ValueError(
                f"push_threshold must be between 0.0 and 1.0, got {self.push_threshold}"
            )
        if self.hold_duration <= 0:
            raise ValueError(f"hold_duration must be positive, got {self.hold_duration}")
        if self.decay_rate <= 0:
            raise ValueError(f"decay_rate must be positive, got {self.decay_rate}")
        if self.tilt_threshold < 0:
            raise ValueError(
                f"tilt_threshold must be non-negative, got {self.tilt_threshold}"
            )
        if self.frames_to_trigger < 1:
            raise ValueError(
                f"frames_to_trigger must be at least 1, got {self.frames_to_trigger}"
            )
        if self.rows < 1 or self.columns < 1:
            raise ValueError(
                f"Grid must have at least one row and column, got {self.rows}x{self.columns}"
            )
        if self.horizontal_axis not in _HORIZONTAL_AXES:
            raise ValueError(
                f"horizontal_axis must be one of {_HORIZONTAL_AXES}, "
                f"got {self.horizontal_axis!r}"
            )

    @property
    def cell_count(self) -> int:
        """Number of cells in the selection grid."""
        return self.rows * self.columns


@dataclass(frozen=True)
class SmoothingConfig:
    """One Euro filter settings applied to motion before navigation.

    Attributes:
        enabled: Whether motion is smoothed at all.
        min_cutoff: Jitter reduction; lower is smoother.
        beta: Lag reduction; higher follows fast movements more closely.
        d_cutoff: Cutoff frequency for the derivative.
    """

    enabled: bool = False
    min_cutoff: float = 1.0
    beta: float = 0.007
    d_cutoff: float = 1.0

    def __post_init__(self) -> None:
        if self.min_cutoff <= 0 or self.d_cutoff <= 0:
            raise ValueError("Smoothing cutoffs must be positive")
        if self.beta < 0:
            raise ValueError(f"beta must be non-negative, got {self.beta}")


@dataclass
class Config:
    """Main configuration container for cortexgrid.

    Attributes:
        cortex: Cortex service connection configuration.
        selection: Selection engine tuning.
        smoothing: Motion smoothing settings.
        headsets: Headset ids to initialize. Empty means every headset
            the service reports.
    """

    cortex: CortexConfig
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    headsets: Tuple[str, ...] = ()

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file.

        Credentials missing from the file fall back to the
        ``EMOTIV_CLIENT_ID`` / ``EMOTIV_CLIENT_SECRET`` environment variables.

        Raises:
            ConfigurationError: If the file cannot be read or parsed.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file: {e}") from e

        if data is None:
            raise ConfigurationError("Configuration file is empty")
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> Config:
        """Load Cortex credentials from the environment, defaults elsewhere."""
        return cls(cortex=CortexConfig.from_env())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create Config from a dictionary, typically parsed YAML.

        Raises:
            ConfigurationError: If required fields are missing or invalid.
        """
        cortex_data = dict(data.get("cortex") or {})
        cortex_data["client_id"] = cortex_data.get("client_id") or os.environ.get(
            "EMOTIV_CLIENT_ID", ""
        )
        cortex_data["client_secret"] = cortex_data.get(
            "client_secret"
        ) or os.environ.get("EMOTIV_CLIENT_SECRET", "")

        try:
            cortex = CortexConfig(**cortex_data)
        except ConfigurationError:
            raise
        except TypeError as e:
            raise ConfigurationError(f"Invalid cortex configuration: {e}") from e

        try:
            selection = SelectionConfig(**(data.get("selection") or {}))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid selection configuration: {e}") from e

        try:
            smoothing = SmoothingConfig(**(data.get("smoothing") or {}))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid smoothing configuration: {e}") from e

        headsets = data.get("headsets") or ()
        if isinstance(headsets, str):
            headsets = (headsets,)

        return cls(
            cortex=cortex,
            selection=selection,
            smoothing=smoothing,
            headsets=tuple(headsets),
        )
