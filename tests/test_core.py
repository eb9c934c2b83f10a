"""Tests for the cortexgrid core module.

This module tests:
- Events (events.py): MentalCommand, CortexStream, event dataclasses
- Exceptions (exceptions.py): exception types and inheritance hierarchy
- Config (config.py): CortexConfig, SelectionConfig, SmoothingConfig, Config
- Bus (bus.py): EventBus subscription and delivery
- Colors (colors.py): HeadsetColorRegistry
"""

import os
import re
from dataclasses import FrozenInstanceError
from unittest.mock import MagicMock, patch

import pytest

from cortexgrid.core.bus import EventBus
from cortexgrid.core.colors import HEADSET_COLORS, HeadsetColorRegistry
from cortexgrid.core.config import (
    Config,
    CortexConfig,
    SelectionConfig,
    SmoothingConfig,
)
from cortexgrid.core.events import (
    CortexStream,
    HeadsetEvent,
    HeadsetStatus,
    HeadsetStatusEvent,
    MentalCommand,
    MentalCommandEvent,
    MotionEvent,
    SmoothedMotionEvent,
)
from cortexgrid.core.exceptions import (
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


pytestmark = pytest.mark.unit


# ===========================================================================
# EVENTS TESTS
# ===========================================================================


class TestMentalCommand:
    """Tests for MentalCommand enum."""

    def test_from_string_wire_label(self):
        assert MentalCommand.from_string("rotateLeft") == MentalCommand.ROTATE_LEFT

    def test_from_string_with_separators(self):
        """from_string should accept enum names in any case with separators."""
        assert MentalCommand.from_string("rotate-right") == MentalCommand.ROTATE_RIGHT
        assert MentalCommand.from_string("PUSH") == MentalCommand.PUSH

    def test_from_string_invalid(self):
        with pytest.raises(ValueError) as exc_info:
            MentalCommand.from_string("wiggle")
        assert "wiggle" in str(exc_info.value)


class TestCortexStream:
    """Tests for CortexStream enum."""

    def test_from_string(self):
        assert CortexStream.from_string("MOT") == CortexStream.MOT

    def test_from_string_invalid(self):
        with pytest.raises(ValueError):
            CortexStream.from_string("eeg")


class TestEventDataclasses:
    """Tests for the event dataclasses."""

    def test_mental_command_event_power_validation(self):
        """Power outside 0.0 to 1.0 should be rejected."""
        with pytest.raises(ValueError):
            MentalCommandEvent(timestamp=0.0, headset_id="H", label="push", power=1.5)
        with pytest.raises(ValueError):
            MentalCommandEvent(timestamp=0.0, headset_id="H", label="push", power=-0.1)

    def test_mental_command_event_boundary_values(self):
        low = MentalCommandEvent(timestamp=0.0, headset_id="H", label="push", power=0.0)
        high = MentalCommandEvent(timestamp=0.0, headset_id="H", label="push", power=1.0)
        assert (low.power, high.power) == (0.0, 1.0)

    def test_events_are_immutable(self):
        event = MotionEvent(timestamp=0.0, headset_id="H", pitch=1.0, roll=2.0, rotation=3.0)
        with pytest.raises(FrozenInstanceError):
            event.pitch = 5.0

    def test_events_are_hashable_and_comparable(self):
        a = HeadsetStatusEvent(timestamp=1.0, headset_id="H", status=HeadsetStatus.READY)
        b = HeadsetStatusEvent(timestamp=1.0, headset_id="H", status=HeadsetStatus.READY)
        assert a == b
        assert hash(a) == hash(b)

    def test_smoothed_motion_is_a_motion_event(self):
        event = SmoothedMotionEvent(timestamp=0.0, headset_id="H", pitch=0.0, roll=0.0, rotation=0.0)
        assert isinstance(event, MotionEvent)
        assert isinstance(event, HeadsetEvent)


# ===========================================================================
# EXCEPTIONS TESTS
# ===========================================================================


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_base_error_message(self):
        error = CortexGridError("Something failed")
        assert error.message == "Something failed"
        assert str(error) == "Something failed"

    def test_base_error_with_headset_id(self):
        error = CortexGridError("Something failed", headset_id="EPOCX-1")
        assert str(error) == "[EPOCX-1] Something failed"

    def test_transport_error_with_cause(self):
        cause = OSError("refused")
        error = TransportError("Could not connect", cause=cause)
        assert error.cause is cause
        assert "OSError: refused" in str(error)

    def test_connection_lost_is_transport_error(self):
        error = ConnectionLost()
        assert isinstance(error, TransportError)
        assert error.message == "Connection to Cortex service lost"

    def test_request_error_details(self):
        error = RequestError("Invalid license", code=-32024, method="authorize")
        assert error.code == -32024
        assert "method: authorize" in str(error)
        assert "code: -32024" in str(error)

    def test_unresolved_session_error(self):
        error = UnresolvedSessionError("stale")
        assert error.session_id == "stale"
        assert "stale" in str(error)

    def test_device_not_found_lists_available(self):
        error = DeviceNotFoundError(headset_id="X", available=["A", "B"])
        assert error.message == "No headset found"
        assert error.available == ["A", "B"]

    def test_session_error_with_session_id(self):
        error = SessionError("Subscribe failed", headset_id="H", session_id="s-1")
        assert "(session: s-1)" in str(error)

    def test_configuration_error_with_parameter(self):
        error = ConfigurationError("Missing", parameter="client_id")
        assert "(parameter: client_id)" in str(error)

    def test_all_exceptions_caught_by_base(self):
        """Every library error should be catchable as CortexGridError."""
        errors = [
            TransportError("t"),
            ConnectionLost(),
            RequestError("r"),
            UnresolvedSessionError("s"),
            SchemaNotReadyError(),
            AuthenticationError("a"),
            DeviceNotFoundError(),
            SessionError("s"),
            ConfigurationError("c"),
        ]
        for error in errors:
            with pytest.raises(CortexGridError):
                raise error


# ===========================================================================
# CONFIG TESTS
# ===========================================================================


class TestCortexConfig:
    """Tests for CortexConfig dataclass."""

    def test_defaults(self):
        config = CortexConfig(client_id="id", client_secret="secret")
        assert config.url == "wss://localhost:6868"
        assert config.streams == ("com", "mot", "met", "sys")
        assert config.request_timeout == 10.0

    def test_missing_client_id(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CortexConfig(client_id="", client_secret="secret")
        assert exc_info.value.parameter == "client_id"

    def test_missing_client_secret(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CortexConfig(client_id="id", client_secret="")
        assert exc_info.value.parameter == "client_secret"

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigurationError):
            CortexConfig(client_id="id", client_secret="secret", request_timeout=0)

    def test_streams_list_is_frozen_to_tuple(self):
        config = CortexConfig(client_id="id", client_secret="secret", streams=["com"])
        assert config.streams == ("com",)

    def test_stream_names_are_normalized(self):
        config = CortexConfig(client_id="id", client_secret="secret", streams=("MOT", "Com"))
        assert config.streams == ("mot", "com")

    def test_unknown_stream_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CortexConfig(client_id="id", client_secret="secret", streams=("com", "eeg"))
        assert exc_info.value.parameter == "streams"
        assert "eeg" in str(exc_info.value)

    def test_default_streams_cover_every_demultiplexed_stream(self):
        config = CortexConfig(client_id="id", client_secret="secret")
        assert config.streams == tuple(s.value for s in CortexStream)

    def test_from_env_success(self):
        with patch.dict(os.environ, {
            "EMOTIV_CLIENT_ID": "env-id",
            "EMOTIV_CLIENT_SECRET": "env-secret",
            "EMOTIV_LICENSE_ID": "env-license",
            "EMOTIV_PROFILE": "env-profile",
            "CORTEX_URL": "ws://127.0.0.1:9999",
        }, clear=True):
            config = CortexConfig.from_env()
        assert config.client_id == "env-id"
        assert config.license_id == "env-license"
        assert config.profile == "env-profile"
        assert config.url == "ws://127.0.0.1:9999"

    def test_from_env_missing_client_id(self):
        with patch.dict(os.environ, {"EMOTIV_CLIENT_SECRET": "secret"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                CortexConfig.from_env()
        assert "EMOTIV_CLIENT_ID" in str(exc_info.value)


class TestSelectionConfig:
    """Tests for SelectionConfig dataclass."""

    def test_defaults(self):
        config = SelectionConfig()
        assert config.hold_duration == 5.0
        assert config.frames_to_trigger == 21
        assert config.cell_count == 9

    @pytest.mark.parametrize("kwargs", [
        {"push_threshold": 1.5},
        {"hold_duration": 0},
        {"decay_rate": 0},
        {"tilt_threshold": -1},
        {"frames_to_trigger": 0},
        {"rows": 0},
        {"horizontal_axis": "yaw"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SelectionConfig(**kwargs)

    def test_immutability(self):
        config = SelectionConfig()
        with pytest.raises(FrozenInstanceError):
            config.hold_duration = 1.0


class TestSmoothingConfig:
    """Tests for SmoothingConfig dataclass."""

    def test_disabled_by_default(self):
        assert SmoothingConfig().enabled is False

    def test_invalid_cutoff(self):
        with pytest.raises(ValueError):
            SmoothingConfig(min_cutoff=0)


class TestConfig:
    """Tests for main Config dataclass."""

    def test_creation_with_defaults(self):
        cortex = CortexConfig(client_id="id", client_secret="secret")
        config = Config(cortex=cortex)
        assert config.cortex is cortex
        assert isinstance(config.selection, SelectionConfig)
        assert isinstance(config.smoothing, SmoothingConfig)
        assert config.headsets == ()

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "cortexgrid.yaml"
        path.write_text(
            "cortex:\n"
            "  client_id: yaml-id\n"
            "  client_secret: yaml-secret\n"
            "  debit: 2\n"
            "selection:\n"
            "  hold_duration: 8.0\n"
            "  rows: 2\n"
            "  columns: 4\n"
            "smoothing:\n"
            "  enabled: true\n"
            "headsets:\n"
            "  - EPOCX-A\n"
            "  - EPOCX-B\n",
            encoding="utf-8",
        )

        config = Config.from_yaml(path)

        assert config.cortex.client_id == "yaml-id"
        assert config.cortex.debit == 2
        assert config.selection.hold_duration == 8.0
        assert config.selection.cell_count == 8
        assert config.smoothing.enabled is True
        assert config.headsets == ("EPOCX-A", "EPOCX-B")

    def test_from_yaml_credentials_fall_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EMOTIV_CLIENT_ID", "env-id")
        monkeypatch.setenv("EMOTIV_CLIENT_SECRET", "env-secret")
        path = tmp_path / "cortexgrid.yaml"
        path.write_text("headsets: EPOCX-A\n", encoding="utf-8")

        config = Config.from_yaml(path)

        assert config.cortex.client_id == "env-id"
        assert config.headsets == ("EPOCX-A",)

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_yaml(tmp_path / "missing.yaml")
        assert "not found" in str(exc_info.value)

    def test_from_yaml_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            Config.from_yaml(path)

    def test_from_yaml_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("cortex: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_yaml(path)
        assert "parse" in str(exc_info.value)

    def test_from_dict_unknown_key(self, monkeypatch):
        monkeypatch.delenv("EMOTIV_CLIENT_ID", raising=False)
        with pytest.raises(ConfigurationError):
            Config.from_dict({
                "cortex": {"client_id": "id", "client_secret": "s", "colour": "red"},
            })

    def test_from_dict_invalid_selection(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_dict({
                "cortex": {"client_id": "id", "client_secret": "s"},
                "selection": {"hold_duration": -1},
            })
        assert "selection" in str(exc_info.value)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("EMOTIV_CLIENT_ID", "env-id")
        monkeypatch.setenv("EMOTIV_CLIENT_SECRET", "env-secret")

        config = Config.from_env()

        assert config.cortex.client_secret == "env-secret"
        assert config.selection == SelectionConfig()


# ===========================================================================
# BUS TESTS
# ===========================================================================


def _status(headset_id="H"):
    return HeadsetStatusEvent(timestamp=0.0, headset_id=headset_id, status=HeadsetStatus.READY)


def _motion(cls=MotionEvent):
    return cls(timestamp=0.0, headset_id="H", pitch=0.0, roll=0.0, rotation=0.0)


class TestEventBus:
    """Tests for EventBus."""

    def test_delivers_to_subscribers_of_class(self):
        bus = EventBus()
        callback = MagicMock()
        bus.subscribe(HeadsetStatusEvent, callback)

        event = _status()
        bus.publish(event)

        callback.assert_called_once_with(event)

    def test_base_class_subscriber_sees_subclasses(self):
        bus = EventBus()
        everything = MagicMock()
        motion = MagicMock()
        bus.subscribe(HeadsetEvent, everything)
        bus.subscribe(MotionEvent, motion)

        bus.publish(_motion(SmoothedMotionEvent))
        bus.publish(_status())

        assert everything.call_count == 2
        assert motion.call_count == 1

    def test_subclass_subscriber_does_not_see_base(self):
        bus = EventBus()
        smoothed = MagicMock()
        bus.subscribe(SmoothedMotionEvent, smoothed)

        bus.publish(_motion())

        smoothed.assert_not_called()

    def test_duplicate_subscription_is_ignored(self):
        bus = EventBus()
        callback = MagicMock()
        bus.subscribe(HeadsetEvent, callback)
        bus.subscribe(HeadsetEvent, callback)

        bus.publish(_status())

        assert callback.call_count == 1
        assert bus.subscriber_count(HeadsetEvent) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        callback = MagicMock()
        bus.subscribe(HeadsetEvent, callback)
        bus.unsubscribe(HeadsetEvent, callback)
        bus.unsubscribe(MotionEvent, callback)

        bus.publish(_status())

        callback.assert_not_called()

    def test_failing_subscriber_does_not_block_others(self, caplog):
        bus = EventBus()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        bus.subscribe(HeadsetEvent, failing)
        bus.subscribe(HeadsetEvent, healthy)

        bus.publish(_status())

        healthy.assert_called_once()
        assert "Error in subscriber" in caplog.text

    def test_clear(self):
        bus = EventBus()
        bus.subscribe(HeadsetEvent, MagicMock())
        bus.clear()
        assert bus.subscriber_count(HeadsetEvent) == 0


# ===========================================================================
# COLORS TESTS
# ===========================================================================


class TestHeadsetColorRegistry:
    """Tests for HeadsetColorRegistry."""

    def test_first_seen_order(self):
        colors = HeadsetColorRegistry()
        assert colors.color_for("A") == HEADSET_COLORS[0]
        assert colors.color_for("B") == HEADSET_COLORS[1]

    def test_palette_holds_concrete_colors(self):
        assert len(set(HEADSET_COLORS)) == len(HEADSET_COLORS)
        for color in HEADSET_COLORS:
            assert re.fullmatch(r"hsl\(\d{1,3}, \d{1,3}%, \d{1,3}%\)", color), color

    def test_assignment_is_stable(self):
        colors = HeadsetColorRegistry()
        first = colors.color_for("A")
        colors.color_for("B")
        assert colors.color_for("A") == first

    def test_palette_cycles(self):
        colors = HeadsetColorRegistry(palette=["red", "blue"])
        assert [colors.color_for(h) for h in "ABC"] == ["red", "blue", "red"]

    def test_reset(self):
        colors = HeadsetColorRegistry()
        colors.color_for("A")
        colors.reset()
        assert colors.assigned() == {}
        assert colors.color_for("B") == HEADSET_COLORS[0]
