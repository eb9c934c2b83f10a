"""Tests for decoding the ``mot`` stream."""

import math

import pytest

from cortexgrid.cortex.motion import decode_motion, quaternion_to_euler


pytestmark = pytest.mark.unit


def _sample(q0=1.0, q1=0.0, q2=0.0, q3=0.0, counter=7, interpolated=0):
    return [counter, interpolated, q0, q1, q2, q3, 0.1, 0.2, 9.8, 1.0, 2.0, 3.0]


class TestQuaternionToEuler:
    """Tests for quaternion_to_euler."""

    def test_identity_quaternion_is_level(self):
        assert quaternion_to_euler(1.0, 0.0, 0.0, 0.0) == (0.0, 0.0, 0.0)

    def test_rotation_about_vertical_axis_is_yaw(self):
        half = math.radians(30) / 2
        pitch, roll, rotation = quaternion_to_euler(math.cos(half), 0.0, 0.0, math.sin(half))

        assert rotation == pytest.approx(30.0)
        assert pitch == pytest.approx(0.0, abs=1e-9)
        assert roll == pytest.approx(0.0, abs=1e-9)

    def test_rotation_about_first_axis_is_roll(self):
        half = math.radians(-20) / 2
        pitch, roll, rotation = quaternion_to_euler(math.cos(half), math.sin(half), 0.0, 0.0)

        assert roll == pytest.approx(-20.0)
        assert pitch == pytest.approx(0.0, abs=1e-9)
        assert rotation == pytest.approx(0.0, abs=1e-9)

    def test_rotation_about_second_axis_is_pitch(self):
        half = math.radians(15) / 2
        pitch, roll, rotation = quaternion_to_euler(math.cos(half), 0.0, math.sin(half), 0.0)

        assert pitch == pytest.approx(15.0)

    def test_gimbal_lock_input_is_clamped(self):
        """A slightly denormalized quaternion must not make asin fail."""
        pitch, _, _ = quaternion_to_euler(0.7072, 0.0, 0.7072, 0.0)

        assert pitch == pytest.approx(90.0)


class TestDecodeMotion:
    """Tests for decode_motion."""

    def test_identity_sample_decodes_level(self):
        sample = decode_motion(_sample())

        assert (sample.pitch, sample.roll, sample.rotation) == (0.0, 0.0, 0.0)
        assert sample.counter == 7
        assert sample.interpolated is False
        assert (sample.acc_x, sample.acc_y, sample.acc_z) == (0.1, 0.2, 9.8)
        assert (sample.mag_x, sample.mag_y, sample.mag_z) == (1.0, 2.0, 3.0)

    def test_interpolated_flag(self):
        assert decode_motion(_sample(interpolated=1)).interpolated is True

    def test_short_sample_raises(self):
        with pytest.raises(ValueError):
            decode_motion([0, 0, 1.0, 0.0])

    def test_non_numeric_field_raises(self):
        sample = _sample()
        sample[4] = "x"

        with pytest.raises(ValueError):
            decode_motion(sample)

    def test_null_field_reads_as_zero(self):
        sample = _sample()
        sample[6] = None

        assert decode_motion(sample).acc_x == 0.0
