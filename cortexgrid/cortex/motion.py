"""Decoding of the Cortex ``mot`` stream.

A motion sample is a fixed-order numeric array. The service guarantees the
order of the fields, not their names, so they are unpacked by position:

    [COUNTER, INTERPOLATED, Q0, Q1, Q2, Q3,
     ACC_X, ACC_Y, ACC_Z, MAG_X, MAG_Y, MAG_Z]

The orientation quaternion is converted to pitch, roll and rotation (yaw)
in degrees. No calibration happens here; the selection engine zero-centres
the angles per headset.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple


COUNTER = 0
INTERPOLATED = 1
Q0 = 2
Q1 = 3
Q2 = 4
Q3 = 5
ACC_X = 6
ACC_Y = 7
ACC_Z = 8
MAG_X = 9
MAG_Y = 10
MAG_Z = 11

MOTION_SAMPLE_LENGTH = 12


@dataclass(frozen=True)
class MotionSample:
    """One decoded motion sample, angles in degrees."""

    counter: int
    interpolated: bool
    pitch: float
    roll: float
    rotation: float
    acc_x: float
    acc_y: float
    acc_z: float
    mag_x: float
    mag_y: float
    mag_z: float


def quaternion_to_euler(q0: float, q1: float, q2: float, q3: float) -> Tuple[float, float, float]:
    """Convert a unit quaternion to Euler angles.

    Args:
        q0: Scalar component.
        q1: First vector component.
        q2: Second vector component.
        q3: Third vector component.

    Returns:
        ``(pitch, roll, rotation)`` in degrees.
    """
    sin_pitch = max(-1.0, min(1.0, 2.0 * (q0 * q2 - q3 * q1)))
    pitch = math.asin(sin_pitch)
    rotation = math.atan2(2.0 * (q0 * q3 + q1 * q2), 1.0 - 2.0 * (q2 * q2 + q3 * q3))
    roll = math.atan2(2.0 * (q0 * q1 + q2 * q3), 1.0 - 2.0 * (q1 * q1 + q2 * q2))
    return math.degrees(pitch), math.degrees(roll), math.degrees(rotation)


def _number(sample: Sequence, index: int) -> float:
    value = sample[index]
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Motion field {index} is not numeric: {value!r}")
    return float(value)


def decode_motion(sample: Sequence) -> MotionSample:
    """Unpack a raw ``mot`` array by position.

    Raises:
        ValueError: If the sample is too short or a field is not numeric.
    """
    if not isinstance(sample, (list, tuple)) or len(sample) < MOTION_SAMPLE_LENGTH:
        raise ValueError(
            f"Motion sample must have {MOTION_SAMPLE_LENGTH} fields, got {sample!r}"
        )

    pitch, roll, rotation = quaternion_to_euler(
        _number(sample, Q0),
        _number(sample, Q1),
        _number(sample, Q2),
        _number(sample, Q3),
    )

    return MotionSample(
        counter=int(_number(sample, COUNTER)),
        interpolated=bool(sample[INTERPOLATED]),
        pitch=pitch,
        roll=roll,
        rotation=rotation,
        acc_x=_number(sample, ACC_X),
        acc_y=_number(sample, ACC_Y),
        acc_z=_number(sample, ACC_Z),
        mag_x=_number(sample, MAG_X),
        mag_y=_number(sample, MAG_Y),
        mag_z=_number(sample, MAG_Z),
    )
