"""
Per-frame gait records.

A GaitFrame is built once per tick and never mutated afterwards. Fields that
only apply on a step boundary (last step duration, accumulated step length,
hip travel since the previous step) are None on every other tick.
Normalized ratios are not stored; they are derived from the stored fields
and the session leg length through safe_ratio.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, NamedTuple, Optional, Sequence, Tuple

from ..config.constants import ORIENTATION_JOINTS, RATIO_EPSILON

__all__ = [
    "GroundState",
    "Quaternion",
    "JointOrientations",
    "HipsKinematics",
    "GaitFrame",
    "safe_ratio",
]


def safe_ratio(value: float, leg_length: float, eps: float = RATIO_EPSILON) -> float:
    return float(value) / max(float(leg_length), eps)


@dataclass(frozen=True)
class GroundState:
    left_grounded: bool
    right_grounded: bool


class Quaternion(NamedTuple):
    x: float
    y: float
    z: float
    w: float

    @classmethod
    def from_seq(cls, q: Sequence[float]) -> "Quaternion":
        vals = [float(c) for c in q]
        if len(vals) != 4:
            raise ValueError(f"Quaternion needs 4 components (x, y, z, w), got {len(vals)}")
        return cls(*vals)


IDENTITY = Quaternion(0.0, 0.0, 0.0, 1.0)


@dataclass(frozen=True)
class JointOrientations:
    right_thigh: Quaternion = IDENTITY
    left_thigh: Quaternion = IDENTITY
    right_shin: Quaternion = IDENTITY
    left_shin: Quaternion = IDENTITY
    right_shoulder: Quaternion = IDENTITY
    left_shoulder: Quaternion = IDENTITY
    head: Quaternion = IDENTITY

    @classmethod
    def from_mapping(cls, orientations: Mapping[str, Sequence[float]]) -> "JointOrientations":
        """Snapshot the seven tracked joints verbatim (x, y, z, w order, no renormalization)."""
        return cls(**{name: Quaternion.from_seq(orientations[name]) for name in ORIENTATION_JOINTS})

    def ordered(self) -> Tuple[Quaternion, ...]:
        return tuple(getattr(self, name) for name in ORIENTATION_JOINTS)


@dataclass(frozen=True)
class HipsKinematics:
    position: Tuple[float, float] = (0.0, 0.0)  # (x, z)
    velocity: float = 0.0
    acceleration: float = 0.0

    @property
    def position_xyz(self) -> Tuple[float, float, float]:
        return (self.position[0], 0.0, self.position[1])


@dataclass(frozen=True)
class GaitFrame:
    frame: int
    time_sum: float
    sys_time: datetime
    sys_time_diff_ms: float
    step_count: int
    last_step_ms: Optional[float]
    step_length: float                  # instantaneous foot separation
    step_length_accum: Optional[float]
    step_hip_distance: Optional[float]
    stride_width: float
    stride_length_right: float
    stride_length_left: float
    stride_time_right: float
    stride_time_left: float
    leg_length: float
    ground: GroundState
    joints: JointOrientations
    hips: HipsKinematics

    @property
    def stepped(self) -> bool:
        return self.last_step_ms is not None

    def step_length_ratio(self, eps: float = RATIO_EPSILON) -> float:
        return safe_ratio(self.step_length, self.leg_length, eps)

    def stride_width_ratio(self, eps: float = RATIO_EPSILON) -> float:
        return safe_ratio(self.stride_width, self.leg_length, eps)

    def stride_length_right_ratio(self, eps: float = RATIO_EPSILON) -> float:
        return safe_ratio(self.stride_length_right, self.leg_length, eps)

    def stride_length_left_ratio(self, eps: float = RATIO_EPSILON) -> float:
        return safe_ratio(self.stride_length_left, self.leg_length, eps)

    def velocity_ratio(self, eps: float = RATIO_EPSILON) -> float:
        return safe_ratio(self.hips.velocity, self.leg_length, eps)

    def acceleration_ratio(self, eps: float = RATIO_EPSILON) -> float:
        return safe_ratio(self.hips.acceleration, self.leg_length, eps)
