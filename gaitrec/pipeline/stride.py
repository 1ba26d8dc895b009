"""
Per-foot stride tracking.

Each foot runs its own lift-off -> touch-down cycle. Lift-off records where
and when the stride window opens; the next touch-down commits the straight
displacement from that lift-off position and the elapsed time. Committed
values stay in place until the next touch-down replaces them.
"""
from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np

from ..math.kinematics import as_vec3

__all__ = ["FootStride", "StrideCalculator"]


@dataclass
class FootStride:
    prev_grounded: bool = False
    liftoff_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    liftoff_time: float = 0.0
    length: float = 0.0     # m, last committed
    duration: float = 0.0   # s, last committed

    def seed(self, position, grounded: bool, time: float) -> None:
        self.liftoff_position = as_vec3(position).copy()
        self.prev_grounded = bool(grounded)
        self.liftoff_time = float(time)
        self.length = 0.0
        self.duration = 0.0

    def step(self, position, grounded: bool, time: float) -> None:
        grounded = bool(grounded)
        if not self.prev_grounded and grounded:
            # touch-down closes the window opened at lift-off
            self.length = float(np.linalg.norm(as_vec3(position) - self.liftoff_position))
            self.duration = max(0.0, float(time) - self.liftoff_time)
        if self.prev_grounded and not grounded:
            self.liftoff_position = as_vec3(position).copy()
            self.liftoff_time = float(time)
        self.prev_grounded = grounded


class StrideCalculator:
    def __init__(self):
        self.right = FootStride()
        self.left = FootStride()
        self.initialised = False

    def reset(self) -> None:
        self.right = FootStride()
        self.left = FootStride()
        self.initialised = False

    def init(self, right_pos, left_pos, right_grounded: bool, left_grounded: bool, time: float) -> None:
        self.right.seed(right_pos, right_grounded, time)
        self.left.seed(left_pos, left_grounded, time)
        self.initialised = True

    def update(self, right_pos, left_pos, right_grounded: bool, left_grounded: bool, time: float) -> None:
        if not self.initialised:
            self.init(right_pos, left_pos, right_grounded, left_grounded, time)
            return
        self.right.step(right_pos, right_grounded, time)
        self.left.step(left_pos, left_grounded, time)

    @property
    def stride_length_right(self) -> float:
        return self.right.length

    @property
    def stride_length_left(self) -> float:
        return self.left.length

    @property
    def stride_time_right(self) -> float:
        return self.right.duration

    @property
    def stride_time_left(self) -> float:
        return self.left.duration
