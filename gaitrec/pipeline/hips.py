"""
Planar hip kinematics by backward finite differences.

A degenerate time delta (non-finite, zero, negative or below
KINEMATICS_DT_FLOOR) freezes both magnitudes: only the current position is
refreshed and the stored previous position/velocity are left alone.
"""
from __future__ import annotations
import logging

import numpy as np

from ..config.constants import KINEMATICS_DT_FLOOR
from ..math.kinematics import planar, is_degenerate_dt
from .frames import HipsKinematics

__all__ = ["HipsTracker"]

logger = logging.getLogger(__name__)


class HipsTracker:
    def __init__(self, dt_floor: float = KINEMATICS_DT_FLOOR):
        self.dt_floor = float(dt_floor)
        self.reset()

    def reset(self) -> None:
        self.prev_position = np.zeros(3)
        self.prev_velocity = np.zeros(3)
        self.current_position = np.zeros(3)
        self.velocity = 0.0
        self.acceleration = 0.0
        self.has_prev = False

    def snapshot(self) -> HipsKinematics:
        x, _, z = self.current_position
        return HipsKinematics(
            position=(float(x), float(z)),
            velocity=self.velocity,
            acceleration=self.acceleration,
        )

    def update(self, hip_position, dt: float) -> HipsKinematics:
        pos = planar(hip_position)

        if not self.has_prev:
            self.prev_position = pos
            self.prev_velocity = np.zeros(3)
            self.current_position = pos
            self.velocity = 0.0
            self.acceleration = 0.0
            self.has_prev = True
            return self.snapshot()

        if is_degenerate_dt(dt, self.dt_floor):
            logger.debug("hips: holding kinematics on degenerate dt=%r", dt)
            self.current_position = pos
            return self.snapshot()

        dt = float(dt)
        vel = (pos - self.prev_position) / dt
        acc = (vel - self.prev_velocity) / dt

        self.current_position = pos
        self.velocity = float(np.linalg.norm(vel))
        self.acceleration = float(np.linalg.norm(acc))

        self.prev_position = pos
        self.prev_velocity = vel
        return self.snapshot()
