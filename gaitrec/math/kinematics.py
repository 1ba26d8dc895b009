from __future__ import annotations
from typing import Mapping, Sequence

import numpy as np

from ..config.constants import KINEMATICS_DT_FLOOR

__all__ = [
    "as_vec3",
    "planar",
    "distance",
    "planar_distance",
    "horizontal_gap",
    "is_degenerate_dt",
    "leg_length_from_positions",
]


def as_vec3(p: Sequence[float] | np.ndarray) -> np.ndarray:
    v = np.asarray(p, dtype=float).reshape(-1)
    if v.shape[0] != 3:
        raise ValueError(f"Expected a 3D point, got shape {np.shape(p)}")
    return v


def planar(p: Sequence[float] | np.ndarray) -> np.ndarray:
    """Project onto the horizontal XZ plane (Y up), keeping a 3-vector with y=0."""
    v = as_vec3(p).copy()
    v[1] = 0.0
    return v


def distance(a, b) -> float:
    return float(np.linalg.norm(as_vec3(a) - as_vec3(b)))


def planar_distance(a, b) -> float:
    return float(np.linalg.norm(planar(a) - planar(b)))


def horizontal_gap(a, b) -> float:
    """Absolute difference along X, the lateral axis."""
    return float(abs(as_vec3(a)[0] - as_vec3(b)[0]))


def is_degenerate_dt(dt: float, floor: float = KINEMATICS_DT_FLOOR) -> bool:
    try:
        d = float(dt)
    except (TypeError, ValueError):
        return True
    return (not np.isfinite(d)) or d <= floor


def leg_length_from_positions(positions: Mapping[str, Sequence[float]]) -> float:
    """Average thigh-to-foot distance over whichever legs are available.

    A leg counts when both its thigh and foot are present with finite
    coordinates. With only one leg it is used alone; with none the result
    is 0.0.
    """
    lengths = []
    for side in ("right", "left"):
        thigh = positions.get(f"{side}_thigh")
        foot = positions.get(f"{side}_foot")
        if thigh is None or foot is None:
            continue
        a, b = as_vec3(thigh), as_vec3(foot)
        if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
            continue
        lengths.append(float(np.linalg.norm(a - b)))
    if not lengths:
        return 0.0
    return float(np.mean(lengths))
