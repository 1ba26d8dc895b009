"""
Pose source boundary: per-tick samples, rig validation and CSV replay.

The gait pipeline only needs, per tick, a named-joint position map, a
named-joint orientation map and a grounded flag per foot. Anything that can
produce PoseSample objects can drive a GaitSession; read_pose_csv and
iter_pose_samples replay a recorded pose table.
"""
from __future__ import annotations
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config.constants import (
    RIG_JOINTS,
    ORIENTATION_JOINTS,
    GROUND_RAY_LENGTH,
    GROUND_UP_OFFSET,
    GROUND_HEIGHT,
    TIME_CANDS,
    DT_CANDS,
    WALL_CANDS,
    LEFT_GROUND_CANDS,
    RIGHT_GROUND_CANDS,
    POS_AXES,
    QUAT_AXES,
)
from ..math.kinematics import leg_length_from_positions

__all__ = [
    "PoseSample",
    "RigResolveError",
    "GaitRig",
    "is_foot_grounded",
    "sanitize_cols",
    "pick_col",
    "read_pose_csv",
    "iter_pose_samples",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoseSample:
    positions: Mapping[str, Sequence[float]]
    orientations: Mapping[str, Sequence[float]]
    left_grounded: bool
    right_grounded: bool
    sim_time: float
    delta_time: float
    wall_time: datetime


class RigResolveError(ValueError):
    """Raised when the pose source cannot supply every joint the rig needs."""


@dataclass
class GaitRig:
    participant_name: str = ""
    required_joints: tuple = RIG_JOINTS
    leg_length: float = 0.0
    resolved: bool = field(default=False, init=False)

    def missing_joints(self, positions: Mapping[str, Sequence[float]]) -> List[str]:
        return [name for name in self.required_joints if positions.get(name) is None]

    def resolve(self, positions: Mapping[str, Sequence[float]]) -> float:
        """Validate a positions snapshot and fix the session leg length from it."""
        missing = self.missing_joints(positions)
        if missing:
            who = self.participant_name or "participant"
            msg = f"Missing joints: {', '.join(missing)}"
            logger.error("Failed to resolve rig for '%s'. %s", who, msg)
            raise RigResolveError(msg)
        self.leg_length = leg_length_from_positions(positions)
        self.resolved = True
        return self.leg_length


def is_foot_grounded(
    foot_position: Sequence[float],
    ground_height: float = GROUND_HEIGHT,
    ray_length: float = GROUND_RAY_LENGTH,
    up_offset: float = GROUND_UP_OFFSET,
) -> bool:
    """Cast a short ray straight down from just above the foot onto a flat ground plane."""
    y = float(foot_position[1])
    if not np.isfinite(y):
        return False
    clearance = y + up_offset - float(ground_height)
    return 0.0 <= clearance <= ray_length + up_offset


def sanitize_cols(cols):
    sc = []
    for c in cols:
        s = str(c).strip()
        s = re.sub(r"[^0-9A-Za-z]+", "_", s)
        s = re.sub(r"_+", "_", s)
        sc.append(s.strip("_").lower())
    return sc


def pick_col(df: pd.DataFrame, candidates: list[str], required: bool = True) -> Optional[str]:
    for c in candidates:
        if c in df.columns:
            return c
    if required:
        raise KeyError(f"Missing any of {candidates}")
    return None


def read_pose_csv(src: Union[str, Path, bytes]) -> pd.DataFrame:
    if isinstance(src, (bytes, bytearray)):
        text = bytes(src).decode("utf-8-sig", errors="ignore")
        if not text.strip():
            raise ValueError("Empty CSV payload")
        df = pd.read_csv(io.StringIO(text), low_memory=False)
    else:
        df = pd.read_csv(Path(src), low_memory=False, encoding="utf-8-sig")
    df.columns = sanitize_cols(df.columns)
    return df


def _joint_positions(df: pd.DataFrame, joint: str) -> Optional[np.ndarray]:
    cols = [f"{joint}_{a}" for a in POS_AXES]
    if not all(c in df.columns for c in cols):
        return None
    return df[cols].to_numpy(dtype=float)


def _joint_quats(df: pd.DataFrame, joint: str) -> np.ndarray:
    cols = [f"{joint}_{a}" for a in QUAT_AXES]
    if all(c in df.columns for c in cols):
        return df[cols].to_numpy(dtype=float)
    # untracked orientation -> identity
    out = np.zeros((len(df), 4), dtype=float)
    out[:, 3] = 1.0
    return out


def _flags(df: pd.DataFrame, cands: list[str]) -> Optional[np.ndarray]:
    col = pick_col(df, cands, required=False)
    if col is None:
        return None
    vals = df[col]
    if vals.dtype == object:
        low = vals.astype(str).str.strip().str.lower()
        return low.isin({"1", "true", "yes", "y", "on"}).to_numpy()
    return (vals.fillna(0).to_numpy(dtype=float) != 0)


def iter_pose_samples(
    df: pd.DataFrame,
    start_wall_time: Optional[datetime] = None,
    ground_height: float = GROUND_HEIGHT,
) -> Iterator[PoseSample]:
    """Turn a sanitized pose table into PoseSample objects, one per row.

    Missing delta-time columns are derived from the time column (0 on the
    first row); missing grounded flags fall back to is_foot_grounded on the
    foot heights; missing wall-clock columns are synthesised as
    start_wall_time + sim time.
    """
    n = len(df)
    if n == 0:
        return

    t = df[pick_col(df, TIME_CANDS)].to_numpy(dtype=float)
    dt_col = pick_col(df, DT_CANDS, required=False)
    if dt_col is not None:
        dt = df[dt_col].to_numpy(dtype=float)
    else:
        dt = np.concatenate([[0.0], np.diff(t)])

    wall_col = pick_col(df, WALL_CANDS, required=False)
    wall_epoch = df[wall_col].to_numpy(dtype=float) if wall_col is not None else None
    if start_wall_time is None:
        start_wall_time = datetime.now().astimezone()

    positions = {}
    for joint in RIG_JOINTS:
        arr = _joint_positions(df, joint)
        if arr is not None:
            positions[joint] = arr
    quats = {joint: _joint_quats(df, joint) for joint in ORIENTATION_JOINTS}

    left_flags = _flags(df, LEFT_GROUND_CANDS)
    right_flags = _flags(df, RIGHT_GROUND_CANDS)
    if left_flags is None or right_flags is None:
        logger.info("pose table has no contact columns; probing foot height against ground=%.3f", ground_height)

    for i in range(n):
        pos_i = {joint: arr[i] for joint, arr in positions.items()}
        if left_flags is not None:
            left = bool(left_flags[i])
        else:
            left = "left_foot" in pos_i and is_foot_grounded(pos_i["left_foot"], ground_height)
        if right_flags is not None:
            right = bool(right_flags[i])
        else:
            right = "right_foot" in pos_i and is_foot_grounded(pos_i["right_foot"], ground_height)

        if wall_epoch is not None:
            wall = datetime.fromtimestamp(float(wall_epoch[i]), tz=timezone.utc).astimezone()
        else:
            wall = start_wall_time + timedelta(seconds=float(t[i] - t[0]))

        yield PoseSample(
            positions=pos_i,
            orientations={joint: q[i] for joint, q in quats.items()},
            left_grounded=left,
            right_grounded=right,
            sim_time=float(t[i]),
            delta_time=float(dt[i]),
            wall_time=wall,
        )
