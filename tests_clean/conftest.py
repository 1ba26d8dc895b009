# Shared builders for pose samples; keeps the project root importable when pytest runs from elsewhere.
from __future__ import annotations
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

_root = Path(__file__).resolve().parents[1]
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from gaitrec.config.constants import ORIENTATION_JOINTS, RIG_JOINTS  # noqa: E402
from gaitrec.pipeline.pose_source import PoseSample  # noqa: E402

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def standing_positions(sep: float = 0.2, hips=(0.0, 1.0, 0.0)):
    """Rig at rest: feet on the ground, `sep` apart along X, legs 0.9 m long."""
    half = sep / 2.0
    return {
        "right_foot": (half, 0.0, 0.0),
        "left_foot": (-half, 0.0, 0.0),
        "right_thigh": (half, 0.9, 0.0),
        "left_thigh": (-half, 0.9, 0.0),
        "right_shin": (half, 0.45, 0.0),
        "left_shin": (-half, 0.45, 0.0),
        "right_shoulder": (0.2, 1.4, 0.0),
        "left_shoulder": (-0.2, 1.4, 0.0),
        "head": (0.0, 1.7, 0.0),
        "hips": tuple(hips),
    }


def identity_orientations():
    return {name: (0.0, 0.0, 0.0, 1.0) for name in ORIENTATION_JOINTS}


@pytest.fixture
def make_sample():
    def _make(i: int = 0, positions=None, left=True, right=True, dt=0.02, ms_per_tick=20.0,
              orientations=None, wall_time=None, sim_time=None):
        return PoseSample(
            positions=positions if positions is not None else standing_positions(),
            orientations=orientations if orientations is not None else identity_orientations(),
            left_grounded=left,
            right_grounded=right,
            sim_time=float(i * dt) if sim_time is None else float(sim_time),
            delta_time=dt,
            wall_time=wall_time if wall_time is not None else T0 + timedelta(milliseconds=i * ms_per_tick),
        )
    return _make


# left, right contact per row: two counted steps at rows 3 and 7 when rows are 50 ms apart
WALK = [(True, True)] * 3 + [(True, False)] * 2 + [(True, True)] * 2 + [(False, True)] * 2 + [(True, True)]


def pose_table_csv(contacts=WALK, dt: float = 0.05, with_flags: bool = True, drop=()) -> str:
    """Pose table in the replay format; airborne feet are lifted 0.2 m so the ground probe agrees with the flags."""
    joints = [j for j in RIG_JOINTS if j not in drop]
    cols = ["time_s"]
    for j in joints:
        cols += [f"{j}_{a}" for a in ("x", "y", "z")]
    for j in ORIENTATION_JOINTS:
        cols += [f"{j}_{a}" for a in ("qx", "qy", "qz", "qw")]
    if with_flags:
        cols += ["left_grounded", "right_grounded"]
    lines = [",".join(cols)]
    for i, (left, right) in enumerate(contacts):
        pos = standing_positions(sep=0.2, hips=(0.0, 1.0, 0.1 * i))
        pos["left_foot"] = (-0.1, 0.0 if left else 0.2, 0.05 * i)
        pos["right_foot"] = (0.1, 0.0 if right else 0.2, 0.05 * i)
        row = [f"{i * dt:.3f}"]
        for j in joints:
            row += [f"{v:.4f}" for v in pos[j]]
        for j in ORIENTATION_JOINTS:
            row += ["0", "0", "0", "1"]
        if with_flags:
            row += [str(int(left)), str(int(right))]
        lines.append(",".join(row))
    return "\n".join(lines) + "\n"
