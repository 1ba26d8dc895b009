from __future__ import annotations
import io
import math
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config.constants import CSV_COLUMNS, CSV_HEADER, UNSET_TEXT
from .frames import GaitFrame

__all__ = [
    "fmt_fixed",
    "fmt_general",
    "fmt_timestamp",
    "frame_to_row",
    "render_gait_csv",
    "write_gait_csv",
    "frames_to_dataframe",
    "read_gait_csv",
]


def _finite(v) -> bool:
    try:
        return math.isfinite(float(v))
    except (TypeError, ValueError):
        return False


def fmt_fixed(v: float) -> str:
    """Six decimals, '.' separator; NaN/Inf become an empty cell."""
    if not _finite(v):
        return ""
    return f"{float(v):.6f}"


def fmt_general(v: Optional[float]) -> str:
    """Shortest round-trip form; None is written as the -1 sentinel."""
    if v is None:
        return UNSET_TEXT
    if not _finite(v):
        return ""
    return np.format_float_positional(float(v), trim="-")


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.astimezone()


def fmt_timestamp(ts: datetime) -> tuple[str, str]:
    """ISO 8601 with offset and the Unix epoch seconds of the same instant."""
    aware = _aware(ts)
    return aware.isoformat(timespec="microseconds"), fmt_fixed(aware.timestamp())


def frame_to_row(f: GaitFrame) -> List[str]:
    iso, epoch = fmt_timestamp(f.sys_time)
    hx, hy, hz = f.hips.position_xyz
    row = [
        # time
        iso,
        fmt_general(f.sys_time_diff_ms),
        str(int(f.frame)),
        fmt_fixed(f.time_sum),
        epoch,
        # steps / flags
        str(int(f.step_count)),
        fmt_general(f.last_step_ms),
        "1" if f.ground.right_grounded else "0",
        "1" if f.ground.left_grounded else "0",
        fmt_general(f.step_length_accum),
        # hips (planar, y held at 0)
        fmt_fixed(hx),
        fmt_fixed(hy),
        fmt_fixed(hz),
        fmt_general(f.step_hip_distance),
        # lengths & ratios
        fmt_fixed(f.leg_length),
        fmt_fixed(f.step_length),
        fmt_fixed(f.step_length_ratio()),
        fmt_fixed(f.stride_width),
        fmt_fixed(f.stride_width_ratio()),
        fmt_fixed(f.stride_length_right),
        fmt_fixed(f.stride_length_right_ratio()),
        fmt_fixed(f.stride_time_right),
        fmt_fixed(f.stride_length_left),
        fmt_fixed(f.stride_length_left_ratio()),
        fmt_fixed(f.stride_time_left),
        # kinematics & ratios
        fmt_fixed(f.hips.velocity),
        fmt_fixed(f.velocity_ratio()),
        fmt_fixed(f.hips.acceleration),
        fmt_fixed(f.acceleration_ratio()),
    ]
    # quaternions: x, y, z, w per joint
    for q in f.joints.ordered():
        row.extend(fmt_fixed(c) for c in (q.x, q.y, q.z, q.w))
    return row


def render_gait_csv(frames: Sequence[GaitFrame]) -> str:
    if frames is None:
        raise TypeError("frames must be a sequence of GaitFrame, not None")
    lines = [CSV_HEADER]
    lines.extend(",".join(frame_to_row(f)) for f in frames)
    return "\n".join(lines) + "\n"


def write_gait_csv(path: Union[str, Path], frames: Sequence[GaitFrame]) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    text = render_gait_csv(frames)
    # utf-8 (no BOM); newline="" keeps "\n" on every platform
    with open(p, "w", encoding="utf-8", newline="") as fh:
        fh.write(text)
    return p


def frames_to_dataframe(frames: Iterable[GaitFrame]) -> pd.DataFrame:
    """Numeric view of the record table; None sentinels become NaN."""
    def opt(v):
        return np.nan if v is None else float(v)

    recs = []
    for f in frames:
        aware = _aware(f.sys_time)
        hx, hy, hz = f.hips.position_xyz
        rec = [
            aware, f.sys_time_diff_ms, f.frame, f.time_sum, aware.timestamp(),
            f.step_count, opt(f.last_step_ms),
            int(f.ground.right_grounded), int(f.ground.left_grounded), opt(f.step_length_accum),
            hx, hy, hz, opt(f.step_hip_distance), f.leg_length,
            f.step_length, f.step_length_ratio(),
            f.stride_width, f.stride_width_ratio(),
            f.stride_length_right, f.stride_length_right_ratio(), f.stride_time_right,
            f.stride_length_left, f.stride_length_left_ratio(), f.stride_time_left,
            f.hips.velocity, f.velocity_ratio(), f.hips.acceleration, f.acceleration_ratio(),
        ]
        for q in f.joints.ordered():
            rec.extend((q.x, q.y, q.z, q.w))
        recs.append(rec)
    return pd.DataFrame.from_records(recs, columns=CSV_COLUMNS)


def read_gait_csv(src: Union[str, Path, bytes]) -> pd.DataFrame:
    """Load a record file for offline analysis (empty cells -> NaN, -1 kept as-is)."""
    if isinstance(src, (bytes, bytearray)):
        buf = io.StringIO(bytes(src).decode("utf-8"))
        df = pd.read_csv(buf)
    else:
        df = pd.read_csv(Path(src), encoding="utf-8")
    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Not a gait record file; missing columns {missing}")
    return df
