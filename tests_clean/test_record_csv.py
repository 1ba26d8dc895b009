from __future__ import annotations
import io
import locale
import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pytest

from gaitrec.config.constants import CSV_COLUMNS, RATIO_EPSILON
from gaitrec.pipeline.frames import HipsKinematics, Quaternion
from gaitrec.pipeline.io_utils import (
    fmt_fixed,
    fmt_general,
    fmt_timestamp,
    frame_to_row,
    render_gait_csv,
    write_gait_csv,
    frames_to_dataframe,
    read_gait_csv,
)
from gaitrec.pipeline.pipeline import FrameAggregator
from conftest import T0, standing_positions


def _session_frames(make_sample, n=12, leg_length=0.9):
    agg = FrameAggregator(leg_length=leg_length, started_at=T0)
    contacts = [(True, True), (True, False), (False, False), (False, True)]
    for i in range(n):
        l, r = contacts[i % 4]
        pos = standing_positions(sep=0.2 + 0.05 * (i % 3), hips=(0.0, 1.0, 0.1 * i))
        agg.push(make_sample(i, positions=pos, left=l, right=r, ms_per_tick=150.0))
    return agg.frames


def test_header_has_the_fixed_column_layout():
    assert len(CSV_COLUMNS) == 57
    assert CSV_COLUMNS[:5] == ["DateTime", "DateTimeDiffMs", "Frame", "TimeSum", "SysTimestamp"]
    assert CSV_COLUMNS[28] == "AccelerationRatio"
    assert CSV_COLUMNS[29:33] == ["RightThighRotationX", "RightThighRotationY", "RightThighRotationZ", "RightThighRotationW"]
    assert CSV_COLUMNS[-1] == "HeadRotationW"


def test_rows_match_header_and_buffer_order(make_sample):
    frames = _session_frames(make_sample)
    text = render_gait_csv(frames)
    lines = text.split("\n")
    assert lines[-1] == ""  # trailing terminator
    lines = lines[:-1]
    assert lines[0] == ",".join(CSV_COLUMNS)
    assert len(lines) == len(frames) + 1
    assert "\r" not in text
    for i, line in enumerate(lines[1:]):
        cells = line.split(",")
        assert len(cells) == 57
        assert cells[2] == str(i)


def test_ratio_columns_recomputed_from_stored_values(make_sample):
    frames = _session_frames(make_sample, leg_length=0.87)
    df = pd.read_csv(io.StringIO(render_gait_csv(frames)))
    denom = max(0.87, RATIO_EPSILON)
    pairs = [
        ("StepLength", "StepLengthRatio"),
        ("StrideWidth", "StrideWidthRatio"),
        ("StrideLengthRight", "StrideLengthRightRatio"),
        ("StrideLengthLeft", "StrideLengthLeftRatio"),
        ("Velocity", "VelocityRatio"),
        ("Acceleration", "AccelerationRatio"),
    ]
    for value_col, ratio_col in pairs:
        expected = np.round(df[value_col].to_numpy() / denom, 6)
        np.testing.assert_allclose(df[ratio_col].to_numpy(), expected, atol=2e-6)


def test_zero_leg_length_uses_epsilon(make_sample):
    agg = FrameAggregator(leg_length=0.0, started_at=T0)
    f = agg.push(make_sample(0))
    assert f.step_length_ratio() == pytest.approx(f.step_length / RATIO_EPSILON)
    cells = frame_to_row(f)
    assert cells[CSV_COLUMNS.index("StepLengthRatio")] == f"{0.2 / 1e-4:.6f}"


def test_sentinels_and_flags(make_sample):
    frames = _session_frames(make_sample)
    rows = [frame_to_row(f) for f in frames]
    idx = {name: i for i, name in enumerate(CSV_COLUMNS)}
    for f, row in zip(frames, rows):
        for col, val in (("LastStepMs", f.last_step_ms),
                         ("StepLengthAccum", f.step_length_accum),
                         ("StepHipDistance", f.step_hip_distance)):
            if val is None:
                assert row[idx[col]] == "-1"
            else:
                assert row[idx[col]] != "-1"
        assert row[idx["RightFootGround"]] == ("1" if f.ground.right_grounded else "0")
        assert row[idx["LeftFootGround"]] == ("1" if f.ground.left_grounded else "0")
        assert row[idx["HipPosY"]] == "0.000000"
    assert any(f.stepped for f in frames)


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_values_render_empty(make_sample, bad):
    f = _session_frames(make_sample, n=2)[1]
    g = replace(f, stride_width=bad, time_sum=bad, sys_time_diff_ms=bad,
                last_step_ms=bad, step_length_accum=bad, step_hip_distance=bad, leg_length=bad,
                joints=replace(f.joints, head=Quaternion(bad, 0.0, 0.0, 1.0), left_shin=Quaternion(0.0, 0.0, 0.0, bad)),
                hips=HipsKinematics(position=(bad, 0.0), velocity=bad, acceleration=0.0))
    row = frame_to_row(g)
    idx = {name: i for i, name in enumerate(CSV_COLUMNS)}
    for col in ("StrideWidth", "StrideWidthRatio", "TimeSum", "DateTimeDiffMs",
                "HipPosX", "Velocity", "VelocityRatio",
                "LastStepMs", "StepLengthAccum", "StepHipDistance", "LegLength",
                "HeadRotationX", "LeftShinRotationW"):
        assert row[idx[col]] == ""
    text = ",".join(row)
    assert "nan" not in text.lower() and "inf" not in text.lower()


def test_number_formats():
    assert fmt_fixed(1) == "1.000000"
    assert fmt_fixed(-0.0000004) == "-0.000000"
    assert fmt_fixed(1234567.1234567) == "1234567.123457"
    assert fmt_general(None) == "-1"
    assert fmt_general(150.0) == "150"
    assert fmt_general(0.3) == "0.3"
    assert fmt_general(float("nan")) == ""


def test_decimal_separator_ignores_host_locale():
    prev = locale.setlocale(locale.LC_NUMERIC)
    try:
        for name in ("de_DE.UTF-8", "fr_FR.UTF-8", "de_DE"):
            try:
                locale.setlocale(locale.LC_NUMERIC, name)
                break
            except locale.Error:
                continue
        assert fmt_fixed(3.5) == "3.500000"
        assert fmt_general(2.25) == "2.25"
    finally:
        locale.setlocale(locale.LC_NUMERIC, prev)


def test_timestamp_iso_and_epoch_share_the_instant():
    ts = datetime(2024, 5, 1, 14, 30, 15, 123456, tzinfo=timezone(timedelta(hours=2)))
    iso, epoch = fmt_timestamp(ts)
    assert iso == "2024-05-01T14:30:15.123456+02:00"
    assert datetime.fromisoformat(iso) == ts
    assert float(epoch) == pytest.approx(ts.timestamp(), abs=1e-6)
    assert epoch == "1714566615.123456"


def test_naive_timestamp_is_written_with_local_offset():
    iso, epoch = fmt_timestamp(datetime(2024, 1, 2, 3, 4, 5))
    parsed = datetime.fromisoformat(iso)
    assert parsed.tzinfo is not None
    assert float(epoch) == pytest.approx(parsed.timestamp(), abs=1e-6)


def test_write_is_utf8_without_bom(tmp_path, make_sample):
    frames = _session_frames(make_sample, n=3)
    out = write_gait_csv(tmp_path / "nested" / "dir" / "session.csv", frames)
    raw = out.read_bytes()
    assert not raw.startswith(b"\xef\xbb\xbf")
    assert raw.count(b"\n") == 4 and b"\r\n" not in raw
    df = read_gait_csv(out)
    assert list(df.columns) == CSV_COLUMNS
    assert len(df) == 3
    assert df["Frame"].tolist() == [0, 1, 2]


def test_reformatting_round_trip(make_sample):
    frames = _session_frames(make_sample)
    text = render_gait_csv(frames)
    df = read_gait_csv(text.encode("utf-8"))
    assert len(df) == len(frames)
    fixed_cols = [c for c in CSV_COLUMNS if c not in
                  ("DateTime", "DateTimeDiffMs", "Frame", "StepCount", "LastStepMs",
                   "RightFootGround", "LeftFootGround", "StepLengthAccum", "StepHipDistance")]
    lines = text.splitlines()[1:]
    for (_, rec), line in zip(df.iterrows(), lines):
        cells = dict(zip(CSV_COLUMNS, line.split(",")))
        for c in fixed_cols:
            assert f"{rec[c]:.6f}" == cells[c]


def test_dataframe_view_matches_frames(make_sample):
    frames = _session_frames(make_sample)
    df = frames_to_dataframe(frames)
    assert list(df.columns) == CSV_COLUMNS
    assert len(df) == len(frames)
    stepped = [f.stepped for f in frames]
    assert df["LastStepMs"].isna().tolist() == [not s for s in stepped]
    np.testing.assert_allclose(df["StepLengthRatio"], [f.step_length_ratio() for f in frames])


def test_render_rejects_none():
    with pytest.raises(TypeError):
        render_gait_csv(None)  # type: ignore[arg-type]
