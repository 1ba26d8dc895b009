from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..config.constants import STEP_MIN_INTERVAL_MS
from ..config.settings import Settings, settings as default_settings
from ..math.kinematics import as_vec3, distance, horizontal_gap, planar_distance
from .frames import GaitFrame, GroundState, JointOrientations
from .hips import HipsTracker
from .io_utils import write_gait_csv
from .pose_source import GaitRig, PoseSample
from .step_counter import StepCounter
from .stride import StrideCalculator

__all__ = ["FrameAggregator", "FlushReport", "GaitSession", "record_session"]

logger = logging.getLogger(__name__)


class FrameAggregator:
    """Owns the per-session calculators and the append-only frame buffer."""

    def __init__(
        self,
        leg_length: float,
        started_at: datetime,
        initial_hip_position: Optional[Sequence[float]] = None,
        min_step_interval_ms: float = STEP_MIN_INTERVAL_MS,
    ):
        self.leg_length = float(leg_length)
        self.step_counter = StepCounter(min_step_interval_ms)
        self.stride = StrideCalculator()
        self.hips = HipsTracker()

        self._frames: List[GaitFrame] = []
        self._prev_wall_time = started_at
        self._time_sum = 0.0
        self._first = True
        self._step_length_accum = 0.0
        self._prev_step_length = 0.0
        self._last_step_hip = None if initial_hip_position is None else as_vec3(initial_hip_position)

    @property
    def frames(self) -> Tuple[GaitFrame, ...]:
        return tuple(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def clear(self) -> None:
        self._frames.clear()

    def push(self, sample: PoseSample) -> GaitFrame:
        pos = sample.positions
        right_foot = as_vec3(pos["right_foot"])
        left_foot = as_vec3(pos["left_foot"])
        hips = as_vec3(pos["hips"])
        right_g, left_g = bool(sample.right_grounded), bool(sample.left_grounded)

        dt = float(sample.delta_time)
        # non-finite deltas leave the running total as it was
        if math.isfinite(dt):
            self._time_sum += dt
        now = sample.wall_time
        sys_diff_ms = (now - self._prev_wall_time).total_seconds() * 1000.0
        self._prev_wall_time = now

        # 1. strides
        if self._first:
            self.stride.init(right_foot, left_foot, right_g, left_g, sample.sim_time)
        else:
            self.stride.update(right_foot, left_foot, right_g, left_g, sample.sim_time)

        # 2. steps
        obs = self.step_counter.observe(left_g, right_g, now)

        # 3. instantaneous geometry
        step_length = distance(right_foot, left_foot)
        stride_width = horizontal_gap(right_foot, left_foot)

        # 4. step length accumulator
        if self._first:
            self._prev_step_length = step_length
        self._step_length_accum += abs(step_length - self._prev_step_length)
        self._prev_step_length = step_length

        # 5. hip travel between steps
        if self._last_step_hip is None:
            self._last_step_hip = hips
        accum_out = None
        hip_dist_out = None
        if obs.stepped:
            accum_out = self._step_length_accum
            self._step_length_accum = 0.0
            hip_dist_out = planar_distance(hips, self._last_step_hip)
            self._last_step_hip = hips

        # 6. hips kinematics
        hips_kin = self.hips.update(hips, sample.delta_time)

        # 7-8. snapshot and append
        frame = GaitFrame(
            frame=len(self._frames),
            time_sum=self._time_sum,
            sys_time=now,
            sys_time_diff_ms=sys_diff_ms,
            step_count=self.step_counter.step_count,
            last_step_ms=obs.duration_ms if obs.stepped else None,
            step_length=step_length,
            step_length_accum=accum_out,
            step_hip_distance=hip_dist_out,
            stride_width=stride_width,
            stride_length_right=self.stride.stride_length_right,
            stride_length_left=self.stride.stride_length_left,
            stride_time_right=self.stride.stride_time_right,
            stride_time_left=self.stride.stride_time_left,
            leg_length=self.leg_length,
            ground=GroundState(left_grounded=left_g, right_grounded=right_g),
            joints=JointOrientations.from_mapping(sample.orientations),
            hips=hips_kin,
        )
        self._frames.append(frame)
        self._first = False
        return frame


@dataclass(frozen=True)
class FlushReport:
    path: Optional[Path]
    frames_written: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GaitSession:
    """One recording session: resolve the rig, tick per frame, flush once at the end."""

    def __init__(self, rig: Optional[GaitRig] = None, settings: Optional[Settings] = None,
                 min_step_interval_ms: Optional[float] = None):
        self.rig = rig or GaitRig()
        self.settings = settings or default_settings
        self.min_step_interval_ms = (
            self.settings.min_step_interval_ms if min_step_interval_ms is None else float(min_step_interval_ms)
        )
        self.aggregator: Optional[FrameAggregator] = None

    @property
    def started(self) -> bool:
        return self.aggregator is not None

    @property
    def leg_length(self) -> float:
        return self.rig.leg_length

    @property
    def frames(self) -> Tuple[GaitFrame, ...]:
        return self.aggregator.frames if self.aggregator is not None else ()

    def start(self, sample: PoseSample, wall_time: Optional[datetime] = None) -> float:
        """Resolve the rig against the first sample; raises RigResolveError before any frame exists."""
        if self.aggregator is not None and len(self.aggregator):
            raise RuntimeError("GaitSession.start() called with unflushed frames; flush() first")
        leg = self.rig.resolve(sample.positions)
        self.aggregator = FrameAggregator(
            leg_length=leg,
            started_at=wall_time or sample.wall_time,
            initial_hip_position=sample.positions["hips"],
            min_step_interval_ms=self.min_step_interval_ms,
        )
        logger.info("session started: leg_length=%.4f m, min_step=%.1f ms", leg, self.min_step_interval_ms)
        return leg

    def tick(self, sample: PoseSample) -> GaitFrame:
        if self.aggregator is None:
            raise RuntimeError("GaitSession.tick() called before start()")
        return self.aggregator.push(sample)

    def default_path(self) -> Path:
        name = (self.rig.participant_name or self.settings.session_name or "").strip() or "GaitSession"
        return Path(self.settings.output_dir) / f"{name}.csv"

    def flush(self, path: Union[str, Path, None] = None) -> FlushReport:
        """Write every buffered frame once; the buffer is dropped whatever the outcome."""
        n = len(self.aggregator) if self.aggregator is not None else 0
        if n == 0:
            logger.info("flush: no frames recorded, nothing written")
            return FlushReport(path=None, frames_written=0)
        target = Path(path) if path is not None else self.default_path()
        try:
            write_gait_csv(target, self.aggregator.frames)
            logger.info("wrote %d frames to %s", n, target)
            return FlushReport(path=target, frames_written=n)
        except OSError as e:
            logger.error("failed to write gait CSV %s: %s", target, e)
            return FlushReport(path=target, frames_written=0, error=str(e))
        finally:
            self.aggregator.clear()


def record_session(samples: Iterable[PoseSample], session: Optional[GaitSession] = None) -> GaitSession:
    """Drive a session from any iterable of samples (start on the first, tick on every one)."""
    session = session or GaitSession()
    for sample in samples:
        if not session.started:
            session.start(sample)
        session.tick(sample)
    return session
