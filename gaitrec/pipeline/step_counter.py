"""
Step counting from the two foot-contact flags.

A step is a single-support phase (exactly one foot grounded). The gate closes
while single support holds and reopens on double support or double flight,
so each single-support interval is counted at most once. A minimum interval
between counted steps rejects contact jitter.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import NamedTuple, Optional

from ..config.constants import STEP_MIN_INTERVAL_MS

__all__ = ["StepObservation", "StepCounter"]

logger = logging.getLogger(__name__)


class StepObservation(NamedTuple):
    stepped: bool
    duration_ms: Optional[float]


class StepCounter:
    def __init__(self, min_step_interval_ms: float = STEP_MIN_INTERVAL_MS):
        self.min_step_interval_ms = max(0.0, float(min_step_interval_ms))
        self.step_count = 0
        self.gate = True
        self.last_step_time: Optional[datetime] = None

    def reset(self, now: datetime) -> None:
        self.step_count = 0
        self.gate = True
        self.last_step_time = now

    def observe(self, left_grounded: bool, right_grounded: bool, now: datetime) -> StepObservation:
        xor = bool(left_grounded) != bool(right_grounded)
        result = StepObservation(False, None)
        # first observation anchors the debounce clock
        if self.last_step_time is None:
            self.last_step_time = now

        if xor and self.gate:
            elapsed_ms = (now - self.last_step_time).total_seconds() * 1000.0
            if elapsed_ms >= self.min_step_interval_ms:
                self.step_count += 1
                self.last_step_time = now
                result = StepObservation(True, elapsed_ms)
                logger.debug("step %d after %.1f ms", self.step_count, elapsed_ms)

        self.gate = not xor
        return result
