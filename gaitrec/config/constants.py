"""Centralized constants, thresholds, joint names and column layouts for gait recording."""
from __future__ import annotations

# Step detection
STEP_MIN_INTERVAL_MS = 120.0   # debounce between counted steps

# Hips kinematics
KINEMATICS_DT_FLOOR = 1e-6     # s; smaller deltas freeze velocity/acceleration

# Ratios
RATIO_EPSILON = 1e-4           # floor on leg length when normalizing

# Serialized stand-in for "not applicable this tick"
UNSET_TEXT = "-1"

# Ground probe (flat plane stand-in for a downward raycast)
GROUND_RAY_LENGTH = 0.1
GROUND_UP_OFFSET = 0.01
GROUND_HEIGHT = 0.0

# Joints
ORIENTATION_JOINTS = (
    "right_thigh",
    "left_thigh",
    "right_shin",
    "left_shin",
    "right_shoulder",
    "left_shoulder",
    "head",
)
RIG_JOINTS = (
    "left_foot", "right_foot",
    "left_thigh", "right_thigh",
    "left_shin", "right_shin",
    "left_shoulder", "right_shoulder",
    "head", "hips",
)

# Record file layout
_ROTATION_BLOCKS = (
    "RightThighRotation",
    "LeftThighRotation",
    "RightShinRotation",
    "LeftShinRotation",
    "RightShoulderRotation",
    "LeftShoulderRotation",
    "HeadRotation",
)
CSV_COLUMNS = [
    "DateTime", "DateTimeDiffMs", "Frame", "TimeSum", "SysTimestamp",
    "StepCount", "LastStepMs",
    "RightFootGround", "LeftFootGround", "StepLengthAccum",
    "HipPosX", "HipPosY", "HipPosZ",
    "StepHipDistance", "LegLength",
    "StepLength", "StepLengthRatio",
    "StrideWidth", "StrideWidthRatio",
    "StrideLengthRight", "StrideLengthRightRatio", "StrideTimeRight",
    "StrideLengthLeft", "StrideLengthLeftRatio", "StrideTimeLeft",
    "Velocity", "VelocityRatio", "Acceleration", "AccelerationRatio",
] + [f"{block}{axis}" for block in _ROTATION_BLOCKS for axis in ("X", "Y", "Z", "W")]
CSV_HEADER = ",".join(CSV_COLUMNS)

# Pose CSV column aliases (sanitized, lower-case)
TIME_CANDS = ["sim_time", "time_s", "time", "timestamp_s", "seconds", "sec", "t"]
DT_CANDS = ["delta_time", "dt", "deltatime", "dt_s"]
WALL_CANDS = ["wall_time", "wall_clock", "epoch_s", "unix_time", "sys_timestamp"]
LEFT_GROUND_CANDS = ["left_grounded", "left_ground", "leftfootground", "left_foot_ground"]
RIGHT_GROUND_CANDS = ["right_grounded", "right_ground", "rightfootground", "right_foot_ground"]
POS_AXES = ("x", "y", "z")
QUAT_AXES = ("qx", "qy", "qz", "qw")
