from __future__ import annotations
from pathlib import Path
import argparse
import sys

from gaitrec.config.log import setup_logging
from gaitrec.config.settings import settings
from gaitrec.pipeline.pipeline import GaitSession, record_session
from gaitrec.pipeline.pose_source import GaitRig, RigResolveError, read_pose_csv, iter_pose_samples


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Replay a pose CSV and write the per-frame gait record.")
    ap.add_argument('--input', type=str, required=True, help='pose table (joint positions/orientations per frame)')
    ap.add_argument('--output', type=str, default=None, help='record CSV path (default: GAIT_OUTPUT_DIR/<session>.csv)')
    ap.add_argument('--session', type=str, default='', help='participant / session name')
    ap.add_argument('--min-step-ms', type=float, default=None)
    ap.add_argument('--ground-height', type=float, default=settings.ground_height)
    ap.add_argument('--log-level', type=str, default=settings.log_level)
    args = ap.parse_args(argv)

    log = setup_logging(args.log_level)

    df = read_pose_csv(Path(args.input))
    session = GaitSession(rig=GaitRig(participant_name=args.session), min_step_interval_ms=args.min_step_ms)
    try:
        record_session(iter_pose_samples(df, ground_height=args.ground_height), session)
    except RigResolveError as e:
        print(f'Rig resolve failed: {e}', file=sys.stderr)
        return 2

    frames = session.frames
    steps = frames[-1].step_count if frames else 0
    report = session.flush(args.output)
    if not report.ok:
        log.error('record not written: %s', report.error)
        return 1

    print('Frames:', report.frames_written)
    print('Steps:', steps)
    print(f'Leg length: {session.leg_length:.4f} m')
    print('Output:', report.path)
    return 0


if __name__ == '__main__':
    sys.exit(main())
