"""Swing Coach - CLI entry point."""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List

from .analysis.phase_machine import AnalysisSnapshot, PhaseChanged, SwingCompleted
from .analysis.stroke_profiles import SwingType
from .coaching.composer import SessionConfig
from .coaching.messages import CoachingStyle
from .coaching.sink import ConsoleSpeechSink
from .config.coach_config import DEFAULT_CONFIG, CoachConfig, load_config
from .core.frame import JointFrame
from .core.synthetic import forehand_sweep
from .session import SessionOrchestrator

logger = logging.getLogger(__name__)


def read_frames(path: Path) -> Iterator[JointFrame]:
    """Read JSON lines of {"t": seconds, "joints": {name: [x, y, confidence]}}.

    Malformed lines are skipped with a warning.
    """
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
                yield JointFrame.from_tuples(record["joints"], timestamp=record.get("t"))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping line %d of %s: %s", line_no, path, exc)


def print_snapshot(snapshot: AnalysisSnapshot):
    for event in snapshot.events:
        if isinstance(event, PhaseChanged):
            print(f"[{event.timestamp:7.3f}s] {event.previous.value} -> {event.current.value}")
        elif isinstance(event, SwingCompleted):
            r = event.result
            print(
                f"  Swing #{r.index}: form {r.form_score}, {r.estimated_speed_mph:.1f} mph, "
                f"{r.duration_s:.2f}s, rotation {r.max_rotation_deg:.0f}°, "
                f"separation {r.separation_deg:.0f}°"
            )
            print(f"  {snapshot.hint}")


async def run_session(
    frames: List[JointFrame],
    config: CoachConfig,
    session: SessionConfig,
    fps: float,
    realtime: bool,
) -> int:
    sink = ConsoleSpeechSink()
    orchestrator = SessionOrchestrator(sink, config)
    orchestrator.add_listener(print_snapshot)

    await orchestrator.start(session)
    for frame in frames:
        await orchestrator.process_frame(frame)
        if realtime:
            await asyncio.sleep(1.0 / fps)

    # Let the scheduled COMPLETE -> READY and queued messages play out.
    await asyncio.sleep(config.phases.complete_hold_s if realtime else 0)
    if orchestrator.scheduler is not None:
        await orchestrator.scheduler.join(timeout=config.scheduler.speaking_timeout_s)

    summary = await orchestrator.end_session()
    print("\n" + "=" * 50)
    print("SESSION SUMMARY")
    print("=" * 50)
    print(f"Swings:         {summary.swing_count}")
    print(f"Average form:   {summary.average_form}")
    print(f"Peak speed:     {summary.peak_speed_mph:.1f} mph")
    print(f"Frames dropped: {summary.dropped_frames}")
    return 0


def build_config(args) -> CoachConfig:
    config = load_config(args.config) if args.config else DEFAULT_CONFIG
    analyzer = config.analyzer
    if args.left_handed:
        analyzer = replace(analyzer, is_right_handed=False)
    if args.loop:
        analyzer = replace(analyzer, enable_loop_phase=True)
    if args.classify:
        analyzer = replace(analyzer, enable_swing_type_classification=True)
    return replace(config, analyzer=analyzer)


def main():
    parser = argparse.ArgumentParser(
        description="Swing Coach - swing phase analysis and coaching stream"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", help="JSON file of config overrides")
    parser.add_argument("--left-handed", action="store_true", help="Left-handed player")
    parser.add_argument("--loop", action="store_true", help="Enable the racket-drop loop phase")
    parser.add_argument("--classify", action="store_true", help="Classify forehand/backhand")
    parser.add_argument("--player", default="Player", help="Player display name")
    parser.add_argument("--target", type=int, default=20, help="Target swing count")
    parser.add_argument(
        "--style",
        choices=[s.name.lower() for s in CoachingStyle],
        default="pro_coach",
        help="Coaching persona",
    )
    parser.add_argument("--fps", type=float, default=30.0, help="Frame rate for pacing")
    parser.add_argument("--realtime", action="store_true", help="Pace frames at --fps")

    sub = parser.add_subparsers(dest="command", required=True)
    replay = sub.add_parser("replay", help="Replay recorded joint frames (JSON lines)")
    replay.add_argument("frames", help="Path to frames .jsonl file")
    sub.add_parser("demo", help="Run one synthetic forehand through the pipeline")

    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    try:
        config = build_config(args)
    except (OSError, ValueError) as exc:
        print(f"Error: invalid config: {exc}")
        return 1

    if args.command == "replay":
        path = Path(args.frames)
        if not path.exists():
            print(f"Error: frames file not found: {path}")
            return 1
        frames = list(read_frames(path))
    else:
        frames = forehand_sweep(fps=args.fps)

    print(f"Frames: {len(frames)}")
    session = SessionConfig(
        target_swings=args.target,
        player_name=args.player,
        swing_type=SwingType.FOREHAND,
        style=CoachingStyle[args.style.upper()],
    )
    return asyncio.run(run_session(frames, config, session, args.fps, args.realtime))


if __name__ == "__main__":
    sys.exit(main())
