"""End-to-end tests: frames in, coaching messages out."""

import asyncio
import json
from argparse import Namespace

import pytest

from swing_coach.analysis.phase_machine import Phase, PhaseChanged, SwingCompleted
from swing_coach.coaching.composer import SessionConfig
from swing_coach.coaching.sink import RecordingSpeechSink
from swing_coach.config.coach_config import config_from_dict
from swing_coach.core.synthetic import forehand_sweep, make_pose
from swing_coach.main import build_config, read_frames
from swing_coach.session import SessionOrchestrator

FAST = {
    "scheduler": {"min_gap_s": 0.0},
    "phases": {"complete_hold_s": 0.01},
    "coaching": {"analysis_tick_s": 0.01},
}


def _orchestrator(sink=None):
    return SessionOrchestrator(sink or RecordingSpeechSink(), config_from_dict(FAST))


async def _play(orchestrator, frames):
    for frame in frames:
        await orchestrator.process_frame(frame)


# =====================================================================
# Lifecycle
# =====================================================================

@pytest.mark.asyncio
async def test_start_twice_is_ignored():
    orch = _orchestrator()
    assert await orch.start(SessionConfig(player_name="Sam"))
    assert not await orch.start()
    await orch.end_session()


@pytest.mark.asyncio
async def test_calls_outside_session_are_noops():
    orch = _orchestrator()
    assert await orch.end_session() is None
    assert orch.reset() is None
    assert await orch.process_frame(make_pose(0.0, 0.0, timestamp=0.0)) is None
    assert not orch.submit_frame(make_pose(0.0, 0.0, timestamp=0.0))


@pytest.mark.asyncio
async def test_opening_message_sent():
    sink = RecordingSpeechSink()
    orch = _orchestrator(sink)
    await orch.start()
    await orch.scheduler.join(timeout=1.0)
    assert sink.texts[0].startswith("Ready to train forehand.")
    await orch.end_session()


# =====================================================================
# Full swing through the pipeline
# =====================================================================

@pytest.mark.asyncio
async def test_swing_produces_messages_and_summary():
    sink = RecordingSpeechSink()
    orch = _orchestrator(sink)
    await orch.start(announce=False)
    await _play(orch, forehand_sweep())
    await orch.scheduler.join(timeout=1.0)

    assert "Uncoil! Drive hips first, then shoulders." in sink.texts
    assert "Contact zone! Extend through." in sink.texts
    assert any(text.startswith("Swing 1.") for text in sink.texts)
    assert orch.stats.swing_count == 1

    summary = await orch.end_session()
    assert summary.swing_count == 1
    assert summary.results[0].index == 1
    assert summary.summary_text.startswith("Session complete! 1 swings.")
    assert summary.summary_delivered
    assert sink.texts[-1] == summary.summary_text
    assert not orch.is_active


@pytest.mark.asyncio
async def test_complete_rearms_after_hold():
    orch = _orchestrator()
    snapshots = []
    orch.add_listener(snapshots.append)
    await orch.start(announce=False)
    for frame in forehand_sweep():
        snapshot = await orch.process_frame(frame)
        if snapshot.phase == Phase.COMPLETE:
            break
    assert orch.state().phase == Phase.COMPLETE

    # No more frames: the wall-clock timer does the rearm
    await asyncio.sleep(0.1)
    assert orch.state().phase == Phase.READY
    rearmed = [
        e for s in snapshots for e in s.events
        if isinstance(e, PhaseChanged) and e.current == Phase.READY
    ]
    assert len(rearmed) == 1
    await orch.end_session()


@pytest.mark.asyncio
async def test_end_without_swings_has_no_summary_message():
    sink = RecordingSpeechSink()
    orch = _orchestrator(sink)
    await orch.start(announce=False)
    summary = await orch.end_session()
    assert summary.swing_count == 0
    assert summary.summary_text is None
    assert not summary.summary_delivered
    assert sink.sent == []


@pytest.mark.asyncio
async def test_reset_abandons_swing():
    orch = _orchestrator()
    await orch.start(announce=False)
    frames = forehand_sweep()
    await _play(orch, frames[:20])
    assert orch.state().phase != Phase.READY

    snapshot = orch.reset()
    assert snapshot.phase == Phase.READY
    assert orch.scheduler.pending() == []
    summary = await orch.end_session()
    assert summary.swing_count == 0


@pytest.mark.asyncio
async def test_submit_frame_keeps_latest_only():
    orch = _orchestrator()
    await orch.start(announce=False)
    frames = [make_pose(0.0, 0.0, timestamp=i / 30.0) for i in range(3)]
    for frame in frames:
        assert orch.submit_frame(frame)
    assert orch.dropped_frames == 2

    await asyncio.sleep(0.02)
    assert orch.state().timestamp == frames[-1].timestamp
    summary = await orch.end_session()
    assert summary.dropped_frames == 2


@pytest.mark.asyncio
async def test_listener_sees_swing_completed():
    orch = _orchestrator()
    completed = []
    orch.add_listener(
        lambda snap: completed.extend(e for e in snap.events if isinstance(e, SwingCompleted))
    )
    await orch.start(announce=False)
    await _play(orch, forehand_sweep())
    assert len(completed) == 1
    await orch.end_session()


# =====================================================================
# CLI helpers
# =====================================================================

def test_read_frames_skips_bad_lines(tmp_path):
    path = tmp_path / "frames.jsonl"
    good = {"t": 0.5, "joints": {"right_wrist": [0.3, 0.6, 0.9]}}
    path.write_text(json.dumps(good) + "\n" + "not json\n\n" + json.dumps({"t": 1.0}) + "\n")
    frames = list(read_frames(path))
    assert len(frames) == 1
    assert frames[0].timestamp == 0.5
    assert frames[0].get("right_wrist").confidence == pytest.approx(0.9)


def test_build_config_flags():
    args = Namespace(config=None, left_handed=True, loop=True, classify=False)
    config = build_config(args)
    assert config.analyzer.is_right_handed is False
    assert config.analyzer.enable_loop_phase is True
    assert config.analyzer.enable_swing_type_classification is False


# =====================================================================
# Faster-than-real-time replay
# =====================================================================

@pytest.mark.asyncio
async def test_replay_rearms_on_frame_time():
    # Default 2 s hold: the wall-clock timer never fires during the replay.
    config = config_from_dict({"scheduler": {"min_gap_s": 0.0}})
    orch = SessionOrchestrator(RecordingSpeechSink(), config)
    await orch.start(announce=False)

    for rep in range(3):
        await _play(orch, forehand_sweep(start_time=4.0 * rep))

    assert orch.stats.swing_count == 3
    assert [r.index for r in orch.machine.history] == [1, 2, 3]
    summary = await orch.end_session()
    assert summary.swing_count == 3


@pytest.mark.asyncio
async def test_frame_time_rearm_replaces_timer():
    config = config_from_dict({"scheduler": {"min_gap_s": 0.0}})
    orch = SessionOrchestrator(RecordingSpeechSink(), config)
    await orch.start(announce=False)
    frames = forehand_sweep()
    await _play(orch, frames)
    assert orch.state().phase == Phase.COMPLETE
    timer = orch._rearm_task
    assert timer is not None

    due = orch.machine.completed_at + config.phases.complete_hold_s
    snapshot = await orch.process_frame(make_pose(0.0, 0.0, timestamp=due))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert timer.cancelled()
    assert snapshot.phase == Phase.PREPARATION
    await orch.end_session()


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_frames():
    orch = _orchestrator()

    def broken(snapshot):
        raise RuntimeError("display went away")

    seen = []
    orch.add_listener(broken)
    orch.add_listener(seen.append)
    await orch.start(announce=False)

    orch.submit_frame(make_pose(0.0, 0.0, timestamp=0.0))
    await asyncio.sleep(0.02)
    orch.submit_frame(make_pose(0.0, 0.0, timestamp=0.1))
    await asyncio.sleep(0.02)

    assert [s.timestamp for s in seen] == [0.0, 0.1]
    assert orch.state().timestamp == 0.1
    await orch.end_session()
