"""Tests for the swing phase state machine on scripted joint streams."""

import numpy as np
import pytest

from swing_coach.analysis.phase_machine import (
    ALLOWED_TRANSITIONS,
    REPOSITION_HINT,
    InvalidTransition,
    Phase,
    PhaseChanged,
    SwingCompleted,
    SwingPhaseStateMachine,
    TrackingStatus,
)
from swing_coach.analysis.stroke_profiles import SwingType
from swing_coach.config.coach_config import DEFAULT_CONFIG, config_from_dict
from swing_coach.core.frame import JointFrame, JointPoint
from swing_coach.core.synthetic import forehand_sweep, make_pose, rotation_sweep

FORWARD_PHASES = [
    Phase.PREPARATION,
    Phase.BACKSWING,
    Phase.FORWARD,
    Phase.CONTACT,
    Phase.FOLLOW_THROUGH,
    Phase.COMPLETE,
]


# ── Helpers ──────────────────────────────────────────────────────────

def _run(machine, frames):
    return [machine.analyze(f) for f in frames]


def _events(snapshots, kind):
    return [e for s in snapshots for e in s.events if isinstance(e, kind)]


def _entered(snapshots):
    return [e.current for e in _events(snapshots, PhaseChanged)]


def _mirror(frame: JointFrame) -> JointFrame:
    """Left-handed copy of a right-handed frame: flip x and swap sides."""
    joints = {}
    for name, p in frame.joints.items():
        if name.startswith("left_"):
            name = "right_" + name[len("left_"):]
        elif name.startswith("right_"):
            name = "left_" + name[len("right_"):]
        joints[name] = JointPoint(1.0 - p.x, p.y, p.confidence)
    return JointFrame(joints, frame.timestamp)


def _side_on_frame(timestamp=0.0) -> JointFrame:
    """Shoulders turned ~80 degrees with a narrow silhouette."""
    joints = dict(make_pose(0.0, 0.0).joints)
    joints["left_shoulder"] = JointPoint(0.5, 0.65, 1.0)
    joints["right_shoulder"] = JointPoint(0.51, 0.58, 1.0)
    return JointFrame(joints, timestamp)


# =====================================================================
# Full swing
# =====================================================================

class TestFullSwing:
    def test_phase_sequence(self):
        machine = SwingPhaseStateMachine()
        snaps = _run(machine, forehand_sweep())
        assert _entered(snaps) == FORWARD_PHASES
        assert machine.phase == Phase.COMPLETE

    def test_exactly_one_result(self):
        machine = SwingPhaseStateMachine()
        snaps = _run(machine, forehand_sweep())
        completed = _events(snaps, SwingCompleted)
        assert len(completed) == 1
        assert machine.swing_count == 1
        assert machine.history[0] is completed[0].result

    def test_result_values(self):
        machine = SwingPhaseStateMachine()
        _run(machine, forehand_sweep())
        result = machine.history[0]
        assert result.index == 1
        assert 0.6 < result.duration_s < 1.0
        assert -70.0 < result.max_rotation_deg < -50.0
        assert result.separation_deg == pytest.approx(10.0, abs=0.5)
        assert result.follow_through_complete
        assert 0.0 < result.estimated_speed_mph <= DEFAULT_CONFIG.speed.max_speed_mph
        assert 65 <= result.form_score <= 100
        assert result.swing_type == SwingType.FOREHAND

    def test_one_second_sweep_with_settle_tail(self):
        # 0 -> -70 -> +50 in 30 frames; smoothing lag needs a few settle frames
        frames = forehand_sweep(lead_frames=0, down_frames=15, up_frames=15, hold_frames=5)
        assert len(frames) == 35
        machine = SwingPhaseStateMachine()
        snaps = _run(machine, frames)

        assert _entered(snaps) == FORWARD_PHASES
        assert len(_events(snaps, SwingCompleted)) == 1
        result = machine.history[0]
        assert 50 <= result.form_score <= 100
        assert result.estimated_speed_mph > 0.0

    def test_complete_holds_until_rearm(self):
        machine = SwingPhaseStateMachine()
        frames = forehand_sweep()
        _run(machine, frames)
        extra = forehand_sweep(start_time=frames[-1].timestamp + 0.1, lead_frames=10)[:10]
        snaps = _run(machine, extra)
        assert all(s.phase == Phase.COMPLETE for s in snaps)
        assert _events(snaps, PhaseChanged) == []
        assert machine.swing_count == 1

    def test_rearm_then_second_swing(self):
        machine = SwingPhaseStateMachine()
        _run(machine, forehand_sweep())
        completed_at = machine.completed_at
        assert completed_at is not None

        snap = machine.rearm(now=completed_at + 2.0)
        assert snap.phase == Phase.READY
        assert snap.events == (PhaseChanged(Phase.COMPLETE, Phase.READY, completed_at + 2.0),)
        assert machine.completed_at is None

        snaps = _run(machine, forehand_sweep(start_time=completed_at + 3.0))
        assert _entered(snaps) == FORWARD_PHASES
        assert [r.index for r in machine.history] == [1, 2]

    def test_rearm_outside_complete_is_noop(self):
        machine = SwingPhaseStateMachine()
        snap = machine.rearm(now=1.0)
        assert snap.phase == Phase.READY
        assert snap.events == ()

    def test_snapshot_reports_last_result(self):
        machine = SwingPhaseStateMachine()
        snaps = _run(machine, forehand_sweep())
        assert snaps[-1].last_result is machine.history[0]
        assert snaps[-1].swing_count == 1


# =====================================================================
# Rejected frames
# =====================================================================

class TestTracking:
    def test_zero_confidence_stream_yields_nothing(self):
        machine = SwingPhaseStateMachine()
        frames = forehand_sweep(confidence=0.0, hold_frames=65)
        assert len(frames) == 100
        snaps = _run(machine, frames)
        assert all(s.phase == Phase.READY for s in snaps)
        assert all(s.status == TrackingStatus.NEEDS_REPOSITIONING for s in snaps)
        assert all(s.hint == REPOSITION_HINT for s in snaps)
        assert machine.history == []

    def test_rejected_frame_mutates_nothing(self):
        frames = forehand_sweep()
        reference = SwingPhaseStateMachine()
        _run(reference, frames)

        machine = SwingPhaseStateMachine()
        split = None
        for idx, frame in enumerate(frames):
            machine.analyze(frame)
            if machine.phase == Phase.BACKSWING:
                split = idx + 1
                break
        assert split is not None

        before = machine.state()
        window = len(machine.signals.smoothers["shoulder_rotation"])
        bad = make_pose(-80.0, -80.0, confidence=0.1, timestamp=frames[split - 1].timestamp + 0.01)
        snap = machine.analyze(bad)

        assert snap.status == TrackingStatus.NEEDS_REPOSITIONING
        assert snap.phase == Phase.BACKSWING
        assert snap.metrics == before.metrics
        assert len(machine.signals.smoothers["shoulder_rotation"]) == window

        _run(machine, frames[split:])
        assert machine.history[0].form_score == reference.history[0].form_score
        assert machine.history[0].max_rotation_deg == reference.history[0].max_rotation_deg

    def test_missing_wrist_is_rejected(self):
        frame = make_pose(0.0, 0.0)
        joints = {k: v for k, v in frame.joints.items() if k != "right_wrist"}
        snap = SwingPhaseStateMachine().analyze(JointFrame(joints, 0.0))
        assert snap.status == TrackingStatus.NEEDS_REPOSITIONING

    def test_first_tick_velocity_is_zero(self):
        snap = SwingPhaseStateMachine().analyze(make_pose(-10.0, -5.0, timestamp=0.0))
        assert snap.metrics.angular_velocity == 0.0


# =====================================================================
# Transition graph
# =====================================================================

class TestTransitionGraph:
    def test_no_backswing_no_result(self):
        machine = SwingPhaseStateMachine()
        frames = [make_pose(10.0 * np.sin(i / 5.0), 0.0, timestamp=i / 30.0) for i in range(120)]
        snaps = _run(machine, frames)
        assert machine.phase == Phase.PREPARATION
        assert _events(snaps, SwingCompleted) == []

    def test_preparation_nudge(self):
        machine = SwingPhaseStateMachine()
        snaps = _run(machine, [make_pose(0.0, 0.0, timestamp=i / 30.0) for i in range(120)])
        assert snaps[10].hint != snaps[-1].hint
        assert snaps[-1].hint == "Start your backswing - turn shoulders away"

    def test_noisy_sessions_follow_graph(self):
        rng = np.random.default_rng(7)
        machine = SwingPhaseStateMachine()
        snaps = []
        t = 0.0
        for _ in range(3):
            for angle in rotation_sweep():
                t += 1.0 / 30.0
                frame = make_pose(angle + rng.normal(0.0, 4.0), angle + 10.0 + rng.normal(0.0, 4.0), timestamp=t)
                snaps.append(machine.analyze(frame))
            if machine.phase == Phase.COMPLETE:
                snaps.append(machine.rearm(now=t))

        for event in _events(snaps, PhaseChanged):
            assert event.current in ALLOWED_TRANSITIONS[event.previous]
        entered_complete = [p for p in _entered(snaps) if p == Phase.COMPLETE]
        assert len(_events(snaps, SwingCompleted)) == len(entered_complete)
        assert len(machine.history) == len(entered_complete)

    def test_illegal_transition_raises(self):
        machine = SwingPhaseStateMachine()
        with pytest.raises(InvalidTransition):
            machine._transition(Phase.CONTACT, 0.0, [])

    def test_reset_keeps_history(self):
        machine = SwingPhaseStateMachine()
        _run(machine, forehand_sweep())
        machine.reset()
        assert machine.phase == Phase.READY
        assert machine.swing_count == 1
        machine.reset(clear_history=True)
        assert machine.swing_count == 0


# =====================================================================
# Variants
# =====================================================================

class TestVariants:
    def test_loop_phase(self):
        config = config_from_dict({"analyzer": {"enable_loop_phase": True}})
        machine = SwingPhaseStateMachine(config)
        snaps = _run(machine, forehand_sweep(wrist_drop=0.15))
        entered = _entered(snaps)
        assert entered[:4] == [Phase.PREPARATION, Phase.BACKSWING, Phase.LOOP, Phase.FORWARD]
        assert entered[-1] == Phase.COMPLETE
        assert machine.swing_count == 1

    def test_loop_disabled_by_default(self):
        machine = SwingPhaseStateMachine()
        snaps = _run(machine, forehand_sweep(wrist_drop=0.15))
        assert Phase.LOOP not in _entered(snaps)

    def test_sideways_ready_policy(self):
        sideways = config_from_dict({"analyzer": {"ready_policy": "sideways_stance"}})
        machine = SwingPhaseStateMachine(sideways)
        assert machine.analyze(_side_on_frame()).phase == Phase.PREPARATION

        neutral = SwingPhaseStateMachine()
        assert neutral.analyze(_side_on_frame()).phase == Phase.READY

        square = SwingPhaseStateMachine(sideways)
        assert square.analyze(make_pose(0.0, 0.0, timestamp=0.0)).phase == Phase.READY

    def test_left_handed_mirror(self):
        frames = forehand_sweep()
        right = SwingPhaseStateMachine()
        right_snaps = _run(right, frames)

        lefty = config_from_dict({"analyzer": {"is_right_handed": False}})
        left = SwingPhaseStateMachine(lefty)
        left_snaps = _run(left, [_mirror(f) for f in frames])

        assert _entered(left_snaps) == _entered(right_snaps)
        assert left.history[0].form_score == right.history[0].form_score

    def test_swing_type_classification(self):
        config = config_from_dict({"analyzer": {"enable_swing_type_classification": True}})
        machine = SwingPhaseStateMachine(config, swing_type=SwingType.BACKHAND)
        _run(machine, forehand_sweep())
        assert machine.history[0].swing_type == SwingType.FOREHAND
