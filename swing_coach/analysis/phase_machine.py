"""Swing phase state machine.

Consumes one JointFrame per sensor tick, smooths the rotation signals and
walks a fixed phase graph:

    READY -> PREPARATION -> BACKSWING -> [LOOP ->] FORWARD -> CONTACT
          -> FOLLOW_THROUGH -> COMPLETE -> READY

COMPLETE -> READY is not evaluated per frame: the owner of the machine calls
``rearm()`` once the result has been on screen for ``complete_hold_s``.
Every entry into COMPLETE produces exactly one SwingResult.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..config.coach_config import CoachConfig, DEFAULT_CONFIG, ReadyPolicy
from ..config.keypoints import leading_arm, required_joints
from ..core.frame import JointFrame
from ..core.smoother import SignalBank
from .pose_utils import (
    coil_sign,
    forward_offset,
    hip_center,
    hip_rotation_deg,
    joint_angle_deg,
    shoulder_rotation_deg,
    view_ratio,
)
from .scoring import SwingFeatures, estimate_speed_mph, rate_form, score_form
from .stroke_profiles import SwingType, profile_for
from .swing_classifier import SwingTypeClassifier

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Phases of a single swing repetition."""
    READY = "ready"
    PREPARATION = "preparation"
    BACKSWING = "backswing"
    LOOP = "loop"  # racket drop
    FORWARD = "forward"
    CONTACT = "contact"
    FOLLOW_THROUGH = "follow_through"
    COMPLETE = "complete"


ALLOWED_TRANSITIONS = {
    Phase.READY: frozenset({Phase.PREPARATION}),
    Phase.PREPARATION: frozenset({Phase.BACKSWING}),
    Phase.BACKSWING: frozenset({Phase.LOOP, Phase.FORWARD}),
    Phase.LOOP: frozenset({Phase.FORWARD}),
    Phase.FORWARD: frozenset({Phase.CONTACT}),
    Phase.CONTACT: frozenset({Phase.FOLLOW_THROUGH}),
    Phase.FOLLOW_THROUGH: frozenset({Phase.COMPLETE}),
    Phase.COMPLETE: frozenset({Phase.READY}),
}


class TrackingStatus(Enum):
    TRACKING = "tracking"
    NEEDS_REPOSITIONING = "needs_repositioning"


class InvalidTransition(RuntimeError):
    """Raised when code attempts a transition outside ALLOWED_TRANSITIONS."""


REPOSITION_HINT = "Position your full body clearly in frame"

# Signals kept in the smoothing bank
SHOULDER_ROTATION = "shoulder_rotation"
HIP_ROTATION = "hip_rotation"
WRIST_HEIGHT = "wrist_height"


@dataclass(frozen=True)
class SwingMetrics:
    """Per-tick derived quantities (smoothed where noted)."""

    shoulder_rotation: float = 0.0  # smoothed, degrees
    hip_rotation: float = 0.0  # smoothed, degrees
    wrist_height: float = 0.0  # smoothed
    elbow_angle: float = 0.0
    angular_velocity: float = 0.0  # deg/s
    hip_angular_velocity: float = 0.0  # deg/s
    separation: float = 0.0  # |shoulder - hip|
    kinetic_chain_sync: bool = False


@dataclass(frozen=True)
class SwingResult:
    """One completed repetition."""

    index: int
    estimated_speed_mph: float
    form_score: int
    timestamp: float
    duration_s: float
    max_rotation_deg: float
    separation_deg: float
    peak_angular_velocity: float
    follow_through_complete: bool
    swing_type: SwingType = SwingType.FOREHAND


@dataclass(frozen=True)
class PhaseChanged:
    previous: Phase
    current: Phase
    timestamp: float


@dataclass(frozen=True)
class SwingCompleted:
    result: SwingResult


@dataclass
class SwingAccumulator:
    """Extrema gathered between BACKSWING onset and COMPLETE."""

    start_time: float
    swing_type: SwingType = SwingType.FOREHAND
    peak_angular_velocity: float = 0.0
    max_rotation: float = 0.0  # most negative shoulder rotation reached
    peak_separation: float = 0.0
    follow_through_complete: bool = False

    def observe(self, metrics: SwingMetrics):
        if metrics.angular_velocity > self.peak_angular_velocity:
            self.peak_angular_velocity = metrics.angular_velocity
        if metrics.shoulder_rotation < self.max_rotation:
            self.max_rotation = metrics.shoulder_rotation
        if metrics.separation > self.peak_separation:
            self.peak_separation = metrics.separation


@dataclass(frozen=True)
class AnalysisSnapshot:
    """State of the machine after one tick."""

    phase: Phase
    status: TrackingStatus
    hint: str
    metrics: SwingMetrics
    swing_count: int
    timestamp: float
    events: Tuple[object, ...] = ()
    last_result: Optional[SwingResult] = None


class SwingPhaseStateMachine:
    """
    Frame-driven swing phase tracker.

    One configurable analyzer covers every variant: the loop sub-phase, the
    sideways-stance ready policy and swing-type classification are all config
    switches. Not thread-safe; feed it from a single frame stream.
    """

    def __init__(
        self,
        config: CoachConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.monotonic,
        swing_type: SwingType = SwingType.FOREHAND,
    ):
        """
        Initialize the phase machine.

        Args:
            config: Thresholds and analyzer switches
            clock: Time source used when frames carry no timestamp
            swing_type: Nominal swing type of the session
        """
        self.config = config
        self.thresholds = config.phases
        self.analyzer = config.analyzer
        self.clock = clock
        self.swing_type = swing_type

        is_right_handed = self.analyzer.is_right_handed
        self.shoulder_joint, self.elbow_joint, self.wrist_joint = leading_arm(is_right_handed)
        self.required = required_joints(is_right_handed)
        self.classifier = SwingTypeClassifier(is_right_handed)
        self._coil_sign = coil_sign(is_right_handed)

        self.signals = SignalBank(
            (SHOULDER_ROTATION, HIP_ROTATION, WRIST_HEIGHT),
            window_size=config.smoothing.window_size,
        )

        self.history: List[SwingResult] = []
        self._phase = Phase.READY
        self._phase_entered_at: Optional[float] = None
        self._prev_shoulder: Optional[float] = None
        self._prev_hip: Optional[float] = None
        self._swing: Optional[SwingAccumulator] = None
        self._completed_at: Optional[float] = None
        self._last = AnalysisSnapshot(
            phase=Phase.READY,
            status=TrackingStatus.TRACKING,
            hint="Stand sideways to camera",
            metrics=SwingMetrics(),
            swing_count=0,
            timestamp=0.0,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def swing_count(self) -> int:
        return len(self.history)

    @property
    def completed_at(self) -> Optional[float]:
        """Time the machine entered COMPLETE, None in any other phase."""
        return self._completed_at

    def state(self) -> AnalysisSnapshot:
        """Snapshot of the latest tick."""
        return self._last

    def analyze(self, frame: JointFrame) -> AnalysisSnapshot:
        """
        Process one frame.

        Frames missing a required joint, or with any of them under the
        confidence floor, leave every bit of state untouched and report a
        repositioning hint.
        """
        now = self._now(frame)

        if not frame.confident(self.required, self.analyzer.min_confidence):
            self._last = AnalysisSnapshot(
                phase=self._phase,
                status=TrackingStatus.NEEDS_REPOSITIONING,
                hint=REPOSITION_HINT,
                metrics=self._last.metrics,
                swing_count=self.swing_count,
                timestamp=now,
                last_result=self._last.last_result,
            )
            return self._last

        metrics = self._measure(frame)
        if self._swing is not None:
            self._swing.observe(metrics)

        events: List[object] = []
        hint = self._step(frame, metrics, now, events)

        self._last = AnalysisSnapshot(
            phase=self._phase,
            status=TrackingStatus.TRACKING,
            hint=hint,
            metrics=metrics,
            swing_count=self.swing_count,
            timestamp=now,
            events=tuple(events),
            last_result=self.history[-1] if self.history else None,
        )
        return self._last

    def rearm(self, now: Optional[float] = None) -> AnalysisSnapshot:
        """Scheduled COMPLETE -> READY transition. No-op in any other phase."""
        if self._phase != Phase.COMPLETE:
            return self._last

        now = self.clock() if now is None else now
        events: List[object] = []
        self._transition(Phase.READY, now, events)
        self._clear_tracking()
        self._last = AnalysisSnapshot(
            phase=self._phase,
            status=TrackingStatus.TRACKING,
            hint="Ready for next swing",
            metrics=SwingMetrics(),
            swing_count=self.swing_count,
            timestamp=now,
            events=tuple(events),
            last_result=self._last.last_result,
        )
        return self._last

    def reset(self, clear_history: bool = False):
        """Return to READY from any phase, dropping the swing in progress."""
        self._phase = Phase.READY
        self._phase_entered_at = None
        self._clear_tracking()
        if clear_history:
            self.history.clear()
        self._last = AnalysisSnapshot(
            phase=Phase.READY,
            status=TrackingStatus.TRACKING,
            hint="Ready for next swing",
            metrics=SwingMetrics(),
            swing_count=self.swing_count,
            timestamp=self._last.timestamp,
            last_result=self.history[-1] if self.history else None,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self, frame: JointFrame) -> float:
        return float(frame.timestamp) if frame.timestamp is not None else float(self.clock())

    def _clear_tracking(self):
        self.signals.reset()
        self._prev_shoulder = None
        self._prev_hip = None
        self._swing = None
        self._completed_at = None

    def _measure(self, frame: JointFrame) -> SwingMetrics:
        joints = frame.joints
        sign = self._coil_sign
        shoulder = self.signals.push(SHOULDER_ROTATION, sign * shoulder_rotation_deg(frame))
        hip = self.signals.push(HIP_ROTATION, sign * hip_rotation_deg(frame))
        wrist_height = self.signals.push(WRIST_HEIGHT, joints[self.wrist_joint].y)

        elbow_angle = joint_angle_deg(
            joints[self.shoulder_joint], joints[self.elbow_joint], joints[self.wrist_joint]
        )

        tick = self.analyzer.tick_interval
        velocity = 0.0 if self._prev_shoulder is None else abs(shoulder - self._prev_shoulder) / tick
        hip_velocity = 0.0 if self._prev_hip is None else abs(hip - self._prev_hip) / tick
        self._prev_shoulder = shoulder
        self._prev_hip = hip

        return SwingMetrics(
            shoulder_rotation=shoulder,
            hip_rotation=hip,
            wrist_height=wrist_height,
            elbow_angle=elbow_angle,
            angular_velocity=velocity,
            hip_angular_velocity=hip_velocity,
            separation=abs(shoulder - hip),
            # Hips leading shoulders through the forward swing
            kinetic_chain_sync=hip_velocity > velocity and self._phase == Phase.FORWARD,
        )

    def _transition(self, new_phase: Phase, now: float, events: List[object]):
        if new_phase not in ALLOWED_TRANSITIONS[self._phase]:
            raise InvalidTransition(f"{self._phase.value} -> {new_phase.value}")
        if new_phase == Phase.LOOP and not self.analyzer.enable_loop_phase:
            raise InvalidTransition("loop phase is disabled")

        previous = self._phase
        self._phase = new_phase
        self._phase_entered_at = now
        events.append(PhaseChanged(previous, new_phase, now))
        logger.debug("Phase %s -> %s at %.3f", previous.value, new_phase.value, now)

    def _dwell(self, now: float) -> float:
        if self._phase_entered_at is None:
            return 0.0
        return now - self._phase_entered_at

    def _stance_ready(self, frame: JointFrame, metrics: SwingMetrics) -> bool:
        th = self.thresholds
        if self.analyzer.ready_policy == ReadyPolicy.SIDEWAYS_STANCE:
            ratio = view_ratio(frame)
            side_on = ratio is not None and ratio < th.sideways_view_ratio_max
            return abs(metrics.shoulder_rotation) > th.sideways_shoulder_min and side_on
        return (
            abs(metrics.shoulder_rotation) < th.ready_shoulder_max
            and abs(metrics.hip_rotation) < th.ready_hip_max
        )

    def _returning_from_peak(self, metrics: SwingMetrics) -> bool:
        return metrics.shoulder_rotation > self._swing.max_rotation + self.thresholds.reversal_margin

    def _step(
        self,
        frame: JointFrame,
        metrics: SwingMetrics,
        now: float,
        events: List[object],
    ) -> str:
        """Evaluate the transition out of the current phase; return the hint."""
        th = self.thresholds
        joints = frame.joints
        wrist = joints[self.wrist_joint]
        hips = hip_center(frame)
        hip_x, hip_height = float(hips[0]), float(hips[1])
        shoulder = metrics.shoulder_rotation
        velocity = metrics.angular_velocity
        phase = self._phase

        if phase == Phase.READY:
            if self._stance_ready(frame, metrics):
                self._transition(Phase.PREPARATION, now, events)
                return "Good stance! Coil into backswing"
            return "Face sideways - shoulders at 90° to camera"

        if phase == Phase.PREPARATION:
            if shoulder < th.backswing_shoulder and metrics.hip_rotation < th.backswing_hip:
                self._swing = SwingAccumulator(start_time=now, swing_type=self._detect_swing_type(frame))
                self._swing.observe(metrics)
                self._transition(Phase.BACKSWING, now, events)
                return "Loading... rotate fully"
            if self._dwell(now) > th.preparation_nudge_s:
                return "Start your backswing - turn shoulders away"
            return "Good stance! Coil into backswing"

        if phase == Phase.BACKSWING:
            if (
                self.analyzer.enable_loop_phase
                and metrics.wrist_height < joints[self.elbow_joint].y - th.loop_wrist_drop
            ):
                self._transition(Phase.LOOP, now, events)
                return "Racket drop - now swing up to the ball"
            if velocity > th.reversal_velocity and self._returning_from_peak(metrics):
                self._transition(Phase.FORWARD, now, events)
                return "Unwinding! Drive through"
            if shoulder < th.deep_coil_shoulder:
                return f"Perfect coil! Hip-shoulder separation: {int(metrics.separation)}°"
            if shoulder < th.good_coil_shoulder:
                return "Good rotation - now accelerate forward"
            return "Loading... rotate fully"

        if phase == Phase.LOOP:
            if velocity > th.loop_exit_velocity and self._returning_from_peak(metrics):
                self._transition(Phase.FORWARD, now, events)
                return "Unwinding! Drive through"
            return "Racket drop - now swing up to the ball"

        if phase == Phase.FORWARD:
            profile = profile_for(self._swing.swing_type)
            wrist_in_front = (
                not self.analyzer.require_wrist_in_front
                or forward_offset(wrist, hip_x, self.analyzer.is_right_handed) > -th.contact_wrist_margin
            )
            if shoulder > profile.contact_rotation and velocity > th.contact_min_velocity and wrist_in_front:
                self._transition(Phase.CONTACT, now, events)
                return "Contact! Extend through the ball"
            if metrics.kinetic_chain_sync:
                return "Great kinetic chain! Hips leading"
            if metrics.hip_angular_velocity < velocity * 0.7:
                return "Accelerating - use your hips more"
            return "Driving forward!"

        if phase == Phase.CONTACT:
            lifted = (
                shoulder > th.follow_through_shoulder
                and metrics.wrist_height > hip_height + th.follow_through_wrist_lift
            )
            if lifted or self._dwell(now) > th.contact_max_dwell_s:
                self._transition(Phase.FOLLOW_THROUGH, now, events)
                return "Follow through! Finish high"
            return "Extend! Stay on target"

        if phase == Phase.FOLLOW_THROUGH:
            finish_high = metrics.wrist_height > hip_height + th.finish_high_lift
            across_body = (
                forward_offset(wrist, hip_x, self.analyzer.is_right_handed) > th.finish_across_margin
            )
            if finish_high and across_body:
                self._swing.follow_through_complete = True
                hint = "Complete follow-through!"
            elif not finish_high:
                hint = "Finish higher with your hand"
            else:
                hint = "Follow through across your body"

            if velocity < th.settle_velocity or self._dwell(now) > th.follow_through_max_dwell_s:
                self._transition(Phase.COMPLETE, now, events)
                result = self._complete_swing(now)
                events.append(SwingCompleted(result))
                return self._completion_feedback(result)
            return hint

        # COMPLETE holds until rearm()
        return self._last.hint

    def _detect_swing_type(self, frame: JointFrame) -> SwingType:
        if not self.analyzer.enable_swing_type_classification:
            return self.swing_type
        detected = self.classifier.classify(frame)
        return detected if detected != SwingType.UNKNOWN else self.swing_type

    def _complete_swing(self, now: float) -> SwingResult:
        swing = self._swing
        duration = max(0.0, now - swing.start_time)
        speed = estimate_speed_mph(swing.peak_angular_velocity, self.config.speed)
        score = score_form(
            SwingFeatures(
                duration_s=duration,
                max_rotation_deg=swing.max_rotation,
                separation_deg=swing.peak_separation,
                speed_mph=speed,
                follow_through_complete=swing.follow_through_complete,
            ),
            self.config.scoring,
        )
        result = SwingResult(
            index=len(self.history) + 1,
            estimated_speed_mph=speed,
            form_score=score,
            timestamp=now,
            duration_s=duration,
            max_rotation_deg=swing.max_rotation,
            separation_deg=swing.peak_separation,
            peak_angular_velocity=swing.peak_angular_velocity,
            follow_through_complete=swing.follow_through_complete,
            swing_type=swing.swing_type,
        )
        self.history.append(result)
        self._swing = None
        self._completed_at = now
        logger.info(
            "Swing %d complete: form %d, %.1f mph, %.2fs",
            result.index, result.form_score, result.estimated_speed_mph, result.duration_s,
        )
        return result

    def _completion_feedback(self, result: SwingResult) -> str:
        parts = [
            f"Swing #{result.index}",
            rate_form(result.form_score, self.config.scoring),
            f"{int(result.estimated_speed_mph)} mph",
        ]
        if result.separation_deg > self.config.coaching.separation_praise:
            parts.append("Great separation")
        return " • ".join(parts)
