"""Swing coach configuration.

All thresholds, timings and scoring parameters live here so that tuning the
phase machine or the coaching stream never requires touching analysis code.

Angles are in degrees, angular velocities in degrees/second, distances in
normalized frame units (0-1) and times in seconds.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union


class ReadyPolicy(str, Enum):
    """How the READY -> PREPARATION stance check is decided."""

    # Shoulders and hips near level (small rotation) means the player is set.
    NEUTRAL_STANCE = "neutral_stance"
    # Large rotation plus a side-on body means the player is set.
    SIDEWAYS_STANCE = "sideways_stance"


# =====================================================================
# Signal smoothing
# =====================================================================

@dataclass(frozen=True)
class SmoothingConfig:
    """Rolling-window smoothing of tracked scalars."""

    window_size: int = 5


# =====================================================================
# Phase machine
# =====================================================================

@dataclass(frozen=True)
class PhaseThresholds:
    """Thresholds driving the swing phase transitions."""

    # READY -> PREPARATION (neutral stance)
    ready_shoulder_max: float = 25.0
    ready_hip_max: float = 20.0

    # READY -> PREPARATION (sideways stance)
    sideways_shoulder_min: float = 60.0
    # shoulder width / torso height below this => side-on body
    sideways_view_ratio_max: float = 0.38

    # PREPARATION -> BACKSWING (loading)
    backswing_shoulder: float = -35.0
    backswing_hip: float = -20.0
    preparation_nudge_s: float = 3.0

    # Backswing depth cues
    deep_coil_shoulder: float = -65.0
    good_coil_shoulder: float = -50.0

    # BACKSWING -> FORWARD (reversal)
    reversal_velocity: float = 15.0
    reversal_margin: float = 5.0

    # BACKSWING -> LOOP (racket drop) and LOOP -> FORWARD
    loop_wrist_drop: float = 0.02
    loop_exit_velocity: float = 60.0

    # FORWARD -> CONTACT
    contact_min_velocity: float = 10.0
    contact_wrist_margin: float = 0.02

    # CONTACT -> FOLLOW_THROUGH
    follow_through_shoulder: float = 40.0
    follow_through_wrist_lift: float = 0.1
    contact_max_dwell_s: float = 0.5

    # Follow-through completion checks
    finish_high_lift: float = 0.15
    finish_across_margin: float = 0.05

    # FOLLOW_THROUGH -> COMPLETE
    settle_velocity: float = 5.0
    follow_through_max_dwell_s: float = 1.0

    # COMPLETE -> READY (scheduled by the session)
    complete_hold_s: float = 2.0


@dataclass(frozen=True)
class AnalyzerConfig:
    """Analyzer behaviour switches."""

    is_right_handed: bool = True
    min_confidence: float = 0.4
    # Sensor frame interval used for angular velocity (30 fps)
    tick_interval: float = 1.0 / 30.0
    ready_policy: ReadyPolicy = ReadyPolicy.NEUTRAL_STANCE
    enable_loop_phase: bool = False
    enable_swing_type_classification: bool = False
    require_wrist_in_front: bool = True


# =====================================================================
# Speed and form scoring
# =====================================================================

@dataclass(frozen=True)
class SpeedConfig:
    """Angular velocity -> racket head speed conversion."""

    # Effective rotation radius (arm + racket), meters
    rotation_radius_m: float = 0.75
    mps_to_mph: float = 2.237
    max_speed_mph: float = 85.0


@dataclass(frozen=True)
class ScoringConfig:
    """Weighted-bonus form score."""

    baseline: int = 50

    # Swing duration
    optimal_duration_min: float = 0.7
    optimal_duration_max: float = 1.3
    optimal_duration_bonus: int = 15
    ok_duration_min: float = 0.6
    ok_duration_max: float = 1.5
    ok_duration_bonus: int = 8

    # Backswing depth (absolute max shoulder rotation)
    deep_rotation: float = 65.0
    deep_rotation_bonus: int = 12
    good_rotation: float = 50.0
    good_rotation_bonus: int = 6

    # Hip-shoulder separation (X-factor)
    high_separation: float = 35.0
    high_separation_bonus: int = 12
    good_separation: float = 25.0
    good_separation_bonus: int = 6

    # Estimated speed
    fast_speed: float = 50.0
    fast_speed_bonus: int = 10
    good_speed: float = 35.0
    good_speed_bonus: int = 5

    follow_through_bonus: int = 11

    # Rating bands
    excellent_score: int = 80
    good_score: int = 65


# =====================================================================
# Coaching stream
# =====================================================================

@dataclass(frozen=True)
class SchedulerConfig:
    """Outbound message scheduling."""

    min_gap_s: float = 2.0
    recent_history: int = 10
    max_queue_size: int = 32
    speaking_timeout_s: float = 10.0
    send_timeout_s: float = 10.0
    final_send_timeout_s: float = 5.0


@dataclass(frozen=True)
class CoachingConfig:
    """Event -> message mapping and session pacing."""

    analysis_tick_s: float = 0.5
    tip_interval_s: float = 12.0
    tip_form_threshold: int = 65
    visualization_min_swings: int = 8
    visualization_form_threshold: float = 75.0
    rolling_average_window: int = 5
    consistency_window: int = 3
    consistency_max_std: float = 10.0
    praise_score: int = 85
    good_score: int = 70
    praise_speed_mph: float = 45.0
    separation_praise: float = 30.0


# =====================================================================
# Master configuration
# =====================================================================

@dataclass(frozen=True)
class CoachConfig:
    """Top-level configuration aggregating all sub-configs."""

    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    phases: PhaseThresholds = field(default_factory=PhaseThresholds)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    coaching: CoachingConfig = field(default_factory=CoachingConfig)

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["analyzer"]["ready_policy"] = self.analyzer.ready_policy.value
        return data


# Default configuration instance
DEFAULT_CONFIG = CoachConfig()


def _apply_overrides(base: Any, overrides: Dict[str, Any], path: str = "") -> Any:
    known = {f.name: f for f in fields(base)}
    changes = {}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown config key: {path}{key}")
        current = getattr(base, key)
        if is_dataclass(current):
            if not isinstance(value, dict):
                raise ValueError(f"Config section {path}{key} must be an object")
            changes[key] = _apply_overrides(current, value, f"{path}{key}.")
        elif isinstance(current, Enum):
            changes[key] = type(current)(value)
        else:
            changes[key] = value
    return replace(base, **changes)


def config_from_dict(overrides: Dict[str, Any], base: CoachConfig = DEFAULT_CONFIG) -> CoachConfig:
    """Apply nested overrides onto a base configuration."""
    config = _apply_overrides(base, overrides)
    validate_config(config)
    return config


def load_config(path: Union[str, Path]) -> CoachConfig:
    """Load a JSON file of overrides on top of DEFAULT_CONFIG."""
    with open(path, "r", encoding="utf-8") as f:
        overrides = json.load(f)
    if not isinstance(overrides, dict):
        raise ValueError("Config file must contain a JSON object")
    return config_from_dict(overrides)


def validate_config(config: CoachConfig) -> None:
    """Reject configurations the analyzer cannot run with."""
    if config.smoothing.window_size < 1:
        raise ValueError("smoothing.window_size must be >= 1")
    if not 0.0 <= config.analyzer.min_confidence <= 1.0:
        raise ValueError("analyzer.min_confidence must be within [0, 1]")
    if config.analyzer.tick_interval <= 0:
        raise ValueError("analyzer.tick_interval must be positive")
    if config.speed.max_speed_mph <= 0:
        raise ValueError("speed.max_speed_mph must be positive")
    if config.scheduler.min_gap_s < 0:
        raise ValueError("scheduler.min_gap_s must be >= 0")
    if config.scheduler.recent_history < 1:
        raise ValueError("scheduler.recent_history must be >= 1")
    if config.scheduler.send_timeout_s <= 0:
        raise ValueError("scheduler.send_timeout_s must be positive")
    if config.scheduler.max_queue_size < 1:
        raise ValueError("scheduler.max_queue_size must be >= 1")
