"""Per-swing speed estimate and form score.

Both are deterministic functions of the swing's accumulated extrema: no state,
no learned weights. Identical inputs always give identical outputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..config.coach_config import DEFAULT_CONFIG, ScoringConfig, SpeedConfig


@dataclass(frozen=True)
class SwingFeatures:
    """Inputs to the form score."""

    duration_s: float
    max_rotation_deg: float
    separation_deg: float
    speed_mph: float
    follow_through_complete: bool


def estimate_speed_mph(
    peak_angular_velocity: float,
    config: SpeedConfig = DEFAULT_CONFIG.speed,
) -> float:
    """
    Convert peak shoulder angular velocity (deg/s) to racket speed (mph).

    v = omega * r, with r an effective arm + racket radius. The result is
    clamped to [0, max_speed_mph] so a tracking spike cannot report an
    impossible swing.
    """
    if math.isnan(peak_angular_velocity) or peak_angular_velocity <= 0:
        return 0.0
    if math.isinf(peak_angular_velocity):
        return float(config.max_speed_mph)

    meters_per_second = math.radians(peak_angular_velocity) * config.rotation_radius_m
    mph = meters_per_second * config.mps_to_mph
    return float(min(config.max_speed_mph, max(0.0, mph)))


def score_form(features: SwingFeatures, config: ScoringConfig = DEFAULT_CONFIG.scoring) -> int:
    """Weighted-bonus form score clamped to [0, 100]."""
    score = config.baseline

    # Timing
    duration = features.duration_s
    if config.optimal_duration_min < duration < config.optimal_duration_max:
        score += config.optimal_duration_bonus
    elif config.ok_duration_min < duration < config.ok_duration_max:
        score += config.ok_duration_bonus

    # Backswing depth
    depth = abs(features.max_rotation_deg)
    if depth > config.deep_rotation:
        score += config.deep_rotation_bonus
    elif depth > config.good_rotation:
        score += config.good_rotation_bonus

    # Hip-shoulder separation (X-factor)
    if features.separation_deg > config.high_separation:
        score += config.high_separation_bonus
    elif features.separation_deg > config.good_separation:
        score += config.good_separation_bonus

    # Speed generation
    if features.speed_mph > config.fast_speed:
        score += config.fast_speed_bonus
    elif features.speed_mph > config.good_speed:
        score += config.good_speed_bonus

    if features.follow_through_complete:
        score += config.follow_through_bonus

    return int(min(100, max(0, score)))


def rate_form(score: int, config: ScoringConfig = DEFAULT_CONFIG.scoring) -> str:
    """Short rating label used in completion feedback."""
    if score >= config.excellent_score:
        return "Excellent!"
    if score >= config.good_score:
        return "Good form"
    return f"Form: {score}"
