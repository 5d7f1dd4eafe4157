"""Stroke-specific phase profiles.

A profile carries the few thresholds that depend on the detected swing type.
Everything else stays in PhaseThresholds.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SwingType(Enum):
    """Swing types the analyzer can label."""
    UNKNOWN = "unknown"
    FOREHAND = "forehand"
    BACKHAND = "backhand"


@dataclass(frozen=True)
class StrokeProfile:
    """Thresholds for a swing type."""

    name: str

    # Shoulder rotation that marks the contact zone on the way through.
    contact_rotation: float = 15.0


FOREHAND_PROFILE = StrokeProfile(
    name="forehand",
    contact_rotation=15.0,
)

# Backhand contact happens with the shoulders still more closed.
BACKHAND_PROFILE = StrokeProfile(
    name="backhand",
    contact_rotation=10.0,
)

PROFILES = {
    SwingType.UNKNOWN: FOREHAND_PROFILE,
    SwingType.FOREHAND: FOREHAND_PROFILE,
    SwingType.BACKHAND: BACKHAND_PROFILE,
}


def profile_for(swing_type: SwingType) -> StrokeProfile:
    return PROFILES.get(swing_type, FOREHAND_PROFILE)
