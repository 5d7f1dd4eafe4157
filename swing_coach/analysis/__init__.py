"""Analysis module for swing phases and scoring."""

from .phase_machine import (
    ALLOWED_TRANSITIONS,
    AnalysisSnapshot,
    InvalidTransition,
    Phase,
    PhaseChanged,
    SwingCompleted,
    SwingMetrics,
    SwingPhaseStateMachine,
    SwingResult,
    TrackingStatus,
)
from .scoring import SwingFeatures, estimate_speed_mph, rate_form, score_form
from .session_stats import SessionStats
from .stroke_profiles import SwingType, StrokeProfile
from .swing_classifier import SwingTypeClassifier
