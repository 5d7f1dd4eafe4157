"""Turn analyzer events into coaching messages.

The composer owns no queue and sends nothing; it maps phase changes, swing
results and session progress to PrioritizedMessage values for the scheduler.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

from ..analysis.phase_machine import Phase, PhaseChanged, SwingResult
from ..analysis.session_stats import SessionStats
from ..analysis.stroke_profiles import SwingType
from ..config.coach_config import CoachingConfig, DEFAULT_CONFIG
from .messages import CoachingStyle, MessagePriority, PrioritizedMessage


@dataclass(frozen=True)
class SessionConfig:
    """What the player is practising; used only to compose message text."""

    target_swings: int = 20
    player_name: str = "Player"
    swing_type: SwingType = SwingType.FOREHAND
    style: CoachingStyle = CoachingStyle.PRO_COACH
    session_title: str = "Forehand Practice"


# Cue spoken on entering each phase; READY and COMPLETE stay silent.
PHASE_CUES = {
    Phase.PREPARATION: ("Set position. Shoulders turned, knees bent.", MessagePriority.TECHNIQUE),
    Phase.BACKSWING: ("Coiling. Load on back foot.", MessagePriority.TECHNIQUE),
    Phase.LOOP: ("Racket drop. Stay relaxed.", MessagePriority.INFO),
    Phase.FORWARD: ("Uncoil! Drive hips first, then shoulders.", MessagePriority.CRITICAL),
    Phase.CONTACT: ("Contact zone! Extend through.", MessagePriority.CRITICAL),
    Phase.FOLLOW_THROUGH: ("Follow through high and across body.", MessagePriority.TECHNIQUE),
}

TECHNIQUE_TIPS = (
    "Remember: hips rotate before shoulders for power.",
    "Keep your eyes on contact point longer.",
    "Accelerate through contact, don't slow down.",
    "Finish with hand high above opposite shoulder.",
    "Load weight on back foot, transfer to front.",
)

VISUALIZATION_TIP = "Between swings: visualize smooth, complete rotation."
CONSISTENCY_PRAISE = "Great consistency! Keep this rhythm."


def technique_advice(score: int) -> str:
    if score < 50:
        return "Focus on full shoulder rotation and smooth acceleration."
    if score < 65:
        return "Improve hip-shoulder separation and follow-through."
    return "Work on timing and weight transfer."


class MessageComposer:
    """Event -> message mapping for one coaching session."""

    def __init__(
        self,
        session: SessionConfig = SessionConfig(),
        config: CoachingConfig = DEFAULT_CONFIG.coaching,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.config = config
        self.rng = rng or random.Random()
        self.last_tip_time: Optional[float] = None

    def on_phase_change(self, event: PhaseChanged) -> Optional[PrioritizedMessage]:
        cue = PHASE_CUES.get(event.current)
        if cue is None:
            return None
        text, priority = cue
        return PrioritizedMessage(text, priority)

    def on_swing_complete(self, result: SwingResult, stats: SessionStats) -> List[PrioritizedMessage]:
        """Messages for a finished swing. ``stats`` must already include it."""
        cfg = self.config
        score = result.form_score
        speed = int(result.estimated_speed_mph)
        remaining = self.session.target_swings - result.index

        text = f"Swing {result.index}. "
        if score >= cfg.praise_score:
            text += f"Excellent form! {score}. "
            if result.estimated_speed_mph > cfg.praise_speed_mph:
                text += f"Great speed: {speed} mph."
        elif score >= cfg.good_score:
            text += f"Good technique. Form {score}, speed {speed} mph."
        else:
            text += f"Form needs work: {score}. "
            text += technique_advice(score)

        if remaining == 5:
            text += " Final 5 swings - maintain quality."
        elif remaining == 10:
            text += f" Halfway. Average form: {int(stats.rolling_average)}."

        messages = [PrioritizedMessage(text.strip(), MessagePriority.CRITICAL)]
        if stats.is_consistent():
            messages.append(PrioritizedMessage(CONSISTENCY_PRAISE, MessagePriority.MOTIVATION))
        return messages

    def periodic_tip(
        self,
        stats: SessionStats,
        now: float,
        is_speaking: bool = False,
    ) -> Optional[PrioritizedMessage]:
        """Technique tip at most every ``tip_interval_s`` while the coach is quiet."""
        cfg = self.config
        if is_speaking:
            return None
        if self.last_tip_time is not None and now - self.last_tip_time <= cfg.tip_interval_s:
            return None

        tip = None
        if 0 < stats.last_score < cfg.tip_form_threshold:
            tip = self.rng.choice(TECHNIQUE_TIPS)
        elif (
            stats.swing_count > cfg.visualization_min_swings
            and stats.rolling_average < cfg.visualization_form_threshold
        ):
            tip = VISUALIZATION_TIP

        if tip is None:
            return None
        self.last_tip_time = now
        return PrioritizedMessage(tip, MessagePriority.TECHNIQUE)

    def session_summary(self, stats: SessionStats) -> Optional[str]:
        """Closing line, or None when no swing was completed."""
        if stats.swing_count == 0:
            return None
        return (
            f"Session complete! {stats.swing_count} swings. "
            f"Average form: {stats.overall_average}. "
            f"Peak speed: {int(stats.peak_speed_mph)} mph. "
            "Great work today!"
        )

    def opening_message(self) -> str:
        return (
            f"Ready to train {self.session.swing_type.value}. "
            "Stand sideways, 6 feet back. I'll guide you through each phase. "
            "Focus on smooth rotation and full follow-through."
        )

    def agent_prompt(self) -> str:
        """Instructions for the conversational voice agent."""
        s = self.session
        return f"""{s.style.voice_prompt}

Coaching {s.player_name} on {s.swing_type.value}.
Target: {s.target_swings} quality swings.

PHASES & CUES:
1. Preparation: Unit turn, split step
2. Backswing: Full shoulder rotation (65°+), hip-shoulder separation
3. Forward: Hips initiate, kinetic chain, accelerate
4. Contact: Extension, racquet face control
5. Follow-through: High finish, balance

KEY METRICS:
- Hip-shoulder separation (X-factor): 30-45° optimal
- Swing timing: 0.7-1.3 seconds
- Form score: 80+ excellent, 65-79 good, <65 needs work
- Speed: 45+ mph good recreational level

COACHING PRIORITIES:
1. Phase transitions (immediate)
2. Technique issues (form <70, missing mechanics)
3. Encouragement (good swings, progress)
4. Strategy tips (between swings)

Keep responses 6-15 words. Be specific with technical cues.
Use the metrics provided to give actionable feedback."""
