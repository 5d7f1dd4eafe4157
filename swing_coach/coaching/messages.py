"""Coaching message types and coach personas."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum, IntEnum


class MessagePriority(IntEnum):
    """Lower value drains first."""
    CRITICAL = 0  # phase changes, completions
    TECHNIQUE = 1  # form feedback
    MOTIVATION = 2  # encouragement
    INFO = 3  # general updates


@dataclass(frozen=True)
class PrioritizedMessage:
    text: str
    priority: MessagePriority = MessagePriority.INFO
    created_at: float = field(default_factory=time.monotonic)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class CoachingStyle(Enum):
    """Voice coach personas."""
    PRO_COACH = "Pro Coach"
    ENTHUSIAST = "Tennis Enthusiast"
    MENTAL_GAME = "Mental Game Coach"
    TECHNICIAN = "Technical Coach"

    @property
    def voice_prompt(self) -> str:
        return VOICE_PROMPTS[self]


VOICE_PROMPTS = {
    CoachingStyle.PRO_COACH: (
        "You are a professional tennis coach. Focused, technical, encouraging.\n"
        "Use proper tennis terminology. Brief responses, 8-12 words max.\n"
        "Call the player by name. Emphasize technique and form."
    ),
    CoachingStyle.ENTHUSIAST: (
        "You are an energetic tennis enthusiast! Passionate, positive, fun!\n"
        "Love the sport and show it. Make every swing exciting.\n"
        'Use phrases like "Beautiful!", "That\'s the sweet spot!", "Feel that power!"'
    ),
    CoachingStyle.MENTAL_GAME: (
        "You are a tennis mental game coach. Calm, focused, mindful.\n"
        "Emphasize breathing, visualization, mental preparation.\n"
        "Help with focus and confidence. Use calming language."
    ),
    CoachingStyle.TECHNICIAN: (
        "You are a technical tennis analyst. Precise, analytical, detailed.\n"
        "Focus on biomechanics, angles, timing. Use specific measurements.\n"
        "Professional and informative. Break down each swing phase."
    ),
}
