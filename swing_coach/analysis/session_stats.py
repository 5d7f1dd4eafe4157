"""Session-level aggregates over completed swings."""

from __future__ import annotations

from collections import deque
from typing import List, Optional

import numpy as np

from ..config.coach_config import CoachingConfig, DEFAULT_CONFIG
from .phase_machine import SwingResult


class SessionStats:
    """Running averages, peak speed and consistency for one session."""

    def __init__(self, config: CoachingConfig = DEFAULT_CONFIG.coaching):
        self.config = config
        self.scores: List[int] = []
        self.peak_speed_mph: float = 0.0
        # Rolling average only kicks in once the window is exceeded.
        self.rolling_average: float = 0.0
        self.consistency_window: deque = deque(maxlen=config.consistency_window)

    @property
    def swing_count(self) -> int:
        return len(self.scores)

    @property
    def last_score(self) -> int:
        return self.scores[-1] if self.scores else 0

    @property
    def overall_average(self) -> int:
        if not self.scores:
            return 0
        return int(sum(self.scores) / len(self.scores))

    def record(self, result: SwingResult):
        self.scores.append(result.form_score)
        window = self.config.rolling_average_window
        if len(self.scores) > window:
            self.rolling_average = float(np.mean(self.scores[-window:]))
        if result.estimated_speed_mph > self.peak_speed_mph:
            self.peak_speed_mph = result.estimated_speed_mph
        self.consistency_window.append(result.form_score)

    def consistency(self) -> Optional[float]:
        """Population std-dev of the last few scores, None until the window fills."""
        if len(self.consistency_window) < self.consistency_window.maxlen:
            return None
        return float(np.std(np.asarray(self.consistency_window, dtype=np.float64)))

    def is_consistent(self) -> bool:
        spread = self.consistency()
        return spread is not None and spread < self.config.consistency_max_std

    def reset(self):
        self.scores.clear()
        self.peak_speed_mph = 0.0
        self.rolling_average = 0.0
        self.consistency_window.clear()
