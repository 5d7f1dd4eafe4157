"""Temporal smoothing for tracked swing signals."""

from collections import deque
from typing import Dict, Iterable

import numpy as np


class SignalSmoother:
    """
    Moving-average smoother over a fixed window of raw samples.

    Reduces frame-to-frame jitter in pose-derived scalars (rotation angles,
    wrist height) before they reach the phase machine.
    """

    def __init__(self, window_size: int = 5):
        """
        Initialize signal smoother.

        Args:
            window_size: Number of most recent raw samples to average.
        """
        self.window_size = max(1, int(window_size))
        self.history: deque = deque(maxlen=self.window_size)

    def push(self, value: float) -> float:
        """
        Add a raw sample and return the smoothed value.

        Args:
            value: New raw sample

        Returns:
            Arithmetic mean of the current window
        """
        self.history.append(float(value))
        return self.value

    @property
    def value(self) -> float:
        """Current smoothed value (0.0 before any sample)."""
        if not self.history:
            return 0.0
        return float(np.mean(self.history))

    def __len__(self) -> int:
        return len(self.history)

    def reset(self):
        """Reset smoother state."""
        self.history.clear()


class SignalBank:
    """One independent SignalSmoother per named signal."""

    def __init__(self, names: Iterable[str] = (), window_size: int = 5):
        self.window_size = window_size
        self.smoothers: Dict[str, SignalSmoother] = {
            name: SignalSmoother(window_size) for name in names
        }

    def push(self, name: str, value: float) -> float:
        if name not in self.smoothers:
            self.smoothers[name] = SignalSmoother(self.window_size)
        return self.smoothers[name].push(value)

    def value(self, name: str) -> float:
        smoother = self.smoothers.get(name)
        return smoother.value if smoother is not None else 0.0

    def reset(self):
        """Clear every window."""
        for smoother in self.smoothers.values():
            smoother.reset()
