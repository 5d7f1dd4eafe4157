"""Swing phase analysis and real-time coaching message stream."""

__version__ = "0.1.0"
