"""Synthetic joint frames for demos and tests.

Builds a plausible upper-body pose from a shoulder-line and hip-line
rotation, so a whole swing can be scripted as a rotation curve.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

import numpy as np

from .frame import JointFrame, JointPoint

SHOULDER_CENTER = (0.5, 0.6)
HIP_CENTER = (0.5, 0.4)
SHOULDER_HALF_WIDTH = 0.12
HIP_HALF_WIDTH = 0.09


def _line(center: Tuple[float, float], half_width: float, angle_deg: float):
    dx = half_width * math.cos(math.radians(angle_deg))
    dy = half_width * math.sin(math.radians(angle_deg))
    return (center[0] - dx, center[1] - dy), (center[0] + dx, center[1] + dy)


def default_wrist(shoulder_deg: float, peak: float = -70.0, finish: float = 50.0) -> Tuple[float, float]:
    """Right-handed racket hand: behind the hip on the backswing, high and across on the finish."""
    x = 0.5 - 0.25 * shoulder_deg / abs(peak)
    lift = 0.25 * max(0.0, shoulder_deg) / abs(finish)
    return x, HIP_CENTER[1] + 0.05 + lift


def make_pose(
    shoulder_deg: float,
    hip_deg: float,
    wrist: Optional[Tuple[float, float]] = None,
    elbow: Optional[Tuple[float, float]] = None,
    confidence: float = 1.0,
    timestamp: Optional[float] = None,
) -> JointFrame:
    """One frame with the given shoulder/hip line rotations (right-handed arm)."""
    left_shoulder, right_shoulder = _line(SHOULDER_CENTER, SHOULDER_HALF_WIDTH, shoulder_deg)
    left_hip, right_hip = _line(HIP_CENTER, HIP_HALF_WIDTH, hip_deg)
    if wrist is None:
        wrist = default_wrist(shoulder_deg)
    if elbow is None:
        mid = 0.5 * (np.asarray(right_shoulder) + np.asarray(wrist))
        elbow = (float(mid[0]), float(mid[1]) - 0.03)

    points = {
        "left_shoulder": left_shoulder,
        "right_shoulder": right_shoulder,
        "left_hip": left_hip,
        "right_hip": right_hip,
        "right_elbow": elbow,
        "right_wrist": wrist,
        "left_elbow": (left_shoulder[0] + 0.05, left_shoulder[1] - 0.1),
        "left_wrist": (left_shoulder[0] + 0.08, left_shoulder[1] - 0.18),
        "neck": (SHOULDER_CENTER[0], SHOULDER_CENTER[1] + 0.05),
        "root": HIP_CENTER,
        "left_knee": (left_hip[0], HIP_CENTER[1] - 0.18),
        "right_knee": (right_hip[0], HIP_CENTER[1] - 0.18),
        "left_ankle": (left_hip[0], HIP_CENTER[1] - 0.35),
        "right_ankle": (right_hip[0], HIP_CENTER[1] - 0.35),
    }
    return JointFrame(
        {name: JointPoint(x, y, confidence) for name, (x, y) in points.items()},
        timestamp,
    )


def rotation_sweep(
    lead_frames: int = 5,
    down_frames: int = 15,
    up_frames: int = 15,
    hold_frames: int = 30,
    peak: float = -70.0,
    finish: float = 50.0,
) -> List[float]:
    """Shoulder rotation curve: neutral, coil to ``peak``, unwind to ``finish``, hold."""
    angles = [0.0] * lead_frames
    angles += [peak * k / down_frames for k in range(1, down_frames + 1)]
    angles += [peak + (finish - peak) * k / up_frames for k in range(1, up_frames + 1)]
    angles += [finish] * hold_frames
    return angles


def forehand_sweep(
    fps: float = 30.0,
    start_time: float = 0.0,
    hip_offset: float = 10.0,
    wrist_drop: float = 0.0,
    confidence: float = 1.0,
    **sweep_kwargs,
) -> List[JointFrame]:
    """
    A scripted forehand as timestamped frames.

    Hips trail the shoulders by ``hip_offset`` degrees. A positive
    ``wrist_drop`` lowers the racket hand below the elbow at the deepest
    part of the coil (racket drop).
    """
    peak = sweep_kwargs.get("peak", -70.0)
    finish = sweep_kwargs.get("finish", 50.0)
    frames = []
    for idx, angle in enumerate(rotation_sweep(**sweep_kwargs)):
        wrist = default_wrist(angle, peak, finish)
        if wrist_drop > 0 and angle < 0.6 * peak:
            wrist = (wrist[0], wrist[1] - wrist_drop)
        frames.append(make_pose(
            angle,
            angle + hip_offset,
            wrist=wrist,
            confidence=confidence,
            timestamp=start_time + idx / fps,
        ))
    return frames
