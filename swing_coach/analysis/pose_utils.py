"""Pose geometry utilities shared across analysis modules.

All helpers work on normalized 2D joint coordinates (bottom-left origin).
Degenerate geometry (coincident joints, zero-length limbs) resolves to a
neutral value instead of raising, since a single bad frame must never stop
the analysis.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..core.frame import JointFrame, JointPoint


def line_rotation_deg(left: JointPoint, right: JointPoint) -> float:
    """Angle of the left->right joint line against the x axis, in degrees."""
    dx = right.x - left.x
    dy = right.y - left.y
    if dx == 0.0 and dy == 0.0:
        return 0.0
    return math.degrees(math.atan2(dy, dx))


def shoulder_rotation_deg(frame: JointFrame) -> float:
    return line_rotation_deg(frame.joints["left_shoulder"], frame.joints["right_shoulder"])


def hip_rotation_deg(frame: JointFrame) -> float:
    return line_rotation_deg(frame.joints["left_hip"], frame.joints["right_hip"])


def joint_angle_deg(a: JointPoint, vertex: JointPoint, b: JointPoint) -> float:
    """Angle a-vertex-b in degrees; 0.0 when either limb has zero length."""
    v1 = a.position - vertex.position
    v2 = b.position - vertex.position
    n1 = float(np.linalg.norm(v1))
    n2 = float(np.linalg.norm(v2))
    if n1 <= 0.0 or n2 <= 0.0:
        return 0.0
    cos_angle = float(np.dot(v1, v2)) / (n1 * n2)
    return math.degrees(math.acos(float(np.clip(cos_angle, -1.0, 1.0))))


def midpoint(a: JointPoint, b: JointPoint) -> np.ndarray:
    return 0.5 * (a.position + b.position)


def hip_center(frame: JointFrame) -> np.ndarray:
    return midpoint(frame.joints["left_hip"], frame.joints["right_hip"])


def shoulder_center(frame: JointFrame) -> np.ndarray:
    return midpoint(frame.joints["left_shoulder"], frame.joints["right_shoulder"])


def shoulder_width(frame: JointFrame) -> float:
    return float(np.linalg.norm(
        frame.joints["right_shoulder"].position - frame.joints["left_shoulder"].position
    ))


def torso_height(frame: JointFrame) -> float:
    """Shoulder-center to hip-center distance."""
    return float(np.linalg.norm(shoulder_center(frame) - hip_center(frame)))


def view_ratio(frame: JointFrame) -> Optional[float]:
    """Return shoulder_width / torso_height (lower => more side-on body)."""
    height = torso_height(frame)
    if height < 1e-6:
        return None
    return shoulder_width(frame) / height


def forward_sign(is_right_handed: bool) -> float:
    """Screen-space x direction the racket travels through contact.

    Right-handers swing toward -x (toward the non-dominant side); left-handers
    toward +x.
    """
    return -1.0 if is_right_handed else 1.0


def forward_offset(wrist: JointPoint, reference_x: float, is_right_handed: bool) -> float:
    """How far the wrist is in front of a reference x, positive = in front."""
    return (wrist.x - reference_x) * forward_sign(is_right_handed)


def coil_sign(is_right_handed: bool) -> float:
    """Multiplier that makes a backswing coil read as negative rotation for either hand."""
    return -forward_sign(is_right_handed)
