"""Per-frame joint observations."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..config.keypoints import JOINTS, JOINT_INDEX


@dataclass(frozen=True)
class JointPoint:
    """One tracked joint: normalized position plus detector confidence.

    Coordinates use a bottom-left origin, so y grows upward and a larger y
    means a higher joint.
    """

    x: float
    y: float
    confidence: float

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)


def _clip_unit(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class JointFrame:
    """Immutable mapping of joint name -> JointPoint for one sensor frame."""

    joints: Mapping[str, JointPoint] = field(default_factory=dict)
    timestamp: Optional[float] = None

    def __post_init__(self):
        cleaned = {}
        for name, point in dict(self.joints).items():
            if name not in JOINT_INDEX:
                continue
            if not isinstance(point, JointPoint):
                x, y, conf = point
                point = JointPoint(x, y, conf)
            cleaned[name] = JointPoint(
                _clip_unit(point.x), _clip_unit(point.y), _clip_unit(point.confidence)
            )
        object.__setattr__(self, "joints", MappingProxyType(cleaned))

    def get(self, name: str) -> Optional[JointPoint]:
        return self.joints.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.joints

    def __len__(self) -> int:
        return len(self.joints)

    def confident(self, names: Iterable[str], min_confidence: float) -> bool:
        """True when every named joint is present with confidence above the floor."""
        for name in names:
            point = self.joints.get(name)
            if point is None or point.confidence <= min_confidence:
                return False
        return True

    @classmethod
    def from_tuples(
        cls,
        joints: Mapping[str, Sequence[float]],
        timestamp: Optional[float] = None,
    ) -> "JointFrame":
        """Build from {name: (x, y, confidence)}."""
        return cls({name: JointPoint(*values[:3]) for name, values in joints.items()}, timestamp)

    @classmethod
    def from_image_coords(
        cls,
        joints: Mapping[str, Sequence[float]],
        timestamp: Optional[float] = None,
    ) -> "JointFrame":
        """Build from top-left-origin coordinates (y grows downward)."""
        return cls(
            {name: JointPoint(x, 1.0 - y, conf) for name, (x, y, conf) in joints.items()},
            timestamp,
        )

    @classmethod
    def from_arrays(
        cls,
        keypoints: np.ndarray,
        confidence: np.ndarray,
        timestamp: Optional[float] = None,
    ) -> "JointFrame":
        """Build from a (N, 2) keypoint array and (N,) confidences in JOINTS order."""
        keypoints = np.asarray(keypoints, dtype=np.float64)
        confidence = np.asarray(confidence, dtype=np.float64)
        joints = {}
        for idx in range(min(len(keypoints), len(confidence), len(JOINTS))):
            x, y = keypoints[idx]
            joints[JOINTS[idx]] = JointPoint(float(x), float(y), float(confidence[idx]))
        return cls(joints, timestamp)

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (keypoints, confidence) arrays in JOINTS order; missing joints are zero."""
        keypoints = np.zeros((len(JOINTS), 2), dtype=np.float64)
        confidence = np.zeros((len(JOINTS),), dtype=np.float64)
        for name, point in self.joints.items():
            idx = JOINT_INDEX[name]
            keypoints[idx] = (point.x, point.y)
            confidence[idx] = point.confidence
        return keypoints, confidence
