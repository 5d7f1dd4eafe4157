"""Rule-based forehand / backhand labelling at backswing onset."""

from ..config.keypoints import leading_arm
from ..core.frame import JointFrame
from .pose_utils import forward_offset, shoulder_center, shoulder_width
from .stroke_profiles import SwingType


class SwingTypeClassifier:
    """
    Label a swing from where the racket hand sits when the backswing starts.

    Assumes a right-handed player by default. On a forehand the hand is taken
    back on the dominant side of the body; on a backhand it crosses over to
    the non-dominant side.
    """

    def __init__(self, is_right_handed: bool = True, min_offset: float = 0.3):
        """
        Initialize classifier.

        Args:
            is_right_handed: Whether player is right-handed
            min_offset: Minimum wrist offset from the shoulder center, as a
                fraction of shoulder width, before a side is trusted
        """
        self.is_right_handed = is_right_handed
        self.min_offset = min_offset
        _, _, self.wrist = leading_arm(is_right_handed)

    def classify(self, frame: JointFrame) -> SwingType:
        wrist = frame.get(self.wrist)
        if wrist is None:
            return SwingType.UNKNOWN

        width = shoulder_width(frame)
        if width < 1e-6:
            return SwingType.UNKNOWN

        center_x = float(shoulder_center(frame)[0])
        # Behind the body (negative forward offset) is the dominant side.
        relative = forward_offset(wrist, center_x, self.is_right_handed) / width

        if relative < -self.min_offset:
            return SwingType.FOREHAND
        if relative > self.min_offset:
            return SwingType.BACKHAND
        return SwingType.UNKNOWN
