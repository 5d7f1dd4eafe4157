"""Body joint vocabulary for swing analysis."""

# Fixed joint vocabulary, in the order used by array-shaped pose output
JOINTS = {
    0: "neck",
    1: "root",
    2: "left_shoulder",
    3: "right_shoulder",
    4: "left_elbow",
    5: "right_elbow",
    6: "left_wrist",
    7: "right_wrist",
    8: "left_hip",
    9: "right_hip",
    10: "left_knee",
    11: "right_knee",
    12: "left_ankle",
    13: "right_ankle",
}

# Reverse mapping
JOINT_INDEX = {v: k for k, v in JOINTS.items()}

NUM_JOINTS = len(JOINTS)

# Joints that must be tracked on both sides regardless of handedness
TORSO_JOINTS = ("left_shoulder", "right_shoulder", "left_hip", "right_hip")


def leading_arm(is_right_handed: bool = True) -> tuple:
    """Return (shoulder, elbow, wrist) joint names of the racket arm."""
    side = "right" if is_right_handed else "left"
    return (f"{side}_shoulder", f"{side}_elbow", f"{side}_wrist")


def required_joints(is_right_handed: bool = True) -> tuple:
    """Joints that must be confidently tracked before a frame is analyzed."""
    _, elbow, wrist = leading_arm(is_right_handed)
    return TORSO_JOINTS + (elbow, wrist)
