"""Configuration module for the swing coach."""

from .coach_config import (
    CoachConfig,
    DEFAULT_CONFIG,
    ReadyPolicy,
    config_from_dict,
    load_config,
)
from .keypoints import (
    JOINTS,
    JOINT_INDEX,
    NUM_JOINTS,
    leading_arm,
    required_joints,
)
