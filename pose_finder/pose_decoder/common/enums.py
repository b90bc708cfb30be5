# pose_finder/pose_decoder/common/enums.py
from enum import Enum

class Algorithm(str, Enum):
    """Selects how poses are assembled from the model outputs."""
    SINGLE = "single"
    MULTIPLE = "multiple"

class DecodeStatus(str, Enum):
    """Outcome of a single decode call."""
    DETECTED = "DETECTED"
    NO_POSE = "NO_POSE"

class JointName(str, Enum):
    """The joint types detected by PoseNet, in model channel order."""
    NOSE = "nose"
    LEFT_EYE = "leftEye"
    RIGHT_EYE = "rightEye"
    LEFT_EAR = "leftEar"
    RIGHT_EAR = "rightEar"
    LEFT_SHOULDER = "leftShoulder"
    RIGHT_SHOULDER = "rightShoulder"
    LEFT_ELBOW = "leftElbow"
    RIGHT_ELBOW = "rightElbow"
    LEFT_WRIST = "leftWrist"
    RIGHT_WRIST = "rightWrist"
    LEFT_HIP = "leftHip"
    RIGHT_HIP = "rightHip"
    LEFT_KNEE = "leftKnee"
    RIGHT_KNEE = "rightKnee"
    LEFT_ANKLE = "leftAnkle"
    RIGHT_ANKLE = "rightAnkle"

class LogLevel(str, Enum):
    """Defines logging levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
