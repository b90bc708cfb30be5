# pose_finder/pose_decoder/common/models.py
from enum import Enum
from typing import Dict, Iterable, List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import Algorithm, DecodeStatus, JointName

JointKey = Union[JointName, str]

def joint_key(name: JointKey) -> str:
    """Normalizes a joint identifier to the plain string used as a dictionary key."""
    return name.value if isinstance(name, Enum) else str(name)

class Cell(BaseModel):
    """
    Coordinates of one location in the model's output grid.

    Each cell covers a square region of `output_stride` pixels of the model input image.
    """
    y_index: int
    x_index: int

    model_config = ConfigDict(frozen=True)

class Edge(BaseModel):
    """A directed connection between two joints of the skeleton."""
    index: int
    parent: str
    child: str

    model_config = ConfigDict(frozen=True)

class Joint(BaseModel):
    """
    A single detected body part.

    The position is relative to the model input until the owning pose is finalized,
    after which it is mapped onto the original image.
    """
    name: str
    cell: Cell = Field(default_factory=lambda: Cell(y_index=0, x_index=0))
    position: Tuple[float, float] = (0.0, 0.0)
    confidence: float = 0.0
    is_valid: bool = False

class Pose(BaseModel):
    """One skeleton: exactly one joint per joint type plus an aggregate confidence."""
    joints: Dict[str, Joint]
    confidence: float = 0.0

    @classmethod
    def empty(cls, joint_names: Iterable[JointKey]) -> "Pose":
        names = [joint_key(name) for name in joint_names]
        return cls(joints={name: Joint(name=name) for name in names})

    def __getitem__(self, name: JointKey) -> Joint:
        return self.joints[joint_key(name)]

    def __setitem__(self, name: JointKey, joint: Joint) -> None:
        self.joints[joint_key(name)] = joint

    @property
    def valid_joints(self) -> List[Joint]:
        return [joint for joint in self.joints.values() if joint.is_valid]

class PoseBuilderConfiguration(BaseModel):
    """Tunable thresholds and limits consumed by the pose builders."""
    joint_confidence_threshold: float = Field(0.1, ge=0.0)
    pose_confidence_threshold: float = Field(0.5, ge=0.0)
    # Minimum distance, in model input pixels, for two joints of the same type to be distinct.
    matching_joint_distance: float = Field(40.0, ge=0.0)
    local_search_radius: int = Field(3, ge=0)
    max_pose_count: int = Field(15, ge=1)
    adjacent_joint_offset_refinement_steps: int = Field(3, ge=0)
    # Compare candidates against every cell in the window instead of diagonal neighbors only.
    strict_local_maximum: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

class DecodeResult(BaseModel):
    """Encapsulates the complete result of decoding one set of model outputs."""
    algorithm: Algorithm
    status: DecodeStatus
    image_size: Tuple[float, float]
    processing_time_ms: float
    poses: List[Pose] = Field(default_factory=list)
