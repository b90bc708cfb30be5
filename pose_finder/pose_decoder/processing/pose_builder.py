# pose_finder/pose_decoder/processing/pose_builder.py
from typing import Iterable, Tuple

from ..common.geometry import apply_transform, scale_transform
from ..common.models import Pose, PoseBuilderConfiguration
from .pose_net_output import PoseNetOutput

class PoseBuilder:
    """
    Shared state for the pose assembly algorithms.

    Holds the model outputs, the configuration and the transform that maps positions from the
    model's input size onto the original image.
    """

    def __init__(self,
                 output: PoseNetOutput,
                 configuration: PoseBuilderConfiguration,
                 image_size: Tuple[float, float]):
        self.output = output
        self.configuration = configuration
        self.topology = output.topology
        self.model_to_image_transform = scale_transform(output.model_input_size, image_size)

    def new_pose(self) -> Pose:
        return Pose.empty(self.topology.joints)

    def map_to_image(self, poses: Iterable[Pose]):
        """Moves every joint position of the given poses from model input space to image space."""
        joints = [joint for pose in poses for joint in pose.joints.values()]
        mapped = apply_transform([joint.position for joint in joints], self.model_to_image_transform)
        for joint, (x, y) in zip(joints, mapped):
            joint.position = (float(x), float(y))
