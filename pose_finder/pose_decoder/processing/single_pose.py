# pose_finder/pose_decoder/processing/single_pose.py
import logging
import numpy as np

from ..common.models import Cell, Joint, Pose
from .pose_builder import PoseBuilder

logger = logging.getLogger(__name__)

class SinglePoseBuilder(PoseBuilder):
    """
    Single-person pose estimation, based on the TensorFlow.js PoseNet decoder.

    Each joint is located independently at the heatmap cell with the greatest confidence, so
    the input is expected to contain exactly one person.
    """

    def build(self) -> Pose:
        pose = self.new_pose()

        for joint in pose.joints.values():
            self._configure(joint)

        pose.confidence = sum(joint.confidence for joint in pose.joints.values()) / self.topology.number_of_joints

        self.map_to_image([pose])
        logger.debug("Single pose assembled with confidence %.3f", pose.confidence)
        return pose

    def _configure(self, joint: Joint):
        """Places the joint at the cell with the greatest confidence in its heatmap channel."""
        channel = self.output.heatmap[self.topology.index_of(joint.name)]
        if channel.size == 0:
            return

        # argmax returns the first maximum in row-major order; only a strictly positive
        # confidence replaces the initial (0, 0) cell.
        best_y, best_x = np.unravel_index(np.argmax(channel), channel.shape)
        best_confidence = float(channel[best_y, best_x])
        if best_confidence > 0.0:
            best_cell = Cell(y_index=int(best_y), x_index=int(best_x))
        else:
            best_cell = Cell(y_index=0, x_index=0)
            best_confidence = 0.0

        joint.cell = best_cell
        joint.position = self.output.position(joint.name, best_cell)
        joint.confidence = best_confidence
        joint.is_valid = joint.confidence >= self.configuration.joint_confidence_threshold
