# pose_finder/pose_decoder/processing/multiple_pose.py
import logging
import numpy as np
from collections import deque
from typing import List

from ..common.geometry import distance, translate
from ..common.models import Cell, Edge, Joint, Pose
from .pose_builder import PoseBuilder

logger = logging.getLogger(__name__)

class MultiplePoseBuilder(PoseBuilder):
    """
    Multi-person pose estimation, based on the TensorFlow.js PoseNet decoder.

    Local maxima of the heatmap are used as candidate roots in descending order of confidence.
    Each root not already claimed by a detected pose seeds a pose that is grown along the
    skeleton's edges using the displacement maps.
    """

    def build(self) -> List[Pose]:
        detected_poses: List[Pose] = []
        candidates = self.candidate_roots()
        logger.debug("Found %d candidate roots", len(candidates))

        for candidate_root in candidates:
            # Skip roots close to a same-type joint that already belongs to a detected pose.
            if self._matches_detected_joint(candidate_root, detected_poses):
                continue

            pose = self._assemble_pose(candidate_root)
            pose.confidence = self._confidence(pose, detected_poses)

            if pose.confidence < self.configuration.pose_confidence_threshold:
                logger.debug("Rejected pose rooted at %s (%d, %d) with confidence %.3f",
                             candidate_root.name, candidate_root.cell.y_index,
                             candidate_root.cell.x_index, pose.confidence)
                continue

            detected_poses.append(pose)

            if len(detected_poses) >= self.configuration.max_pose_count:
                logger.debug("Reached maximum pose count of %d", self.configuration.max_pose_count)
                break

        # Traversal needs model input positions, so the remap happens only once every pose is final.
        self.map_to_image(detected_poses)
        return detected_poses

    def candidate_roots(self) -> List[Joint]:
        """
        Returns above-threshold joints that are local maxima of their heatmap channel.

        The candidates are ordered by descending confidence; ties keep the scan order
        (joint, then row, then column).
        """
        heatmap = self.output.heatmap
        if heatmap.size == 0:
            return []

        threshold = self.configuration.joint_confidence_threshold
        mask = (heatmap >= threshold) & (heatmap >= self._greatest_neighbor_confidences())

        candidates = []
        for channel, y_index, x_index in zip(*np.nonzero(mask)):
            name = self.topology.joints[channel]
            cell = Cell(y_index=int(y_index), x_index=int(x_index))
            candidates.append(Joint(name=name,
                                    cell=cell,
                                    position=self.output.position(name, cell),
                                    confidence=float(heatmap[channel, y_index, x_index]),
                                    is_valid=True))

        return sorted(candidates, key=lambda joint: joint.confidence, reverse=True)

    def _greatest_neighbor_confidences(self) -> np.ndarray:
        """
        Returns, for every joint and cell, the greatest confidence around it within the search window.

        By default only window cells whose row and column both differ from the center are
        compared; cells sharing a row or column with the center are skipped. With
        `strict_local_maximum` every cell other than the center is compared.
        """
        heatmap = self.output.heatmap
        radius = self.configuration.local_search_radius
        strict = self.configuration.strict_local_maximum
        _, height, width = heatmap.shape

        # Zero padding matches the 0.0 baseline and clamps the window to the grid.
        padded = np.pad(heatmap, ((0, 0), (radius, radius), (radius, radius)), mode="constant")
        greatest = np.zeros_like(heatmap)

        for dy in range(-radius, radius + 1):
            for dx in range(-radius, radius + 1):
                if strict:
                    if dy == 0 and dx == 0:
                        continue
                elif dy == 0 or dx == 0:
                    continue
                window = padded[:, radius + dy:radius + dy + height, radius + dx:radius + dx + width]
                np.maximum(greatest, window, out=greatest)

        return greatest

    def _matches_detected_joint(self, candidate: Joint, detected_poses: List[Pose]) -> bool:
        for pose in detected_poses:
            matching_joint = pose[candidate.name]
            if not matching_joint.is_valid:
                continue
            if distance(matching_joint.position, candidate.position) <= self.configuration.matching_joint_distance:
                return True
        return False

    def _confidence(self, pose: Pose, detected_poses: List[Pose]) -> float:
        """Sums the confidences of the pose's non-overlapping joints over the total number of joints."""
        joints = self._non_overlapping_joints(pose, detected_poses)
        return sum(joint.confidence for joint in joints) / self.topology.number_of_joints

    def _non_overlapping_joints(self, pose: Pose, detected_poses: List[Pose]) -> List[Joint]:
        return [joint for joint in pose.valid_joints
                if not self._matches_detected_joint(joint, detected_poses)]

    def _assemble_pose(self, root_joint: Joint) -> Pose:
        """Grows a pose breadth-first from the root, following the edges of every valid joint."""
        pose = self.new_pose()
        pose[root_joint.name] = root_joint

        query_joints = deque([root_joint])
        while query_joints:
            joint = query_joints.popleft()

            for edge in self.topology.edges_for(joint.name):
                parent_joint = pose[edge.parent]
                child_joint = pose[edge.child]

                if parent_joint.is_valid and child_joint.is_valid:
                    continue

                if parent_joint.is_valid:
                    source_joint, adjacent_joint = parent_joint, child_joint
                else:
                    source_joint, adjacent_joint = child_joint, parent_joint

                self._configure(adjacent_joint, source_joint, edge)

                if adjacent_joint.is_valid:
                    query_joints.append(adjacent_joint)

        return pose

    def _configure(self, joint: Joint, source_joint: Joint, edge: Edge):
        """
        Locates `joint` by following `edge` from the valid `source_joint`.

        The displacement vector gives an approximate position, which is then snapped towards
        the grid by repeatedly re-deriving the cell and applying that cell's offset.
        """
        if edge.parent == source_joint.name:
            displacement = self.output.forward_displacement(edge.index, source_joint.cell)
        else:
            displacement = self.output.backward_displacement(edge.index, source_joint.cell)

        approximate_position = translate(source_joint.position, displacement)

        for _ in range(self.configuration.adjacent_joint_offset_refinement_steps):
            cell = self.output.cell_for(approximate_position)
            if cell is None:
                break
            approximate_position = self.output.position(joint.name, cell)

        cell = self.output.cell_for(approximate_position)
        if cell is None:
            return

        joint.cell = cell
        joint.position = approximate_position
        joint.confidence = self.output.confidence(joint.name, cell)
        joint.is_valid = joint.confidence >= self.configuration.joint_confidence_threshold
