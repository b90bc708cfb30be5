import numpy as np
import pytest

from pose_decoder.common.enums import JointName
from pose_decoder.common.topology import POSENET_TOPOLOGY
from pose_decoder.processing.pose_net_output import PoseNetOutput

STRIDE = 16
MODEL_INPUT_SIZE = (513, 513)

# Cell (row, column) of every joint relative to the top-left corner of a person's bounding box.
SKELETON_LAYOUT = {
    JointName.NOSE: (0, 2),
    JointName.LEFT_EYE: (0, 3),
    JointName.RIGHT_EYE: (0, 1),
    JointName.LEFT_EAR: (1, 4),
    JointName.RIGHT_EAR: (1, 0),
    JointName.LEFT_SHOULDER: (2, 3),
    JointName.RIGHT_SHOULDER: (2, 1),
    JointName.LEFT_ELBOW: (3, 4),
    JointName.RIGHT_ELBOW: (3, 0),
    JointName.LEFT_WRIST: (4, 4),
    JointName.RIGHT_WRIST: (4, 0),
    JointName.LEFT_HIP: (4, 3),
    JointName.RIGHT_HIP: (4, 1),
    JointName.LEFT_KNEE: (5, 3),
    JointName.RIGHT_KNEE: (5, 1),
    JointName.LEFT_ANKLE: (6, 3),
    JointName.RIGHT_ANKLE: (6, 1),
}

def _empty_grids(height, width, topology=POSENET_TOPOLOGY):
    joints = topology.number_of_joints
    edges = topology.number_of_edges
    return {
        'heatmap': np.zeros((joints, height, width)),
        'offsets': np.zeros((2 * joints, height, width)),
        'forward_displacement_map': np.zeros((2 * edges, height, width)),
        'backward_displacement_map': np.zeros((2 * edges, height, width)),
    }

def _place_person(grids, origin, confidence=0.9, confidences=None, topology=POSENET_TOPOLOGY, stride=STRIDE):
    """
    Writes one person into the grids: heatmap peaks at every joint cell and displacement vectors
    pointing between the cells of every connected pair.
    """
    cells = {
        name.value: (origin[0] + dy, origin[1] + dx)
        for name, (dy, dx) in SKELETON_LAYOUT.items()
    }
    confidences = confidences or {}
    for name, (y, x) in cells.items():
        grids['heatmap'][topology.index_of(name), y, x] = confidences.get(name, confidence)

    edges = topology.number_of_edges
    for edge in topology.edges:
        parent_y, parent_x = cells[edge.parent]
        child_y, child_x = cells[edge.child]
        forward = grids['forward_displacement_map']
        backward = grids['backward_displacement_map']
        forward[edge.index, parent_y, parent_x] = (child_y - parent_y) * stride
        forward[edge.index + edges, parent_y, parent_x] = (child_x - parent_x) * stride
        backward[edge.index, child_y, child_x] = (parent_y - child_y) * stride
        backward[edge.index + edges, child_y, child_x] = (parent_x - child_x) * stride
    return cells

@pytest.fixture
def make_output():
    def factory(grids, model_input_size=MODEL_INPUT_SIZE, output_stride=STRIDE, topology=POSENET_TOPOLOGY):
        return PoseNetOutput(grids['heatmap'],
                             grids['offsets'],
                             grids['forward_displacement_map'],
                             grids['backward_displacement_map'],
                             model_input_size=model_input_size,
                             output_stride=output_stride,
                             topology=topology)
    return factory

@pytest.fixture
def two_people():
    """Two well separated people on a 9x18 grid, returning the grids and each person's joint cells."""
    grids = _empty_grids(9, 18)
    first = _place_person(grids, (1, 1))
    second = _place_person(grids, (1, 12))
    return grids, [first, second]

@pytest.fixture
def empty_grids():
    return _empty_grids

@pytest.fixture
def place_person():
    return _place_person
