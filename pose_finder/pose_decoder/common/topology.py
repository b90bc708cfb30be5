# pose_finder/pose_decoder/common/topology.py
from typing import Dict, List, Optional, Sequence, Tuple

from .enums import JointName
from .models import Edge, JointKey, joint_key

class Topology:
    """
    Describes a skeleton: the ordered joint types and the edges connecting them.

    Joint order selects heatmap and offset channels; edge order selects displacement channels.
    """

    def __init__(self, joints: Sequence[JointKey], edges: Sequence[Tuple[JointKey, JointKey]]):
        self._joints = tuple(joint_key(joint) for joint in joints)
        if len(set(self._joints)) != len(self._joints):
            raise ValueError(f"Joint names must be unique: {self._joints}")
        self._indices = {name: index for index, name in enumerate(self._joints)}

        self._edges = []
        for index, (parent, child) in enumerate(edges):
            parent, child = joint_key(parent), joint_key(child)
            for name in (parent, child):
                if name not in self._indices:
                    raise ValueError(f"Edge {index} references unknown joint '{name}'")
            self._edges.append(Edge(index=index, parent=parent, child=child))

        self._edges_by_joint: Dict[str, List[Edge]] = {name: [] for name in self._joints}
        self._edges_by_pair: Dict[Tuple[str, str], Edge] = {}
        for edge in self._edges:
            self._edges_by_joint[edge.parent].append(edge)
            if edge.child != edge.parent:
                self._edges_by_joint[edge.child].append(edge)
            self._edges_by_pair[(edge.parent, edge.child)] = edge

    @property
    def joints(self) -> Tuple[str, ...]:
        return self._joints

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return tuple(self._edges)

    @property
    def number_of_joints(self) -> int:
        return len(self._joints)

    @property
    def number_of_edges(self) -> int:
        return len(self._edges)

    def index_of(self, joint: JointKey) -> int:
        return self._indices[joint_key(joint)]

    def edges_for(self, joint: JointKey) -> List[Edge]:
        """Returns the edges touching the given joint, in edge index order."""
        return list(self._edges_by_joint[joint_key(joint)])

    def edge(self, parent: JointKey, child: JointKey) -> Optional[Edge]:
        return self._edges_by_pair.get((joint_key(parent), joint_key(child)))

    def __repr__(self) -> str:
        return f"Topology(joints={self.number_of_joints}, edges={self.number_of_edges})"

POSENET_TOPOLOGY = Topology(
    joints=list(JointName),
    edges=[
        (JointName.NOSE, JointName.LEFT_EYE),
        (JointName.LEFT_EYE, JointName.LEFT_EAR),
        (JointName.NOSE, JointName.RIGHT_EYE),
        (JointName.RIGHT_EYE, JointName.RIGHT_EAR),
        (JointName.NOSE, JointName.LEFT_SHOULDER),
        (JointName.LEFT_SHOULDER, JointName.LEFT_ELBOW),
        (JointName.LEFT_ELBOW, JointName.LEFT_WRIST),
        (JointName.LEFT_SHOULDER, JointName.LEFT_HIP),
        (JointName.LEFT_HIP, JointName.LEFT_KNEE),
        (JointName.LEFT_KNEE, JointName.LEFT_ANKLE),
        (JointName.NOSE, JointName.RIGHT_SHOULDER),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_ELBOW),
        (JointName.RIGHT_ELBOW, JointName.RIGHT_WRIST),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_HIP),
        (JointName.RIGHT_HIP, JointName.RIGHT_KNEE),
        (JointName.RIGHT_KNEE, JointName.RIGHT_ANKLE),
    ],
)
