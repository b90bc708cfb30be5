# pose_finder/pose_decoder/processing/pose_net_output.py
import logging
import math
import numpy as np
from typing import Optional, Tuple

from ..common.geometry import Point, Vector
from ..common.models import Cell, JointKey
from ..common.topology import POSENET_TOPOLOGY, Topology

logger = logging.getLogger(__name__)

HEATMAP = "heatmap"
OFFSETS = "offsets"
FORWARD_DISPLACEMENT_MAP = "displacementFwd"
BACKWARD_DISPLACEMENT_MAP = "displacementBwd"

def _round_half_away_from_zero(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))

class PoseNetOutput:
    """
    Read-only container for the four PoseNet output grids and the accessors used to query them.

    Every grid is laid out as `[channel][y][x]`. The heatmap holds one channel per joint, the
    offsets hold two per joint (y components first, then x), and each displacement map holds two
    per edge (y components first, then x).
    """

    def __init__(self,
                 heatmap: np.ndarray,
                 offsets: np.ndarray,
                 forward_displacement_map: np.ndarray,
                 backward_displacement_map: np.ndarray,
                 model_input_size: Tuple[float, float] = (513, 513),
                 output_stride: int = 16,
                 topology: Topology = POSENET_TOPOLOGY):
        self.topology = topology
        self.model_input_size = (float(model_input_size[0]), float(model_input_size[1]))
        self.output_stride = output_stride

        self.heatmap = self._freeze(heatmap)
        self.offsets = self._freeze(offsets)
        self.forward_displacement_map = self._freeze(forward_displacement_map)
        self.backward_displacement_map = self._freeze(backward_displacement_map)

        self._validate()

    @staticmethod
    def _freeze(grid) -> np.ndarray:
        array = np.array(grid, dtype=np.float64, copy=True)
        array.setflags(write=False)
        return array

    def _validate(self):
        """Fails fast on grids that would otherwise be silently misindexed."""
        if self.output_stride <= 0:
            raise ValueError(f"Output stride must be positive, got {self.output_stride}")
        if not all(math.isfinite(size) and size > 0 for size in self.model_input_size):
            raise ValueError(f"Model input size must be positive, got {self.model_input_size}")

        joints = self.topology.number_of_joints
        edges = self.topology.number_of_edges
        expected_channels = {
            HEATMAP: (self.heatmap, joints),
            OFFSETS: (self.offsets, 2 * joints),
            FORWARD_DISPLACEMENT_MAP: (self.forward_displacement_map, 2 * edges),
            BACKWARD_DISPLACEMENT_MAP: (self.backward_displacement_map, 2 * edges),
        }

        for name, (grid, channels) in expected_channels.items():
            if grid.ndim != 3:
                raise ValueError(f"'{name}' must be 3-dimensional [channel][y][x], got shape {grid.shape}")
            if grid.shape[0] != channels:
                raise ValueError(
                    f"'{name}' must have {channels} channels for {self.topology}, got shape {grid.shape}"
                )

        spatial = self.heatmap.shape[1:]
        for name, (grid, _) in expected_channels.items():
            if grid.shape[1:] != spatial:
                raise ValueError(
                    f"'{name}' grid size {grid.shape[1:]} does not match '{HEATMAP}' grid size {spatial}"
                )

    @classmethod
    def from_channels_last(cls, heatmap, offsets, forward_displacement_map, backward_displacement_map, **kwargs):
        """Builds an output from `[y][x][channel]` tensors, as produced by TensorFlow runtimes."""
        grids = [np.asarray(grid) for grid in (heatmap, offsets, forward_displacement_map, backward_displacement_map)]
        for grid in grids:
            if grid.ndim != 3:
                raise ValueError(f"Channels-last grids must be 3-dimensional, got shape {grid.shape}")
        return cls(*(np.transpose(grid, (2, 0, 1)) for grid in grids), **kwargs)

    @classmethod
    def from_npz(cls, path, **kwargs):
        """Loads the four model outputs from a `.npz` archive keyed by the model feature names."""
        with np.load(path) as archive:
            grids = []
            for feature in (HEATMAP, OFFSETS, FORWARD_DISPLACEMENT_MAP, BACKWARD_DISPLACEMENT_MAP):
                if feature not in archive.files:
                    raise KeyError(f"Missing model output '{feature}' in {path}")
                grids.append(archive[feature])
        logger.debug("Loaded model outputs from %s with heatmap shape %s", path, grids[0].shape)
        return cls(*grids, **kwargs)

    @property
    def height(self) -> int:
        return self.heatmap.shape[1]

    @property
    def width(self) -> int:
        return self.heatmap.shape[2]

    def cell_for(self, position: Point) -> Optional[Cell]:
        """Returns the cell nearest to `position`, or None when it falls outside the grid."""
        x, y = position
        if not (math.isfinite(x) and math.isfinite(y)):
            return None

        y_index = _round_half_away_from_zero(y / self.output_stride)
        x_index = _round_half_away_from_zero(x / self.output_stride)

        if not (0 <= y_index < self.height and 0 <= x_index < self.width):
            return None
        return Cell(y_index=y_index, x_index=x_index)

    def coarse_position(self, cell: Cell) -> Point:
        return (float(cell.x_index * self.output_stride), float(cell.y_index * self.output_stride))

    def position(self, joint: JointKey, cell: Cell) -> Point:
        """Returns the joint's position at `cell`: the cell's coarse position refined by its offset."""
        x, y = self.coarse_position(cell)
        dx, dy = self.offset(joint, cell)
        return (x + dx, y + dy)

    def offset(self, joint: JointKey, cell: Cell) -> Vector:
        self._check_cell(cell)
        channel = self.topology.index_of(joint)
        dy = self.offsets[channel, cell.y_index, cell.x_index]
        dx = self.offsets[channel + self.topology.number_of_joints, cell.y_index, cell.x_index]
        return (float(dx), float(dy))

    def confidence(self, joint: JointKey, cell: Cell) -> float:
        self._check_cell(cell)
        return float(self.heatmap[self.topology.index_of(joint), cell.y_index, cell.x_index])

    def forward_displacement(self, edge_index: int, cell: Cell) -> Vector:
        return self._displacement(self.forward_displacement_map, edge_index, cell)

    def backward_displacement(self, edge_index: int, cell: Cell) -> Vector:
        return self._displacement(self.backward_displacement_map, edge_index, cell)

    def _displacement(self, grid: np.ndarray, edge_index: int, cell: Cell) -> Vector:
        self._check_cell(cell)
        edges = self.topology.number_of_edges
        if not 0 <= edge_index < edges:
            raise IndexError(f"Edge index {edge_index} out of range for {edges} edges")
        dy = grid[edge_index, cell.y_index, cell.x_index]
        dx = grid[edge_index + edges, cell.y_index, cell.x_index]
        return (float(dx), float(dy))

    def _check_cell(self, cell: Cell):
        if not (0 <= cell.y_index < self.height and 0 <= cell.x_index < self.width):
            raise IndexError(f"Cell ({cell.y_index}, {cell.x_index}) outside {self.height}x{self.width} grid")
