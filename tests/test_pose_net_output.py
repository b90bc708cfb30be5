import numpy as np
import pytest

from pose_decoder.common.models import Cell
from pose_decoder.common.topology import POSENET_TOPOLOGY
from pose_decoder.processing.pose_net_output import PoseNetOutput

JOINTS = POSENET_TOPOLOGY.number_of_joints
EDGES = POSENET_TOPOLOGY.number_of_edges


@pytest.fixture
def output(empty_grids, make_output):
    return make_output(empty_grids(4, 6))


def test_grid_dimensions(output):
    assert output.height == 4
    assert output.width == 6


def test_cell_round_trips_through_coarse_position(output):
    for y_index in range(output.height):
        for x_index in range(output.width):
            cell = Cell(y_index=y_index, x_index=x_index)
            assert output.cell_for(output.coarse_position(cell)) == cell


def test_cell_round_trips_through_position_for_every_joint(output):
    for name in POSENET_TOPOLOGY.joints:
        for y_index in range(output.height):
            for x_index in range(output.width):
                cell = Cell(y_index=y_index, x_index=x_index)
                assert output.position(name, cell) == output.coarse_position(cell)
                assert output.cell_for(output.position(name, cell)) == cell


def test_cell_for_rounds_half_away_from_zero(output):
    assert output.cell_for((8.0, 24.0)) == Cell(y_index=2, x_index=1)
    assert output.cell_for((7.9, 23.9)) == Cell(y_index=1, x_index=0)
    assert output.cell_for((-7.0, -7.0)) == Cell(y_index=0, x_index=0)


@pytest.mark.parametrize("position", [
    (-8.0, 0.0),
    (0.0, -8.0),
    (6 * 16.0, 0.0),
    (0.0, 4 * 16.0),
    (float("nan"), 0.0),
    (0.0, float("inf")),
])
def test_cell_for_rejects_positions_outside_the_grid(output, position):
    assert output.cell_for(position) is None


def test_offset_channel_layout(empty_grids, make_output):
    grids = empty_grids(4, 6)
    grids['offsets'][3, 1, 2] = -4.0
    grids['offsets'][3 + JOINTS, 1, 2] = 5.0
    output = make_output(grids)

    cell = Cell(y_index=1, x_index=2)
    assert output.offset("leftEar", cell) == (5.0, -4.0)
    assert output.position("leftEar", cell) == (2 * 16 + 5.0, 1 * 16 - 4.0)
    assert output.offset("rightEar", cell) == (0.0, 0.0)


def test_displacement_channel_layout(empty_grids, make_output):
    grids = empty_grids(4, 6)
    grids['forward_displacement_map'][5, 3, 0] = 7.0
    grids['forward_displacement_map'][5 + EDGES, 3, 0] = -9.0
    grids['backward_displacement_map'][5, 3, 0] = 1.5
    grids['backward_displacement_map'][5 + EDGES, 3, 0] = 2.5
    output = make_output(grids)

    cell = Cell(y_index=3, x_index=0)
    assert output.forward_displacement(5, cell) == (-9.0, 7.0)
    assert output.backward_displacement(5, cell) == (2.5, 1.5)


def test_confidence_reads_heatmap(empty_grids, make_output):
    grids = empty_grids(4, 6)
    grids['heatmap'][16, 2, 5] = 0.75
    output = make_output(grids)

    assert output.confidence("rightAnkle", Cell(y_index=2, x_index=5)) == 0.75


@pytest.mark.parametrize("cell", [
    Cell(y_index=-1, x_index=0),
    Cell(y_index=0, x_index=-1),
    Cell(y_index=4, x_index=0),
    Cell(y_index=0, x_index=6),
])
def test_out_of_bounds_queries_raise(output, cell):
    with pytest.raises(IndexError):
        output.confidence("nose", cell)
    with pytest.raises(IndexError):
        output.offset("nose", cell)
    with pytest.raises(IndexError):
        output.forward_displacement(0, cell)


def test_out_of_range_edge_index_raises(output):
    with pytest.raises(IndexError):
        output.backward_displacement(EDGES, Cell(y_index=0, x_index=0))


def test_grids_are_copied_and_read_only(empty_grids, make_output):
    grids = empty_grids(2, 2)
    output = make_output(grids)
    grids['heatmap'][0, 0, 0] = 1.0

    assert output.confidence("nose", Cell(y_index=0, x_index=0)) == 0.0
    assert not output.heatmap.flags.writeable
    with pytest.raises(ValueError):
        output.heatmap[0, 0, 0] = 1.0


@pytest.mark.parametrize("grid, shape, message", [
    ('heatmap', (JOINTS - 1, 4, 6), "'heatmap' must have 17 channels"),
    ('offsets', (JOINTS, 4, 6), "'offsets' must have 34 channels"),
    ('forward_displacement_map', (2 * EDGES, 4, 5), "'displacementFwd' grid size"),
    ('backward_displacement_map', (2 * EDGES, 3, 6), "'displacementBwd' grid size"),
    ('heatmap', (4, 6), "must be 3-dimensional"),
])
def test_malformed_grids_are_rejected(empty_grids, make_output, grid, shape, message):
    grids = empty_grids(4, 6)
    grids[grid] = np.zeros(shape)
    with pytest.raises(ValueError, match=message):
        make_output(grids)


def test_non_positive_stride_is_rejected(empty_grids, make_output):
    with pytest.raises(ValueError, match="stride"):
        make_output(empty_grids(4, 6), output_stride=0)


@pytest.mark.parametrize("model_input_size", [(0, 513), (513, -1), (float("nan"), 513)])
def test_non_positive_model_input_size_is_rejected(empty_grids, make_output, model_input_size):
    with pytest.raises(ValueError, match="input size"):
        make_output(empty_grids(4, 6), model_input_size=model_input_size)


def test_from_channels_last_transposes(empty_grids, make_output):
    grids = empty_grids(3, 5)
    grids['heatmap'][4, 1, 3] = 0.6
    grids['offsets'][4 + JOINTS, 1, 3] = 2.0
    expected = make_output(grids)

    output = PoseNetOutput.from_channels_last(
        *(np.transpose(grids[name], (1, 2, 0)) for name in
          ('heatmap', 'offsets', 'forward_displacement_map', 'backward_displacement_map')),
        output_stride=16,
    )

    np.testing.assert_array_equal(output.heatmap, expected.heatmap)
    np.testing.assert_array_equal(output.offsets, expected.offsets)
    assert output.position("rightEar", Cell(y_index=1, x_index=3)) == (50.0, 16.0)


def test_from_npz_loads_model_features(tmp_path, empty_grids):
    grids = empty_grids(3, 5)
    grids['heatmap'][0, 2, 2] = 0.9
    path = tmp_path / "outputs.npz"
    np.savez(path,
             heatmap=grids['heatmap'],
             offsets=grids['offsets'],
             displacementFwd=grids['forward_displacement_map'],
             displacementBwd=grids['backward_displacement_map'])

    output = PoseNetOutput.from_npz(path, model_input_size=(65, 33), output_stride=16)

    assert output.model_input_size == (65.0, 33.0)
    assert output.confidence("nose", Cell(y_index=2, x_index=2)) == pytest.approx(0.9)


def test_from_npz_reports_missing_feature(tmp_path, empty_grids):
    grids = empty_grids(3, 5)
    path = tmp_path / "outputs.npz"
    np.savez(path, heatmap=grids['heatmap'], offsets=grids['offsets'])

    with pytest.raises(KeyError, match="displacementFwd"):
        PoseNetOutput.from_npz(path)
