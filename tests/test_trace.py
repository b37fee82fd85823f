"""
Tests for the line of minimum trace in `stonework/trace.py`.

Panels come from `stonework.demo.create_masonry_panel` with the default
layout: 75 x 135 cells, 3-cell joints, head joints of the first course at
columns 33-35, 66-68 and 99-101 and, with the half-stone stagger, at columns
17-19, 50-52, 83-85 and 116-118 in the second course.
"""

import math
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np
import pytest

from stonework import create_masonry_panel, create_masonry_wall
from stonework.bwgraph import build_graph
from stonework.errors import InvalidEndpoint, NoPathFound
from stonework.trace import (
    LMTOptions,
    PathTracer,
    auto_endpoints,
    compute_lmt,
    lmt_ratio,
    path_coordinates,
    path_length,
    prepare_panel,
    scale_factors,
)


def _unit_options(shape, **kwargs):
    # real dimensions equal to the grid shape -> one real unit per cell
    return LMTOptions(real_height=shape[-2], real_length=shape[-1], **kwargs)


@pytest.fixture(scope="module")
def running_bond():
    return create_masonry_panel()


@pytest.fixture(scope="module")
def stack_bond():
    return create_masonry_panel(stagger=0.0)


# ---- Options ----------------------------------------------------------------


def test_options_defaults_and_reference_length():
    opts = LMTOptions(real_length=1.49, real_height=1.4)
    assert opts.mode == "horizontal"
    assert opts.reference_length == 1.49
    assert LMTOptions(mode="Vertical", real_length=1.49, real_height=1.4).reference_length == 1.4
    assert LMTOptions(mode="wall_leaf", real_height=0.6).reference_length == 0.6


@pytest.mark.parametrize(
    "kwargs",
    [
        {"mode": "diagonal"},
        {"real_length": 0.0},
        {"real_height": -1.0},
        {"real_depth": 0.0},
        {"boundary_margin": -1},
        {"count": 0},
    ],
)
def test_options_validation(kwargs):
    with pytest.raises(ValueError):
        LMTOptions(**kwargs)


def test_real_dimensions():
    opts = LMTOptions(real_length=2.0, real_height=1.0)
    assert opts.real_dimensions(2) == (1.0, 2.0)
    with pytest.raises(ValueError):
        opts.real_dimensions(3)
    assert LMTOptions(real_length=2.0, real_height=1.0, real_depth=0.5).real_dimensions(3) == (0.5, 1.0, 2.0)


# ---- Panel preparation ------------------------------------------------------


def test_prepare_panel_horizontal():
    grid = np.ones((10, 12), dtype=bool)
    grid[4:6, 4:8] = False
    out = prepare_panel(grid, "horizontal", boundary_margin=2)
    assert out.dtype == bool
    # rows are written last, so the corners end up stone
    assert not out[0, 0] and not out[-1, -1]
    assert np.all(out[2:-2, :2]) and np.all(out[2:-2, -2:])
    assert not np.any(out[:2, :]) and not np.any(out[-2:, :])
    np.testing.assert_array_equal(out[2:-2, 2:-2], grid[2:-2, 2:-2])
    # input untouched
    assert grid[0, 0] and not grid[4, 4]


@pytest.mark.parametrize("mode", ["vertical", "wall_leaf"])
def test_prepare_panel_vertical(mode):
    grid = np.zeros((10, 12), dtype=bool)
    out = prepare_panel(grid, mode, boundary_margin=3)
    assert np.all(out[:3, :]) and np.all(out[-3:, :])
    assert not np.any(out[3:-3, :3]) and not np.any(out[3:-3, -3:])
    assert not np.any(grid)


def test_prepare_panel_zero_margin_is_a_copy():
    grid = np.random.default_rng(1).random((6, 6)) > 0.5
    out = prepare_panel(grid, "vertical", boundary_margin=0)
    np.testing.assert_array_equal(out, grid)
    assert out is not grid


def test_prepare_panel_volume_every_slice():
    vol = np.ones((4, 8, 9), dtype=bool)
    out = prepare_panel(vol, "horizontal", boundary_margin=1)
    for k in range(vol.shape[0]):
        np.testing.assert_array_equal(out[k], prepare_panel(vol[k], "horizontal", 1))


# ---- Geometry helpers -------------------------------------------------------


def test_scale_factors():
    assert scale_factors((140, 149), (1.4, 1.49)) == pytest.approx((0.01, 0.01))
    assert scale_factors((10, 20, 40), (1.0, 1.0, 1.0)) == pytest.approx((0.1, 0.05, 0.025))
    with pytest.raises(ValueError):
        scale_factors((10, 20), (1.0,))


def test_path_length():
    coords = np.array([[0, 0], [1, 1], [1, 2], [2, 2]])
    assert path_length(coords) == pytest.approx(2 + math.sqrt(2))
    # anisotropic scale: rows 0.5, columns 2
    assert path_length(coords, (0.5, 2.0)) == pytest.approx(math.hypot(0.5, 2.0) + 2.0 + 0.5)
    assert path_length(coords[:1]) == 0.0


def test_lmt_ratio():
    assert lmt_ratio(2.6, 2.0) == pytest.approx(1.3)
    assert lmt_ratio(0.98, 1.0) == 1.0
    with pytest.raises(ValueError):
        lmt_ratio(1.0, 0.0)


def test_auto_endpoints_2d():
    vert = auto_endpoints((75, 135), "vertical", count=2, start_offsets=(10, 20), step=(5, 7))
    assert vert == [((0, 10), (74, 20)), ((0, 15), (74, 27))]
    horiz = auto_endpoints((75, 135), "horizontal", count=2, start_offsets=(10, 20), step=(5, 7))
    assert horiz == [((10, 0), (20, 134)), ((15, 0), (27, 134))]


def test_auto_endpoints_3d_use_middle_slice():
    pairs = auto_endpoints((8, 14, 18), "wall_leaf", start_offsets=(9, 9))
    assert pairs == [((4, 0, 9), (4, 13, 9))]


# ---- Tracing ----------------------------------------------------------------


def test_stack_bond_has_straight_vertical_path(stack_bond):
    # continuous head joint at column 34
    opts = _unit_options(stack_bond.shape, mode="vertical")
    result = compute_lmt(stack_bond, [((0, 34), (74, 34))], opts)
    (path,) = result.paths
    assert path.length == pytest.approx(74.0)
    assert path.lmt == 1.0
    assert np.all(path.coordinates[:, 1] == 34)


def test_running_bond_vertical_path_zigzags(running_bond):
    opts = _unit_options(running_bond.shape, mode="vertical")
    result = compute_lmt(running_bond, [((0, 50), (74, 50))], opts)
    (path,) = result.paths
    # at least 74 rows down and 4 offsets of >= 14 columns between courses
    assert path.length >= (74 + 4 * 14) / math.sqrt(2) - 1e-9
    assert path.lmt > 1.2
    assert result.mean_ratio == pytest.approx(path.lmt)
    assert tuple(path.coordinates[0]) == (0, 50)
    assert tuple(path.coordinates[-1]) == (74, 50)
    # every cell on the path is mortar
    assert np.all(result.grid[tuple(path.coordinates.T)])


def test_running_bond_bed_joint_is_straight(running_bond):
    opts = _unit_options(running_bond.shape, mode="horizontal", start_offsets=(19, 19))
    result = compute_lmt(running_bond, options=opts)
    (path,) = result.paths
    assert path.start == (19, 0) and path.end == (19, 134)
    assert path.length == pytest.approx(134.0)
    assert path.lmt == 1.0


def test_lmt_is_scale_invariant(running_bond):
    unit = _unit_options(running_bond.shape, mode="vertical")
    real = LMTOptions(mode="vertical", real_height=0.75, real_length=1.35)
    endpoints = [((0, 50), (74, 50))]
    a = compute_lmt(running_bond, endpoints, unit).paths[0]
    b = compute_lmt(running_bond, endpoints, real).paths[0]
    assert b.length == pytest.approx(a.length / 100.0)
    assert b.lmt == pytest.approx(a.lmt)


def test_several_automatic_lines(running_bond):
    opts = _unit_options(running_bond.shape, mode="vertical", count=3, start_offsets=(20, 20), step=(40, 40))
    result = compute_lmt(running_bond, options=opts)
    assert [p.start for p in result.paths] == [(0, 20), (0, 60), (0, 100)]
    assert result.lengths.shape == (3,)
    assert np.all(result.ratios >= 1.0)


def test_interface_weight_never_shortens_real_length(running_bond):
    endpoints = [((0, 50), (74, 50))]
    plain = compute_lmt(running_bond, endpoints, _unit_options(running_bond.shape, mode="vertical"))
    weighted = compute_lmt(
        running_bond, endpoints, _unit_options(running_bond.shape, mode="vertical", interface_weight=0.2)
    )
    assert weighted.paths[0].length >= plain.paths[0].length - 1e-9


def test_solvers_give_equal_lengths(running_bond):
    endpoints = [((0, 50), (74, 50))]
    a = compute_lmt(running_bond, endpoints, _unit_options(running_bond.shape, mode="vertical"))
    b = compute_lmt(
        running_bond, endpoints, _unit_options(running_bond.shape, mode="vertical", solver="networkx")
    )
    assert a.paths[0].length == pytest.approx(b.paths[0].length)


def test_explicit_connectivity(running_bond):
    opts = _unit_options(running_bond.shape, mode="vertical", connectivity=4)
    result = compute_lmt(running_bond, [((0, 50), (74, 50))], opts)
    assert result.graph.connectivity == 4
    # 4-connected paths move one axis at a time
    steps = np.abs(np.diff(result.paths[0].coordinates, axis=0)).sum(axis=1)
    assert np.all(steps == 1)


# ---- Failure modes ----------------------------------------------------------


@pytest.fixture
def blocked_panel():
    g = np.ones((20, 20), dtype=bool)
    g[9:12, :] = False
    return g


def test_endpoint_on_stone_or_outside(running_bond):
    panel = prepare_panel(running_bond, "vertical", 5)
    tracer = PathTracer(build_graph(panel), panel)
    with pytest.raises(InvalidEndpoint):
        tracer.trace((10, 10), (74, 50))  # inside a stone
    with pytest.raises(InvalidEndpoint):
        tracer.trace((0, 50), (75, 50))
    with pytest.raises(InvalidEndpoint):
        tracer.trace((0, 50, 1), (74, 50))


def test_tracer_rejects_mismatched_grid():
    G = build_graph(np.ones((4, 4), dtype=bool))
    with pytest.raises(ValueError):
        PathTracer(G, np.ones((4, 5), dtype=bool))
    with pytest.raises(ValueError):
        PathTracer(G, np.ones((4, 4), dtype=bool), scale=(1.0,))


def test_tracer_without_reference_length():
    grid = np.ones((3, 3), dtype=bool)
    path = PathTracer(build_graph(grid), grid, scale=(2.0, 2.0)).trace((0, 0), (2, 2))
    assert path.length == pytest.approx(4 * math.sqrt(2))
    assert math.isnan(path.lmt)


def test_disconnected_panel_raises(blocked_panel):
    opts = LMTOptions(mode="vertical", boundary_margin=2)
    with pytest.raises(NoPathFound):
        compute_lmt(blocked_panel, [((0, 10), (19, 10))], opts)


def test_disconnected_panel_can_be_skipped(blocked_panel, caplog):
    opts = LMTOptions(mode="vertical", boundary_margin=2, skip_unreachable=True)
    with caplog.at_level("WARNING", logger="stonework.trace"):
        result = compute_lmt(blocked_panel, [((0, 10), (19, 10))], opts)
    assert result.paths == []
    assert math.isnan(result.mean_ratio)
    assert "No mortar path" in caplog.text


# ---- Volumes ----------------------------------------------------------------


@pytest.fixture(scope="module")
def wall():
    return create_masonry_wall(
        leaf_depth=3,
        core_depth=2,
        courses=2,
        stones_per_course=2,
        stone_length=6,
        stone_height=4,
        joint=2,
    )


def test_volume_requires_real_depth(wall):
    with pytest.raises(ValueError):
        compute_lmt(wall, options=LMTOptions(mode="wall_leaf", boundary_margin=1, start_offsets=(9, 9)))


def test_volume_trace_through_mortar_core(wall):
    assert wall.shape == (8, 14, 18)
    opts = LMTOptions(
        mode="wall_leaf",
        real_depth=8,
        real_height=14,
        real_length=18,
        boundary_margin=1,
        start_offsets=(9, 9),
    )
    result = compute_lmt(wall, options=opts)
    assert result.graph.connectivity == 26
    (path,) = result.paths
    assert path.start == (4, 0, 9)
    assert path.length == pytest.approx(13.0)
    assert path.lmt == 1.0


def test_path_coordinates_follow_row_major_ids():
    G = build_graph(np.ones((3, 4), dtype=bool))
    np.testing.assert_array_equal(path_coordinates(G, [0, 5, 11]), [[0, 0], [1, 1], [2, 3]])
