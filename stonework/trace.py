"""
Line of minimum trace (LMT) through the mortar network.

The LMT is the shortest path through the mortar joints of a masonry panel,
expressed in real units and divided by a reference dimension of the panel.
It measures how well the joints are staggered: a value of 1 means a straight
continuous joint, larger values mean the path has to zigzag around stones.

Three variants are supported, matching the usual assessment of masonry
quality:

- "vertical": staggering of the vertical (head) joints. The path runs from the
  top edge to the bottom edge and is normalised by the panel height.
- "horizontal": continuity of the horizontal bed joints. The path runs from
  the left edge to the right edge and is normalised by the panel length.
- "wall_leaf": connection between wall leaves, measured on a cross-section.
  Same geometry as "vertical", normalised by the height.

Before tracing, a margin of cells along the panel edges is overwritten (see
`prepare_panel`) so that paths can enter and leave anywhere along the start
and end edges but cannot shortcut around the panel sides.

Array conventions follow `stonework.grid`: 0-based (row, col) or
(slice, row, col) coordinates; rows run along the panel height and columns
along its length.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .bwgraph import GridGraph, build_graph
from .errors import InvalidEndpoint, NoPathFound, OutOfBounds
from .solvers import ShortestPathSolver, get_solver

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

LMT_MODES = ("vertical", "horizontal", "wall_leaf")

Coordinate = Tuple[int, ...]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@dataclass
class LMTOptions:
    mode: str = "horizontal"  # or "vertical", "wall_leaf"
    # Real panel dimensions (any consistent unit)
    real_length: float = 1.0
    real_height: float = 1.0
    # Extent along axis 0 of 3D volumes; required for volumes
    real_depth: Optional[float] = None
    # Alpha: ratio of interface to mortar fracture energy, in (0, 1]
    interface_weight: float = 1.0
    connectivity: Optional[int] = None  # None -> maximum for the dimensionality
    boundary_margin: int = 5  # cells
    # Automatic endpoints (used when no endpoints are given)
    count: int = 1
    start_offsets: Tuple[int, int] = (80, 80)
    step: Tuple[int, int] = (100, 100)
    solver: str = "scipy"  # or "networkx"
    timeout: Optional[float] = None  # seconds per path
    workers: int = 1
    # Skip endpoint pairs that are not connected instead of raising NoPathFound
    skip_unreachable: bool = False

    def __post_init__(self):
        self.mode = validate_mode(self.mode)
        if self.real_length <= 0 or self.real_height <= 0:
            raise ValueError("real_length and real_height must be positive")
        if self.real_depth is not None and self.real_depth <= 0:
            raise ValueError("real_depth must be positive")
        if self.boundary_margin < 0:
            raise ValueError("boundary_margin must be >= 0")
        if self.count < 1:
            raise ValueError("count must be >= 1")

    @property
    def reference_length(self) -> float:
        """Panel dimension the path length is divided by."""
        return self.real_length if self.mode == "horizontal" else self.real_height

    def real_dimensions(self, ndim: int) -> Tuple[float, ...]:
        """Real extent of each grid axis."""
        if ndim == 2:
            return (self.real_height, self.real_length)
        if self.real_depth is None:
            raise ValueError("real_depth is required for 3D volumes")
        return (self.real_depth, self.real_height, self.real_length)


@dataclass
class TracedPath:
    """One traced line: grid endpoints, node sequence and its real length."""

    start: Coordinate
    end: Coordinate
    nodes: np.ndarray
    coordinates: np.ndarray  # (N, ndim) grid coordinates
    length: float  # real units
    lmt: float


@dataclass
class LMTResult:
    mode: str
    reference_length: float
    grid: np.ndarray  # prepared panel the graph was built from
    graph: GridGraph
    paths: List[TracedPath] = field(default_factory=list)

    @property
    def lengths(self) -> np.ndarray:
        return np.array([p.length for p in self.paths], dtype=float)

    @property
    def ratios(self) -> np.ndarray:
        return np.array([p.lmt for p in self.paths], dtype=float)

    @property
    def mean_ratio(self) -> float:
        return float(np.mean(self.ratios)) if self.paths else float("nan")


def validate_mode(mode: str) -> str:
    m = str(mode).lower()
    if m not in LMT_MODES:
        raise ValueError(f"Unknown LMT mode {mode!r}; expected one of {', '.join(LMT_MODES)}")
    return m


# ---------------------------------------------------------------------------
# Panel preparation and geometry
# ---------------------------------------------------------------------------


def prepare_panel(grid: np.ndarray, mode: str = "horizontal", boundary_margin: int = 5) -> np.ndarray:
    """
    Return a boolean copy of `grid` with its edge margins overwritten.

    horizontal: the left and right margin columns become mortar (entry and
        exit edges), then the top and bottom margin rows become stone.
    vertical / wall_leaf: the left and right margin columns become stone,
        then the top and bottom margin rows become mortar.

    Rows and columns are the last two axes, so 3D volumes get the same
    treatment on every slice.
    """
    mode = validate_mode(mode)
    g = np.array(grid, dtype=bool, copy=True)
    if g.ndim not in (2, 3):
        raise ValueError(f"Grid must be 2D or 3D, got {g.ndim}D")
    m = int(boundary_margin)
    if m <= 0:
        return g
    sides = mode == "horizontal"
    g[..., :m] = sides
    g[..., -m:] = sides
    g[..., :m, :] = not sides
    g[..., -m:, :] = not sides
    return g


def scale_factors(shape: Sequence[int], real_dimensions: Sequence[float]) -> Tuple[float, ...]:
    """Real units per cell along each axis."""
    if len(shape) != len(real_dimensions):
        raise ValueError("real_dimensions must give one extent per grid axis")
    return tuple(float(r) / int(n) for r, n in zip(real_dimensions, shape))


def path_coordinates(graph: GridGraph, nodes: Sequence[int]) -> np.ndarray:
    """(N, ndim) grid coordinates of a node id sequence."""
    return graph.indexer.ids_to_coordinates(nodes)


def path_length(coordinates: np.ndarray, scale: Optional[Sequence[float]] = None) -> float:
    """Sum of Euclidean segment lengths along a coordinate sequence, after scaling."""
    P = np.asarray(coordinates, dtype=float)
    if P.ndim != 2 or P.shape[0] < 2:
        return 0.0
    if scale is not None:
        P = P * np.asarray(scale, dtype=float)
    return float(np.sum(np.linalg.norm(np.diff(P, axis=0), axis=1)))


def lmt_ratio(total_length: float, reference_length: float) -> float:
    """LMT ratio, floored at 1 since no path is shorter than the panel itself."""
    if reference_length <= 0:
        raise ValueError("reference_length must be positive")
    return max(1.0, float(total_length) / float(reference_length))


def auto_endpoints(
    shape: Sequence[int],
    mode: str = "horizontal",
    count: int = 1,
    start_offsets: Tuple[int, int] = (80, 80),
    step: Tuple[int, int] = (100, 100),
) -> List[Tuple[Coordinate, Coordinate]]:
    """
    Endpoint pairs spanning the panel.

    For vertical and wall_leaf lines the start lies on the top row at column
    `start_offsets[0]` and the end on the bottom row at column
    `start_offsets[1]`; for horizontal lines the same offsets are rows on the
    left and right columns. Both offsets advance by `step` after each line.
    For 3D volumes the lines lie on the middle slice.
    """
    mode = validate_mode(mode)
    shape = tuple(int(s) for s in shape)
    lead = tuple(s // 2 for s in shape[:-2])
    rows, cols = shape[-2:]
    a, b = int(start_offsets[0]), int(start_offsets[1])
    pairs = []
    for _ in range(int(count)):
        if mode == "horizontal":
            pairs.append((lead + (a, 0), lead + (b, cols - 1)))
        else:
            pairs.append((lead + (0, a), lead + (rows - 1, b)))
        a += int(step[0])
        b += int(step[1])
    return pairs


# ---------------------------------------------------------------------------
# Path tracing
# ---------------------------------------------------------------------------


class PathTracer:
    """
    Shortest-path queries on a built graph, measured in real units.

    Args:
        graph: Graph built from `grid`.
        grid: The grid the graph was built from; used to reject endpoints on stone.
        scale: Real units per cell along each axis (defaults to 1).
        solver: Shortest-path backend (defaults to scipy).
    """

    def __init__(
        self,
        graph: GridGraph,
        grid: np.ndarray,
        scale: Optional[Sequence[float]] = None,
        solver: Optional[ShortestPathSolver] = None,
    ):
        self.graph = graph
        self.grid = np.asarray(grid, dtype=bool)
        if self.grid.shape != tuple(graph.shape):
            raise ValueError(
                f"Grid shape {self.grid.shape} does not match graph shape {tuple(graph.shape)}"
            )
        self.scale = tuple(scale) if scale is not None else (1.0,) * self.grid.ndim
        if len(self.scale) != self.grid.ndim:
            raise ValueError("scale must give one factor per grid axis")
        self.solver = solver if solver is not None else get_solver()

    def node_id(self, coord: Sequence[int]) -> int:
        """Node id of a path endpoint; raises InvalidEndpoint for stone or out-of-bounds cells."""
        try:
            nid = self.graph.indexer.coordinate_to_id(coord)
        except OutOfBounds as e:
            raise InvalidEndpoint(f"Endpoint {tuple(coord)} is outside the grid") from e
        if not self.grid[tuple(int(c) for c in coord)]:
            raise InvalidEndpoint(f"Endpoint {tuple(coord)} lies on a stone (background) cell")
        return nid

    def trace(
        self,
        start: Sequence[int],
        end: Sequence[int],
        reference_length: Optional[float] = None,
    ) -> TracedPath:
        """
        Shortest path from `start` to `end`.

        Raises:
            InvalidEndpoint: an endpoint is outside the grid or on stone.
            NoPathFound: the endpoints are in disconnected mortar regions.
        """
        source = self.node_id(start)
        target = self.node_id(end)
        nodes = self.solver.shortest_path(self.graph, source, target)
        coords = path_coordinates(self.graph, nodes)
        length = path_length(coords, self.scale)
        ratio = lmt_ratio(length, reference_length) if reference_length is not None else float("nan")
        logger.debug(
            "Traced %s -> %s: %d nodes, length=%.4g, lmt=%.4g",
            tuple(start),
            tuple(end),
            nodes.size,
            length,
            ratio,
        )
        return TracedPath(
            start=tuple(int(c) for c in start),
            end=tuple(int(c) for c in end),
            nodes=nodes,
            coordinates=coords,
            length=length,
            lmt=ratio,
        )

    def lmt(self, start: Sequence[int], end: Sequence[int], reference_length: float) -> float:
        return self.trace(start, end, reference_length).lmt


def compute_lmt(
    grid: np.ndarray,
    endpoints: Optional[Sequence[Tuple[Sequence[int], Sequence[int]]]] = None,
    options: Optional[LMTOptions] = None,
    *,
    node_weights: Optional[np.ndarray] = None,
) -> LMTResult:
    """
    Prepare the panel, build its mortar graph and trace every endpoint pair.

    Args:
        grid: Binary panel image or volume (mortar nonzero).
        endpoints: (start, end) grid coordinates per line. If None, lines are
            generated with `auto_endpoints` from the options.
        options: LMTOptions; defaults are used when omitted.
        node_weights: Optional per-cell weights passed to `build_graph`.

    Returns:
        LMTResult with one TracedPath per traced line.
    """
    if options is None:
        options = LMTOptions()

    panel = prepare_panel(grid, options.mode, options.boundary_margin)
    graph = build_graph(
        panel,
        connectivity=options.connectivity,
        node_weights=node_weights,
        interface_weight=options.interface_weight,
        workers=options.workers,
    )
    scale = scale_factors(panel.shape, options.real_dimensions(panel.ndim))
    if endpoints is None:
        endpoints = auto_endpoints(
            panel.shape,
            options.mode,
            count=options.count,
            start_offsets=options.start_offsets,
            step=options.step,
        )

    tracer = PathTracer(
        graph, panel, scale=scale, solver=get_solver(options.solver, timeout=options.timeout)
    )
    result = LMTResult(
        mode=options.mode,
        reference_length=options.reference_length,
        grid=panel,
        graph=graph,
    )
    for i, (start, end) in enumerate(endpoints):
        try:
            traced = tracer.trace(start, end, options.reference_length)
        except NoPathFound:
            if not options.skip_unreachable:
                raise
            logger.warning("No mortar path for line %d (%s -> %s); skipped", i + 1, start, end)
            continue
        result.paths.append(traced)
        logger.info("LMT line %d: length=%.4g, ratio=%.4f", i + 1, traced.length, traced.lmt)

    return result
