"""
stonework: geometric analysis of stone masonry

A Python package for characterising masonry from two kinds of input:
- 3D surface meshes of individual stones, from which shape descriptors
  (volume, bounding-box dimensions, aspect ratio, elongation, flatness,
  rectangularity) are computed.
- 2D/3D binary stone/mortar images, from which a graph of connected mortar
  cells is built and the line of minimum trace (LMT) through the mortar
  joints is computed.
"""

__version__ = "0.1.0"

# Grid topology
from .grid import (
    GridIndexer,
    InterfaceDetector,
    default_connectivity,
    edge_offsets,
    face_offsets,
    interface_mask,
    neighbor_offsets,
    valid_connectivities,
    validate_connectivity,
)

# Mortar graph (core)
from .bwgraph import GridGraph, build_graph

# Shortest paths and line of minimum trace
from .solvers import CSGraphSolver, NetworkXSolver, ShortestPathSolver, get_solver
from .trace import (
    LMTOptions,
    LMTResult,
    PathTracer,
    TracedPath,
    auto_endpoints,
    compute_lmt,
    lmt_ratio,
    path_coordinates,
    path_length,
    prepare_panel,
    scale_factors,
)

# Stone shape descriptors
from .stone import (
    BoundingBox,
    StoneProperties,
    analyze_stone,
    analyze_stones,
    axis_aligned_box,
    load_stone_mesh,
    oriented_box,
    stone_volume,
)

# I/O
from .io import (
    load_binary_grid,
    load_binary_image,
    load_binary_volume,
    lmt_table,
    stone_table,
    write_lmt_table,
    write_stone_table,
)

# Demo inputs
from .demo import (
    create_box_stone,
    create_ellipsoid_stone,
    create_masonry_panel,
    create_masonry_wall,
)

from .errors import (
    InvalidConnectivity,
    InvalidEndpoint,
    NoPathFound,
    OutOfBounds,
    PathTimeout,
    ShapeMismatch,
    StoneworkError,
)

__all__ = [
    # Grid topology
    "GridIndexer",
    "InterfaceDetector",
    "default_connectivity",
    "edge_offsets",
    "face_offsets",
    "interface_mask",
    "neighbor_offsets",
    "valid_connectivities",
    "validate_connectivity",
    # Mortar graph
    "GridGraph",
    "build_graph",
    # Shortest paths / LMT
    "ShortestPathSolver",
    "CSGraphSolver",
    "NetworkXSolver",
    "get_solver",
    "LMTOptions",
    "LMTResult",
    "PathTracer",
    "TracedPath",
    "auto_endpoints",
    "compute_lmt",
    "lmt_ratio",
    "path_coordinates",
    "path_length",
    "prepare_panel",
    "scale_factors",
    # Stones
    "BoundingBox",
    "StoneProperties",
    "analyze_stone",
    "analyze_stones",
    "axis_aligned_box",
    "load_stone_mesh",
    "oriented_box",
    "stone_volume",
    # I/O
    "load_binary_grid",
    "load_binary_image",
    "load_binary_volume",
    "lmt_table",
    "stone_table",
    "write_lmt_table",
    "write_stone_table",
    # Demo inputs
    "create_box_stone",
    "create_ellipsoid_stone",
    "create_masonry_panel",
    "create_masonry_wall",
    # Errors
    "StoneworkError",
    "OutOfBounds",
    "InvalidConnectivity",
    "ShapeMismatch",
    "InvalidEndpoint",
    "NoPathFound",
    "PathTimeout",
]
