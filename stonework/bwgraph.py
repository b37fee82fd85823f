"""
Graph of connected mortar cells in 2D images or 3D volumes.

Nodes are grid cells (row-major ids, see `stonework.grid`) and edges join
adjacent foreground cells under the chosen connectivity. Every cell of the
grid is a node, background included, so any coordinate can be handed to a
shortest-path query; background nodes simply have no edges.

Edge weights:
- Without node weights, the Euclidean length of the step (1 for face
  neighbours, sqrt(2) for edge neighbours, sqrt(3) for corner neighbours).
- With node weights, the mean of the two endpoint weights.
- Edges touching the stone-mortar interface (either endpoint has a face
  neighbour of the other class) are multiplied by `interface_weight` once.
  Values below 1 make paths along the joint faces cheaper, modelling a weaker
  stone-mortar bond than mortar alone.

Example:
    A fully mortar 3x3 image with 8-connectivity has 6 horizontal, 6 vertical
    and 8 diagonal adjacencies, so the graph has 9 nodes and 20 edges.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterator, List, Optional, Tuple

import networkx as nx
import numpy as np
from scipy import sparse

from .errors import ShapeMismatch
from .grid import (
    GridIndexer,
    default_connectivity,
    edge_offsets,
    interface_mask,
    validate_connectivity,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Foreground cells handled per batch; bounds the temporary coordinate arrays.
DEFAULT_BATCH_SIZE = 1 << 20


@dataclass(frozen=True, eq=False)
class GridGraph:
    """
    Immutable weighted graph over the cells of a binary grid.

    Attributes:
        shape: Shape of the source grid.
        connectivity: Connectivity level used to enumerate edges.
        interface_weight: Factor applied to interface edges.
        sources, targets: Node ids of each undirected edge (each pair once).
        weights: Strictly positive edge weights.
    """

    shape: Tuple[int, ...]
    connectivity: int
    interface_weight: float
    sources: np.ndarray
    targets: np.ndarray
    weights: np.ndarray
    indexer: GridIndexer = field(init=False, repr=False)

    def __post_init__(self):
        # writable inputs are copied so the caller's arrays stay untouched
        for name in ("sources", "targets", "weights"):
            arr = np.asarray(getattr(self, name))
            if arr.flags.writeable:
                arr = arr.copy()
                arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "indexer", GridIndexer(self.shape))

    @property
    def num_nodes(self) -> int:
        return self.indexer.size

    @property
    def num_edges(self) -> int:
        return int(self.sources.size)

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        for s, t, w in zip(self.sources.tolist(), self.targets.tolist(), self.weights.tolist()):
            yield s, t, w

    def edge_dict(self) -> dict:
        """Map of frozenset({u, v}) -> weight; handy for comparing builds."""
        return {frozenset((s, t)): w for s, t, w in self.edges()}

    @cached_property
    def csgraph(self) -> sparse.csr_matrix:
        """Sparse adjacency with each edge stored once; solve with `directed=False`."""
        n = self.num_nodes
        return sparse.csr_matrix(
            (self.weights, (self.sources, self.targets)), shape=(n, n)
        )

    def to_csgraph(self) -> sparse.csr_matrix:
        return self.csgraph

    @cached_property
    def nx_graph(self) -> nx.Graph:
        """Shared networkx view for read-only queries; built once per graph."""
        return self.to_networkx()

    def to_networkx(self) -> nx.Graph:
        """Return a new networkx Graph with every cell as a node and `weight` edge attributes."""
        G = nx.Graph()
        G.add_nodes_from(range(self.num_nodes))
        G.add_weighted_edges_from(self.edges())
        return G


def build_graph(
    grid: np.ndarray,
    connectivity: Optional[int] = None,
    node_weights: Optional[np.ndarray] = None,
    interface_weight: float = 1.0,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    workers: int = 1,
) -> GridGraph:
    """
    Build the mortar connectivity graph of a binary grid.

    Args:
        grid: 2D or 3D array; nonzero cells are mortar (foreground).
        connectivity: 4 or 8 in 2D, 6, 18 or 26 in 3D. Defaults to the maximum.
        node_weights: Optional per-cell weights with the grid's shape. Edge
            weights become the mean of the two endpoint weights.
        interface_weight: Factor in (0, 1] applied to edges touching the
            stone-mortar interface.
        batch_size: Foreground cells per batch.
        workers: Number of threads processing batches. Output order does not
            depend on it.

    Returns:
        GridGraph with one edge per adjacent foreground pair.

    Raises:
        InvalidConnectivity: connectivity not valid for the grid dimensionality.
        ShapeMismatch: node_weights shape differs from the grid.
        ValueError: empty or non 2D/3D grid, interface_weight outside (0, 1],
            or non-positive node weights on foreground cells.
    """
    bw = np.asarray(grid)
    if bw.ndim not in (2, 3):
        raise ValueError(f"Grid must be 2D or 3D, got {bw.ndim}D")
    if bw.size == 0:
        raise ValueError("Grid must be non-empty")
    bw = bw.astype(bool, copy=False)

    if connectivity is None:
        connectivity = default_connectivity(bw.ndim)
    connectivity = validate_connectivity(bw.ndim, connectivity)

    interface_weight = float(interface_weight)
    if not (0.0 < interface_weight <= 1.0):
        raise ValueError(f"interface_weight must be in (0, 1], got {interface_weight}")

    nw_flat = None
    if node_weights is not None:
        nw = np.asarray(node_weights, dtype=float)
        if nw.shape != bw.shape:
            raise ShapeMismatch(
                f"node_weights shape {nw.shape} does not match grid shape {bw.shape}"
            )
        fg_w = nw[bw]
        if fg_w.size and not (np.all(np.isfinite(fg_w)) and np.all(fg_w > 0)):
            raise ValueError("node_weights must be finite and positive on foreground cells")
        nw_flat = np.ascontiguousarray(nw).reshape(-1)

    batch_size = max(1, int(batch_size))
    indexer = GridIndexer(bw.shape)
    offsets = edge_offsets(bw.ndim, connectivity)
    steps = np.linalg.norm(offsets, axis=1)
    # Only needed when the factor changes anything
    iface_flat = interface_mask(bw).reshape(-1) if interface_weight != 1.0 else None
    bw_flat = np.ascontiguousarray(bw).reshape(-1)

    foreground = np.flatnonzero(bw_flat)
    batches = [
        foreground[i : i + batch_size] for i in range(0, foreground.size, batch_size)
    ]
    logger.debug(
        "Building %dD graph: shape=%s, connectivity=%d, foreground=%d, batches=%d, workers=%d",
        bw.ndim,
        bw.shape,
        connectivity,
        foreground.size,
        len(batches),
        workers,
    )

    def run(batch: np.ndarray):
        return _batch_edges(
            batch, indexer, offsets, steps, bw_flat, nw_flat, iface_flat, interface_weight
        )

    if workers > 1 and len(batches) > 1:
        with ThreadPoolExecutor(max_workers=int(workers)) as pool:
            parts = list(pool.map(run, batches))
    else:
        parts = [run(b) for b in batches]

    if parts:
        sources = np.concatenate([p[0] for p in parts])
        targets = np.concatenate([p[1] for p in parts])
        weights = np.concatenate([p[2] for p in parts])
    else:
        sources = np.zeros(0, dtype=np.int64)
        targets = np.zeros(0, dtype=np.int64)
        weights = np.zeros(0, dtype=float)
    # frozen here so GridGraph keeps them without another copy
    for arr in (sources, targets, weights):
        arr.setflags(write=False)

    logger.info(
        "Built graph with %d nodes and %d edges (connectivity=%d, interface_weight=%g)",
        indexer.size,
        sources.size,
        connectivity,
        interface_weight,
    )
    return GridGraph(
        shape=bw.shape,
        connectivity=connectivity,
        interface_weight=interface_weight,
        sources=sources,
        targets=targets,
        weights=weights,
    )


def _batch_edges(
    batch: np.ndarray,
    indexer: GridIndexer,
    offsets: np.ndarray,
    steps: np.ndarray,
    bw_flat: np.ndarray,
    nw_flat: Optional[np.ndarray],
    iface_flat: Optional[np.ndarray],
    interface_weight: float,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Edges leaving one batch of foreground ids; private buffers per call."""
    coords = np.column_stack(np.unravel_index(batch, indexer.shape))
    upper = np.asarray(indexer.shape, dtype=np.int64)

    src_parts: List[np.ndarray] = []
    dst_parts: List[np.ndarray] = []
    w_parts: List[np.ndarray] = []
    for o, step in zip(offsets, steps):
        nb = coords + o
        inside = np.all((nb >= 0) & (nb < upper), axis=1)
        src = batch[inside]
        dst = nb[inside] @ indexer.strides
        fg = bw_flat[dst]
        src = src[fg]
        dst = dst[fg]
        if nw_flat is None:
            w = np.full(src.size, step, dtype=float)
        else:
            w = 0.5 * (nw_flat[src] + nw_flat[dst])
        if iface_flat is not None:
            on_interface = iface_flat[src] | iface_flat[dst]
            w[on_interface] *= interface_weight
        src_parts.append(src)
        dst_parts.append(dst)
        w_parts.append(w)

    return (
        np.concatenate(src_parts).astype(np.int64, copy=False),
        np.concatenate(dst_parts).astype(np.int64, copy=False),
        np.concatenate(w_parts),
    )

