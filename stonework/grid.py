"""
Regular-grid topology helpers.

Conventions used throughout stonework:
- A grid is a 2D or 3D numpy array; `True` marks mortar (foreground) and
  `False` marks stone (background).
- Coordinates are 0-based tuples in numpy axis order, e.g. (row, col) or
  (slice, row, col).
- Node ids are the row-major (C order) linear index of a cell, the same value
  `numpy.ravel_multi_index(coord, shape)` returns. Every conversion in this
  package uses that one convention.

Connectivity levels follow the image-processing convention: 4 and 8 in 2D,
6, 18 and 26 in 3D, selecting neighbours that share a face, a face or an
edge, or a face, an edge or a corner.
"""

from __future__ import annotations

import itertools
import logging
from functools import lru_cache
from typing import Iterable, Sequence, Tuple

import numpy as np

from .errors import InvalidConnectivity, OutOfBounds

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Connectivity level -> max number of nonzero offset components
_CONNECTIVITY = {
    2: {4: 1, 8: 2},
    3: {6: 1, 18: 2, 26: 3},
}


# ============================================================================
# Connectivity
# ============================================================================


def valid_connectivities(ndim: int) -> Tuple[int, ...]:
    """Return the connectivity levels accepted for `ndim`-dimensional grids."""
    if ndim not in _CONNECTIVITY:
        raise ValueError(f"Grid must be 2D or 3D, got {ndim}D")
    return tuple(sorted(_CONNECTIVITY[ndim]))


def default_connectivity(ndim: int) -> int:
    """Maximum connectivity for the dimensionality (8 in 2D, 26 in 3D)."""
    valid_connectivities(ndim)
    return 3**ndim - 1


def validate_connectivity(ndim: int, level: int) -> int:
    """Return `level` as an int, raising InvalidConnectivity if unsupported."""
    valid = valid_connectivities(ndim)
    try:
        level = int(level)
    except (TypeError, ValueError) as e:
        raise InvalidConnectivity(f"Connectivity must be an integer, got {level!r}") from e
    if level not in valid:
        raise InvalidConnectivity(
            f"Valid connectivities for a {ndim}D array are {', '.join(map(str, valid))}; got {level}"
        )
    return level


@lru_cache(maxsize=None)
def neighbor_offsets(ndim: int, level: int) -> np.ndarray:
    """
    All neighbour offsets for a connectivity level.

    Every component is in {-1, 0, 1}, the zero vector is excluded and the
    number of rows equals `level`. Rows are in lexicographic order.

    The returned array is read-only and shared between calls.
    """
    level = validate_connectivity(ndim, level)
    max_nonzero = _CONNECTIVITY[ndim][level]
    rows = [
        o
        for o in itertools.product((-1, 0, 1), repeat=ndim)
        if 0 < sum(1 for c in o if c != 0) <= max_nonzero
    ]
    table = np.array(rows, dtype=np.int64).reshape(-1, ndim)
    table.setflags(write=False)
    return table


@lru_cache(maxsize=None)
def edge_offsets(ndim: int, level: int) -> np.ndarray:
    """
    Half of `neighbor_offsets`: one offset from each antipodal pair.

    The kept offset of a pair {+o, -o} is the one whose first nonzero component
    is positive. Stepping every foreground cell by these offsets visits each
    undirected adjacency exactly once.
    """
    full = neighbor_offsets(ndim, level)
    keep = []
    for o in full:
        first = o[np.flatnonzero(o)[0]]
        keep.append(first > 0)
    table = full[np.asarray(keep, dtype=bool)].copy()
    table.setflags(write=False)
    return table


def face_offsets(ndim: int) -> np.ndarray:
    """The 2*ndim unit offsets (4-connectivity in 2D, 6 in 3D)."""
    return neighbor_offsets(ndim, 2 * ndim)


# ============================================================================
# Indexing
# ============================================================================


class GridIndexer:
    """
    Bijection between grid coordinates and row-major node ids.

    Covers every cell of the grid, background included, so that any cell can be
    used as a path endpoint.
    """

    def __init__(self, shape: Sequence[int]):
        self.shape: Tuple[int, ...] = tuple(int(s) for s in shape)
        if len(self.shape) not in _CONNECTIVITY:
            raise ValueError(f"Grid must be 2D or 3D, got shape {self.shape}")
        if any(s <= 0 for s in self.shape):
            raise ValueError(f"Grid must be non-empty, got shape {self.shape}")
        self.ndim = len(self.shape)
        self.size = int(np.prod(self.shape, dtype=np.int64))
        # strides in units of cells, C order
        self.strides = np.array(
            [int(np.prod(self.shape[i + 1 :], dtype=np.int64)) for i in range(self.ndim)],
            dtype=np.int64,
        )

    def __repr__(self) -> str:
        return f"GridIndexer(shape={self.shape})"

    def contains(self, coord: Sequence[int]) -> bool:
        if len(coord) != self.ndim:
            return False
        return all(0 <= int(c) < s for c, s in zip(coord, self.shape))

    def coordinate_to_id(self, coord: Sequence[int]) -> int:
        coord = tuple(int(c) for c in coord)
        if not self.contains(coord):
            raise OutOfBounds(f"Coordinate {coord} outside grid of shape {self.shape}")
        return int(np.dot(coord, self.strides))

    def id_to_coordinate(self, node_id: int) -> Tuple[int, ...]:
        node_id = int(node_id)
        if not 0 <= node_id < self.size:
            raise OutOfBounds(f"Node id {node_id} outside grid of {self.size} cells")
        return tuple(int(c) for c in np.unravel_index(node_id, self.shape))

    def coordinates_to_ids(self, coords: Iterable) -> np.ndarray:
        """Vectorised `coordinate_to_id` for an (N, ndim) array."""
        C = np.asarray(coords, dtype=np.int64).reshape(-1, self.ndim)
        inside = np.all((C >= 0) & (C < np.asarray(self.shape)), axis=1)
        if not np.all(inside):
            bad = C[np.flatnonzero(~inside)[0]]
            raise OutOfBounds(f"Coordinate {tuple(bad)} outside grid of shape {self.shape}")
        return C @ self.strides

    def ids_to_coordinates(self, ids: Iterable) -> np.ndarray:
        """Vectorised `id_to_coordinate`; returns an (N, ndim) int array."""
        I = np.asarray(ids, dtype=np.int64).reshape(-1)
        if I.size and (I.min() < 0 or I.max() >= self.size):
            raise OutOfBounds(f"Node ids must lie in [0, {self.size})")
        return np.column_stack(np.unravel_index(I, self.shape)).astype(np.int64)


# ============================================================================
# Interface detection
# ============================================================================


class InterfaceDetector:
    """
    Finds cells on the stone-mortar boundary.

    A cell is an interface cell when any in-bounds face neighbour has the other
    class label. Only face neighbours are considered, whatever connectivity
    the graph itself uses.
    """

    def __init__(self, grid: np.ndarray):
        self.grid = np.asarray(grid, dtype=bool)
        self.indexer = GridIndexer(self.grid.shape)
        self._mask = None

    def is_interface(self, coord: Sequence[int]) -> bool:
        coord = tuple(int(c) for c in coord)
        if not self.indexer.contains(coord):
            raise OutOfBounds(f"Coordinate {coord} outside grid of shape {self.grid.shape}")
        label = self.grid[coord]
        for o in face_offsets(self.grid.ndim):
            n = tuple(c + int(d) for c, d in zip(coord, o))
            if self.indexer.contains(n) and self.grid[n] != label:
                return True
        return False

    @property
    def mask(self) -> np.ndarray:
        """Boolean array marking every interface cell, computed once."""
        if self._mask is None:
            self._mask = interface_mask(self.grid)
        return self._mask


def interface_mask(grid: np.ndarray) -> np.ndarray:
    """Vectorised interface test over the whole grid."""
    g = np.asarray(grid, dtype=bool)
    mask = np.zeros(g.shape, dtype=bool)
    for axis in range(g.ndim):
        lo = [slice(None)] * g.ndim
        hi = [slice(None)] * g.ndim
        lo[axis] = slice(None, -1)
        hi[axis] = slice(1, None)
        lo, hi = tuple(lo), tuple(hi)
        differs = g[lo] != g[hi]
        mask[lo] |= differs
        mask[hi] |= differs
    mask.setflags(write=False)
    logger.debug("Interface cells: %d of %d", int(mask.sum()), mask.size)
    return mask
