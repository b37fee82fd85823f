"""
Geometric properties of individual stones from surface meshes.

For each stone mesh (.ply or .stl) we compute:
- Stone volume from the closed surface (divergence theorem: sum of signed
  tetrahedra spanned by the origin and each face).
- Two bounding boxes: axis-aligned, and oriented along the principal axes of
  the vertex cloud (PCA). The box with the smaller volume is kept.
- From the kept box, with its dimensions sorted so that d0 <= d1 <= d2:
    length = d2, width = d1, height = d0
    aspect ratio = d0 / d2
    elongation   = d1 / d2
    flatness     = d0 / d1
    rectangularity (shape factor) = stone volume / box volume

Example:
    A 0.4 x 0.2 x 0.1 box stone has volume 0.008, length 0.4, width 0.2,
    height 0.1, elongation 0.5, flatness 0.5, aspect ratio 0.25 and a shape
    factor of 1.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Union

import numpy as np
import trimesh

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class BoundingBox:
    """Bounding box with dimensions sorted ascending."""

    kind: str  # "oriented" or "axis_aligned"
    dimensions: np.ndarray
    volume: float

    @property
    def aspect_ratio(self) -> float:
        return float(self.dimensions[0] / self.dimensions[2])

    @property
    def elongation(self) -> float:
        return float(self.dimensions[1] / self.dimensions[2])

    @property
    def flatness(self) -> float:
        return float(self.dimensions[0] / self.dimensions[1])


@dataclass
class StoneProperties:
    name: str
    length: float
    width: float
    height: float
    elongation: float
    flatness: float
    aspect_ratio: float
    volume: float
    bounding_box_volume: float
    rectangularity: float
    bounding_box: str

    def to_dict(self):
        return asdict(self)


def load_stone_mesh(path: Union[str, Path]) -> trimesh.Trimesh:
    """
    Load a stone surface mesh.

    Scenes with several geometries are concatenated into one mesh.
    """
    try:
        loaded = trimesh.load(str(path))
    except Exception as e:
        raise ValueError(f"Failed to load mesh from {path}: {e}") from e

    if isinstance(loaded, trimesh.Scene):
        geometries = [g for g in loaded.geometry.values() if isinstance(g, trimesh.Trimesh)]
        if not geometries:
            raise ValueError(f"No geometry found in mesh scene {path}")
        loaded = trimesh.util.concatenate(geometries)
    if not isinstance(loaded, trimesh.Trimesh):
        raise ValueError(f"Loaded object is not a mesh: {type(loaded)}")

    logger.debug("Loaded %s: %d vertices, %d faces", path, len(loaded.vertices), len(loaded.faces))
    return loaded


def stone_volume(mesh: trimesh.Trimesh) -> float:
    """Signed volume enclosed by a triangle mesh, sum of det([a; b; c]) / 6 over faces."""
    V = np.asarray(mesh.vertices, dtype=float)
    F = np.asarray(mesh.faces, dtype=np.int64)
    if F.size == 0:
        return 0.0
    a, b, c = V[F[:, 0]], V[F[:, 1]], V[F[:, 2]]
    return float(np.einsum("ij,ij->i", a, np.cross(b, c)).sum() / 6.0)


def _box(kind: str, points: np.ndarray) -> BoundingBox:
    dims = np.sort(points.max(axis=0) - points.min(axis=0))
    if dims[0] <= 0:
        raise ValueError("Degenerate stone: zero extent along at least one axis")
    return BoundingBox(kind=kind, dimensions=dims, volume=float(np.prod(dims)))


def axis_aligned_box(vertices: np.ndarray) -> BoundingBox:
    V = np.asarray(vertices, dtype=float)
    if V.ndim != 2 or V.shape[1] != 3 or V.shape[0] < 4:
        raise ValueError("vertices must be an (N, 3) array with N >= 4")
    return _box("axis_aligned", V)


def oriented_box(vertices: np.ndarray) -> BoundingBox:
    """Bounding box aligned with the principal axes of the vertex cloud."""
    V = np.asarray(vertices, dtype=float)
    if V.ndim != 2 or V.shape[1] != 3 or V.shape[0] < 4:
        raise ValueError("vertices must be an (N, 3) array with N >= 4")
    centered = V - V.mean(axis=0)
    cov = np.cov(centered, rowvar=False)
    _, eigenvectors = np.linalg.eigh(cov)
    return _box("oriented", centered @ eigenvectors)


def analyze_stone(
    mesh: trimesh.Trimesh,
    name: str = "",
    unit_convert: float = 1.0,
) -> StoneProperties:
    """
    Shape descriptors of one stone.

    Args:
        mesh: Closed surface mesh of the stone.
        name: Identifier stored in the result (usually the file name).
        unit_convert: Factor from mesh units to output units (e.g. 0.001 for
            mm -> m). Lengths are scaled by it, volumes by its cube.
    """
    volume = stone_volume(mesh)
    if volume < 0:
        logger.warning("Stone %s has inverted face winding; using |volume|", name or "<unnamed>")
        volume = -volume
    if not getattr(mesh, "is_watertight", True):
        logger.warning("Stone %s is not watertight; volume may be inaccurate", name or "<unnamed>")

    obb = oriented_box(mesh.vertices)
    aabb = axis_aligned_box(mesh.vertices)
    box = obb if obb.volume < aabb.volume else aabb

    u = float(unit_convert)
    dims = box.dimensions * u
    return StoneProperties(
        name=name,
        length=float(dims[2]),
        width=float(dims[1]),
        height=float(dims[0]),
        elongation=box.elongation,
        flatness=box.flatness,
        aspect_ratio=box.aspect_ratio,
        volume=volume * u**3,
        bounding_box_volume=box.volume * u**3,
        rectangularity=volume / box.volume,
        bounding_box=box.kind,
    )


def analyze_stones(
    folder: Union[str, Path],
    pattern: str = "*.ply",
    unit_convert: float = 1.0,
) -> List[StoneProperties]:
    """Analyze every mesh in `folder` matching `pattern`, sorted by file name."""
    folder = Path(folder)
    if not folder.is_dir():
        raise ValueError(f"Not a directory: {folder}")
    files = sorted(folder.glob(pattern))
    if not files:
        logger.warning("No files matching %s in %s", pattern, folder)

    results = []
    for path in files:
        mesh = load_stone_mesh(path)
        props = analyze_stone(mesh, name=path.name, unit_convert=unit_convert)
        logger.info(
            "%s: L=%.4g W=%.4g H=%.4g V=%.4g (%s box)",
            path.name,
            props.length,
            props.width,
            props.height,
            props.volume,
            props.bounding_box,
        )
        results.append(props)
    return results
