"""
Synthetic stones and masonry panels for tutorials, demos and tests.

Meshes are built with trimesh; panels and walls are boolean arrays with
`True` for mortar and `False` for stone (see `stonework.grid`).
"""

from typing import Optional, Sequence, Tuple

import numpy as np
import trimesh


def create_box_stone(
    extents: Tuple[float, float, float] = (0.4, 0.2, 0.1),
    center: Tuple[float, float, float] = (0.0, 0.0, 0.0),
    rotation_deg: float = 0.0,
    rotation_axis: Sequence[float] = (0.0, 0.0, 1.0),
) -> trimesh.Trimesh:
    """
    Create a rectangular block stone.

    Args:
        extents: Edge lengths along x, y, z before rotation.
        center: Center position (x, y, z).
        rotation_deg: Rotation angle about `rotation_axis`, in degrees.
        rotation_axis: Rotation axis direction.

    Returns:
        Trimesh box with theoretical properties in `metadata`.
    """
    stone = trimesh.creation.box(extents=extents)
    if rotation_deg:
        R = trimesh.transformations.rotation_matrix(np.radians(rotation_deg), rotation_axis)
        stone.apply_transform(R)
    if tuple(center) != (0.0, 0.0, 0.0):
        stone.apply_transform(trimesh.transformations.translation_matrix(center))

    stone.metadata["stone_type"] = "box"
    stone.metadata["extents"] = tuple(float(e) for e in extents)
    stone.metadata["volume_theoretical"] = float(np.prod(extents))
    return stone


def create_ellipsoid_stone(
    radii: Tuple[float, float, float] = (0.2, 0.12, 0.08),
    subdivisions: int = 3,
    center: Tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> trimesh.Trimesh:
    """
    Create a rounded (rubble-like) stone as a scaled icosphere.

    The theoretical volume 4/3 pi a b c is stored in `metadata`; the mesh volume
    is slightly smaller because the surface is faceted.
    """
    stone = trimesh.creation.icosphere(subdivisions=subdivisions, radius=1.0)
    S = np.diag([radii[0], radii[1], radii[2], 1.0])
    stone.apply_transform(S)
    if tuple(center) != (0.0, 0.0, 0.0):
        stone.apply_transform(trimesh.transformations.translation_matrix(center))

    stone.metadata["stone_type"] = "ellipsoid"
    stone.metadata["radii"] = tuple(float(r) for r in radii)
    stone.metadata["volume_theoretical"] = 4.0 / 3.0 * np.pi * float(np.prod(radii))
    return stone


def create_masonry_panel(
    courses: int = 4,
    stones_per_course: int = 4,
    stone_length: int = 30,
    stone_height: int = 15,
    joint: int = 3,
    stagger: float = 0.5,
) -> np.ndarray:
    """
    Create a 2D running-bond panel: courses of rectangular stones in mortar.

    Every other course is shifted by `stagger` times the stone pitch, so
    `stagger=0` gives continuous vertical joints (stack bond) and `stagger=0.5`
    gives the usual half-stone overlap. A mortar border of `joint` cells
    surrounds the panel.

    Returns:
        Boolean array of shape (rows, cols), True for mortar.
    """
    if min(courses, stones_per_course, stone_length, stone_height, joint) < 1:
        raise ValueError("Panel dimensions and joint width must be >= 1")
    pitch_x = stone_length + joint
    pitch_y = stone_height + joint
    rows = courses * pitch_y + joint
    cols = stones_per_course * pitch_x + joint

    panel = np.ones((rows, cols), dtype=bool)
    for c in range(courses):
        y0 = joint + c * pitch_y
        shift = int(round(stagger * pitch_x)) if c % 2 else 0
        for k in range(-1, stones_per_course + 1):
            x0 = joint + k * pitch_x - shift
            x1 = x0 + stone_length
            x0, x1 = max(x0, joint), min(x1, cols - joint)
            if x1 > x0:
                panel[y0 : y0 + stone_height, x0:x1] = False
    return panel


def create_masonry_wall(
    leaf_depth: int = 6,
    core_depth: int = 4,
    through_stone: Optional[Tuple[int, int, int, int]] = None,
    **panel_kwargs,
) -> np.ndarray:
    """
    Create a 3D two-leaf wall: two masonry panels separated by a mortar core.

    Axis 0 runs through the wall thickness. The second leaf uses the opposite
    stagger of the first. `through_stone` = (row0, row1, col0, col1) places a
    stone crossing the whole thickness, connecting the leaves.

    Returns:
        Boolean array of shape (2 * leaf_depth + core_depth, rows, cols).
    """
    outer = create_masonry_panel(**panel_kwargs)
    kw = dict(panel_kwargs)
    kw["stagger"] = -float(kw.get("stagger", 0.5))
    inner = create_masonry_panel(**kw)

    wall = np.ones((2 * leaf_depth + core_depth,) + outer.shape, dtype=bool)
    wall[:leaf_depth] = outer
    wall[leaf_depth + core_depth :] = inner
    if through_stone is not None:
        r0, r1, c0, c1 = through_stone
        wall[:, r0:r1, c0:c1] = False
    return wall
