"""
Reading binary panels and writing result tables.

Binary images use white (nonzero) for mortar and black for stone. Colour
images are converted to greyscale first. Volumes are either `.npy` arrays or a
directory of image slices stacked along axis 0 in file-name order.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

import numpy as np
import pandas as pd
from PIL import Image

from .stone import StoneProperties
from .trace import LMTResult

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

IMAGE_SUFFIXES = (".png", ".tif", ".tiff", ".bmp", ".jpg", ".jpeg")

LMT_COLUMNS = ["line", "mode", "start", "end", "length", "reference_length", "lmt"]

STONE_COLUMNS = [
    ("Stone ID", "name"),
    ("Stone length [m]", "length"),
    ("Stone width [m]", "width"),
    ("Stone height [m]", "height"),
    ("Elongation [-]", "elongation"),
    ("Flatness_index [-]", "flatness"),
    ("Aspect ratio [-]", "aspect_ratio"),
    ("Stone volume [m^3]", "volume"),
    ("Bounding box volume [m^3]", "bounding_box_volume"),
    ("Shape factor [-]", "rectangularity"),
]


def load_binary_image(path: Union[str, Path], threshold: int = 0) -> np.ndarray:
    """Load a 2D binary panel; cells brighter than `threshold` are mortar."""
    try:
        with Image.open(path) as img:
            grey = np.asarray(img.convert("L"))
    except OSError as e:
        raise ValueError(f"Failed to read image {path}: {e}") from e
    bw = grey > threshold
    logger.debug("Loaded %s: shape=%s, mortar fraction=%.3f", path, bw.shape, bw.mean())
    return bw


def load_binary_volume(path: Union[str, Path], threshold: float = 0) -> np.ndarray:
    """Load a 3D binary volume from a `.npy` file or a directory of image slices."""
    path = Path(path)
    if path.is_dir():
        slices = sorted(p for p in path.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
        if not slices:
            raise ValueError(f"No image slices found in {path}")
        stack = [load_binary_image(p, threshold=int(threshold)) for p in slices]
        shapes = {s.shape for s in stack}
        if len(shapes) != 1:
            raise ValueError(f"Image slices in {path} have differing shapes: {sorted(shapes)}")
        bw = np.stack(stack, axis=0)
    elif path.suffix.lower() == ".npy":
        bw = np.load(path) > threshold
        if bw.ndim != 3:
            raise ValueError(f"Expected a 3D array in {path}, got {bw.ndim}D")
    else:
        raise ValueError(f"Unsupported volume source: {path}")
    logger.debug("Loaded volume %s: shape=%s", path, bw.shape)
    return bw


def load_binary_grid(path: Union[str, Path], threshold: int = 0) -> np.ndarray:
    """Image file -> 2D grid; `.npy` file or slice directory -> 3D volume."""
    path = Path(path)
    if path.is_dir():
        return load_binary_volume(path, threshold)
    if path.suffix.lower() == ".npy":
        arr = np.load(path)
        if arr.ndim not in (2, 3):
            raise ValueError(f"Expected a 2D or 3D array in {path}, got {arr.ndim}D")
        return arr > threshold
    return load_binary_image(path, threshold)


def stone_table(stones: Iterable[StoneProperties]) -> pd.DataFrame:
    """DataFrame of stone properties with the report column headers."""
    attrs = [attr for _, attr in STONE_COLUMNS]
    df = pd.DataFrame([s.to_dict() for s in stones], columns=attrs)
    return df.rename(columns={attr: header for header, attr in STONE_COLUMNS})


def lmt_table(result: LMTResult) -> pd.DataFrame:
    """DataFrame with one row per traced line: endpoints, real length and LMT ratio."""
    rows = [
        {
            "line": i,
            "mode": result.mode,
            "start": " ".join(map(str, p.start)),
            "end": " ".join(map(str, p.end)),
            "length": p.length,
            "reference_length": result.reference_length,
            "lmt": p.lmt,
        }
        for i, p in enumerate(result.paths, start=1)
    ]
    return pd.DataFrame(rows, columns=LMT_COLUMNS)


def write_stone_table(path: Union[str, Path], stones: Iterable[StoneProperties]) -> None:
    """Write stone properties to CSV, one row per stone."""
    df = stone_table(stones)
    df.to_csv(path, index=False)
    logger.info("Wrote %d stones to %s", len(df), path)


def write_lmt_table(path: Union[str, Path], result: LMTResult) -> None:
    """Write the LMT table of `result` to CSV."""
    df = lmt_table(result)
    df.to_csv(path, index=False)
    logger.info("Wrote %d LMT lines to %s", len(df), path)
