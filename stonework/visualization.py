"""
Plotting of traced lines over the panel image.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

from .trace import LMTResult

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def plot_lmt(
    result: LMTResult,
    ax: Any = None,
    figsize: Optional[Tuple[float, float]] = None,
    slice_index: Optional[int] = None,
    path_color: str = "r",
    endpoint_color: str = "g",
    linewidth: float = 2.0,
) -> Any:
    """Draw the prepared panel with every traced line.

    Mortar is shown white and stone black. For 3D volumes, one slice is drawn
    (default: the slice of the first path's start) and paths are projected
    onto it.

    Returns:
        The matplotlib Axes used for drawing.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)

    grid = np.asarray(result.grid, dtype=bool)
    if grid.ndim == 3:
        if slice_index is None:
            slice_index = result.paths[0].start[0] if result.paths else grid.shape[0] // 2
        image = grid[int(slice_index)]
    else:
        image = grid
    ax.imshow(image, cmap="gray", interpolation="nearest")

    for p in result.paths:
        rows = p.coordinates[:, -2]
        cols = p.coordinates[:, -1]
        ax.plot(cols, rows, color=path_color, linewidth=linewidth)
        for end in (p.start, p.end):
            ax.plot(
                end[-1],
                end[-2],
                "o",
                markerfacecolor="none",
                markeredgecolor=endpoint_color,
                markersize=10,
                markeredgewidth=2,
            )

    ratios = ", ".join(f"{r:.3f}" for r in result.ratios)
    ax.set_title(f"Line of minimum trace ({result.mode}): {ratios}")
    ax.set_axis_off()
    return ax


def save_lmt_figure(path: Union[str, Path], result: LMTResult, dpi: int = 150, **kwargs: Any) -> None:
    """Render `plot_lmt` to an image file."""
    fig, ax = plt.subplots(figsize=kwargs.pop("figsize", None))
    try:
        plot_lmt(result, ax=ax, **kwargs)
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
    finally:
        plt.close(fig)
    logger.info("Saved LMT figure to %s", path)
