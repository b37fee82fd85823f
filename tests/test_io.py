"""
Tests for panel loading and CSV output in `stonework/io.py`.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import numpy as np
import pandas as pd
import pytest
from PIL import Image

from stonework import create_box_stone, create_masonry_panel
from stonework.io import (
    LMT_COLUMNS,
    STONE_COLUMNS,
    load_binary_grid,
    load_binary_image,
    load_binary_volume,
    lmt_table,
    stone_table,
    write_lmt_table,
    write_stone_table,
)
from stonework.stone import analyze_stone
from stonework.trace import LMTOptions, compute_lmt


def _save_png(path, bw, mode="L"):
    Image.fromarray(np.where(bw, 255, 0).astype(np.uint8)).convert(mode).save(path)


@pytest.fixture
def panel():
    return create_masonry_panel(courses=2, stones_per_course=2, stone_length=8, stone_height=5, joint=2)




# ---- Images and volumes -----------------------------------------------------


@pytest.mark.parametrize("mode", ["L", "RGB", "1"])
def test_load_binary_image(tmp_path, panel, mode):
    path = tmp_path / f"panel_{mode}.png"
    _save_png(path, panel, mode)
    bw = load_binary_image(path)
    assert bw.dtype == bool
    np.testing.assert_array_equal(bw, panel)


def test_threshold(tmp_path):
    grey = np.array([[0, 60, 120], [180, 240, 255]], dtype=np.uint8)
    path = tmp_path / "grey.png"
    Image.fromarray(grey).save(path)
    assert load_binary_image(path).sum() == 5
    np.testing.assert_array_equal(load_binary_image(path, threshold=127), grey > 127)


def test_unreadable_image(tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")
    with pytest.raises(ValueError):
        load_binary_image(bad)
    with pytest.raises(ValueError):
        load_binary_image(tmp_path / "missing.png")


def test_volume_from_slices(tmp_path, panel):
    folder = tmp_path / "slices"
    folder.mkdir()
    for k in range(3):
        sl = panel.copy()
        sl[:, : k + 1] = False
        _save_png(folder / f"slice_{k:03d}.png", sl)
    (folder / "notes.txt").write_text("ignored")
    vol = load_binary_volume(folder)
    assert vol.shape == (3,) + panel.shape
    assert not vol[2, 0, 2] and vol[0, 0, 2]
    np.testing.assert_array_equal(load_binary_grid(folder), vol)


def test_volume_slices_must_match(tmp_path):
    folder = tmp_path / "slices"
    folder.mkdir()
    _save_png(folder / "a.png", np.ones((4, 4), dtype=bool))
    _save_png(folder / "b.png", np.ones((4, 5), dtype=bool))
    with pytest.raises(ValueError):
        load_binary_volume(folder)
    with pytest.raises(ValueError):
        load_binary_volume(tmp_path / "volume.txt")


def test_volume_and_grid_from_npy(tmp_path, panel):
    vol = np.stack([panel, ~panel]).astype(np.uint8)
    path = tmp_path / "vol.npy"
    np.save(path, vol)
    np.testing.assert_array_equal(load_binary_volume(path), vol > 0)
    np.testing.assert_array_equal(load_binary_grid(path), vol > 0)

    flat = tmp_path / "panel.npy"
    np.save(flat, panel)
    with pytest.raises(ValueError):
        load_binary_volume(flat)
    np.testing.assert_array_equal(load_binary_grid(flat), panel)

    line = tmp_path / "line.npy"
    np.save(line, np.ones(5))
    with pytest.raises(ValueError):
        load_binary_grid(line)


def test_grid_from_image(tmp_path, panel):
    path = tmp_path / "panel.png"
    _save_png(path, panel)
    np.testing.assert_array_equal(load_binary_grid(path), panel)


# ---- Tables -----------------------------------------------------------------


@pytest.fixture
def stones():
    return [
        analyze_stone(create_box_stone(extents=(0.4, 0.2, 0.1)), name="s1"),
        analyze_stone(create_box_stone(extents=(0.3, 0.3, 0.15)), name="s2"),
    ]


def test_stone_table(stones):
    df = stone_table(stones)
    assert list(df.columns) == [header for header, _ in STONE_COLUMNS]
    assert list(df["Stone ID"]) == ["s1", "s2"]
    assert df.loc[0, "Stone volume [m^3]"] == pytest.approx(0.008)
    assert stone_table([]).empty


def test_write_stone_table(tmp_path, stones):
    out = tmp_path / "stones.csv"
    write_stone_table(out, stones)
    df = pd.read_csv(out)
    assert list(df.columns) == [header for header, _ in STONE_COLUMNS]
    assert list(df["Stone ID"]) == ["s1", "s2"]
    assert df.loc[0, "Stone length [m]"] == pytest.approx(0.4)
    assert df.loc[0, "Stone volume [m^3]"] == pytest.approx(0.008)
    assert df.loc[1, "Shape factor [-]"] == pytest.approx(1.0)


def test_write_lmt_table(tmp_path, panel):
    opts = LMTOptions(mode="horizontal", real_length=panel.shape[1], real_height=panel.shape[0], boundary_margin=1,
                      count=2, start_offsets=(1, 1), step=(7, 7))
    result = compute_lmt(panel, options=opts)
    out = tmp_path / "lmt.csv"
    write_lmt_table(out, result)
    df = pd.read_csv(out)
    assert list(df.columns) == LMT_COLUMNS
    assert len(df) == 2
    assert list(df["line"]) == [1, 2]
    assert df.loc[0, "mode"] == "horizontal"
    assert df.loc[0, "start"] == "1 0"
    assert df.loc[0, "end"] == f"1 {panel.shape[1] - 1}"
    np.testing.assert_allclose(df["length"], result.lengths)
    np.testing.assert_allclose(df["lmt"], result.ratios)


def test_lmt_table_without_paths(panel):
    g = panel.copy()
    g[7:9, :] = False  # cut the panel in two
    opts = LMTOptions(mode="vertical", boundary_margin=1, start_offsets=(1, 1), skip_unreachable=True)
    df = lmt_table(compute_lmt(g, options=opts))
    assert df.empty
    assert list(df.columns) == LMT_COLUMNS
