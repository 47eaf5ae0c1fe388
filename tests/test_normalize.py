"""Tests for per-slice coordinate normalization (traitmap/normalize.py)."""

import numpy as np
import pandas as pd
import pytest

from traitmap.normalize import (
    MARGIN,
    TARGET_HEIGHT,
    TARGET_WIDTH,
    fit_extent,
    frame_axis_ranges,
    normalize_coordinates,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_cells(x, y, slices):
    """Build a minimal fused cells DataFrame."""
    return pd.DataFrame(
        {
            "id": [f"c{i}" for i in range(len(x))],
            "x": x,
            "y": y,
            "slice": slices,
            "region": ["A"] * len(x),
        }
    )


# ---------------------------------------------------------------------------
# Tests: fit_extent
# ---------------------------------------------------------------------------


class TestFitExtent:
    def test_width_limited(self):
        """Square data in a 500x800 frame fills the width."""
        assert fit_extent(10, 10) == pytest.approx((500.0, 500.0))

    def test_height_limited(self):
        assert fit_extent(1, 16) == pytest.approx((50.0, 800.0))

    def test_degenerate(self):
        assert fit_extent(0, 0) == (0.0, 0.0)
        assert fit_extent(0, 5) == (0.0, 800.0)
        assert fit_extent(5, 0) == (500.0, 0.0)


# ---------------------------------------------------------------------------
# Tests: normalize_coordinates
# ---------------------------------------------------------------------------


class TestNormalizeCoordinates:
    def test_square_slice_centered_vertically(self):
        cells = _make_cells([0, 10, 0, 10], [0, 0, 10, 10], ["s1"] * 4)
        out = normalize_coordinates(cells)
        assert out["x"].min() == pytest.approx(50.0)
        assert out["x"].max() == pytest.approx(550.0)
        assert out["y"].min() == pytest.approx(200.0)
        assert out["y"].max() == pytest.approx(700.0)

    def test_tall_slice_centered_horizontally(self):
        cells = _make_cells([0, 1], [0, 16], ["s1"] * 2)
        out = normalize_coordinates(cells)
        assert out["x"].tolist() == pytest.approx([275.0, 325.0])
        assert out["y"].tolist() == pytest.approx([50.0, 850.0])

    def test_within_frame(self):
        rng = np.random.default_rng(42)
        n = 200
        cells = _make_cells(rng.normal(0, 1000, n), rng.normal(0, 3, n), ["s1"] * n)
        out = normalize_coordinates(cells)
        assert out["x"].between(MARGIN, MARGIN + TARGET_WIDTH).all()
        assert out["y"].between(MARGIN, MARGIN + TARGET_HEIGHT).all()

    def test_aspect_ratio_preserved(self):
        cells = _make_cells([0, 30, 0], [0, 0, 40], ["s1"] * 3)
        out = normalize_coordinates(cells)
        width = out["x"].max() - out["x"].min()
        height = out["y"].max() - out["y"].min()
        assert width / height == pytest.approx(30 / 40)

    def test_slices_independent(self):
        """Same shape at very different scales normalizes identically."""
        x = [0, 2, 1]
        y = [0, 0, 3]
        cells = _make_cells(
            x + [v * 1000 + 5000 for v in x],
            y + [v * 1000 - 7000 for v in y],
            ["small"] * 3 + ["large"] * 3,
        )
        out = normalize_coordinates(cells)
        small = out[out["slice"] == "small"]
        large = out[out["slice"] == "large"]
        assert small["x"].tolist() == pytest.approx(large["x"].tolist())
        assert small["y"].tolist() == pytest.approx(large["y"].tolist())

    def test_single_point_collapses_to_center(self):
        cells = _make_cells([42.0], [-7.0], ["s1"])
        out = normalize_coordinates(cells)
        assert out.loc[0, "x"] == pytest.approx(300.0)
        assert out.loc[0, "y"] == pytest.approx(450.0)

    def test_vertical_line(self):
        """Zero x range: x collapses to the center, y spans the frame."""
        cells = _make_cells([5, 5, 5], [0, 1, 2], ["s1"] * 3)
        out = normalize_coordinates(cells)
        assert out["x"].tolist() == pytest.approx([300.0] * 3)
        assert out["y"].tolist() == pytest.approx([50.0, 450.0, 850.0])

    def test_idempotent(self):
        rng = np.random.default_rng(7)
        n = 50
        cells = _make_cells(rng.uniform(-5, 5, n), rng.uniform(0, 100, n), ["a", "b"] * 25)
        once = normalize_coordinates(cells)
        twice = normalize_coordinates(once)
        assert twice["x"].tolist() == pytest.approx(once["x"].tolist())
        assert twice["y"].tolist() == pytest.approx(once["y"].tolist())

    def test_input_untouched(self):
        cells = _make_cells([0, 10], [0, 10], ["s1"] * 2)
        original = cells.copy()
        normalize_coordinates(cells)
        pd.testing.assert_frame_equal(cells, original)

    def test_empty(self):
        cells = _make_cells([], [], [])
        assert normalize_coordinates(cells).empty

    def test_custom_frame(self):
        cells = _make_cells([0, 1], [0, 1], ["s1"] * 2)
        out = normalize_coordinates(cells, target_width=100, target_height=100, margin=0)
        assert out["x"].tolist() == pytest.approx([0.0, 100.0])
        assert out["y"].tolist() == pytest.approx([0.0, 100.0])


# ---------------------------------------------------------------------------
# Tests: frame_axis_ranges
# ---------------------------------------------------------------------------


class TestFrameAxisRanges:
    def test_frame_axis_ranges_default(self):
        x_range, y_range = frame_axis_ranges(0)
        assert x_range == pytest.approx([0.0, 600.0])
        assert y_range == pytest.approx([0.0, 900.0])

    def test_frame_axis_ranges_zoomed_in(self):
        x_range, y_range = frame_axis_ranges(1)
        assert x_range == pytest.approx([150.0, 450.0])
        assert y_range == pytest.approx([225.0, 675.0])
