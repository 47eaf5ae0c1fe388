"""Per-slice coordinate normalization into the display frame.

Each slice is fitted independently: absolute coordinate scales of different
sections are not comparable, so one slice's bounding box never influences
another's.
"""

from typing import Tuple

import numpy as np
import pandas as pd

TARGET_WIDTH = 500.0
TARGET_HEIGHT = 800.0
MARGIN = 50.0


def fit_extent(x_range, y_range, target_width=TARGET_WIDTH, target_height=TARGET_HEIGHT):
    """Size of the largest box with the data's aspect ratio that fits the frame.

    Returns:
        (final_width, final_height). An axis with zero range gets zero extent.
    """
    if x_range <= 0 and y_range <= 0:
        return 0.0, 0.0
    if y_range <= 0:
        return float(target_width), 0.0
    if x_range <= 0:
        return 0.0, float(target_height)

    aspect = x_range / y_range
    target_aspect = target_width / target_height
    if aspect > target_aspect:
        # Width limited
        return float(target_width), target_width / aspect
    # Height limited
    return target_height * aspect, float(target_height)


def normalize_slice(x, y, target_width=TARGET_WIDTH, target_height=TARGET_HEIGHT, margin=MARGIN):
    """Map one slice's raw coordinates into the display frame.

    Args:
        x, y: 1D arrays of raw coordinates for a single slice

    Returns:
        (x_display, y_display) arrays
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    x_min, x_max = x.min(), x.max()
    y_min, y_max = y.min(), y.max()
    x_range = x_max - x_min
    y_range = y_max - y_min

    final_width, final_height = fit_extent(x_range, y_range, target_width, target_height)

    # Center the fitted extent, then shift by the margin
    x_offset = (target_width - final_width) / 2 + margin
    y_offset = (target_height - final_height) / 2 + margin

    if x_range > 0:
        x_display = (x - x_min) / x_range * final_width + x_offset
    else:
        x_display = np.full_like(x, margin + target_width / 2)

    if y_range > 0:
        y_display = (y - y_min) / y_range * final_height + y_offset
    else:
        y_display = np.full_like(y, margin + target_height / 2)

    return x_display, y_display


def normalize_coordinates(
    cells: pd.DataFrame,
    target_width: float = TARGET_WIDTH,
    target_height: float = TARGET_HEIGHT,
    margin: float = MARGIN,
) -> pd.DataFrame:
    """Rescale every slice into the display frame, preserving aspect ratio.

    Args:
        cells: Fused cells with raw 'x', 'y' and a 'slice' column

    Returns:
        Copy of `cells` with display coordinates in 'x' and 'y'
    """
    result = cells.copy()
    if result.empty:
        return result

    x_out = result["x"].to_numpy(dtype=float).copy()
    y_out = result["y"].to_numpy(dtype=float).copy()

    for _slice_key, positions in result.groupby("slice", sort=False).indices.items():
        x_out[positions], y_out[positions] = normalize_slice(
            x_out[positions],
            y_out[positions],
            target_width=target_width,
            target_height=target_height,
            margin=margin,
        )

    result["x"] = x_out
    result["y"] = y_out
    return result


def frame_axis_ranges(
    zoom: float = 0.0,
    target_width: float = TARGET_WIDTH,
    target_height: float = TARGET_HEIGHT,
    margin: float = MARGIN,
) -> Tuple[list, list]:
    """Visible x/y windows for a zoom level, centered on the frame.

    Zoom is a log2 magnification: 0 shows the whole frame including margins,
    1 shows half of it, -1 twice as much.
    """
    scale = 2.0 ** zoom
    center_x = margin + target_width / 2
    center_y = margin + target_height / 2
    half_width = (target_width / 2 + margin) / scale
    half_height = (target_height / 2 + margin) / scale
    return (
        [center_x - half_width, center_x + half_width],
        [center_y - half_height, center_y + half_height],
    )
