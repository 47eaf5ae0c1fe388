"""Deterministic colour mapping for trait values and region labels.

All functions are pure: the same inputs always give the same colours, and
the legend and the rendered points share the same mapping.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

RGBA = Tuple[float, float, float, int]

# Continuous scale endpoints per theme
MIN_COLOR_LIGHT = (255, 204, 204)
MAX_COLOR_LIGHT = (204, 0, 0)
MIN_COLOR_DARK = (0, 0, 102)
MAX_COLOR_DARK = (173, 216, 230)

NEUTRAL_GRAY = (128, 128, 128, 255)
HIGHLIGHT_COLOR = (0, 255, 0, 255)

# Cell type colours; anything else falls back to gray
CELL_TYPE_COLORS = {
    'Epithelial': '#FADF92',
    'Palatal Mesenchyme': '#B43E44',
    'Odontogenic': '#F2C9D5',
    'Fibroblastic': '#904869',
    'Osteogenic': '#496496',
    # Regions of the synthetic fallback sample
    'Neural Tube': '#4C78A8',
    'Skeletal Muscle': '#F58518',
    'Heart': '#E45756',
    'Kidney': '#72B7B2',
    'Liver': '#54A24B',
}


def hex_to_rgba(hex_color: str) -> RGBA:
    """'#RRGGBB' -> (r, g, b, 255); gray for anything unparseable."""
    value = (hex_color or "").lstrip("#")
    if len(value) != 6:
        return NEUTRAL_GRAY
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return NEUTRAL_GRAY
    return (r, g, b, 255)


def theme_endpoints(light_theme: bool):
    if light_theme:
        return MIN_COLOR_LIGHT, MAX_COLOR_LIGHT
    return MIN_COLOR_DARK, MAX_COLOR_DARK


def continuous_color(value: float, vmin: float, vmax: float, light_theme: bool) -> RGBA:
    """Linear interpolation between the theme's min and max colours.

    Values outside [vmin, vmax] clamp to the endpoints; a zero-width range
    gives neutral gray.
    """
    if vmin == vmax:
        return NEUTRAL_GRAY

    ratio = (value - vmin) / (vmax - vmin)
    ratio = min(1.0, max(0.0, ratio))
    min_color, max_color = theme_endpoints(light_theme)
    r, g, b = (lo + ratio * (hi - lo) for lo, hi in zip(min_color, max_color))
    return (r, g, b, 255)


def categorical_color(label: str) -> RGBA:
    """Fixed colour for a region label, gray if unknown."""
    if label not in CELL_TYPE_COLORS:
        return NEUTRAL_GRAY
    return hex_to_rgba(CELL_TYPE_COLORS[label])


def to_css(rgba: Sequence[float]) -> str:
    """RGBA tuple -> 'rgba(r, g, b, a)' string for plotly."""
    r, g, b, a = rgba
    return f"rgba({int(round(r))}, {int(round(g))}, {int(round(b))}, {a / 255:.3g})"


def trait_colors(
    values: Iterable[float],
    vmin: float,
    vmax: float,
    light_theme: bool,
    band: Optional[Tuple[float, float]] = None,
) -> np.ndarray:
    """Vectorized continuous_color for a whole column.

    Missing values are drawn with the minimum colour. Points whose value falls
    inside `band` (the legend hover band) get HIGHLIGHT_COLOR.

    Returns:
        (n, 4) float array of RGBA
    """
    values = np.asarray(values, dtype=float)
    filled = np.where(np.isnan(values), vmin, values)
    colors = np.empty((len(values), 4), dtype=float)
    colors[:, 3] = 255

    if vmin == vmax:
        colors[:, :3] = NEUTRAL_GRAY[:3]
    else:
        ratio = np.clip((filled - vmin) / (vmax - vmin), 0.0, 1.0)
        min_color, max_color = theme_endpoints(light_theme)
        lo = np.asarray(min_color, dtype=float)
        hi = np.asarray(max_color, dtype=float)
        colors[:, :3] = lo + ratio[:, None] * (hi - lo)

    if band is not None:
        in_band = (filled >= band[0]) & (filled <= band[1])
        colors[in_band] = HIGHLIGHT_COLOR

    return colors


def region_colors(labels: Iterable[str]) -> List[str]:
    """CSS colours for region labels."""
    lookup = {}
    result = []
    for label in labels:
        if label not in lookup:
            lookup[label] = to_css(categorical_color(label))
        result.append(lookup[label])
    return result


def plotly_colorscale(light_theme: bool, steps: int = 11):
    """Plotly colorscale built from continuous_color on a unit range."""
    return [
        [i / (steps - 1), to_css(continuous_color(i / (steps - 1), 0.0, 1.0, light_theme))]
        for i in range(steps)
    ]
