"""Value ranges for trait colour scales."""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

DEGENERATE_PADDING = 0.1
HOVER_BAND_FRACTION = 0.03


@dataclass(frozen=True)
class ValueRange:
    """Closed interval [min, max] with min <= max."""
    min: float
    max: float

    def __post_init__(self):
        if self.min > self.max:
            raise ValueError(f"ValueRange min {self.min} exceeds max {self.max}")

    @property
    def span(self) -> float:
        return self.max - self.min

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def to_list(self):
        return [self.min, self.max]


DEFAULT_RANGE = ValueRange(0.0, 1.0)


def compute_range(
    cells: pd.DataFrame,
    trait_key: str,
    visible_regions: Optional[Iterable[str]] = None,
    slice_key: Optional[str] = None,
) -> ValueRange:
    """Observed [min, max] of a trait over the visible cells.

    Args:
        cells: Fused record set
        trait_key: Trait column to scan
        visible_regions: Regions to include (None means all)
        slice_key: Restrict to one slice (None means all slices)

    Returns:
        ValueRange; (0, 1) when there is no finite value, and
        (v - 0.1, v + 0.1) when every value equals v.
    """
    if trait_key not in cells.columns:
        return DEFAULT_RANGE

    mask = np.ones(len(cells), dtype=bool)
    if visible_regions is not None:
        mask &= cells["region"].isin(set(visible_regions)).to_numpy()
    if slice_key is not None:
        mask &= (cells["slice"] == slice_key).to_numpy()

    values = pd.to_numeric(cells.loc[mask, trait_key], errors="coerce").to_numpy(dtype=float)
    values = values[np.isfinite(values)]

    if len(values) == 0:
        return DEFAULT_RANGE

    vmin, vmax = float(values.min()), float(values.max())
    if vmin == vmax:
        return ValueRange(vmin - DEGENERATE_PADDING, vmax + DEGENERATE_PADDING)
    return ValueRange(vmin, vmax)


def compute_ranges(
    cells: pd.DataFrame,
    trait_keys: Iterable[str],
    visible_regions: Optional[Iterable[str]] = None,
) -> Dict[str, ValueRange]:
    """Range per trait over all slices, as used by the single view."""
    regions = None if visible_regions is None else set(visible_regions)
    return {key: compute_range(cells, key, regions) for key in trait_keys}


def hover_band(
    value_range: ValueRange,
    value: float,
    fraction: float = HOVER_BAND_FRACTION,
) -> Tuple[float, float]:
    """Highlight band around a legend value, clamped to the range."""
    half_width = value_range.span * fraction
    return (
        max(value_range.min, value - half_width),
        min(value_range.max, value + half_width),
    )
