"""Dataset handling for the spatial trait viewer.

This module provides a unified interface for loading the five per-cell
source tables of a dataset and turning them into one normalized record set.
"""

from .base import DatasetConfig, SpatialDataset, SOURCE_NAMES
from .loader import (
    SourceLoadFailure,
    get_available_datasets,
    get_installed_datasets,
    get_config,
    read_source,
    load_sources,
    map_sources,
    build_dataset,
    load_dataset,
)

__all__ = [
    "DatasetConfig",
    "SpatialDataset",
    "SOURCE_NAMES",
    "SourceLoadFailure",
    "get_available_datasets",
    "get_installed_datasets",
    "get_config",
    "read_source",
    "load_sources",
    "map_sources",
    "build_dataset",
    "load_dataset",
]
