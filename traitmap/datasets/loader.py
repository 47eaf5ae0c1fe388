"""Unified data loading interface for spatial trait datasets."""

from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pandas as pd

from traitmap.catalog import build_catalog, list_regions, list_slices
from traitmap.fusion import fuse
from traitmap.normalize import normalize_coordinates
from traitmap.sources import (
    SourceMaps,
    map_celltypes,
    map_coordinates,
    map_sections,
    map_trait_matrix,
)

from .base import SOURCE_NAMES, DatasetConfig, SpatialDataset

# Paths
DATA_DIR = Path(__file__).parent.parent.parent / "app" / "data"

# Upper bound on concurrent source reads
MAX_WORKERS = len(SOURCE_NAMES)


class SourceLoadFailure(RuntimeError):
    """One or more sources could not be read. Nothing is fused in that case."""

    def __init__(self, dataset_name: str, errors: Dict[str, Exception]):
        self.dataset_name = dataset_name
        self.errors = errors
        details = "; ".join(f"{source}: {err}" for source, err in errors.items())
        super().__init__(f"[{dataset_name}] Failed to load source(s): {details}")


def get_embryo_config() -> DatasetConfig:
    """Get configuration for the embryo section dataset."""
    return DatasetConfig(name="embryo", data_dir=DATA_DIR / "embryo", tissue="Embryo")


def get_demo_config() -> DatasetConfig:
    """Get configuration for the generated demo dataset (scripts/make_demo_data.py)."""
    return DatasetConfig(name="demo", data_dir=DATA_DIR / "demo", tissue="Demo")


# Registry of available datasets
DATASETS: Dict[str, Callable[[], DatasetConfig]] = {
    "embryo": get_embryo_config,
    "demo": get_demo_config,
}


def get_available_datasets() -> List[str]:
    """Return list of all registered dataset names."""
    return list(DATASETS.keys())


def get_installed_datasets() -> List[str]:
    """Return list of datasets whose source files are present."""
    return [name for name in DATASETS if DATASETS[name]().is_available()]


def get_config(name: str) -> DatasetConfig:
    """Get configuration for a dataset.

    Args:
        name: Dataset name ("embryo" or "demo")

    Returns:
        DatasetConfig instance
    """
    if name not in DATASETS:
        raise ValueError(f"Unknown dataset: {name}. Available: {list(DATASETS.keys())}")
    return DATASETS[name]()


def read_source(location: str) -> pd.DataFrame:
    """Read one source table as text, keeping the header exactly as written.

    Every field is kept as a string (an empty header stays ""), and numeric
    parsing is left to the schema mapping step.
    """
    df = pd.read_csv(location, dtype=str, keep_default_na=False)
    # pandas names an empty header "Unnamed: N"; restore the blank id header
    df.columns = [
        "" if i == 0 and str(col).startswith("Unnamed:") else col
        for i, col in enumerate(df.columns)
    ]
    return df


def load_sources(
    config: DatasetConfig,
    reader: Callable[[str], pd.DataFrame] = read_source,
    max_workers: int = MAX_WORKERS,
) -> Dict[str, pd.DataFrame]:
    """Read all five sources concurrently and wait for every one of them.

    Args:
        config: Dataset configuration with the source locations
        reader: Callable taking a path or URL and returning a DataFrame
        max_workers: Thread pool size

    Returns:
        Dict of source name -> raw table

    Raises:
        SourceLoadFailure: if any source failed; carries every error
    """
    locations = config.source_locations
    tables = {}
    errors = {}

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {source: executor.submit(reader, locations[source]) for source in SOURCE_NAMES}
        for source, future in futures.items():
            try:
                tables[source] = future.result()
            except (OSError, ValueError) as err:
                errors[source] = err

    if errors:
        raise SourceLoadFailure(config.name, errors)

    print(
        f"[{config.name}] Loaded sources: "
        + ", ".join(f"{source}={len(tables[source]):,} rows" for source in SOURCE_NAMES)
    )
    return tables


# Schema mapper per source name
SOURCE_MAPPERS: Dict[str, Callable] = {
    "section": map_sections,
    "coordinates": map_coordinates,
    "tf": partial(map_trait_matrix, source="tf"),
    "gene": partial(map_trait_matrix, source="gene"),
    "celltype": map_celltypes,
}


def map_sources(tables: Dict[str, pd.DataFrame], dataset_name: str = "dataset") -> SourceMaps:
    """Schema-map raw tables keyed by source name.

    Raises:
        SourceLoadFailure: if a table lacks its id column or a required field;
            carries every such error
    """
    mapped = {}
    errors = {}
    for source in SOURCE_NAMES:
        try:
            mapped[source] = SOURCE_MAPPERS[source](tables[source])
        except ValueError as err:
            errors[source] = err

    if errors:
        raise SourceLoadFailure(dataset_name, errors)

    return SourceMaps(
        coordinates=mapped["coordinates"],
        sections=mapped["section"],
        celltypes=mapped["celltype"],
        genes=mapped["gene"],
        tfs=mapped["tf"],
    )


def build_dataset(maps: SourceMaps, config: DatasetConfig) -> SpatialDataset:
    """Fuse, normalize and catalog already-mapped sources."""
    print(
        f"[{config.name}] Mapped ids: "
        + ", ".join(f"{source}={n:,}" for source, n in maps.sizes().items())
    )
    result = fuse(maps)
    if result.outcome.is_fallback:
        print(f"[{config.name}] WARNING: using sample data ({result.outcome.reason})")
    else:
        print(
            f"[{config.name}] Fused {len(result.cells):,} of {result.n_candidates:,} cells "
            f"({result.n_dropped:,} without coordinates or section)"
        )

    cells = normalize_coordinates(
        result.cells,
        target_width=config.target_width,
        target_height=config.target_height,
        margin=config.margin,
    )
    catalog = build_catalog(cells)
    if any(trait.placeholder for trait in catalog):
        print(f"[{config.name}] WARNING: no trait columns found, using placeholder traits")

    dataset = SpatialDataset(
        name=config.name,
        cells=cells,
        catalog=catalog,
        slices=list_slices(cells),
        regions=list_regions(cells),
        outcome=result.outcome,
        n_candidates=result.n_candidates,
        n_dropped=result.n_dropped,
        tissue=config.tissue,
    )
    print(
        f"[{config.name}] {len(dataset.slices)} sections, {len(dataset.regions)} regions, "
        f"{len(catalog)} traits"
    )
    return dataset


def load_dataset(
    name: str,
    config: Optional[DatasetConfig] = None,
    reader: Callable[[str], pd.DataFrame] = read_source,
) -> SpatialDataset:
    """Load, fuse and normalize a dataset.

    Args:
        name: Dataset name (ignored for lookup when `config` is given)
        config: Explicit configuration overriding the registry
        reader: Source reader, see load_sources

    Returns:
        SpatialDataset
    """
    if config is None:
        config = get_config(name)
    tables = load_sources(config, reader=reader)
    return build_dataset(map_sources(tables, config.name), config)
