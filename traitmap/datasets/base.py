"""Base classes and types for dataset handling."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd


@dataclass
class DatasetConfig:
    """Configuration for a spatial trait dataset.

    Attributes:
        name: Short identifier (e.g., "embryo")
        data_dir: Directory holding the source CSV files
        coordinates_file: Per-cell x/y table (id, x, y)
        section_file: Per-cell section table (id, section)
        celltype_file: Per-cell region/cell type table (id, celltype)
        gene_file: Gene expression matrix (id, gene_1, gene_2, ...)
        tf_file: TF activity matrix (id, tf_1_activity, ...)
        tissue: Label used to group sections in the section list
        target_width: Width of the display frame each slice is fitted into
        target_height: Height of the display frame
        margin: Offset added on both axes after centering
    """
    name: str
    data_dir: Path
    coordinates_file: str = "coordinates.csv"
    section_file: str = "section.csv"
    celltype_file: str = "celltype.csv"
    gene_file: str = "gene_expression.csv"
    tf_file: str = "tf_activity.csv"
    tissue: str = "Embryo"

    # Display frame
    target_width: float = 500.0
    target_height: float = 800.0
    margin: float = 50.0

    # Sources given as URLs are read remotely instead of from data_dir
    remote_sources: Dict[str, str] = field(default_factory=dict)

    def source_location(self, source: str) -> str:
        """Path or URL for one of the five sources."""
        if source in self.remote_sources:
            return self.remote_sources[source]
        file_names = {
            "coordinates": self.coordinates_file,
            "section": self.section_file,
            "celltype": self.celltype_file,
            "gene": self.gene_file,
            "tf": self.tf_file,
        }
        if source not in file_names:
            raise ValueError(f"Unknown source: {source}. Available: {SOURCE_NAMES}")
        return str(Path(self.data_dir) / file_names[source])

    @property
    def source_locations(self) -> Dict[str, str]:
        return {source: self.source_location(source) for source in SOURCE_NAMES}

    def is_available(self) -> bool:
        """Check if every local source file exists."""
        for source, location in self.source_locations.items():
            if source in self.remote_sources:
                continue
            if not Path(location).exists():
                return False
        return True


@dataclass
class SpatialDataset:
    """Fused, normalized and catalogued dataset, built once at load time.

    Attributes:
        name: Dataset name the data was loaded for
        cells: One row per cell (id, x, y, slice, region, trait columns)
        catalog: TraitDescriptor list derived from `cells`
        slices: Sorted slice names
        regions: Sorted region labels
        outcome: How fusion produced `cells` (real data or synthetic fallback)
        n_candidates: Number of distinct ids across the five sources
        n_dropped: Candidates excluded for missing coordinates or section
        tissue: Group label for the section list
    """
    name: str
    cells: pd.DataFrame
    catalog: List[Any]
    slices: List[str]
    regions: List[str]
    outcome: Any
    n_candidates: int = 0
    n_dropped: int = 0
    tissue: str = "Embryo"

    @property
    def n_cells(self) -> int:
        return len(self.cells)

    @property
    def trait_keys(self) -> List[str]:
        return [trait.key for trait in self.catalog]

    @property
    def is_fallback(self) -> bool:
        return self.outcome.is_fallback

    @property
    def has_placeholder_traits(self) -> bool:
        return any(trait.placeholder for trait in self.catalog)

    def get_trait(self, key: str) -> Optional[Any]:
        for trait in self.catalog:
            if trait.key == key:
                return trait
        return None

    def section_groups(self) -> List[Dict]:
        """Sections grouped by tissue, for the section list."""
        return [{"tissue": self.tissue, "sections": list(self.slices)}]


# Names of the five sources, in load order
SOURCE_NAMES = ["section", "coordinates", "tf", "gene", "celltype"]
