"""Fusion of the five source lookups into one record set keyed by cell id."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import numpy as np
import pandas as pd

from traitmap.sources import RESERVED_FIELDS, SourceMaps

UNKNOWN_REGION = "Unknown"

# Synthetic sample used when nothing survives the join
SAMPLE_ID_PREFIX = "sample_cell_"
SAMPLE_SLICE_PREFIX = "sample_"
SAMPLE_SLICES = ["sample_E125", "sample_E135", "sample_E155"]
SAMPLE_REGIONS = ["Neural Tube", "Skeletal Muscle", "Heart", "Kidney", "Liver"]
SAMPLE_GENES = ["GeneA", "GeneB", "GeneC", "GeneD"]
SAMPLE_TFS = ["TF1_activity", "TF2_activity"]


@dataclass(frozen=True)
class Outcome:
    """Which path produced a record set: real fused data or a fallback."""
    kind: str
    reason: Optional[str] = None

    FUSED = "fused"
    FALLBACK = "fallback"

    @classmethod
    def fused(cls) -> "Outcome":
        return cls(cls.FUSED)

    @classmethod
    def fallback(cls, reason: str) -> "Outcome":
        return cls(cls.FALLBACK, reason)

    @property
    def is_fallback(self) -> bool:
        return self.kind == self.FALLBACK


@dataclass
class FusionResult:
    """Fused cells plus the aggregate join statistics.

    Attributes:
        cells: One row per emitted cell (id, x, y, slice, region, traits...)
        outcome: Outcome.fused() or Outcome.fallback(reason)
        n_candidates: Distinct ids across all five sources
        n_dropped: Candidates without coordinates or section
    """
    cells: pd.DataFrame
    outcome: Outcome
    n_candidates: int
    n_dropped: int


@dataclass
class CellRecord:
    """A single fused cell. Absent traits are omitted from `traits`."""
    id: str
    x: float
    y: float
    slice: str
    region: str
    traits: Dict[str, float] = field(default_factory=dict)


def iter_records(cells: pd.DataFrame) -> Iterator[CellRecord]:
    """Yield CellRecords from a fused frame, dropping NaN traits."""
    trait_cols = [c for c in cells.columns if c not in RESERVED_FIELDS]
    for row in cells.to_dict("records"):
        traits = {
            col: float(row[col]) for col in trait_cols if not pd.isna(row[col])
        }
        yield CellRecord(
            id=row["id"],
            x=float(row["x"]),
            y=float(row["y"]),
            slice=row["slice"],
            region=row["region"],
            traits=traits,
        )


def merge_traits(tfs: pd.DataFrame, genes: pd.DataFrame, ids: List[str]) -> pd.DataFrame:
    """Combine TF and gene matrices for `ids`, TF columns first.

    On a name clash the gene value wins wherever it is present.
    """
    tf_part = tfs.reindex(ids)
    gene_part = genes.reindex(ids)

    clashes = [col for col in gene_part.columns if col in tf_part.columns]
    for col in clashes:
        tf_part[col] = gene_part[col].combine_first(tf_part[col])

    extra = gene_part.drop(columns=clashes)
    traits = pd.concat([tf_part, extra], axis=1)
    return traits.reset_index(drop=True)


def fuse(maps: SourceMaps) -> FusionResult:
    """Join the five source lookups by cell id.

    A cell is emitted only if both its coordinates and its section resolve.
    Cells without a cell type get the region 'Unknown'; missing traits stay
    NaN. If nothing is emitted, a synthetic sample is returned instead and the
    outcome says so.
    """
    candidates = maps.all_ids()
    has_coords = set(maps.coordinates.index)
    has_section = set(maps.sections.index)

    keep = [cell_id for cell_id in candidates if cell_id in has_coords and cell_id in has_section]
    n_dropped = len(candidates) - len(keep)

    if not keep:
        if not candidates:
            reason = "all sources are empty"
        else:
            reason = f"none of {len(candidates)} cells had both coordinates and a section"
        return FusionResult(
            cells=make_sample_cells(),
            outcome=Outcome.fallback(reason),
            n_candidates=len(candidates),
            n_dropped=n_dropped,
        )

    coords = maps.coordinates.loc[keep]
    cells = pd.DataFrame(
        {
            "id": keep,
            "x": coords["x"].to_numpy(dtype=float),
            "y": coords["y"].to_numpy(dtype=float),
            "slice": maps.sections.loc[keep].to_numpy(),
            "region": maps.celltypes.reindex(keep).fillna(UNKNOWN_REGION).to_numpy(),
        }
    )
    traits = merge_traits(maps.tfs, maps.genes, keep)
    cells = pd.concat([cells, traits], axis=1)

    return FusionResult(
        cells=cells,
        outcome=Outcome.fused(),
        n_candidates=len(candidates),
        n_dropped=n_dropped,
    )


def make_sample_cells(n_cells: int = 100, seed: int = 42) -> pd.DataFrame:
    """Deterministic synthetic dataset for the empty-fusion fallback.

    Ids and slices carry the reserved 'sample_' prefixes so the sample can
    never be confused with real data.
    """
    rng = np.random.default_rng(seed)
    third = n_cells // 3

    slices = [
        SAMPLE_SLICES[0] if i < third else SAMPLE_SLICES[1] if i < 2 * third else SAMPLE_SLICES[2]
        for i in range(n_cells)
    ]
    cells = pd.DataFrame(
        {
            "id": [f"{SAMPLE_ID_PREFIX}{i}" for i in range(n_cells)],
            "x": rng.uniform(0, 500, n_cells) + 50,
            "y": rng.uniform(0, 800, n_cells) + 50,
            "slice": slices,
            "region": [SAMPLE_REGIONS[i % len(SAMPLE_REGIONS)] for i in range(n_cells)],
        }
    )
    for tf in SAMPLE_TFS:
        cells[tf] = rng.uniform(0, 3, n_cells)
    for gene in SAMPLE_GENES:
        cells[gene] = rng.uniform(0, 5, n_cells)
    return cells


def is_sample_cell(cell_id: str) -> bool:
    return str(cell_id).startswith(SAMPLE_ID_PREFIX)
