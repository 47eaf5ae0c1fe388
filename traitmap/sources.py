"""Schema mapping from raw source rows to per-cell lookups.

Each of the five inputs arrives as rows of named fields (a DataFrame from
``pd.read_csv`` or any sequence of dicts). The mappers here validate the
fields they need, normalize the cell identifier column and return lookups
keyed by cell id, so nothing downstream ever sees the raw row shape.

The identifier column is frequently written without a header (an R/pandas
row-name column). Depending on the parser it shows up as ``""`` or
``"Unnamed: 0"``; both are accepted, as are explicit ``id`` / ``cell_id``.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Union

import numpy as np
import pandas as pd

Rows = Union[pd.DataFrame, Iterable[dict]]

# Candidate names for the identifier column, in priority order
ID_COLUMN_CANDIDATES = ["", "Unnamed: 0", "id", "cell_id"]

# Identity fields of a fused cell; never treated as traits
RESERVED_FIELDS = ("id", "x", "y", "slice", "region")

# Header fragments marking bookkeeping columns in the trait matrices
NON_TRAIT_MARKERS = ("Cell", "cellName")


def as_frame(rows: Rows) -> pd.DataFrame:
    """Coerce rows into a DataFrame without touching the caller's object."""
    if isinstance(rows, pd.DataFrame):
        return rows.copy()
    return pd.DataFrame(list(rows))


def detect_id_column(df: pd.DataFrame) -> str:
    """Find the cell identifier column of a source table.

    Args:
        df: Raw source table

    Returns:
        Name of the identifier column
    """
    for candidate in ID_COLUMN_CANDIDATES:
        if candidate in df.columns:
            return candidate

    # Fall back to an unnamed leading column (e.g. "Unnamed: 0" after a rename)
    if len(df.columns) > 0 and str(df.columns[0]).startswith("Unnamed"):
        return df.columns[0]

    raise ValueError(
        f"No cell id column found. Expected one of {ID_COLUMN_CANDIDATES}, "
        f"got {list(df.columns)[:10]}"
    )


def clean_ids(values: pd.Series) -> pd.Series:
    """Cell ids as stripped strings, with missing ids as ''."""
    return values.fillna("").astype(str).str.strip()


def _require_columns(df, columns, source):
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ValueError(f"{source} source is missing column(s): {missing}")


def map_coordinates(rows: Rows) -> pd.DataFrame:
    """Build the id -> (x, y) lookup.

    Rows with an empty id or a non-numeric coordinate are skipped. When an id
    repeats, the last row wins.

    Returns:
        DataFrame indexed by cell id with float columns 'x' and 'y'
    """
    df = as_frame(rows)
    if df.empty:
        return pd.DataFrame(
            {"x": pd.Series(dtype=float), "y": pd.Series(dtype=float)},
            index=pd.Index([], name="id", dtype=object),
        )

    _require_columns(df, ["x", "y"], "coordinates")
    id_col = detect_id_column(df)

    coords = pd.DataFrame(
        {
            "id": clean_ids(df[id_col]),
            "x": pd.to_numeric(df["x"], errors="coerce"),
            "y": pd.to_numeric(df["y"], errors="coerce"),
        }
    )
    valid = (
        (coords["id"] != "")
        & np.isfinite(coords["x"].to_numpy(dtype=float))
        & np.isfinite(coords["y"].to_numpy(dtype=float))
    )
    coords = coords[valid].drop_duplicates(subset="id", keep="last")
    return coords.set_index("id")[["x", "y"]].astype(float)


def map_labels(rows: Rows, column: str, source: str) -> pd.Series:
    """Build an id -> label lookup (sections, cell types).

    Rows with an empty id or an empty label are skipped.
    """
    df = as_frame(rows)
    if df.empty:
        return pd.Series(dtype=object, name=column, index=pd.Index([], name="id"))

    _require_columns(df, [column], source)
    id_col = detect_id_column(df)

    labels = pd.DataFrame(
        {
            "id": clean_ids(df[id_col]),
            column: df[column].fillna("").astype(str).str.strip(),
        }
    )
    labels = labels[(labels["id"] != "") & (labels[column] != "")]
    labels = labels.drop_duplicates(subset="id", keep="last")
    return labels.set_index("id")[column]


def map_sections(rows: Rows) -> pd.Series:
    """Build the id -> section lookup."""
    return map_labels(rows, "section", "section")


def map_celltypes(rows: Rows) -> pd.Series:
    """Build the id -> cell type (region) lookup."""
    return map_labels(rows, "celltype", "celltype")


def trait_columns(df: pd.DataFrame, id_col: str) -> List[str]:
    """Columns of a trait matrix that hold trait values."""
    columns = []
    for col in df.columns:
        name = str(col)
        if col == id_col or name == "" or name.startswith("Unnamed"):
            continue
        if name in RESERVED_FIELDS:
            continue
        if any(marker in name for marker in NON_TRAIT_MARKERS):
            continue
        columns.append(col)
    return columns


def map_trait_matrix(rows: Rows, source: str = "trait") -> pd.DataFrame:
    """Build an id -> {trait: value} lookup from a wide matrix.

    Values that do not parse as numbers become NaN; they are treated as absent,
    never as zero.

    Returns:
        DataFrame indexed by cell id, one float column per trait
    """
    df = as_frame(rows)
    if df.empty:
        return pd.DataFrame(index=pd.Index([], name="id", dtype=object))

    id_col = detect_id_column(df)
    columns = trait_columns(df, id_col)

    if columns:
        values = df[columns].apply(pd.to_numeric, errors="coerce").astype(float)
    else:
        values = pd.DataFrame(index=df.index)
    values.insert(0, "id", clean_ids(df[id_col]))
    values = values[values["id"] != ""].drop_duplicates(subset="id", keep="last")
    matrix = values.set_index("id")
    matrix.columns = [str(col) for col in matrix.columns]
    return matrix


@dataclass
class SourceMaps:
    """The five per-source lookups, keyed by cell id.

    Attributes:
        coordinates: DataFrame (index id) with 'x' and 'y'
        sections: Series id -> section
        celltypes: Series id -> cell type / region
        genes: DataFrame (index id), one column per gene
        tfs: DataFrame (index id), one column per TF activity
    """
    coordinates: pd.DataFrame
    sections: pd.Series
    celltypes: pd.Series
    genes: pd.DataFrame
    tfs: pd.DataFrame

    def all_ids(self) -> List[str]:
        """Union of ids over all five sources, in first-seen order."""
        ordered = dict.fromkeys(self.sections.index)
        ordered.update(dict.fromkeys(self.coordinates.index))
        ordered.update(dict.fromkeys(self.tfs.index))
        ordered.update(dict.fromkeys(self.genes.index))
        ordered.update(dict.fromkeys(self.celltypes.index))
        return list(ordered)

    def sizes(self) -> Dict[str, int]:
        return {
            "section": len(self.sections),
            "coordinates": len(self.coordinates),
            "tf": len(self.tfs),
            "gene": len(self.genes),
            "celltype": len(self.celltypes),
        }


def build_source_maps(coordinates, sections, celltypes, genes, tfs) -> SourceMaps:
    """Run the schema mapping step for all five sources."""
    return SourceMaps(
        coordinates=map_coordinates(coordinates),
        sections=map_sections(sections),
        celltypes=map_celltypes(celltypes),
        genes=map_trait_matrix(genes, "gene"),
        tfs=map_trait_matrix(tfs, "tf"),
    )
