"""Write a small deterministic demo dataset in the five-table source format.

The tables use a blank header for the cell id column, like row-name columns
exported from R, and deliberately leave some gaps: a few cells have no cell
type, no section or no trait values so every join path is exercised.

Usage:
    python scripts/make_demo_data.py
    python scripts/make_demo_data.py --n-cells 2000 --out app/data/demo
"""

import argparse
from pathlib import Path

import numpy as np
import pandas as pd

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_OUT = REPO_ROOT / "app" / "data" / "demo"

SECTIONS = ["E12.5_S1", "E13.5_S1", "E15.5_S1"]
CELL_TYPES = ["Epithelial", "Palatal Mesenchyme", "Odontogenic", "Fibroblastic", "Osteogenic"]
GENES = ["Sox2", "Pax9", "Msx1", "Runx2", "Shh"]
TFS = ["Sox2 activity(direct)", "Pax9 activity(direct)", "Runx2 activity(extended)"]


def make_tables(n_cells=600, seed=0):
    """Build the five source tables.

    Returns:
        Dict of file name -> DataFrame, each with a blank-named id column
    """
    rng = np.random.default_rng(seed)
    ids = np.array([f"cell_{i:05d}" for i in range(n_cells)])
    section = rng.choice(SECTIONS, n_cells)

    # Each section has its own coordinate scale
    scale = np.select(
        [section == SECTIONS[0], section == SECTIONS[1]], [1.0, 40.0], default=1500.0
    )
    x = rng.normal(0, 1, n_cells) * scale
    y = rng.normal(0, 1.6, n_cells) * scale
    celltype = rng.choice(CELL_TYPES, n_cells)

    # Gaps: ~2% without section, ~2% without coordinates, ~5% without cell type
    no_section = rng.random(n_cells) < 0.02
    no_coords = rng.random(n_cells) < 0.02
    no_celltype = rng.random(n_cells) < 0.05
    no_traits = rng.random(n_cells) < 0.05

    coordinates = pd.DataFrame({"": ids, "x": x.round(3), "y": y.round(3)})[~no_coords]
    sections = pd.DataFrame({"": ids, "section": section})[~no_section]
    celltypes = pd.DataFrame({"": ids, "celltype": celltype})[~no_celltype]

    genes = pd.DataFrame({"": ids})
    for gene in GENES:
        genes[gene] = rng.gamma(1.5, 1.0, n_cells).round(3)
    tfs = pd.DataFrame({"": ids, "cellName": ids})
    for tf in TFS:
        tfs[tf] = rng.normal(0, 1, n_cells).round(3)

    return {
        "coordinates.csv": coordinates,
        "section.csv": sections,
        "celltype.csv": celltypes,
        "gene_expression.csv": genes[~no_traits],
        "tf_activity.csv": tfs[~no_traits],
    }


def main():
    parser = argparse.ArgumentParser(description="Generate the demo dataset")
    parser.add_argument("--n-cells", type=int, default=600)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--out", type=Path, default=DEFAULT_OUT)
    args = parser.parse_args()

    args.out.mkdir(parents=True, exist_ok=True)
    for file_name, df in make_tables(args.n_cells, args.seed).items():
        path = args.out / file_name
        df.to_csv(path, index=False)
        print(f"  WROTE    {path}  ({len(df):,} rows)")

    print(f"\nDone: demo dataset with {args.n_cells:,} cells in {args.out}")


if __name__ == "__main__":
    main()
