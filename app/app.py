"""Main Dash application for the Spatial Trait Viewer."""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import dash_bootstrap_components as dbc
from dash import Dash

from app.callbacks import register_callbacks
from app.layouts import create_error_layout, create_layout
from traitmap.datasets import (
    SourceLoadFailure,
    get_available_datasets,
    get_installed_datasets,
    load_dataset,
)
from traitmap.state import ViewContext, initial_state

# Feature flags
ENABLE_COMPARE = True  # Compare dialog and multi-view viewer

# Dataset shown when several are installed
DEFAULT_DATASET = "embryo"

PORT = 8050


def pick_dataset():
    """Default dataset if installed, otherwise the first installed one."""
    installed = get_installed_datasets()
    if DEFAULT_DATASET in installed or not installed:
        return DEFAULT_DATASET
    return installed[0]


def create_app(dataset_name=None):
    """Create and configure the Dash application."""
    print("\n" + "=" * 50)
    print("Loading spatial trait data...")
    print("=" * 50 + "\n")

    dataset_name = dataset_name or pick_dataset()
    print(f"  Registered datasets: {get_available_datasets()}")
    print(f"  Loading: {dataset_name}")

    assets_path = Path(__file__).parent / "assets"
    app = Dash(
        __name__,
        assets_folder=str(assets_path),
        external_stylesheets=[dbc.themes.BOOTSTRAP],
        title="Spatial Trait Viewer",
        suppress_callback_exceptions=True,
    )

    try:
        dataset = load_dataset(dataset_name)
    except SourceLoadFailure as e:
        print(f"  ERROR: {e}")
        app.layout = create_error_layout(e)
        return app

    print("\nData summary:")
    print(f"  [{dataset.name}] Cells: {dataset.n_cells:,}, Sections: {len(dataset.slices)}")
    print(f"  Regions: {len(dataset.regions)}")
    print(f"  Traits: {len(dataset.catalog)}")

    context = ViewContext.from_dataset(dataset)
    app.layout = create_layout(dataset, initial_state(context), enable_compare=ENABLE_COMPARE)
    if not ENABLE_COMPARE:
        print("  Compare mode disabled")
    register_callbacks(app, dataset)

    return app


# Create app instance at module level (used by both __main__ and WSGI imports)
app = create_app()
server = app.server


def main():
    """Entry point for the traitmap console script."""
    print("\n" + "=" * 50)
    print("Spatial Trait Viewer")
    print("=" * 50)
    print(f"\nStarting server at http://localhost:{PORT}")
    print("Press Ctrl+C to stop\n")

    app.run(debug=True, port=PORT, use_reloader=False)


if __name__ == "__main__":
    main()
