"""Copy exactly the source tables read by app/app.py from data/ to app/data/.

Usage:
    python scripts/sync_app_data.py
    python scripts/sync_app_data.py --dataset embryo
"""

import argparse
import shutil
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
SRC = REPO_ROOT / "data"
DST = REPO_ROOT / "app" / "data"

sys.path.insert(0, str(REPO_ROOT))

from traitmap.datasets import get_available_datasets, get_config  # noqa: E402


def dataset_files(name):
    """Relative paths of a dataset's local source files."""
    config = get_config(name)
    return [
        Path(name) / Path(location).name
        for source, location in config.source_locations.items()
        if source not in config.remote_sources
    ]


def main():
    parser = argparse.ArgumentParser(description="Sync source tables into app/data")
    parser.add_argument(
        "--dataset",
        action="append",
        choices=get_available_datasets(),
        help="Dataset to sync (repeatable, default: all)",
    )
    args = parser.parse_args()

    all_files = []
    for name in args.dataset or get_available_datasets():
        all_files.extend(dataset_files(name))

    copied = 0
    total_bytes = 0

    for rel_path in all_files:
        src = SRC / rel_path
        dst = DST / rel_path

        if not src.exists():
            print(f"  MISSING  {rel_path}")
            continue

        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
        size = src.stat().st_size
        total_bytes += size
        copied += 1
        print(f"  COPIED   {rel_path}  ({size / 1024 / 1024:.1f} MB)")

    print(f"\nDone: {copied}/{len(all_files)} files, {total_bytes / 1024 / 1024:.1f} MB total")


if __name__ == "__main__":
    main()
