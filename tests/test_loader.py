"""Tests for loading and building datasets (traitmap/datasets)."""

import pandas as pd
import pytest

from traitmap.datasets import (
    DatasetConfig,
    SourceLoadFailure,
    get_available_datasets,
    get_config,
    load_dataset,
    load_sources,
    read_source,
)
from traitmap.fusion import SAMPLE_SLICES

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_sources(data_dir, n_cells=6):
    """Write the five CSVs with a blank id header, like R row names."""
    ids = [f"cell_{i}" for i in range(n_cells)]
    tables = {
        "coordinates.csv": pd.DataFrame({"": ids, "x": range(n_cells), "y": [2 * i for i in range(n_cells)]}),
        "section.csv": pd.DataFrame({"": ids, "section": ["E12.5"] * 3 + ["E13.5"] * (n_cells - 3)}),
        "celltype.csv": pd.DataFrame({"": ids[:-1], "celltype": ["Epithelial", "Osteogenic"] * 2 + ["Odontogenic"]}),
        "gene_expression.csv": pd.DataFrame({"": ids, "Sox2": [float(i) for i in range(n_cells)]}),
        "tf_activity.csv": pd.DataFrame(
            {"": ids, "cellName": ids, "Sox2 activity(direct)": [0.5] * n_cells}
        ),
    }
    for file_name, df in tables.items():
        df.to_csv(data_dir / file_name, index=False)
    return tables


def _config(data_dir):
    return DatasetConfig(name="test", data_dir=data_dir)


# ---------------------------------------------------------------------------
# Tests: registry and config
# ---------------------------------------------------------------------------


class TestConfig:
    def test_registry(self):
        assert "embryo" in get_available_datasets()
        assert get_config("embryo").name == "embryo"

    def test_unknown_dataset(self):
        with pytest.raises(ValueError, match="Unknown dataset"):
            get_config("nope")

    def test_source_locations(self, tmp_path):
        config = _config(tmp_path)
        assert config.source_location("coordinates") == str(tmp_path / "coordinates.csv")
        assert set(config.source_locations) == {"section", "coordinates", "tf", "gene", "celltype"}

    def test_remote_source(self, tmp_path):
        config = DatasetConfig(
            name="test",
            data_dir=tmp_path,
            remote_sources={"section": "https://example.org/section.csv"},
        )
        assert config.source_location("section") == "https://example.org/section.csv"

    def test_unknown_source(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown source"):
            _config(tmp_path).source_location("spots")

    def test_is_available(self, tmp_path):
        config = _config(tmp_path)
        assert not config.is_available()
        _write_sources(tmp_path)
        assert config.is_available()


# ---------------------------------------------------------------------------
# Tests: reading sources
# ---------------------------------------------------------------------------


class TestLoadSources:
    def test_blank_header_preserved(self, tmp_path):
        _write_sources(tmp_path)
        df = read_source(str(tmp_path / "coordinates.csv"))
        assert list(df.columns) == ["", "x", "y"]
        # Kept as text until schema mapping
        assert df.loc[0, "x"] == "0"

    def test_all_five_loaded(self, tmp_path):
        _write_sources(tmp_path)
        tables = load_sources(_config(tmp_path))
        assert set(tables) == {"section", "coordinates", "tf", "gene", "celltype"}

    def test_missing_files_collected(self, tmp_path):
        _write_sources(tmp_path)
        (tmp_path / "section.csv").unlink()
        (tmp_path / "gene_expression.csv").unlink()

        with pytest.raises(SourceLoadFailure) as excinfo:
            load_sources(_config(tmp_path))
        assert set(excinfo.value.errors) == {"section", "gene"}
        assert excinfo.value.dataset_name == "test"

    def test_custom_reader_failure(self, tmp_path):
        _write_sources(tmp_path)

        def reader(location):
            if location.endswith("tf_activity.csv"):
                raise OSError("connection reset")
            return read_source(location)

        with pytest.raises(SourceLoadFailure, match="connection reset"):
            load_sources(_config(tmp_path), reader=reader)


# ---------------------------------------------------------------------------
# Tests: load_dataset
# ---------------------------------------------------------------------------


class TestLoadDataset:
    def test_end_to_end(self, tmp_path):
        _write_sources(tmp_path)
        dataset = load_dataset("test", config=_config(tmp_path))

        assert dataset.n_cells == 6
        assert not dataset.is_fallback
        assert dataset.n_dropped == 0
        assert dataset.slices == ["E12.5", "E13.5"]
        assert dataset.regions == ["Epithelial", "Odontogenic", "Osteogenic", "Unknown"]
        assert dataset.trait_keys == ["Sox2 activity(direct)", "Sox2"]
        assert dataset.get_trait("Sox2 activity(direct)").label == "Sox2 Activity (Direct)"
        assert dataset.section_groups() == [{"tissue": "Embryo", "sections": ["E12.5", "E13.5"]}]

    def test_coordinates_normalized(self, tmp_path):
        _write_sources(tmp_path)
        cells = load_dataset("test", config=_config(tmp_path)).cells
        assert cells["x"].between(50, 550).all()
        assert cells["y"].between(50, 850).all()

    def test_join_gaps_counted(self, tmp_path):
        tables = _write_sources(tmp_path)
        tables["coordinates.csv"].iloc[:2].to_csv(tmp_path / "coordinates.csv", index=False)
        dataset = load_dataset("test", config=_config(tmp_path))
        assert dataset.n_cells == 2
        assert dataset.n_dropped == 4

    def test_header_only_sources_fall_back(self, tmp_path):
        for file_name, header in [
            ("coordinates.csv", ",x,y"),
            ("section.csv", ",section"),
            ("celltype.csv", ",celltype"),
            ("gene_expression.csv", ","),
            ("tf_activity.csv", ","),
        ]:
            (tmp_path / file_name).write_text(header + "\n")

        dataset = load_dataset("test", config=_config(tmp_path))
        assert dataset.is_fallback
        assert dataset.outcome.reason == "all sources are empty"
        assert dataset.n_cells == 100
        assert dataset.slices == sorted(SAMPLE_SLICES)

    def test_placeholder_traits(self, tmp_path):
        tables = _write_sources(tmp_path)
        tables["gene_expression.csv"][[""]].to_csv(tmp_path / "gene_expression.csv", index=False)
        tables["tf_activity.csv"][[""]].to_csv(tmp_path / "tf_activity.csv", index=False)

        dataset = load_dataset("test", config=_config(tmp_path))
        assert dataset.has_placeholder_traits
        assert dataset.trait_keys == ["GeneA", "GeneB", "TF1_activity", "TF2_activity"]

    def test_missing_coordinate_column(self, tmp_path):
        _write_sources(tmp_path)
        (tmp_path / "coordinates.csv").write_text(",x,z\ncell_0,1,2\n")

        with pytest.raises(SourceLoadFailure, match="missing column") as excinfo:
            load_dataset("test", config=_config(tmp_path))
        assert set(excinfo.value.errors) == {"coordinates"}
        assert excinfo.value.dataset_name == "test"

    def test_schema_errors_collected(self, tmp_path):
        _write_sources(tmp_path)
        (tmp_path / "section.csv").write_text(",stage\ncell_0,E12.5\n")
        (tmp_path / "gene_expression.csv").write_text("barcode_id,Sox2\ncell_0,1\n")

        with pytest.raises(SourceLoadFailure) as excinfo:
            load_dataset("test", config=_config(tmp_path))
        assert set(excinfo.value.errors) == {"section", "gene"}
