"""Unit tests for raw export loading and cleaned output storage."""

import json
import os
import stat

import pandas as pd
import pytest

from sarclean.data.loaders import AuditExportLoader, load_audit_export
from sarclean.data.store import (
    ADVERSE_EVENTS_FILE,
    DICTIONARY_FILE,
    OUTPUT_FILES,
    SUMMARY_FILE,
    VISITS_FILE,
    CleanedDataStore,
    write_outputs,
)
from sarclean.pipeline import CleaningPipeline
from sarclean.synthetic import audit_export_labels, generate_audit_export, write_audit_export
from sarclean.types import FieldType


class TestAuditExportLoader:
    """Tests for AuditExportLoader."""

    def test_duplicate_labels_preserved(self, tmp_path):
        """Repeated header labels are kept verbatim."""
        path = tmp_path / "export.csv"
        path.write_text("Age,Study number,Study number\n72,,P001\n", encoding="utf-8")

        loader = AuditExportLoader(path)
        df = loader.load()

        assert list(df.columns) == ["Age", "Study number", "Study number"]
        assert df.iloc[0].tolist() == ["72", "", "P001"]
        assert loader.n_duplicate_labels == 1
        assert len(loader) == 1

    def test_cells_are_text(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text("Visit No,Score\n0,NA\n1,007\n", encoding="utf-8")

        df = load_audit_export(path)

        assert df["Visit No"].tolist() == ["0", "1"]
        # Sentinels and leading zeros are not interpreted
        assert df["Score"].tolist() == ["NA", "007"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AuditExportLoader(tmp_path / "missing.csv")

    def test_size_limit(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text("A,B\n" + "1,2\n" * 1000, encoding="utf-8")

        with pytest.raises(ValueError, match="limit"):
            AuditExportLoader(path, max_size_mb=0.001)

    def test_synthetic_roundtrip(self, tmp_path):
        raw = generate_audit_export(n_patients=10, seed=5)
        path = write_audit_export(raw, tmp_path / "raw" / "export.csv")

        loaded = load_audit_export(path)

        assert list(loaded.columns) == audit_export_labels()
        pd.testing.assert_frame_equal(loaded, raw)


class TestOutputStore:
    """Tests for write_outputs and CleanedDataStore."""

    def setup_method(self):
        """Set up test fixtures."""
        self.result = CleaningPipeline().run(generate_audit_export(n_patients=25, seed=11))

    def test_write_outputs(self, tmp_path):
        out = tmp_path / "cleaned"
        paths = write_outputs(self.result, out)

        assert set(paths) == set(OUTPUT_FILES)
        for path in paths.values():
            assert path.exists()
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

        with open(out / SUMMARY_FILE) as f:
            summary = json.load(f)
        assert summary["n_patients"] == self.result.summary.n_patients
        assert summary["quality"]["n_warnings"] == 0

    def test_store_restores_types(self, tmp_path):
        write_outputs(self.result, tmp_path)
        store = CleanedDataStore(tmp_path)

        assert store.visits.shape == self.result.visits.shape
        assert store.adverse_events.shape == self.result.adverse_events.shape
        assert pd.api.types.is_datetime64_any_dtype(store.visits["id_visit_date"])
        assert pd.api.types.is_numeric_dtype(store.visits["id_age"])
        assert store.visits["med_medical_history_hypertension"].dtype == "boolean"
        assert store.visits["id_age"].tolist() == self.result.visits["id_age"].tolist()
        assert store.visits["id_visit_date"].tolist() == self.result.visits["id_visit_date"].tolist()
        assert store.summary["n_observations"] == self.result.summary.n_observations

    def test_store_domain_helpers(self, tmp_path):
        write_outputs(self.result, tmp_path)
        store = CleanedDataStore(tmp_path)

        assert "id_visit_date" in store.columns_of_type(FieldType.DATE)
        assert all(c.startswith("cog_") for c in store.domain_columns("cog"))
        assert store.domain_columns("cog")

        with pytest.raises(ValueError, match="Unknown domain prefix"):
            store.domain_columns("xyz")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CleanedDataStore(tmp_path / "nope")

    def test_missing_output_file(self, tmp_path):
        write_outputs(self.result, tmp_path)
        (tmp_path / ADVERSE_EVENTS_FILE).unlink()

        with pytest.raises(FileNotFoundError, match=ADVERSE_EVENTS_FILE):
            CleanedDataStore(tmp_path)

    def test_empty_visits_rejected(self, tmp_path):
        (tmp_path / DICTIONARY_FILE).write_text("final_name,field_type\nid_client_id,string\n")
        (tmp_path / VISITS_FILE).write_text("id_client_id\n")
        (tmp_path / ADVERSE_EVENTS_FILE).write_text("id_client_id\nP001\n")

        with pytest.raises(ValueError, match="empty"):
            CleanedDataStore(tmp_path)

    def test_dictionary_contract(self, tmp_path):
        (tmp_path / DICTIONARY_FILE).write_text("name,field_type\nid_client_id,string\n")
        (tmp_path / VISITS_FILE).write_text("id_client_id\nP001\n")
        (tmp_path / ADVERSE_EVENTS_FILE).write_text("id_client_id\nP001\n")

        with pytest.raises(ValueError, match="final_name"):
            CleanedDataStore(tmp_path)
