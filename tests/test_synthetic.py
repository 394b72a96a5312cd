"""Unit tests for the synthetic export generator."""

import pandas as pd
import pytest

from sarclean.classification.rules import RuleTable
from sarclean.synthetic import audit_export_labels, generate_audit_export
from sarclean.types import InvalidInputError


class TestGenerateAuditExport:
    """Tests for generate_audit_export."""

    def test_reproducible(self):
        first = generate_audit_export(n_patients=20, seed=9)
        second = generate_audit_export(n_patients=20, seed=9)
        pd.testing.assert_frame_equal(first, second)

    def test_layout(self):
        df = generate_audit_export(n_patients=20, seed=1)
        rules = RuleTable.default()
        labels = list(df.columns)

        assert labels == audit_export_labels()
        assert labels[5:7] == ["Raw DSS Score", "DSST Score"]
        assert set(rules.section_markers) <= set(labels)
        # Repeated questions share a label stem
        assert sum(label.startswith("Participants study number") for label in labels) == 3

    def test_visit_numbers(self):
        df = generate_audit_export(n_patients=50, seed=4)
        counts = df.groupby("Client ID").size()

        assert counts.between(1, 3).all()
        for _, visits in df.groupby("Client ID"):
            assert visits["Visit No"].tolist() == [str(i) for i in range(len(visits))]

    def test_time_invariant_first_visit_only(self):
        df = generate_audit_export(n_patients=30, seed=6)
        later = df[df["Visit No"] != "0"]
        first = df[df["Visit No"] == "0"]

        assert (later["Dominant hand - 107"] == "").all()
        assert (first["Dominant hand - 107"] != "").all()

    def test_visit_distribution(self):
        df = generate_audit_export(n_patients=10, visit_distribution={3: 1.0}, seed=0)
        assert len(df) == 30

    def test_all_cells_text(self):
        df = generate_audit_export(n_patients=5, seed=0)
        assert all(isinstance(v, str) for v in df.to_numpy().ravel())

    def test_invalid_arguments(self):
        with pytest.raises(InvalidInputError):
            generate_audit_export(n_patients=-1)
        with pytest.raises(InvalidInputError):
            generate_audit_export(visit_distribution={1: -0.5})
        with pytest.raises(InvalidInputError):
            generate_audit_export(missing_rate=1.5)
