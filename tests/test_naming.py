"""Unit tests for column-name normalization and resolution.

Tests verify:
- Label normalization steps and idempotence
- Deterministic collision suffixing
- Dictionary table construction
"""

import numpy as np
import pytest

from sarclean.naming import (
    DICTIONARY_COLUMNS,
    candidate_name,
    mappings_to_frame,
    normalize_name,
    normalize_names,
    resolve_names,
)
from sarclean.types import Domain, InvalidInputError


class TestNormalizeName:
    """Tests for normalize_name."""

    def test_question_number_and_reference_code(self):
        """Leading question number and trailing reference are stripped."""
        assert normalize_name("15. Number of education years - 230") == "number_of_education_years"

    def test_trailing_reference_only(self):
        assert normalize_name("Participants study number - 101") == "participants_study_number"

    def test_only_last_reference_stripped(self):
        """Only the final " - <digits>" is removed."""
        assert normalize_name("Visit - 1 - 2") == "visit_1"

    def test_subfield_marker(self):
        """Embedded " - <digits>." sub-field marker is removed."""
        assert normalize_name("Grip strength - 5. Right hand") == "grip_strength_right_hand"

    def test_newlines_and_whitespace(self):
        assert normalize_name("Line one\nLine  two") == "line_one_line_two"
        assert normalize_name("  Spaces   everywhere  ") == "spaces_everywhere"

    def test_punctuation_collapsed(self):
        assert normalize_name("Score (0-30) %") == "score_0_30"
        assert normalize_name("Did you fall?") == "did_you_fall"

    def test_empty_label(self):
        """Empty input is valid and yields an empty token."""
        assert normalize_name("") == ""
        assert normalize_name("???") == ""

    def test_idempotent(self):
        labels = [
            "15. Number of education years - 230",
            "Grip strength - 5. Right hand",
            "Score (0-30) %",
            "MoCA Total Score - 150",
        ]
        for label in labels:
            once = normalize_name(label)
            assert normalize_name(once) == once

    def test_output_alphabet(self):
        name = normalize_name("Body Mass Index (BMI) - kg/m² - 320")
        assert name == name.lower()
        assert not name.startswith("_") and not name.endswith("_")
        assert "__" not in name

    def test_none_raises(self):
        with pytest.raises(InvalidInputError):
            normalize_name(None)

    def test_nan_raises(self):
        with pytest.raises(InvalidInputError):
            normalize_name(np.nan)


class TestNormalizeNames:
    """Tests for normalize_names."""

    def test_preserves_order_and_length(self):
        labels = ["Age", "Age", "Visit Date"]
        assert normalize_names(labels) == ["age", "age", "visit_date"]

    def test_none_raises(self):
        with pytest.raises(InvalidInputError):
            normalize_names(None)

    def test_single_string_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_names("Age")


class TestResolveNames:
    """Tests for resolve_names."""

    def test_prefix_and_base(self):
        mappings = resolve_names([
            ("Age", 5, Domain.IDENTIFIER),
            ("Memory", 20, Domain.COGNITIVE),
        ])
        assert [m.final_name for m in mappings] == ["id_age", "cog_memory"]
        assert mappings[1].cleaned_base == "memory"
        assert mappings[1].candidate_name == "cog_memory"

    def test_collisions_suffixed_by_position(self):
        """First by position keeps the plain name; later ones get _v2, _v3."""
        mappings = resolve_names([
            ("Participants study number - 101", 3, Domain.DEMOGRAPHIC),
            ("Participants study number - 311", 10, Domain.DEMOGRAPHIC),
            ("Participants study number - 205", 7, Domain.DEMOGRAPHIC),
        ])
        assert [m.final_name for m in mappings] == [
            "demo_participants_study_number",
            "demo_participants_study_number_v3",
            "demo_participants_study_number_v2",
        ]
        assert all(m.candidate_name == "demo_participants_study_number" for m in mappings)

    def test_suffix_skips_taken_names(self):
        """A generated suffix already used by another column is skipped."""
        mappings = resolve_names([
            ("Score", 1, Domain.COGNITIVE),
            ("Score", 2, Domain.COGNITIVE),
            ("Score v2", 3, Domain.COGNITIVE),
        ])
        finals = [m.final_name for m in mappings]
        assert finals == ["cog_score", "cog_score_v3", "cog_score_v2"]
        assert len(set(finals)) == len(finals)

    def test_same_label_different_domains(self):
        mappings = resolve_names([
            ("Weight", 20, Domain.MEDICAL),
            ("Weight", 40, Domain.PHYSICAL),
        ])
        assert [m.final_name for m in mappings] == ["med_weight", "phys_weight"]

    def test_empty_base(self):
        mappings = resolve_names([("", 15, Domain.MEDICAL)])
        assert mappings[0].final_name == "med_"
        assert candidate_name(Domain.MEDICAL, "") == "med_"

    def test_domain_value_accepted(self):
        mappings = resolve_names([("Age", 1, "identifier")])
        assert mappings[0].domain == Domain.IDENTIFIER

    def test_matched_rule_carried(self):
        mappings = resolve_names([("Weight", 20, Domain.MEDICAL, "default")])
        assert mappings[0].matched_rule == "default"
        assert mappings[0].is_default_classified

    def test_deterministic(self):
        entries = [("Score", i, Domain.COGNITIVE) for i in (4, 2, 9, 1)]
        first = [m.final_name for m in resolve_names(entries)]
        second = [m.final_name for m in resolve_names(entries)]
        assert first == second

    def test_none_raises(self):
        with pytest.raises(InvalidInputError):
            resolve_names(None)


class TestMappingsToFrame:
    """Tests for mappings_to_frame."""

    def test_columns_and_extra(self):
        mappings = resolve_names([
            ("Age", 5, Domain.IDENTIFIER),
            ("Memory", 20, Domain.COGNITIVE),
        ])
        df = mappings_to_frame(mappings, extra={"table": {"id_age": "both", "cog_memory": "visits"}})

        assert list(df.columns) == DICTIONARY_COLUMNS + ["table"]
        assert df["domain"].tolist() == ["identifier", "cognitive"]
        assert df["prefix"].tolist() == ["id", "cog"]
        assert df["table"].tolist() == ["both", "visits"]

    def test_empty(self):
        df = mappings_to_frame([])
        assert len(df) == 0
        assert list(df.columns) == DICTIONARY_COLUMNS
