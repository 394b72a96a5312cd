"""Unit tests for type coercion.

Tests verify:
- Leading-number, multi-format date and yes/no parsing
- Malformed input becomes missing instead of raising
- Field types resolved from final names with the documented precedence
"""

import numpy as np
import pandas as pd
import pytest

from sarclean.classification.rules import RuleTable
from sarclean.coercion import (
    ADVERSE_EVENTS,
    VISITS,
    clean_text,
    coerce_table,
    parse_boolean,
    parse_date,
    parse_numeric,
    resolve_field_type,
    resolve_field_types,
    unparseable_counts,
)
from sarclean.types import FieldType, InvalidInputError


class TestParseNumeric:
    """Tests for parse_numeric."""

    def test_leading_number(self):
        assert parse_numeric("36/41") == 36.0
        assert parse_numeric("12.5kg") == 12.5
        assert parse_numeric("7") == 7.0

    def test_non_leading_number_is_missing(self):
        assert np.isnan(parse_numeric("Score: 75"))
        assert np.isnan(parse_numeric("-5"))
        assert np.isnan(parse_numeric(""))

    def test_non_string_scalar(self):
        assert parse_numeric(7) == 7.0
        assert parse_numeric(12.5) == 12.5
        assert np.isnan(parse_numeric(np.nan))

    def test_series_aligned(self):
        values = pd.Series(["1", "x", None, "2.5"], index=[10, 11, 12, 13])
        result = parse_numeric(values)

        assert list(result.index) == [10, 11, 12, 13]
        assert result.dtype == "float64"
        assert result[10] == 1.0
        assert np.isnan(result[11])
        assert np.isnan(result[12])
        assert result[13] == 2.5

    def test_none_raises(self):
        with pytest.raises(InvalidInputError):
            parse_numeric(None)


class TestParseDate:
    """Tests for parse_date."""

    def test_iso(self):
        assert parse_date("2025-03-14") == pd.Timestamp("2025-03-14")

    def test_day_first(self):
        assert parse_date("14/03/2025") == pd.Timestamp("2025-03-14")

    def test_ambiguous_reads_day_first(self):
        assert parse_date("04/05/2025") == pd.Timestamp("2025-05-04")

    def test_month_first_fallback(self):
        assert parse_date("03/14/2025") == pd.Timestamp("2025-03-14")

    def test_time_of_day_ignored(self):
        assert parse_date("2024-01-15 10:30:00") == pd.Timestamp("2024-01-15")
        assert parse_date("2024-01-15T10:30:00Z") == pd.Timestamp("2024-01-15")
        assert parse_date("15/01/2024 10:30") == pd.Timestamp("2024-01-15")

    def test_timestamp_scalar(self):
        assert parse_date(pd.Timestamp("2024-01-15")) == pd.Timestamp("2024-01-15")

    def test_unparseable_is_missing(self):
        assert pd.isna(parse_date("not a date"))
        assert pd.isna(parse_date(""))

    def test_series_mixed_formats(self):
        result = parse_date(["2024-01-05", "05/01/2024", None, "garbage"])

        assert pd.api.types.is_datetime64_any_dtype(result)
        assert result[0] == pd.Timestamp("2024-01-05")
        assert result[1] == pd.Timestamp("2024-01-05")
        assert pd.isna(result[2])
        assert pd.isna(result[3])


class TestParseBoolean:
    """Tests for parse_boolean."""

    def test_tokens(self):
        result = parse_boolean(["Yes", "no", "TRUE", "0", " yes ", "maybe", ""])
        assert result.dtype == "boolean"
        assert result[:5].tolist() == [True, False, True, False, True]
        assert result[5:].isna().all()

    def test_scalar(self):
        assert parse_boolean("Yes") is True
        assert parse_boolean("false") is False
        assert parse_boolean("maybe") is pd.NA


class TestCleanText:
    """Tests for clean_text."""

    def test_blank_as_missing(self):
        result = clean_text(["  ", "Married", None])
        assert pd.isna(result[0])
        assert result[1] == "Married"
        assert pd.isna(result[2])

    def test_blank_kept(self):
        result = clean_text(["", "dizzy", None], blank_as_missing=False)
        assert result.tolist() == ["", "dizzy", ""]

    def test_na_token_is_missing(self):
        result = clean_text(["NA", " NA ", "Nadia"])
        assert pd.isna(result[0])
        assert pd.isna(result[1])
        assert result[2] == "Nadia"

        kept = clean_text(["NA", "dizzy"], blank_as_missing=False)
        assert kept.tolist() == ["", "dizzy"]


class TestResolveFieldType:
    """Tests for field type resolution."""

    def setup_method(self):
        """Set up test fixtures."""
        self.rules = RuleTable.default()

    def test_visit_types(self):
        cases = {
            "id_visit_date": FieldType.DATE,
            "demo_date_of_birth": FieldType.DATE,
            "id_age": FieldType.NUMERIC,
            "id_visit_no": FieldType.NUMERIC,
            "cog_moca_total_score": FieldType.NUMERIC,
            "med_medical_history_hypertension": FieldType.BOOLEAN,
            "demo_do_you_drive": FieldType.BOOLEAN,
            "demo_marital_status": FieldType.STRING,
            "demo_participants_study_number": FieldType.STRING,
            "med_diabetes_mellitus_type": FieldType.STRING,
        }
        for name, expected in cases.items():
            assert resolve_field_type(name, self.rules) == expected, name

    def test_precedence(self):
        """date > boolean > numeric; exclusions veto numeric."""
        assert resolve_field_type("med_date_of_score", self.rules) == FieldType.DATE
        assert resolve_field_type("med_medication_number", self.rules) == FieldType.BOOLEAN
        assert resolve_field_type("phys_weight_unit", self.rules) == FieldType.STRING

    def test_adverse_event_types(self):
        assert resolve_field_type("ae_fracture_date", self.rules, ADVERSE_EVENTS) == FieldType.DATE
        assert (
            resolve_field_type("ae_gastrointestinal_ae_severity", self.rules, ADVERSE_EVENTS)
            == FieldType.NUMERIC
        )
        assert resolve_field_type("ae_did_you_fall", self.rules, ADVERSE_EVENTS) == FieldType.STRING

    def test_identifiers_share_visit_types(self):
        assert resolve_field_type("id_age", self.rules, ADVERSE_EVENTS) == FieldType.NUMERIC
        assert resolve_field_type("id_visit_date", self.rules, ADVERSE_EVENTS) == FieldType.DATE

    def test_unknown_table(self):
        with pytest.raises(InvalidInputError):
            resolve_field_types(["id_age"], self.rules, "labs")


class TestCoerceTable:
    """Tests for coerce_table and unparseable_counts."""

    def test_coerce_and_count(self):
        raw = pd.DataFrame({
            "id_age": ["70", "x", ""],
            "demo_marital_status": [" ", "Married", "Single"],
        })
        types = {"id_age": FieldType.NUMERIC, "demo_marital_status": FieldType.STRING}
        coerced = coerce_table(raw, types)

        assert coerced["id_age"].iloc[0] == 70.0
        assert coerced["id_age"].iloc[1:].isna().all()
        assert pd.isna(coerced["demo_marital_status"].iloc[0])
        # Input is left as text
        assert raw["id_age"].tolist() == ["70", "x", ""]

        # Blank cells do not count as unparseable
        assert unparseable_counts(raw, coerced, types) == {"id_age": 1}

    def test_na_token_not_unparseable(self):
        raw = pd.DataFrame({"id_age": ["70", "NA", "x"]})
        types = {"id_age": FieldType.NUMERIC}
        coerced = coerce_table(raw, types)

        assert unparseable_counts(raw, coerced, types) == {"id_age": 1}

    def test_identifier_blanks_missing_in_both_tables(self):
        raw = pd.DataFrame({"id_client_id": ["P001", " "], "ae_free_text": ["", "dizzy"]})
        types = {"id_client_id": FieldType.STRING, "ae_free_text": FieldType.STRING}
        coerced = coerce_table(raw, types, blank_as_missing=False)

        assert pd.isna(coerced["id_client_id"].iloc[1])
        assert coerced["ae_free_text"].tolist() == ["", "dizzy"]

    def test_visits_default(self):
        rules = RuleTable.default()
        types = resolve_field_types(["id_visit_no", "demo_dominant_hand"], rules, VISITS)
        assert types == {"id_visit_no": FieldType.NUMERIC, "demo_dominant_hand": FieldType.STRING}

    def test_none_raises(self):
        with pytest.raises(InvalidInputError):
            coerce_table(None, {})
