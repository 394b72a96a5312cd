"""Main cleaning pipeline.

This module wires the stages together in their fixed order:
1. Section-marker removal
2. Domain classification
3. Name resolution and renaming (plus redundant-column removal)
4. Column-wise split into visits and adverse events
5. Type coercion, with field types resolved once per column
6. Patient-level missingness resolution for time-invariant columns
7. Quality checks and summary statistics

Every stage returns new tables; the raw input is never modified.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import yaml

from sarclean.classification.classifier import DomainClassifier
from sarclean.classification.rules import RuleTable, load_rule_table
from sarclean.coercion import (
    ADVERSE_EVENTS,
    VISITS,
    coerce_table,
    resolve_field_types,
    unparseable_counts,
)
from sarclean.data.splitter import AE_PREFIX, ID_PREFIX, split_tables
from sarclean.missingness import resolve_patient_missingness, time_invariant_columns
from sarclean.naming.resolver import mappings_to_frame, resolve_names
from sarclean.quality import QualityChecker
from sarclean.types import (
    CleaningResult,
    CleaningSummary,
    ColumnMapping,
    FieldType,
    InvalidInputError,
)

logger = logging.getLogger(__name__)


@dataclass
class CleaningConfig:
    """Configuration for the cleaning pipeline.

    Attributes:
        rules_path: YAML rule table; the packaged default when None
        patient_column: Final name of the patient identifier
        visit_column: Final name of the visit number
        visit_date_column: Final name of the visit date
        age_column: Final name of the age column
        gender_column: Final name of the gender column
        expected_visit_range: Inclusive range of valid visit numbers
        age_range: Inclusive plausible age range
        date_bounds: Inclusive (earliest, latest) ISO dates; None latest = today
        max_input_mb: Largest raw export the loader accepts
    """
    rules_path: Optional[str] = None
    patient_column: str = "id_client_id"
    visit_column: str = "id_visit_no"
    visit_date_column: str = "id_visit_date"
    age_column: str = "id_age"
    gender_column: str = "id_gender"
    expected_visit_range: tuple[int, int] = (0, 3)
    age_range: tuple[float, float] = (0, 110)
    date_bounds: tuple[Optional[str], Optional[str]] = ("1900-01-01", None)
    max_input_mb: float = 100.0

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CleaningConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML config file

        Returns:
            CleaningConfig instance
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}

        kwargs = {}

        if "rules" in config_dict and config_dict["rules"]:
            rules_path = Path(config_dict["rules"])
            if not rules_path.is_absolute():
                rules_path = path.parent / rules_path
            kwargs["rules_path"] = str(rules_path)

        # Key columns
        if "columns" in config_dict:
            cc = config_dict["columns"]
            for key in ("patient", "visit", "visit_date", "age", "gender"):
                if key in cc:
                    kwargs[f"{key}_column"] = cc[key]

        # Quality thresholds
        if "quality" in config_dict:
            qc = config_dict["quality"]
            if "expected_visit_range" in qc:
                kwargs["expected_visit_range"] = tuple(qc["expected_visit_range"])
            if "age_range" in qc:
                kwargs["age_range"] = tuple(qc["age_range"])
            if "date_bounds" in qc:
                kwargs["date_bounds"] = tuple(
                    str(d) if d is not None else None for d in qc["date_bounds"]
                )

        if "input" in config_dict:
            ic = config_dict["input"]
            if "max_size_mb" in ic:
                kwargs["max_input_mb"] = float(ic["max_size_mb"])

        return cls(**kwargs)

    def make_checker(self) -> QualityChecker:
        return QualityChecker(
            patient_column=self.patient_column,
            visit_column=self.visit_column,
            visit_date_column=self.visit_date_column,
            age_column=self.age_column,
            gender_column=self.gender_column,
            expected_visit_range=self.expected_visit_range,
            age_range=self.age_range,
            date_bounds=self.date_bounds,
        )


def build_dictionary(
    mappings: list[ColumnMapping],
    visit_types: dict[str, FieldType],
    ae_types: dict[str, FieldType],
    dropped: list[str],
    time_invariant: list[str],
) -> pd.DataFrame:
    """Assemble the dictionary table with per-column roles."""
    dropped_set = set(dropped)
    tables, field_types = {}, {}
    for m in mappings:
        name = m.final_name
        if name in dropped_set:
            tables[name] = "dropped"
            field_types[name] = None
        elif name.startswith(ID_PREFIX):
            tables[name] = "both"
            field_types[name] = visit_types[name].value
        elif name.startswith(AE_PREFIX):
            tables[name] = ADVERSE_EVENTS
            field_types[name] = ae_types[name].value
        else:
            tables[name] = VISITS
            field_types[name] = visit_types[name].value

    ti_set = set(time_invariant)
    return mappings_to_frame(
        mappings,
        extra={
            "table": tables,
            "field_type": field_types,
            "time_invariant": {m.final_name: m.final_name in ti_set for m in mappings},
        },
    )


class CleaningPipeline:
    """Runs the full audit-export cleaning pipeline.

    Example:
        >>> pipeline = CleaningPipeline()
        >>> result = pipeline.run(raw_df)
        >>> result.visits.shape, result.summary.n_patients
    """

    def __init__(
        self,
        config: Optional[CleaningConfig] = None,
        rules: Optional[Union[RuleTable, str, Path, dict]] = None,
    ):
        """Initialize the pipeline.

        Args:
            config: Pipeline configuration; defaults when omitted
            rules: Rule table (instance, mapping or YAML path); overrides
                ``config.rules_path``
        """
        self.config = config or CleaningConfig()
        self.rules = load_rule_table(rules if rules is not None else self.config.rules_path)
        self.classifier = DomainClassifier(self.rules)
        self.checker = self.config.make_checker()

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CleaningPipeline":
        return cls(CleaningConfig.from_yaml(path))

    def drop_section_markers(self, raw: pd.DataFrame) -> tuple[list[int], list[str]]:
        """Return positions and labels of the columns that are not markers."""
        markers = set(self.rules.section_markers)
        labels = list(raw.columns)
        keep = [i for i, label in enumerate(labels) if label not in markers]
        n_dropped = len(labels) - len(keep)
        logger.info(f"Removed {n_dropped} section markers, {len(keep)} columns remain")
        return keep, [labels[i] for i in keep]

    def run(self, raw_table: pd.DataFrame) -> CleaningResult:
        """Execute the full cleaning pipeline.

        Args:
            raw_table: Raw export; every cell text, header = original labels

        Returns:
            CleaningResult with visits, adverse events, dictionary and summary

        Raises:
            InvalidInputError: If the input is absent, not a DataFrame, or
                the renamed schema lacks the patient/visit key columns
        """
        if raw_table is None:
            raise InvalidInputError("Raw table cannot be None")
        if not isinstance(raw_table, pd.DataFrame):
            raise InvalidInputError(
                f"Raw table must be a pandas DataFrame, got {type(raw_table).__name__}"
            )

        logger.info(
            f"Cleaning raw export: {raw_table.shape[0]} rows x {raw_table.shape[1]} columns "
            f"(rule table v{self.rules.version})"
        )

        # Steps 1-3: markers, classification, naming
        keep, labels = self.drop_section_markers(raw_table)
        classified = self.classifier.classify_columns(labels)
        mappings = resolve_names([(r.label, r.position, r.domain, r.rule) for r in classified])

        renamed = raw_table.iloc[:, keep].copy()
        renamed.columns = [m.final_name for m in mappings]
        renamed = renamed.reset_index(drop=True)

        redundant = [m.final_name for m in mappings if self.rules.is_redundant(m.final_name)]
        if redundant:
            renamed = renamed.drop(columns=redundant)
            logger.info(f"Dropped {len(redundant)} redundant duplicate columns")

        # Step 4: split
        visits_raw, ae_raw = split_tables(renamed)
        for key in (self.config.patient_column, self.config.visit_column):
            if key not in visits_raw.columns:
                raise InvalidInputError(
                    f"Renamed export has no '{key}' column; check the identifier labels "
                    f"in the first {self.rules.identifier_positions} columns"
                )

        # Step 5: types
        visit_types = resolve_field_types(visits_raw.columns, self.rules, VISITS)
        ae_types = resolve_field_types(ae_raw.columns, self.rules, ADVERSE_EVENTS)
        visits = coerce_table(visits_raw, visit_types, blank_as_missing=True)
        adverse_events = coerce_table(ae_raw, ae_types, blank_as_missing=False)

        unparseable = unparseable_counts(visits_raw, visits, visit_types)
        unparseable.update(
            unparseable_counts(
                ae_raw, adverse_events,
                {c: t for c, t in ae_types.items() if c.startswith(AE_PREFIX)},
            )
        )

        # Step 6: patient-level missingness
        ti_columns = time_invariant_columns(list(visits.columns), self.rules)
        missingness = resolve_patient_missingness(
            visits, ti_columns,
            patient_column=self.config.patient_column,
            visit_column=self.config.visit_column,
        )
        visits = missingness.visits

        # Step 7: quality and summary
        report = self.checker.check(
            visits, adverse_events, mappings,
            conflicts=missingness.conflicts,
            unparseable=unparseable,
            missingness=missingness,
        )
        summary = self.checker.summarize(visits, adverse_events, report)

        dictionary = build_dictionary(
            mappings, visit_types, ae_types, redundant, missingness.columns
        )

        logger.info(
            f"Cleaning complete: visits {visits.shape}, adverse events {adverse_events.shape}, "
            f"{summary.n_patients} patients"
        )

        return CleaningResult(
            visits=visits,
            adverse_events=adverse_events,
            dictionary=dictionary,
            summary=summary,
            mappings=mappings,
        )


def clean(
    raw_table: pd.DataFrame,
    column_rules: Optional[Union[RuleTable, str, Path, dict]] = None,
    config: Optional[CleaningConfig] = None,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame, CleaningSummary]:
    """Clean a raw export in one call.

    Args:
        raw_table: Raw export with text cells
        column_rules: Rule table (instance, mapping or YAML path)
        config: Pipeline configuration

    Returns:
        (visits, adverse_events, dictionary, summary)
    """
    return CleaningPipeline(config=config, rules=column_rules).run(raw_table).as_tuple()
