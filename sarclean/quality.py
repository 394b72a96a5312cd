"""Post-hoc quality checks and summary statistics.

The checker never raises on data problems and never mutates its inputs:
every structural anomaly becomes a WARNING finding and every
operator-review count an INFO finding. Callers decide whether to halt.
"""

import logging
import re
from collections.abc import Sequence
from typing import Optional

import pandas as pd

from sarclean.missingness import MissingnessResult, ValueConflict
from sarclean.types import (
    CleaningSummary,
    ColumnMapping,
    Domain,
    InvalidInputError,
    QualityReport,
    Severity,
)

logger = logging.getLogger(__name__)

# Caps the number of offending values echoed into a finding
MAX_EXAMPLES = 20

# Digital (tablet) and paper DSST score columns
DIGITAL_DSST_PATTERN = re.compile(r"cog.*raw.*dss|cog.*dsst.*score")
PAPER_DSST_PATTERN = re.compile(r"cog.*dsst.*total|cog.*standardized_score")


def _date_columns(df: pd.DataFrame) -> list[str]:
    return [c for c in df.columns if pd.api.types.is_datetime64_any_dtype(df[c])]


def _iso(ts: pd.Timestamp) -> str:
    return ts.strftime("%Y-%m-%d")


def domain_counts(columns: Sequence[str]) -> dict[str, int]:
    """Count columns per domain prefix, in standard domain order."""
    return {
        d.prefix: sum(1 for c in columns if str(c).startswith(f"{d.prefix}_"))
        for d in Domain.all()
    }


class QualityChecker:
    """Validates structural invariants of the cleaned tables.

    Checks:
    - (patient, visit) keys are present and unique
    - visit numbers fall in the expected range
    - ages are plausible
    - dates fall within bounds; visit date range reported
    - per-domain column counts, DSST score columns, default-classified
      columns, unparseable cells
    - time-invariant coverage and conflicts
    """

    def __init__(
        self,
        patient_column: str = "id_client_id",
        visit_column: str = "id_visit_no",
        visit_date_column: str = "id_visit_date",
        age_column: str = "id_age",
        gender_column: str = "id_gender",
        expected_visit_range: tuple[int, int] = (0, 3),
        age_range: tuple[float, float] = (0, 110),
        date_bounds: tuple[Optional[str], Optional[str]] = ("1900-01-01", None),
    ):
        """Initialize the checker.

        Args:
            patient_column: Patient identifier column
            visit_column: Visit number column
            visit_date_column: Column holding the visit date
            age_column: Age column, checked when present
            gender_column: Gender column, summarized per patient when present
            expected_visit_range: Inclusive (min, max) visit number
            age_range: Inclusive plausible (min, max) age
            date_bounds: Inclusive (earliest, latest) ISO dates; a None
                upper bound means the day the check runs
        """
        lo, hi = expected_visit_range
        if lo > hi:
            raise InvalidInputError(f"expected_visit_range must be ordered, got {expected_visit_range}")
        if age_range[0] > age_range[1]:
            raise InvalidInputError(f"age_range must be ordered, got {age_range}")

        self.patient_column = patient_column
        self.visit_column = visit_column
        self.visit_date_column = visit_date_column
        self.age_column = age_column
        self.gender_column = gender_column
        self.expected_visit_range = (int(lo), int(hi))
        self.age_range = age_range
        self.date_bounds = date_bounds

    def check(
        self,
        visits: pd.DataFrame,
        adverse_events: Optional[pd.DataFrame] = None,
        mappings: Optional[Sequence[ColumnMapping]] = None,
        conflicts: Optional[Sequence[ValueConflict]] = None,
        unparseable: Optional[dict[str, int]] = None,
        missingness: Optional[MissingnessResult] = None,
    ) -> QualityReport:
        """Run every check and collect the findings.

        Args:
            visits: Final visits table
            adverse_events: Final adverse-events table
            mappings: Column mappings, for default-classification findings
            conflicts: Time-invariant conflicts from the missingness resolver
            unparseable: Column -> count of cells that failed to parse
            missingness: Patient-level filling result, for coverage findings

        Returns:
            QualityReport; empty tables produce findings, not errors
        """
        if visits is None:
            raise InvalidInputError("Visits table cannot be None")

        report = QualityReport()
        self.check_row_counts(visits, adverse_events, report)
        self.check_keys(visits, report)
        self.check_visit_range(visits, report)
        self.check_ages(visits, report)
        self.check_gender(visits, report)
        self.check_dates(visits, report)
        if adverse_events is not None:
            self.check_dates(adverse_events, report, table="adverse_events")

        columns = list(visits.columns)
        if adverse_events is not None:
            columns += [c for c in adverse_events.columns if c not in set(visits.columns)]
        report.add("domain_counts", Severity.INFO, "Columns per domain", counts=domain_counts(columns))
        self.check_dsst_scores(visits, report)

        if mappings:
            self.check_default_classification(mappings, report)
        if missingness is not None:
            self.check_coverage(missingness, report)
        if conflicts:
            self.check_conflicts(conflicts, report)
        if unparseable:
            report.add(
                "unparseable_values", Severity.INFO,
                f"{sum(unparseable.values())} non-blank cells in {len(unparseable)} columns "
                f"could not be parsed and were set to missing",
                columns=dict(unparseable),
            )

        for issue in report.warnings:
            logger.warning(f"[{issue.check}] {issue.message}")
        logger.info(f"Quality check: {len(report.issues)} findings, {len(report.warnings)} warnings")
        return report

    def check_row_counts(self, visits, adverse_events, report: QualityReport) -> None:
        if len(visits) == 0:
            report.add("row_counts", Severity.WARNING, "No visit data found")
            return
        n_patients = (
            int(visits[self.patient_column].nunique()) if self.patient_column in visits.columns else 0
        )
        report.add(
            "row_counts", Severity.INFO,
            f"{len(visits)} visit rows for {n_patients} patients",
            n_rows=len(visits),
            n_patients=n_patients,
            n_ae_rows=len(adverse_events) if adverse_events is not None else 0,
        )

    def check_keys(self, visits: pd.DataFrame, report: QualityReport) -> None:
        """Check that every (patient, visit) pair is present and unique."""
        keys = [self.patient_column, self.visit_column]
        absent = [k for k in keys if k not in visits.columns]
        if absent:
            report.add("missing_keys", Severity.WARNING, f"Key columns missing from visits table: {absent}")
            return

        missing = visits[keys].isna().any(axis=1)
        if missing.any():
            report.add(
                "missing_keys", Severity.WARNING,
                f"{int(missing.sum())} rows lack a patient id or visit number",
                n_rows=int(missing.sum()),
            )

        complete = visits.loc[~missing, keys]
        duplicated = complete.duplicated(keep=False)
        if duplicated.any():
            pairs = complete[duplicated].drop_duplicates()
            examples = [
                {"patient_id": str(p), "visit_no": str(v)}
                for p, v in pairs.head(MAX_EXAMPLES).itertuples(index=False)
            ]
            report.add(
                "duplicate_keys", Severity.WARNING,
                f"{len(pairs)} (patient, visit) pairs occur more than once",
                n_pairs=len(pairs),
                examples=examples,
            )

        per_patient = complete.groupby(self.patient_column).size()
        distribution = {int(k): int(v) for k, v in per_patient.value_counts().sort_index().items()}
        report.add(
            "visits_per_patient", Severity.INFO,
            "Visit count distribution", distribution=distribution,
        )

    def check_visit_range(self, visits: pd.DataFrame, report: QualityReport) -> None:
        if self.visit_column not in visits.columns:
            return
        lo, hi = self.expected_visit_range
        numbers = pd.to_numeric(visits[self.visit_column], errors="coerce")
        unexpected = numbers.notna() & ~numbers.isin(list(range(lo, hi + 1)))
        if unexpected.any():
            values = sorted(numbers[unexpected].unique().tolist())
            report.add(
                "visit_range", Severity.WARNING,
                f"Unexpected visit numbers outside {lo}-{hi}: {values[:MAX_EXAMPLES]}",
                values=values[:MAX_EXAMPLES],
                n_rows=int(unexpected.sum()),
            )

    def check_ages(self, visits: pd.DataFrame, report: QualityReport) -> None:
        if self.age_column not in visits.columns:
            return
        ages = pd.to_numeric(visits[self.age_column], errors="coerce")
        if ages.notna().sum() == 0:
            return

        lo, hi = self.age_range
        implausible = ages.notna() & ((ages < lo) | (ages > hi))
        if implausible.any():
            report.add(
                "age_range", Severity.WARNING,
                f"{int(implausible.sum())} ages outside plausible range {lo}-{hi}",
                values=sorted(ages[implausible].unique().tolist())[:MAX_EXAMPLES],
            )
        report.add(
            "age_range", Severity.INFO,
            f"Age range {ages.min():g}-{ages.max():g}, mean {ages.mean():.1f}",
            min=float(ages.min()), max=float(ages.max()), mean=round(float(ages.mean()), 1),
        )

    def check_gender(self, visits: pd.DataFrame, report: QualityReport) -> None:
        if self.gender_column not in visits.columns or self.patient_column not in visits.columns:
            return
        per_patient = (
            visits[[self.patient_column, self.gender_column]]
            .dropna()
            .drop_duplicates(subset=self.patient_column)
        )
        if per_patient.empty:
            return
        distribution = {
            str(k): int(v) for k, v in per_patient[self.gender_column].value_counts().items()
        }
        report.add(
            "gender_distribution", Severity.INFO,
            f"Gender across {len(per_patient)} patients: {distribution}",
            distribution=distribution,
        )

    def check_dates(self, df: pd.DataFrame, report: QualityReport, table: str = "visits") -> None:
        """Report the visit date range and flag dates outside the bounds."""
        earliest = pd.Timestamp(self.date_bounds[0]) if self.date_bounds[0] else None
        latest = (
            pd.Timestamp(self.date_bounds[1]) if self.date_bounds[1]
            else pd.Timestamp.today().normalize()
        )

        for column in _date_columns(df):
            dates = df[column].dropna()
            if dates.empty:
                continue
            out_of_bounds = dates > latest
            if earliest is not None:
                out_of_bounds |= dates < earliest
            if out_of_bounds.any():
                report.add(
                    "date_bounds", Severity.WARNING,
                    f"{table}.{column}: {int(out_of_bounds.sum())} dates outside "
                    f"{_iso(earliest) if earliest is not None else '-'} to {_iso(latest)}",
                    table=table, column=column, n_values=int(out_of_bounds.sum()),
                )
            if table == "visits" and column == self.visit_date_column:
                report.add(
                    "date_range", Severity.INFO,
                    f"Visit dates range {_iso(dates.min())} to {_iso(dates.max())}",
                    first=_iso(dates.min()), last=_iso(dates.max()),
                )

    def check_default_classification(
        self, mappings: Sequence[ColumnMapping], report: QualityReport
    ) -> None:
        defaulted = [m for m in mappings if m.is_default_classified]
        if defaulted:
            report.add(
                "default_classification", Severity.INFO,
                f"{len(defaulted)} columns matched no rule and fell back to "
                f"{defaulted[0].domain.value}",
                columns=[m.original_name for m in defaulted],
            )

    def check_dsst_scores(self, visits: pd.DataFrame, report: QualityReport) -> None:
        """Report digital and paper DSST columns with their non-missing counts."""
        columns = [str(c) for c in visits.columns]
        digital = [c for c in columns if DIGITAL_DSST_PATTERN.search(c) and "total" not in c]
        paper = [c for c in columns if PAPER_DSST_PATTERN.search(c)]
        if not digital and not paper:
            return
        report.add(
            "dsst_scores", Severity.INFO,
            f"{len(digital)} digital and {len(paper)} paper DSST columns",
            digital={c: int(visits[c].notna().sum()) for c in digital},
            paper={c: int(visits[c].notna().sum()) for c in paper},
        )

    def check_coverage(self, missingness: MissingnessResult, report: QualityReport) -> None:
        if not missingness.columns:
            return
        report.add(
            "time_invariant_coverage", Severity.INFO,
            f"{missingness.total_filled} cells filled in {len(missingness.columns)} "
            f"time-invariant columns across {missingness.n_patients} patients",
            n_patients=missingness.n_patients,
            patients_with_data=dict(missingness.patients_with_data),
            filled_cells=dict(missingness.filled_cells),
        )

    def check_conflicts(self, conflicts: Sequence[ValueConflict], report: QualityReport) -> None:
        for conflict in conflicts:
            report.add(
                "time_invariant_conflict", Severity.WARNING,
                f"Patient {conflict.patient_id} has inconsistent values for "
                f"{conflict.column}: {[str(v) for v in conflict.values]}",
                **conflict.to_dict(),
            )

    def summarize(
        self,
        visits: pd.DataFrame,
        adverse_events: pd.DataFrame,
        report: Optional[QualityReport] = None,
    ) -> CleaningSummary:
        """Build aggregate summary statistics for a run."""
        id_prefix = f"{Domain.IDENTIFIER.prefix}_"
        columns = list(visits.columns) + [
            c for c in adverse_events.columns if c not in set(visits.columns)
        ]

        n_patients = 0
        visits_per_patient = {}
        if self.patient_column in visits.columns:
            n_patients = int(visits[self.patient_column].nunique())
            counts = visits.groupby(self.patient_column).size().value_counts().sort_index()
            visits_per_patient = {int(k): int(v) for k, v in counts.items()}

        date_range = None
        if self.visit_date_column in visits.columns and pd.api.types.is_datetime64_any_dtype(
            visits[self.visit_date_column]
        ):
            dates = visits[self.visit_date_column].dropna()
            if not dates.empty:
                date_range = (_iso(dates.min()), _iso(dates.max()))

        age_range = None
        if self.age_column in visits.columns:
            ages = pd.to_numeric(visits[self.age_column], errors="coerce").dropna()
            if not ages.empty:
                age_range = (float(ages.min()), float(ages.max()))

        return CleaningSummary(
            n_patients=n_patients,
            n_observations=len(visits),
            visits_per_patient=visits_per_patient,
            n_variables_total=len(columns),
            n_variables_visits=visits.shape[1],
            n_variables_ae=sum(1 for c in adverse_events.columns if not str(c).startswith(id_prefix)),
            date_range=date_range,
            age_range=age_range,
            domain_counts=domain_counts(columns),
            quality=report or QualityReport(),
        )
