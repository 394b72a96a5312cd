"""Patient-level missingness resolution for time-invariant variables.

A time-invariant variable (education years, date of birth, gender, ...)
is assumed identical at every visit of a patient. When it was recorded at
any visit, the gaps at the patient's other visits are filled from it, in
both directions along visit order. When it was recorded at no visit, it
stays missing everywhere: that is true patient-level missingness.

Time-varying columns are never touched. Conflicting recorded values are
not reconciled; they are left as recorded, gaps receive the first value in
visit order, and each conflict is reported.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from sarclean.classification.rules import RuleTable
from sarclean.types import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValueConflict:
    """A patient with more than one distinct recorded value for a column."""
    patient_id: Any
    column: str
    values: tuple

    def to_dict(self) -> dict:
        return {
            "patient_id": str(self.patient_id),
            "column": self.column,
            "values": [str(v) for v in self.values],
        }


@dataclass
class MissingnessResult:
    """Outcome of patient-level filling.

    Attributes:
        visits: New visits table, ordered by patient then visit number
        columns: Time-invariant columns that were processed
        filled_cells: Column -> number of cells filled from another visit
        patients_with_data: Column -> patients with at least one value
        n_patients: Patients with a non-missing id
        conflicts: Inconsistent recorded values found while filling
    """
    visits: pd.DataFrame
    columns: list[str]
    filled_cells: dict[str, int] = field(default_factory=dict)
    patients_with_data: dict[str, int] = field(default_factory=dict)
    n_patients: int = 0
    conflicts: list[ValueConflict] = field(default_factory=list)

    @property
    def total_filled(self) -> int:
        return sum(self.filled_cells.values())


def time_invariant_columns(columns: Sequence[str], rules: RuleTable) -> list[str]:
    """Select the declared time-invariant columns, preserving table order."""
    return [c for c in columns if rules.role_matches("time_invariant", c)]


def order_visits(visits: pd.DataFrame, patient_column: str, visit_column: str) -> pd.DataFrame:
    """Sort by patient then visit number; ties keep their input order."""
    return visits.sort_values(
        [patient_column, visit_column], kind="mergesort", na_position="last"
    ).reset_index(drop=True)


def find_conflicts(
    visits: pd.DataFrame,
    columns: Sequence[str],
    patient_column: str,
) -> list[ValueConflict]:
    """List (patient, column) pairs holding more than one distinct value.

    Values are reported in visit order of first appearance.
    """
    conflicts = []
    grouped = visits.groupby(patient_column, sort=True)
    for column in columns:
        n_distinct = grouped[column].nunique(dropna=True)
        for patient_id in n_distinct[n_distinct > 1].index:
            recorded = visits.loc[visits[patient_column] == patient_id, column].dropna()
            conflicts.append(
                ValueConflict(patient_id=patient_id, column=column,
                              values=tuple(pd.unique(recorded)))
            )
    return conflicts


def resolve_patient_missingness(
    visits: pd.DataFrame,
    columns: Sequence[str],
    patient_column: str = "id_client_id",
    visit_column: str = "id_visit_no",
) -> MissingnessResult:
    """Fill time-invariant gaps within each patient's visit history.

    Args:
        visits: Typed visits table
        columns: Time-invariant columns; every other column is left as is
        patient_column: Patient identifier column
        visit_column: Visit number column used for ordering

    Returns:
        MissingnessResult holding a new, ordered visits table
    """
    if visits is None:
        raise InvalidInputError("Visits table cannot be None")
    if columns is None:
        raise InvalidInputError("Time-invariant column list cannot be None")
    for key in (patient_column, visit_column):
        if key not in visits.columns:
            raise InvalidInputError(f"Visits table has no '{key}' column")
    missing = [c for c in columns if c not in visits.columns]
    if missing:
        raise InvalidInputError(f"Time-invariant columns not in visits table: {missing}")

    columns = [c for c in columns if c not in (patient_column, visit_column)]
    ordered = order_visits(visits, patient_column, visit_column)
    has_patient = ordered[patient_column].notna()
    n_patients = int(ordered.loc[has_patient, patient_column].nunique())

    conflicts = find_conflicts(ordered, columns, patient_column)
    for conflict in conflicts:
        logger.warning(
            f"Inconsistent values for {conflict.column} in patient {conflict.patient_id}: "
            f"{list(conflict.values)}; keeping recorded values, filling gaps with the first"
        )

    filled_cells = {}
    patients_with_data = {}
    if columns:
        # groupby.first skips missing values, giving the first recorded value in visit order
        first_values = ordered.groupby(patient_column, sort=False)[columns].transform("first")
        for column in columns:
            gaps = ordered[column].isna() & has_patient
            fillable = gaps & first_values[column].notna()
            filled_cells[column] = int(fillable.sum())
            if fillable.any():
                ordered.loc[fillable, column] = first_values.loc[fillable, column]
            patients_with_data[column] = int(
                ordered.loc[has_patient & ordered[column].notna(), patient_column].nunique()
            )

    result = MissingnessResult(
        visits=ordered,
        columns=list(columns),
        filled_cells=filled_cells,
        patients_with_data=patients_with_data,
        n_patients=n_patients,
        conflicts=conflicts,
    )

    logger.info(
        f"Patient-level filling: {len(columns)} time-invariant columns, "
        f"{result.total_filled} cells filled across {n_patients} patients"
    )
    for column, n in patients_with_data.items():
        logger.debug(f"  {column}: {n}/{n_patients} patients with a value")

    return result
