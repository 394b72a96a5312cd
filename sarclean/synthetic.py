"""Synthetic raw audit exports.

Generates exports shaped like the real form export, for tests, demos and
scale checks without patient data:
- section-marker columns between form sections
- a 12-column identifier block that includes the digital DSST scores
- items from every domain, labelled the way the form labels them
- repeated study-number and date-of-birth questions
- time-invariant answers recorded only at each patient's first visit
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np
import pandas as pd

from sarclean.types import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_VISIT_DISTRIBUTION = {0: 0.05, 1: 0.15, 2: 0.40, 3: 0.40}

STUDY_START = date(2024, 1, 1)
VISIT_INTERVAL_DAYS = 90


@dataclass
class _Patient:
    patient_id: str
    name: str
    gender: str
    age: int
    birth_date: date
    study_group: str
    education_years: int
    degree: str
    hand: str
    marital: str
    drives: str
    diabetes_type: str
    diagnosis_year: int
    hypertension: str


@dataclass
class _Visit:
    rng: np.random.Generator
    patient: _Patient
    number: int
    visit_date: date
    missing_rate: float

    @property
    def is_first(self) -> bool:
        return self.number == 0

    def maybe(self, value) -> str:
        """Return the value as text, or blank at the missing rate."""
        if self.rng.random() < self.missing_rate:
            return ""
        return str(value)

    def once(self, value) -> str:
        """Time-invariant answers are entered at the first visit only."""
        return str(value) if self.is_first else ""

    def integer(self, low: int, high: int) -> str:
        return self.maybe(int(self.rng.integers(low, high + 1)))

    def normal(self, mean: float, sd: float, decimals: int = 0) -> str:
        value = round(float(self.rng.normal(mean, sd)), decimals)
        return self.maybe(int(value) if decimals == 0 else value)

    def choice(self, options: list) -> str:
        return self.maybe(options[int(self.rng.integers(len(options)))])


Cell = Callable[[_Visit], str]


def _marker(label: str) -> tuple[str, Cell]:
    return label, lambda v: ""


def _format_visit_date(v: _Visit) -> str:
    # Some sites enter dates day-first
    if v.rng.random() < 0.2:
        return v.visit_date.strftime("%d/%m/%Y")
    return v.visit_date.isoformat()


def _event_date(v: _Visit) -> str:
    if v.rng.random() < 0.8:
        return ""
    return (v.visit_date - timedelta(days=int(v.rng.integers(1, 60)))).isoformat()


# Identifier block: exactly 12 columns once section markers are removed
IDENTIFIER_COLUMNS: list[tuple[str, Cell]] = [
    ("Org ID", lambda v: "ORG001"),
    ("Client ID", lambda v: v.patient.patient_id),
    ("Client Name", lambda v: v.patient.name),
    ("Gender", lambda v: v.patient.gender),
    ("Age", lambda v: str(v.patient.age)),
    ("Raw DSS Score", lambda v: v.integer(20, 100)),
    ("DSST Score", lambda v: v.integer(20, 100)),
    ("Visit Date", _format_visit_date),
    ("Visit Type", lambda v: "Baseline" if v.is_first else "Follow-up"),
    ("Visit No", lambda v: str(v.number)),
    ("Visit Tag", lambda v: f"V{v.number}"),
    ("Visit Status", lambda v: "Completed"),
]

FORM_COLUMNS: list[tuple[str, Cell]] = [
    _marker("Personal Information FINAL"),
    ("Participants study number - 101", lambda v: v.once(v.patient.patient_id)),
    ("Date of birth - 102", lambda v: v.once(v.patient.birth_date.isoformat())),
    ("Which study are you part of? - 103", lambda v: v.once(v.patient.study_group)),
    ("Study group - 104", lambda v: v.once(v.patient.study_group)),
    ("Number of education years - 105", lambda v: v.once(v.patient.education_years)),
    ("Educational Degree - 106", lambda v: v.once(v.patient.degree)),
    ("Dominant hand - 107", lambda v: v.once(v.patient.hand)),
    ("Marital status - 108", lambda v: v.once(v.patient.marital)),
    ("Do you drive? - 109", lambda v: v.once(v.patient.drives)),
    ("Consent form signed - 110", lambda v: "Yes"),
    ("Participants study number - 111", lambda v: v.once(v.patient.patient_id)),
    _marker("Cognitive Health Agility- Final"),
    ("MoCA Total Score - 150", lambda v: v.maybe(f"{int(v.rng.integers(15, 31))}/30")),
    ("DSST - Total Score - 151", lambda v: v.integer(20, 100)),
    ("PHQ-9 Total Score - 152", lambda v: v.integer(0, 20)),
    ("WHO-5 Total Score - 153", lambda v: v.integer(5, 25)),
    ("VF semantic - Total Score - 154", lambda v: v.integer(8, 30)),
    ("VF semantic - Standardized Score - 155",
     lambda v: v.choice(["Above Average", "Average", "Below Average"])),
    _marker("Physician evaluation FINAL"),
    ("Diabetes Mellitus type - 201", lambda v: v.once(v.patient.diabetes_type)),
    ("Year of diagnosis - 202", lambda v: v.once(v.patient.diagnosis_year)),
    ("Medical history - Hypertension - 203", lambda v: v.once(v.patient.hypertension)),
    ("HbA1c value - 204", lambda v: v.normal(7.2, 1.1, decimals=1)),
    ("Systolic blood pressure - 205", lambda v: v.normal(130, 15)),
    ("Diastolic blood pressure - 206", lambda v: v.normal(80, 10)),
    ("Pulse - 207", lambda v: v.normal(72, 10)),
    ("Smoker - 208", lambda v: v.choice(["Yes", "No", "No", "No"])),
    ("Weight - 209", lambda v: v.normal(75, 12, decimals=1)),
    ("Date of birth - 210", lambda v: v.once(v.patient.birth_date.isoformat())),
    _marker("Physical Health Agility FINAL"),
    ("SARC-F Total Score - 301", lambda v: v.integer(0, 10)),
    ("Right Hand grip strength - Test 1 - 302", lambda v: v.normal(28, 8, decimals=1)),
    ("Left Hand grip strength - Test 1 - 303", lambda v: v.normal(26, 8, decimals=1)),
    ("Gait Speed - 304", lambda v: v.normal(1.1, 0.3, decimals=2)),
    ("SPPB Total Score - 305", lambda v: v.integer(4, 12)),
    ("Frailty criteria - 306", lambda v: v.choice(["Not Frail", "Pre-frail", "Frail"])),
    _marker("Body composition FINAL"),
    ("Body Mass Index - 320", lambda v: v.normal(26, 4, decimals=1)),
    ("Calf circumference - 321", lambda v: v.normal(35, 3, decimals=1)),
    ("Number of exercise sessions Week 1 - 401", lambda v: v.integer(0, 3)),
    ("Drug Injection - Week 2 - 402", lambda v: v.choice(["Done", "Missed"])),
    ("Participants study number - 403", lambda v: v.once(v.patient.patient_id)),
    _marker("Adverse events FINAL"),
    ("Did you fall? - 501", lambda v: v.choice(["No", "No", "No", "Yes"])),
    ("Fracture date - 502", _event_date),
    ("Serious adverse event - 503", lambda v: v.choice(["", "", "", "Hospitalized"])),
    ("Gastrointestinal AE severity - 504", lambda v: v.choice(["", "1", "2", "3"])),
    ("Free text - 441", lambda v: v.choice(["", "", "Mild dizziness after session"])),
]


def audit_export_labels() -> list[str]:
    """Raw header labels of a synthetic export, in column order."""
    return [label for label, _ in IDENTIFIER_COLUMNS + FORM_COLUMNS]


def _make_patient(rng: np.random.Generator, index: int) -> _Patient:
    age = int(rng.integers(65, 91))
    return _Patient(
        patient_id=f"P{index:03d}",
        name=f"Patient {index:03d}",
        gender=str(rng.choice(["Male", "Female"])),
        age=age,
        birth_date=STUDY_START - timedelta(days=365 * age + int(rng.integers(1, 365))),
        study_group=str(rng.choice(["780 in elderly", "BIRAX", "Regeneron"])),
        education_years=int(rng.integers(8, 21)),
        degree=str(rng.choice(["High School", "Bachelor", "Master", "PhD"])),
        hand=str(rng.choice(["Right", "Right", "Right", "Left"])),
        marital=str(rng.choice(["Married", "Single", "Divorced", "Widowed"])),
        drives=str(rng.choice(["Yes", "No"])),
        diabetes_type=str(rng.choice(["Type 1", "Type 2"])),
        diagnosis_year=int(rng.integers(1980, 2023)),
        hypertension=str(rng.choice(["Yes", "No"])),
    )


def generate_audit_export(
    n_patients: int = 200,
    visit_distribution: Optional[dict[int, float]] = None,
    seed: int = 42,
    missing_rate: float = 0.1,
) -> pd.DataFrame:
    """Generate a synthetic raw export.

    Args:
        n_patients: Number of patients; those drawing 0 visits add no rows
        visit_distribution: Visit count -> probability; defaults to
            5% 0-visit, 15% 1-visit, 40% 2-visit, 40% 3-visit
        seed: Random seed for reproducibility
        missing_rate: Probability a time-varying item is left blank

    Returns:
        DataFrame of str cells with the raw, non-unique header labels
    """
    if n_patients < 0:
        raise InvalidInputError(f"n_patients must be non-negative, got {n_patients}")
    if not 0.0 <= missing_rate < 1.0:
        raise InvalidInputError(f"missing_rate must be in [0, 1), got {missing_rate}")

    distribution = visit_distribution or DEFAULT_VISIT_DISTRIBUTION
    counts = np.array(list(distribution.keys()), dtype=int)
    probs = np.array(list(distribution.values()), dtype=float)
    if (counts < 0).any() or (probs < 0).any() or probs.sum() <= 0:
        raise InvalidInputError(f"Invalid visit distribution: {distribution}")
    probs = probs / probs.sum()

    rng = np.random.default_rng(seed)
    n_visits = rng.choice(counts, size=n_patients, p=probs)

    columns = IDENTIFIER_COLUMNS + FORM_COLUMNS
    rows = []
    for i in range(n_patients):
        patient = _make_patient(rng, i + 1)
        for number in range(int(n_visits[i])):
            jitter = int(rng.integers(-7, 8))
            visit = _Visit(
                rng=rng,
                patient=patient,
                number=number,
                visit_date=STUDY_START + timedelta(days=number * VISIT_INTERVAL_DAYS + jitter + 7),
                missing_rate=missing_rate,
            )
            rows.append([cell(visit) for _, cell in columns])

    df = pd.DataFrame(rows, columns=[label for label, _ in columns], dtype=object)
    logger.info(
        f"Generated synthetic export: {int((n_visits > 0).sum())}/{n_patients} patients "
        f"with visits, {len(df)} rows x {df.shape[1]} columns"
    )
    return df


def write_audit_export(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write an export to CSV with its header labels verbatim."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
