"""Core type definitions for the sarclean pipeline.

This module defines the enums, dataclasses and exceptions shared by every
stage of the audit-export cleaning pipeline: column domains, the column
mapping that makes up the variable dictionary, quality findings and the
final cleaning result.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional

import pandas as pd


class InvalidInputError(ValueError):
    """Raised when a caller passes an absent or structurally invalid argument.

    Distinct from unparseable cell values, which never raise.
    """


class RuleTableError(ValueError):
    """Raised when a column rule table cannot be loaded or compiled."""


class Domain(Enum):
    """Top-level domains every raw column is assigned to."""
    IDENTIFIER = "identifier"
    DEMOGRAPHIC = "demographic"
    COGNITIVE = "cognitive"
    MEDICAL = "medical"
    PHYSICAL = "physical"
    ADHERENCE = "adherence"
    ADVERSE_EVENT = "adverse_event"

    @classmethod
    def all(cls) -> list["Domain"]:
        """Return all domains in standard reporting order."""
        return [
            cls.IDENTIFIER, cls.DEMOGRAPHIC, cls.COGNITIVE, cls.MEDICAL,
            cls.PHYSICAL, cls.ADHERENCE, cls.ADVERSE_EVENT,
        ]

    @classmethod
    def from_prefix(cls, prefix: str) -> "Domain":
        """Get the Domain owning a column-name prefix."""
        for domain in cls:
            if domain.prefix == prefix:
                return domain
        raise ValueError(f"Unknown domain prefix: {prefix}")

    @property
    def prefix(self) -> str:
        """Short code prepended to every final column name of this domain."""
        return _DOMAIN_PREFIXES[self]


_DOMAIN_PREFIXES = {
    Domain.IDENTIFIER: "id",
    Domain.DEMOGRAPHIC: "demo",
    Domain.COGNITIVE: "cog",
    Domain.MEDICAL: "med",
    Domain.PHYSICAL: "phys",
    Domain.ADHERENCE: "adh",
    Domain.ADVERSE_EVENT: "ae",
}


class FieldType(Enum):
    """Typed representation a column is coerced to."""
    DATE = "date"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    STRING = "string"


class Severity(Enum):
    """Severity of a quality finding. Neither level halts the pipeline."""
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class ColumnMapping:
    """One dictionary entry linking an original column to its final name.

    Attributes:
        original_name: Raw column label as exported
        position: 1-based position after section markers are removed
        domain: Assigned domain
        cleaned_base: Normalized label before prefixing
        candidate_name: prefix + "_" + cleaned_base, before collision suffixes
        final_name: Globally unique column name
        matched_rule: Name of the classifier rule that fired
    """
    original_name: str
    position: int
    domain: Domain
    cleaned_base: str
    candidate_name: str
    final_name: str
    matched_rule: str = ""

    @property
    def prefix(self) -> str:
        return self.domain.prefix

    @property
    def is_default_classified(self) -> bool:
        """True when no rule matched and the default domain was used."""
        return self.matched_rule == "default"

    def to_dict(self) -> dict:
        return {
            "original_name": self.original_name,
            "position": self.position,
            "domain": self.domain.value,
            "prefix": self.prefix,
            "cleaned_base": self.cleaned_base,
            "candidate_name": self.candidate_name,
            "final_name": self.final_name,
            "matched_rule": self.matched_rule,
        }


@dataclass
class QualityIssue:
    """A single finding from the quality checker.

    Attributes:
        check: Short identifier of the check that produced the finding
        severity: INFO for operator-review counts, WARNING for anomalies
        message: Human-readable description
        details: JSON-serialisable supporting data
    """
    check: str
    severity: Severity
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "check": self.check,
            "severity": self.severity.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class QualityReport:
    """Structured, non-blocking list of quality findings."""
    issues: list[QualityIssue] = field(default_factory=list)

    def add(
        self,
        check: str,
        severity: Severity,
        message: str,
        **details: Any,
    ) -> QualityIssue:
        issue = QualityIssue(check=check, severity=severity, message=message, details=details)
        self.issues.append(issue)
        return issue

    @property
    def warnings(self) -> list[QualityIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def by_check(self, check: str) -> list[QualityIssue]:
        """Get all findings produced by one check."""
        return [i for i in self.issues if i.check == check]

    def to_dict(self) -> dict:
        return {
            "n_issues": len(self.issues),
            "n_warnings": len(self.warnings),
            "issues": [i.to_dict() for i in self.issues],
        }

    def to_frame(self) -> pd.DataFrame:
        """Flatten the report into one row per finding."""
        return pd.DataFrame(
            [
                {
                    "check": i.check,
                    "severity": i.severity.value,
                    "message": i.message,
                }
                for i in self.issues
            ],
            columns=["check", "severity", "message"],
        )


@dataclass
class CleaningSummary:
    """Aggregate counts describing one pipeline run.

    Attributes:
        n_patients: Distinct patient ids in the visits table
        n_observations: Rows in the visits table
        visits_per_patient: Mapping of visit count -> number of patients
        n_variables_total: Columns kept after redundant-column removal
        n_variables_visits: Columns in the visits table
        n_variables_ae: Adverse-event columns (identifiers excluded)
        date_range: (first, last) visit date as ISO strings, or None
        age_range: (min, max) age, or None
        domain_counts: Mapping of domain prefix -> column count
        quality: Quality report produced for the run
    """
    n_patients: int
    n_observations: int
    visits_per_patient: dict[int, int]
    n_variables_total: int
    n_variables_visits: int
    n_variables_ae: int
    date_range: Optional[tuple[str, str]]
    age_range: Optional[tuple[float, float]]
    domain_counts: dict[str, int]
    quality: QualityReport = field(default_factory=QualityReport)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["visits_per_patient"] = {str(k): v for k, v in self.visits_per_patient.items()}
        data["date_range"] = list(self.date_range) if self.date_range else None
        data["age_range"] = list(self.age_range) if self.age_range else None
        data["quality"] = self.quality.to_dict()
        return data


@dataclass
class CleaningResult:
    """Output of one pipeline run.

    Attributes:
        visits: One row per patient-visit, non adverse-event columns
        adverse_events: Identifier + adverse-event columns, same row grain
        dictionary: One row per original (non-marker) column
        summary: Aggregate counts and the quality report
        mappings: ColumnMapping entries backing the dictionary
    """
    visits: pd.DataFrame
    adverse_events: pd.DataFrame
    dictionary: pd.DataFrame
    summary: CleaningSummary
    mappings: list[ColumnMapping] = field(default_factory=list)

    @property
    def quality(self) -> QualityReport:
        return self.summary.quality

    def as_tuple(self) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame, CleaningSummary]:
        return self.visits, self.adverse_events, self.dictionary, self.summary
