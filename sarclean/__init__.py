"""sarclean: cleaning pipeline for sarcopenia study audit exports.

Turns the wide, free-text-labelled audit export of a longitudinal clinical
study into typed, analysis-ready visit and adverse-event tables with a
variable dictionary and a quality report.
"""

__version__ = "0.1.0"
__author__ = "sarclean Team"

from sarclean.types import (
    Domain,
    FieldType,
    Severity,
    ColumnMapping,
    QualityIssue,
    QualityReport,
    CleaningSummary,
    CleaningResult,
    InvalidInputError,
    RuleTableError,
)
from sarclean.pipeline import CleaningConfig, CleaningPipeline, clean

__all__ = [
    "Domain",
    "FieldType",
    "Severity",
    "ColumnMapping",
    "QualityIssue",
    "QualityReport",
    "CleaningSummary",
    "CleaningResult",
    "InvalidInputError",
    "RuleTableError",
    "CleaningConfig",
    "CleaningPipeline",
    "clean",
]
