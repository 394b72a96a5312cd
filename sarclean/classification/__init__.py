"""Rule-driven domain classification of raw columns.

This package contains:
- rules: the versioned YAML rule table and its compiled form
- classifier: ordered, first-match-wins domain assignment
"""

from sarclean.classification.rules import (
    DEFAULT_RULES_PATH,
    DomainRule,
    RuleTable,
    load_rule_table,
)
from sarclean.classification.classifier import (
    ClassificationResult,
    DomainClassifier,
    classify_column,
)

__all__ = [
    "DEFAULT_RULES_PATH",
    "DomainRule",
    "RuleTable",
    "load_rule_table",
    "ClassificationResult",
    "DomainClassifier",
    "classify_column",
]
