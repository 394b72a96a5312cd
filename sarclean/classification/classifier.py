"""Domain classification of raw export columns.

Precedence (first match wins):
1. label equals a cognitive digital-score label -> cognitive
2. position within the identifier block -> identifier
3. ordered pattern rules from the rule table
4. the rule table's default domain

Classification ambiguity is never an error; overlapping keyword sets are
settled by the order of the rules.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from sarclean.classification.rules import RuleTable, load_rule_table
from sarclean.types import Domain, InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """Domain assigned to a column and the rule responsible."""
    label: str
    position: int
    domain: Domain
    rule: str

    @property
    def is_default(self) -> bool:
        return self.rule == "default"


class DomainClassifier:
    """Assigns every raw column to exactly one domain.

    Example:
        >>> classifier = DomainClassifier()
        >>> classifier.classify("Raw DSS Score", 6).domain
        <Domain.COGNITIVE: 'cognitive'>
    """

    def __init__(self, rules: Optional[RuleTable] = None):
        """Initialize the classifier.

        Args:
            rules: Rule table; the packaged default when omitted
        """
        self.rules = load_rule_table(rules)
        self._digital_scores = set(self.rules.cognitive_digital_scores)

    def classify(self, label: str, position: int) -> ClassificationResult:
        """Classify one column.

        Args:
            label: Raw column label
            position: 1-based position in the marker-free schema

        Returns:
            ClassificationResult with domain and rule name
        """
        if label is None:
            raise InvalidInputError("Column label cannot be None")
        if position is None or int(position) < 1:
            raise InvalidInputError(f"Column position must be a positive integer, got {position}")

        label = str(label)
        position = int(position)

        if label in self._digital_scores:
            return ClassificationResult(label, position, Domain.COGNITIVE, "digital_score")

        if position <= self.rules.identifier_positions:
            return ClassificationResult(label, position, Domain.IDENTIFIER, "position")

        for rule in self.rules.domain_rules:
            if rule.matches(label):
                return ClassificationResult(label, position, rule.domain, rule.name)

        return ClassificationResult(label, position, self.rules.default_domain, "default")

    def classify_columns(self, labels: Sequence[str]) -> list[ClassificationResult]:
        """Classify a whole schema; positions are assigned from 1 in order."""
        if labels is None:
            raise InvalidInputError("Column labels cannot be None")

        results = [self.classify(label, pos) for pos, label in enumerate(labels, start=1)]

        defaulted = [r.label for r in results if r.is_default]
        if defaulted:
            logger.warning(
                f"{len(defaulted)} columns matched no rule and were classified as "
                f"{self.rules.default_domain.value}"
            )
            for label in defaulted:
                logger.debug(f"  default-classified: {label!r}")

        return results


def classify_column(label: str, position: int, rules: Optional[RuleTable] = None) -> Domain:
    """Convenience wrapper returning only the domain."""
    return DomainClassifier(rules).classify(label, position).domain
