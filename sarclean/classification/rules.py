"""Versioned column rule table.

The keyword lists that drive domain classification and field-role
assignment live in YAML (see ``sarclean/config/column_rules.yaml``) so the
precedence order is explicit data rather than branching code.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml

from sarclean.types import Domain, RuleTableError

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "config" / "column_rules.yaml"

FIELD_ROLES = (
    "time_invariant",
    "date",
    "numeric",
    "numeric_exclude",
    "boolean",
    "ae_date",
    "ae_numeric",
    "ae_numeric_exclude",
)


def _compile(patterns: list[str], where: str) -> list[re.Pattern]:
    compiled = []
    for pattern in patterns or []:
        try:
            compiled.append(re.compile(str(pattern)))
        except re.error as e:
            raise RuleTableError(f"Invalid pattern {pattern!r} in {where}: {e}") from e
    return compiled


@dataclass
class DomainRule:
    """An ordered pattern rule assigning a domain.

    Attributes:
        domain: Domain assigned when any pattern matches
        patterns: Compiled regular expressions, searched anywhere in the label
    """
    domain: Domain
    patterns: list[re.Pattern] = field(default_factory=list)

    @property
    def name(self) -> str:
        return f"pattern:{self.domain.value}"

    def matches(self, label: str) -> bool:
        return any(p.search(label) for p in self.patterns)


@dataclass
class RuleTable:
    """Complete rule set for one raw export schema.

    Attributes:
        version: Rule table version, recorded in logs
        section_markers: Export artifact labels dropped before classification
        identifier_positions: Columns at or before this position are identifiers
        cognitive_digital_scores: Labels classified cognitive ahead of the
            positional rule
        domain_rules: Ordered pattern rules; first match wins
        default_domain: Domain used when nothing matches
        field_roles: Role name -> compiled patterns over final names
        redundant_columns: Patterns over final names dropped after renaming
    """
    version: str = "0"
    section_markers: list[str] = field(default_factory=list)
    identifier_positions: int = 12
    cognitive_digital_scores: list[str] = field(default_factory=list)
    domain_rules: list[DomainRule] = field(default_factory=list)
    default_domain: Domain = Domain.MEDICAL
    field_roles: dict[str, list[re.Pattern]] = field(default_factory=dict)
    redundant_columns: list[re.Pattern] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "RuleTable":
        """Build a rule table from a parsed YAML mapping."""
        if not isinstance(data, dict):
            raise RuleTableError("Rule table must be a mapping")

        domain_rules = []
        for i, entry in enumerate(data.get("domain_rules") or []):
            if "domain" not in entry:
                raise RuleTableError(f"domain_rules[{i}] has no 'domain'")
            try:
                domain = Domain(entry["domain"])
            except ValueError as e:
                raise RuleTableError(f"Unknown domain in domain_rules[{i}]: {entry['domain']}") from e
            domain_rules.append(
                DomainRule(domain=domain, patterns=_compile(entry.get("patterns"), f"domain_rules[{i}]"))
            )

        try:
            default_domain = Domain(data.get("default_domain", Domain.MEDICAL.value))
        except ValueError as e:
            raise RuleTableError(f"Unknown default_domain: {data.get('default_domain')}") from e

        roles = data.get("field_roles") or {}
        unknown = set(roles) - set(FIELD_ROLES)
        if unknown:
            raise RuleTableError(f"Unknown field roles: {sorted(unknown)}")
        field_roles = {role: _compile(roles.get(role), f"field_roles.{role}") for role in FIELD_ROLES}

        return cls(
            version=str(data.get("version", "0")),
            section_markers=[str(m) for m in data.get("section_markers") or []],
            identifier_positions=int(data.get("identifier_positions", 12)),
            cognitive_digital_scores=[str(s) for s in data.get("cognitive_digital_scores") or []],
            domain_rules=domain_rules,
            default_domain=default_domain,
            field_roles=field_roles,
            redundant_columns=_compile(data.get("redundant_columns"), "redundant_columns"),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RuleTable":
        """Load a rule table from a YAML file.

        Args:
            path: Path to the YAML rule table

        Returns:
            RuleTable instance
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Rule table not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        table = cls.from_dict(data)
        logger.info(
            f"Loaded rule table v{table.version} from {path.name}: "
            f"{len(table.domain_rules)} domain rules, "
            f"{len(table.section_markers)} section markers"
        )
        return table

    @classmethod
    def default(cls) -> "RuleTable":
        """Load the rule table shipped with the package."""
        return cls.from_yaml(DEFAULT_RULES_PATH)

    @property
    def rule_order(self) -> list[Domain]:
        """Domains of the pattern rules in evaluation order."""
        return [rule.domain for rule in self.domain_rules]

    def role_matches(self, role: str, name: str) -> bool:
        """Check whether a final column name matches a field role."""
        return any(p.search(name) for p in self.field_roles.get(role, []))

    def is_redundant(self, name: str) -> bool:
        return any(p.search(name) for p in self.redundant_columns)


def load_rule_table(source: Optional[Union[str, Path, dict, RuleTable]] = None) -> RuleTable:
    """Resolve a rule table from a path, a mapping, an instance, or the default."""
    if source is None:
        return RuleTable.default()
    if isinstance(source, RuleTable):
        return source
    if isinstance(source, dict):
        return RuleTable.from_dict(source)
    return RuleTable.from_yaml(source)
