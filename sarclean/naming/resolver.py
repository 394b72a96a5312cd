"""Final column-name resolution.

Combines classifier output with the normalized label and the domain prefix,
then disambiguates collisions deterministically in positional order.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Optional

import pandas as pd

from sarclean.types import ColumnMapping, Domain, InvalidInputError
from sarclean.naming.normalizer import normalize_name

logger = logging.getLogger(__name__)

DICTIONARY_COLUMNS = [
    "original_name",
    "position",
    "domain",
    "prefix",
    "cleaned_base",
    "candidate_name",
    "final_name",
    "matched_rule",
]


def candidate_name(domain: Domain, cleaned_base: str) -> str:
    """Build the unsuffixed name. An empty base yields ``"<prefix>_"``."""
    return f"{domain.prefix}_{cleaned_base}"


def resolve_names(
    entries: Sequence[tuple],
) -> list[ColumnMapping]:
    """Resolve final, globally unique column names for a schema.

    Within each group sharing a candidate name, members are ordered by
    position; the first keeps the candidate, later ones receive ``_v2``,
    ``_v3``, ... If a suffixed name is already taken by another column,
    the counter keeps increasing until the name is free.

    Args:
        entries: (original_name, position, domain) or
            (original_name, position, domain, matched_rule) tuples

    Returns:
        ColumnMapping list in the input order
    """
    if entries is None:
        raise InvalidInputError("Schema entries cannot be None")

    prepared = []
    for entry in entries:
        original_name, position, domain = entry[0], entry[1], entry[2]
        matched_rule = entry[3] if len(entry) > 3 else ""
        if not isinstance(domain, Domain):
            domain = Domain(domain)
        base = normalize_name(original_name)
        prepared.append((original_name, int(position), domain, base,
                         candidate_name(domain, base), matched_rule))

    groups: dict[str, list[int]] = defaultdict(list)
    for idx, item in enumerate(prepared):
        groups[item[4]].append(idx)

    # Unsuffixed names are reserved before any suffix is handed out
    taken = set(groups.keys())
    final_names: dict[int, str] = {}
    n_collisions = 0

    for name in sorted(groups, key=lambda n: min(prepared[i][1] for i in groups[n])):
        members = sorted(groups[name], key=lambda i: (prepared[i][1], i))
        final_names[members[0]] = name
        version = 1
        for idx in members[1:]:
            version += 1
            suffixed = f"{name}_v{version}"
            while suffixed in taken:
                version += 1
                suffixed = f"{name}_v{version}"
            taken.add(suffixed)
            final_names[idx] = suffixed
            n_collisions += 1

    if n_collisions:
        logger.info(f"Resolved {n_collisions} column name collisions with version suffixes")

    return [
        ColumnMapping(
            original_name=original_name,
            position=position,
            domain=domain,
            cleaned_base=base,
            candidate_name=cand,
            final_name=final_names[idx],
            matched_rule=matched_rule,
        )
        for idx, (original_name, position, domain, base, cand, matched_rule) in enumerate(prepared)
    ]


def mappings_to_frame(
    mappings: Sequence[ColumnMapping],
    extra: Optional[dict[str, dict]] = None,
) -> pd.DataFrame:
    """Build the dictionary table from column mappings.

    Args:
        mappings: Resolved column mappings
        extra: Optional ``{column: {final_name: value}}`` attributes to add

    Returns:
        DataFrame with one row per mapping
    """
    df = pd.DataFrame([m.to_dict() for m in mappings], columns=DICTIONARY_COLUMNS)
    for column, values in (extra or {}).items():
        df[column] = df["final_name"].map(values)
    return df
