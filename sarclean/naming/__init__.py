"""Column-name normalization and resolution."""

from sarclean.naming.normalizer import normalize_name, normalize_names
from sarclean.naming.resolver import (
    DICTIONARY_COLUMNS,
    candidate_name,
    mappings_to_frame,
    resolve_names,
)

__all__ = [
    "normalize_name",
    "normalize_names",
    "candidate_name",
    "resolve_names",
    "mappings_to_frame",
    "DICTIONARY_COLUMNS",
]
