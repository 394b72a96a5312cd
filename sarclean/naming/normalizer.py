"""Raw column label normalization.

Turns free-text export labels such as ``"15. Number of education years - 230"``
into lowercase snake_case tokens (``"number_of_education_years"``).
The transform is pure and idempotent.
"""

import re
from collections.abc import Iterable
from typing import Any

import pandas as pd

from sarclean.types import InvalidInputError

_TRAILING_REFERENCE = re.compile(r" - \d+$")
_QUESTION_NUMBER = re.compile(r"^\d+\.\s+")
_SUBFIELD_MARKER = re.compile(r" - \d+\.")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_REPEATED_UNDERSCORE = re.compile(r"_{2,}")


def _is_absent(label: Any) -> bool:
    if label is None:
        return True
    return isinstance(label, float) and pd.isna(label)


def normalize_name(label: str) -> str:
    """Normalize one raw column label.

    Steps, each applied to the previous output:
    1. strip a trailing " - <digits>" reference code
    2. strip a leading "<digits>. " question number
    3. newlines -> spaces
    4. strip the first embedded " - <digits>." sub-field marker
    5. squish whitespace
    6. lowercase
    7. non-alphanumeric runs -> "_"
    8. trim underscores
    9. collapse repeated underscores

    Args:
        label: Raw column label. Empty string is valid.

    Returns:
        Normalized token (possibly empty)

    Raises:
        InvalidInputError: If label is None or NaN
    """
    if _is_absent(label):
        raise InvalidInputError("Column label cannot be None")

    name = str(label)
    name = _TRAILING_REFERENCE.sub("", name, count=1)
    name = _QUESTION_NUMBER.sub("", name, count=1)
    name = name.replace("\n", " ")
    name = _SUBFIELD_MARKER.sub("", name, count=1)
    name = " ".join(name.split())
    name = name.lower()
    name = _NON_ALNUM.sub("_", name)
    name = name.strip("_")
    return _REPEATED_UNDERSCORE.sub("_", name)


def normalize_names(labels: Iterable[str]) -> list[str]:
    """Normalize a sequence of labels, preserving order and length."""
    if labels is None:
        raise InvalidInputError("Column labels cannot be None")
    if isinstance(labels, str):
        raise InvalidInputError("Expected a sequence of labels, got a single string")
    return [normalize_name(label) for label in labels]
