"""Type coercion for text cells.

All parsers are vectorized and total: malformed text becomes missing and
never raises. Only a genuinely absent argument (``None`` instead of a
collection) is a precondition violation.

Parsing policies:
- numeric: leading run of digits with an optional decimal point
  (``"36/41"`` -> 36, ``"Score: 75"`` -> missing)
- date: ISO, then day/month/year, then month/day/year
- boolean: yes/true/1 and no/false/0, case-insensitive
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Union

import numpy as np
import pandas as pd

from sarclean.classification.rules import RuleTable
from sarclean.types import Domain, FieldType, InvalidInputError

logger = logging.getLogger(__name__)

NUMERIC_PATTERN = r"^([0-9]+\.?[0-9]*)"

# Order matters: day-first is tried before month-first
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y")

# A time of day after the date ("2024-01-15 10:30:00", "...T10:30Z") is ignored
TIME_SUFFIX_PATTERN = r"[T\s].*$"

# Export tokens that stand for an empty cell
MISSING_TOKENS = frozenset({"", "NA"})

TRUE_TOKENS = frozenset({"yes", "true", "1"})
FALSE_TOKENS = frozenset({"no", "false", "0"})

VISITS = "visits"
ADVERSE_EVENTS = "adverse_events"

ArrayLike = Union[pd.Series, Sequence, np.ndarray]


def _to_text(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if value is None or (np.ndim(value) == 0 and pd.isna(value)):
        return np.nan
    return str(value)


def _as_text(values: Any, what: str) -> pd.Series:
    if values is None:
        raise InvalidInputError(f"{what} input cannot be None")
    if isinstance(values, pd.Series):
        return values.astype(object).map(_to_text).astype(object)
    return pd.Series(list(values), dtype=object).map(_to_text).astype(object)


def _is_scalar(values: Any) -> bool:
    return isinstance(values, str) or np.ndim(values) == 0


def _scalar_or_series(values: Any, parse) -> Any:
    if values is not None and _is_scalar(values):
        return parse(pd.Series([values], dtype=object)).iloc[0]
    return parse(values)


def _is_missing_token(text: pd.Series) -> pd.Series:
    """True where a text cell is absent, blank or a missing-value token."""
    stripped = text.str.strip()
    return (text.isna() | stripped.isin(MISSING_TOKENS)).astype(bool)


def parse_numeric(values: Union[str, ArrayLike]) -> Union[float, pd.Series]:
    """Parse the leading number of each cell.

    Args:
        values: A single string or a collection of cells

    Returns:
        float for a scalar input, otherwise a float64 Series aligned with input
    """
    def _parse(vals):
        text = _as_text(vals, "Numeric")
        extracted = text.str.extract(NUMERIC_PATTERN, expand=False)
        return pd.to_numeric(extracted, errors="coerce").astype("float64")

    return _scalar_or_series(values, _parse)


def parse_date(values: Union[str, ArrayLike]) -> Union[pd.Timestamp, pd.Series]:
    """Parse dates trying each of DATE_FORMATS in order.

    An ambiguous ``"04/05/2025"`` is read day-first (4 May 2025). A trailing
    time of day is dropped, so ``"2024-01-15 10:30:00"`` is 15 January 2024.
    """
    def _parse(vals):
        text = _as_text(vals, "Date").str.strip().str.replace(TIME_SUFFIX_PATTERN, "", regex=True)
        result = pd.to_datetime(text, format=DATE_FORMATS[0], errors="coerce")
        for fmt in DATE_FORMATS[1:]:
            pending = result.isna() & text.notna()
            if not pending.any():
                break
            result.loc[pending] = pd.to_datetime(text[pending], format=fmt, errors="coerce").to_numpy()
        return result

    return _scalar_or_series(values, _parse)


def parse_boolean(values: Union[str, ArrayLike]) -> Any:
    """Parse yes/no style flags into a nullable boolean Series.

    Surrounding whitespace is ignored; anything unrecognised is missing.
    """
    def _parse(vals):
        text = _as_text(vals, "Boolean")
        lowered = text.str.strip().str.lower()
        result = pd.Series(pd.NA, index=text.index, dtype="boolean")
        result[lowered.isin(TRUE_TOKENS).to_numpy()] = True
        result[lowered.isin(FALSE_TOKENS).to_numpy()] = False
        return result

    if values is not None and _is_scalar(values):
        value = _parse(pd.Series([values], dtype=object)).iloc[0]
        return pd.NA if pd.isna(value) else bool(value)
    return _parse(values)


def clean_text(values: ArrayLike, blank_as_missing: bool = True) -> pd.Series:
    """Keep text as text; blank and ``"NA"`` cells become missing.

    With ``blank_as_missing=False`` those cells become ``""`` instead.
    """
    text = _as_text(values, "Text")
    empty = _is_missing_token(text)
    return text.mask(empty, np.nan if blank_as_missing else "")


_PARSERS = {
    FieldType.DATE: parse_date,
    FieldType.NUMERIC: parse_numeric,
    FieldType.BOOLEAN: parse_boolean,
}


def resolve_field_type(name: str, rules: RuleTable, table: str = VISITS) -> FieldType:
    """Decide the type of one column from its final name.

    Precedence: date > boolean > numeric > string. Identifier columns always
    use the visit patterns so the shared keys agree across both tables.
    """
    is_identifier = name.startswith(f"{Domain.IDENTIFIER.prefix}_")

    if table == ADVERSE_EVENTS and not is_identifier:
        if rules.role_matches("ae_date", name):
            return FieldType.DATE
        if rules.role_matches("ae_numeric", name) and not rules.role_matches("ae_numeric_exclude", name):
            return FieldType.NUMERIC
        return FieldType.STRING

    if rules.role_matches("date", name):
        return FieldType.DATE
    if rules.role_matches("boolean", name):
        return FieldType.BOOLEAN
    if rules.role_matches("numeric", name) and not rules.role_matches("numeric_exclude", name):
        return FieldType.NUMERIC
    return FieldType.STRING


def resolve_field_types(
    columns: Iterable[str],
    rules: RuleTable,
    table: str = VISITS,
) -> dict[str, FieldType]:
    """Resolve types for every column of a table once, up front."""
    if table not in (VISITS, ADVERSE_EVENTS):
        raise InvalidInputError(f"Unknown table kind: {table}")
    return {c: resolve_field_type(c, rules, table) for c in columns}


def coerce_column(values: pd.Series, field_type: FieldType, blank_as_missing: bool = True) -> pd.Series:
    if field_type == FieldType.STRING:
        return clean_text(values, blank_as_missing=blank_as_missing)
    return _PARSERS[field_type](values)


def coerce_table(
    df: pd.DataFrame,
    field_types: dict[str, FieldType],
    blank_as_missing: bool = True,
) -> pd.DataFrame:
    """Coerce every typed column of a table, returning a new DataFrame.

    Args:
        df: Table of text cells
        field_types: Column -> FieldType; columns not listed are left untouched
        blank_as_missing: Whether blank text cells become missing; identifier
            columns always treat blanks as missing

    Returns:
        New DataFrame with typed columns
    """
    if df is None:
        raise InvalidInputError("Table to coerce cannot be None")

    id_prefix = f"{Domain.IDENTIFIER.prefix}_"
    result = df.copy()
    counts = {t: 0 for t in FieldType}
    for column, field_type in field_types.items():
        if column not in result.columns:
            continue
        blank = blank_as_missing or column.startswith(id_prefix)
        result[column] = coerce_column(result[column], field_type, blank)
        counts[field_type] += 1

    logger.info(
        "Coerced " + ", ".join(f"{n} {t.value}" for t, n in counts.items()) + " columns"
    )
    return result


def unparseable_counts(
    original: pd.DataFrame,
    coerced: pd.DataFrame,
    field_types: dict[str, FieldType],
) -> dict[str, int]:
    """Count non-blank cells that a parser turned into missing, per column."""
    counts = {}
    for column, field_type in field_types.items():
        if field_type == FieldType.STRING or column not in original.columns:
            continue
        text = _as_text(original[column], "Text")
        non_blank = ~_is_missing_token(text)
        lost = int((non_blank & coerced[column].isna()).sum())
        if lost:
            counts[column] = lost
    return counts
