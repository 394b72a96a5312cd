"""Column-wise split of the renamed export into visits and adverse events."""

import logging

import pandas as pd

from sarclean.types import Domain, InvalidInputError

logger = logging.getLogger(__name__)

AE_PREFIX = f"{Domain.ADVERSE_EVENT.prefix}_"
ID_PREFIX = f"{Domain.IDENTIFIER.prefix}_"


def adverse_event_columns(columns) -> list[str]:
    return [c for c in columns if str(c).startswith(AE_PREFIX)]


def identifier_columns(columns) -> list[str]:
    return [c for c in columns if str(c).startswith(ID_PREFIX)]


def split_tables(renamed: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Partition a renamed table into visits and adverse-event tables.

    The split is column-wise: both outputs keep every input row. Visits get
    all non ``ae_`` columns; adverse events get ``id_`` plus ``ae_`` columns.

    Args:
        renamed: Table whose columns carry final, prefixed names

    Returns:
        (visits, adverse_events) as new DataFrames
    """
    if renamed is None:
        raise InvalidInputError("Renamed table cannot be None")
    if renamed.columns.duplicated().any():
        dupes = renamed.columns[renamed.columns.duplicated()].tolist()
        raise InvalidInputError(f"Renamed table has duplicate column names: {dupes}")

    ae_cols = adverse_event_columns(renamed.columns)
    ae_set = set(ae_cols)
    visit_cols = [c for c in renamed.columns if c not in ae_set]
    id_cols = identifier_columns(renamed.columns)

    visits = renamed.loc[:, visit_cols].copy()
    adverse_events = renamed.loc[:, id_cols + ae_cols].copy()

    logger.info(
        f"Split {len(renamed)} rows: visits {visits.shape[1]} columns, "
        f"adverse events {len(ae_cols)} columns (+{len(id_cols)} identifiers)"
    )
    return visits, adverse_events
