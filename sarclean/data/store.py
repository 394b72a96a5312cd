"""Persistence of cleaned outputs.

Output layout of one run::

    <output_dir>/
        visits_data.csv
        adverse_events_data.csv
        data_dictionary_cleaned.csv
        summary_statistics.json
        quality_report.json

Files hold patient data and are written owner read/write only.
"""

import json
import logging
import os
from pathlib import Path
from typing import Union

import pandas as pd

from sarclean.coercion import parse_boolean
from sarclean.types import CleaningResult, Domain, FieldType

logger = logging.getLogger(__name__)

VISITS_FILE = "visits_data.csv"
ADVERSE_EVENTS_FILE = "adverse_events_data.csv"
DICTIONARY_FILE = "data_dictionary_cleaned.csv"
SUMMARY_FILE = "summary_statistics.json"
QUALITY_FILE = "quality_report.json"

OUTPUT_FILES = (VISITS_FILE, ADVERSE_EVENTS_FILE, DICTIONARY_FILE, SUMMARY_FILE, QUALITY_FILE)

DATE_FORMAT = "%Y-%m-%d"
FILE_MODE = 0o600


def _write_json(data: dict, path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)


def write_outputs(result: CleaningResult, output_dir: Union[str, Path]) -> dict[str, Path]:
    """Write every output table and report of a run.

    Args:
        result: Result of CleaningPipeline.run
        output_dir: Directory to write into; created if missing

    Returns:
        Mapping of file name -> written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {name: output_dir / name for name in OUTPUT_FILES}

    result.visits.to_csv(paths[VISITS_FILE], index=False, date_format=DATE_FORMAT)
    result.adverse_events.to_csv(paths[ADVERSE_EVENTS_FILE], index=False, date_format=DATE_FORMAT)
    result.dictionary.to_csv(paths[DICTIONARY_FILE], index=False)
    _write_json(result.summary.to_dict(), paths[SUMMARY_FILE])
    _write_json(result.quality.to_dict(), paths[QUALITY_FILE])

    for path in paths.values():
        os.chmod(path, FILE_MODE)

    logger.info(f"Wrote {len(paths)} output files to {output_dir}")
    return paths


def restore_types(df: pd.DataFrame, field_types: dict[str, str]) -> pd.DataFrame:
    """Re-apply dictionary field types to a table read back as text."""
    df = df.copy()
    for column in df.columns:
        field_type = field_types.get(column)
        if field_type == FieldType.DATE.value:
            df[column] = pd.to_datetime(df[column], format=DATE_FORMAT, errors="coerce")
        elif field_type == FieldType.NUMERIC.value:
            df[column] = pd.to_numeric(df[column], errors="coerce")
        elif field_type == FieldType.BOOLEAN.value:
            df[column] = parse_boolean(df[column])
    return df


class CleanedDataStore:
    """Read back the outputs of a run for downstream consumers.

    Tables come back with the types recorded in the dictionary, and are
    validated against the contract dashboards rely on.
    """

    def __init__(self, data_dir: Union[str, Path]):
        """Initialize the store.

        Args:
            data_dir: Directory holding the outputs of one run
        """
        self.data_dir = Path(data_dir)
        if not self.data_dir.is_dir():
            raise FileNotFoundError(f"Cleaned data directory not found: {self.data_dir}")

        for name in (VISITS_FILE, ADVERSE_EVENTS_FILE, DICTIONARY_FILE):
            if not (self.data_dir / name).exists():
                raise FileNotFoundError(f"Missing cleaned output: {self.data_dir / name}")

        self.dictionary = pd.read_csv(self.data_dir / DICTIONARY_FILE)
        self._validate_dictionary()

        field_types = {
            row.final_name: row.field_type
            for row in self.dictionary.itertuples(index=False)
            if isinstance(row.field_type, str)
        }
        self.visits = restore_types(
            pd.read_csv(self.data_dir / VISITS_FILE, dtype=str), field_types
        )
        self.adverse_events = restore_types(
            pd.read_csv(self.data_dir / ADVERSE_EVENTS_FILE, dtype=str), field_types
        )
        self._validate_tables()

        logger.info(
            f"Loaded cleaned data: {len(self.visits)} visits, "
            f"{len(self.adverse_events)} adverse-event rows"
        )

    def _validate_dictionary(self):
        required = ["final_name", "field_type"]
        missing = [c for c in required if c not in self.dictionary.columns]
        if missing:
            raise ValueError(f"Dictionary missing required columns: {missing}")

    def _validate_tables(self):
        for name, df in (("visits", self.visits), ("adverse_events", self.adverse_events)):
            if df.empty:
                raise ValueError(f"Cleaned {name} table is empty")
            if not any(str(c).startswith("id_") for c in df.columns):
                raise ValueError(f"Cleaned {name} table has no identifier columns")

        for column in self.columns_of_type(FieldType.DATE):
            if column in self.visits.columns and not pd.api.types.is_datetime64_any_dtype(
                self.visits[column]
            ):
                raise ValueError(f"Date column {column} did not load as dates")

        if "id_age" in self.visits.columns and not pd.api.types.is_numeric_dtype(
            self.visits["id_age"]
        ):
            raise ValueError("id_age did not load as numeric")

    def columns_of_type(self, field_type: FieldType) -> list[str]:
        mask = self.dictionary["field_type"] == field_type.value
        return self.dictionary.loc[mask, "final_name"].tolist()

    def domain_columns(self, prefix: str) -> list[str]:
        """Get visits columns belonging to one domain prefix.

        Raises:
            ValueError: If the prefix names no domain
        """
        domain = Domain.from_prefix(prefix)
        return [c for c in self.visits.columns if c.startswith(f"{domain.prefix}_")]

    @property
    def summary(self) -> dict:
        path = self.data_dir / SUMMARY_FILE
        if not path.exists():
            return {}
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    @property
    def quality(self) -> dict:
        path = self.data_dir / QUALITY_FILE
        if not path.exists():
            return {}
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
