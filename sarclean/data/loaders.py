"""Loader for raw audit exports.

The export is a CSV whose header row holds the form's question labels.
Labels are not unique (repeated questions share a label), so the header is
read as a plain data row and assigned verbatim rather than letting the CSV
reader de-duplicate it.
"""

import logging
from pathlib import Path
from typing import Union

import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_MB = 100.0


class AuditExportLoader:
    """Load a raw audit export with every cell as text.

    Example:
        >>> loader = AuditExportLoader("data/raw/audit_export.csv")
        >>> raw = loader.load()
        >>> loader.n_duplicate_labels
    """

    def __init__(self, path: Union[str, Path], max_size_mb: float = DEFAULT_MAX_SIZE_MB):
        """Initialize the loader.

        Args:
            path: Path to the raw export CSV
            max_size_mb: Largest file size accepted, in megabytes
        """
        self.path = Path(path)
        self.max_size_mb = max_size_mb

        if not self.path.exists():
            raise FileNotFoundError(f"Raw export not found: {self.path}")

        size_mb = self.path.stat().st_size / (1024 * 1024)
        if size_mb > self.max_size_mb:
            raise ValueError(
                f"Raw export is {size_mb:.1f} MB, larger than the {self.max_size_mb:g} MB limit"
            )
        self.size_mb = size_mb
        self._df = None

    def load(self) -> pd.DataFrame:
        """Read the export.

        Returns:
            DataFrame of str cells; blank cells are ``""`` and the columns
            are the header labels exactly as exported
        """
        if self._df is not None:
            return self._df

        table = pd.read_csv(
            self.path,
            header=None,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
        )
        if table.empty:
            raise ValueError(f"Raw export has no header row: {self.path}")

        labels = table.iloc[0].tolist()
        df = table.iloc[1:].reset_index(drop=True)
        df.columns = labels

        self._df = df
        logger.info(
            f"Loaded raw export {self.path.name}: {len(df)} rows x {df.shape[1]} columns "
            f"({self.size_mb:.2f} MB, {self.n_duplicate_labels} repeated labels)"
        )
        return df

    @property
    def labels(self) -> list[str]:
        return list(self.load().columns)

    @property
    def n_duplicate_labels(self) -> int:
        if self._df is None:
            return 0
        return int(pd.Index(self._df.columns).duplicated().sum())

    def __len__(self) -> int:
        return len(self.load())


def load_audit_export(path: Union[str, Path], max_size_mb: float = DEFAULT_MAX_SIZE_MB) -> pd.DataFrame:
    """Convenience wrapper around AuditExportLoader."""
    return AuditExportLoader(path, max_size_mb=max_size_mb).load()
