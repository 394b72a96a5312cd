"""Data I/O and table splitting for sarclean.

This package contains:
- loaders: reading raw audit exports as text
- splitter: column-wise split into visits and adverse events
- store: writing cleaned outputs and reading them back
"""

from sarclean.data.loaders import AuditExportLoader, load_audit_export
from sarclean.data.splitter import split_tables
from sarclean.data.store import CleanedDataStore, write_outputs

__all__ = [
    "AuditExportLoader",
    "load_audit_export",
    "split_tables",
    "CleanedDataStore",
    "write_outputs",
]
