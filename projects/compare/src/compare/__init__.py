"""Key-based comparison of tabular result sets."""

from compare.export import (
    ABSENT,
    DiffCell,
    diff_cells,
    diff_to_csv,
    diff_to_html,
    diff_to_json,
    display_cell,
    export_columns,
)
from compare.index import RowIndex
from compare.main import (
    AlignedColumn,
    DiffRow,
    DiffStats,
    DiffStatus,
    InvalidKeyError,
    align_columns,
    common_columns,
    compare,
    diff_stats,
    resolve_key,
)

__all__ = [
    "ABSENT",
    "AlignedColumn",
    "DiffCell",
    "DiffRow",
    "DiffStats",
    "DiffStatus",
    "InvalidKeyError",
    "RowIndex",
    "align_columns",
    "common_columns",
    "compare",
    "diff_cells",
    "diff_stats",
    "diff_to_csv",
    "diff_to_html",
    "diff_to_json",
    "display_cell",
    "export_columns",
    "resolve_key",
]
