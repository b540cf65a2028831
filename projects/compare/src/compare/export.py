"""Rendering of diffs as CSV, JSON and HTML reports."""

import csv
import json
from collections.abc import Sequence
from io import StringIO
from pathlib import Path
from typing import Any, NamedTuple

from jinja2 import Environment, FileSystemLoader, select_autoescape
from results import ResultSet, Value, format_value

from compare.main import AlignedColumn, DiffRow, DiffStatus, align_columns, diff_stats

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Shown for a cell whose column does not exist on that side
ABSENT = "(absent)"


class DiffCell(NamedTuple):
    """Old and new value of one exported column of a diff row."""

    old: Value
    new: Value
    changed: bool
    in_left: bool = True
    in_right: bool = True

    def old_text(self) -> str:
        """Display the old value, or the absent marker."""
        return format_value(self.old) if self.in_left else ABSENT

    def new_text(self) -> str:
        """Display the new value, or the absent marker."""
        return format_value(self.new) if self.in_right else ABSENT


def export_columns(left: ResultSet, right: ResultSet) -> tuple[AlignedColumn, ...]:
    """Columns shown in exports: every column of either side."""
    return align_columns(left, right)


def diff_cells(row: DiffRow, columns: Sequence[AlignedColumn]) -> list[DiffCell]:
    """Return the cell of every exported column of a diff row."""
    return [
        DiffCell(
            old=column.left_value(row.left) if row.left is not None else None,
            new=column.right_value(row.right) if row.right is not None else None,
            changed=row.status in (DiffStatus.ADDED, DiffStatus.REMOVED)
            or column.name in row.changed_columns,
            in_left=column.left is not None,
            in_right=column.right is not None,
        )
        for column in columns
    ]


def display_cell(status: DiffStatus, cell: DiffCell) -> str:
    """Render a cell as one string, ``old → new`` when it was modified."""
    if status == DiffStatus.MODIFIED and cell.changed:
        return f"{cell.old_text()} → {cell.new_text()}"
    if status == DiffStatus.ADDED:
        return cell.new_text()
    return cell.old_text()


def diff_to_csv(rows: Sequence[DiffRow], left: ResultSet, right: ResultSet) -> str:
    """Export a diff as CSV with a leading ``_status`` column."""
    columns = export_columns(left, right)
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(["_status", *(column.name for column in columns)])

    for row in rows:
        writer.writerow(
            [
                row.status,
                *(display_cell(row.status, cell) for cell in diff_cells(row, columns)),
            ],
        )

    return output.getvalue()


def _side(column: AlignedColumn) -> str:
    if column.shared:
        return "both"
    return "left" if column.left is not None else "right"


def _json_row(row: DiffRow, columns: Sequence[AlignedColumn]) -> dict[str, Any]:
    data: dict[str, Any] = {"_status": str(row.status), "_key": dict(row.key)}
    for column, cell in zip(columns, diff_cells(row, columns), strict=True):
        if row.status == DiffStatus.MODIFIED and cell.changed:
            data[column.name] = {"old": cell.old, "new": cell.new}
        elif row.status == DiffStatus.ADDED:
            data[column.name] = cell.new
        else:
            data[column.name] = cell.old
    return data


def diff_to_json(rows: Sequence[DiffRow], left: ResultSet, right: ResultSet) -> str:
    """Export a diff as JSON with columns, statistics and per-row values.

    Each column names the side it exists on: ``both``, ``left`` or ``right``.
    """
    columns = export_columns(left, right)
    stats = diff_stats(rows)
    return json.dumps(
        {
            "columns": [
                {
                    "name": column.name,
                    "type": column.declared_type,
                    "side": _side(column),
                }
                for column in columns
            ],
            "stats": {
                "unchanged": stats.unchanged,
                "added": stats.added,
                "removed": stats.removed,
                "modified": stats.modified,
                "total": stats.total,
            },
            "rows": [_json_row(row, columns) for row in rows],
        },
        indent=2,
        ensure_ascii=False,
    )


def diff_to_html(
    rows: Sequence[DiffRow],
    left: ResultSet,
    right: ResultSet,
    title: str = "Result Set Comparison",
) -> str:
    """Generate an HTML report for a diff."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template("report.html")

    columns = export_columns(left, right)
    return template.render(
        title=title,
        columns=columns,
        stats=diff_stats(rows),
        rows=[(row, diff_cells(row, columns)) for row in rows],
    )
