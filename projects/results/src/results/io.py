"""JSON representation of result sets."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from typing import Any, NotRequired, TypedDict

from results.types import Column, ResultSet


class ColumnData(TypedDict):
    """Serialized column."""

    name: str
    declared_type: NotRequired[str]


class ResultSetData(TypedDict):
    """Serialized result set.

    Rows are either positional lists or objects keyed by column name.
    """

    columns: list[ColumnData | str]
    rows: list[list[Any] | dict[str, Any]]
    affected_count: NotRequired[int | None]
    execution_time_ms: NotRequired[float | None]


def _column(data: ColumnData | str) -> Column:
    if isinstance(data, str):
        return Column(data)
    return Column(data["name"], data.get("declared_type", ""))


def result_set_from_data(data: ResultSetData) -> ResultSet:
    """Build a result set from its JSON-compatible form."""
    columns = tuple(_column(column) for column in data.get("columns", []))
    names = tuple(column.name for column in columns)

    rows = tuple(
        tuple(row.get(name) for name in names) if isinstance(row, dict) else row
        for row in data.get("rows", [])
    )

    execution_time_ms = data.get("execution_time_ms")
    return ResultSet(
        columns=columns,
        rows=rows,
        affected_count=data.get("affected_count"),
        execution_time=(
            timedelta(milliseconds=execution_time_ms)
            if execution_time_ms is not None
            else None
        ),
    )


def result_set_to_data(result: ResultSet) -> ResultSetData:
    """Convert a result set to its JSON-compatible form."""
    return {
        "columns": [
            {"name": column.name, "declared_type": column.declared_type}
            for column in result.columns
        ],
        "rows": [list(row) for row in result.rows],
        "affected_count": result.affected_count,
        "execution_time_ms": (
            result.execution_time / timedelta(milliseconds=1)
            if result.execution_time is not None
            else None
        ),
    }


def result_set_from_json(location: Path) -> ResultSet:
    """Load a result set from a JSON file."""
    with location.open(encoding="utf-8") as f:
        return result_set_from_data(json.load(f))


def result_set_to_json(result: ResultSet) -> str:
    """Serialize a result set to a JSON string."""
    return json.dumps(result_set_to_data(result), ensure_ascii=False)
