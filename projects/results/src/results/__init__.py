"""Tabular result model shared by the diff and overlay engines."""

from results.io import (
    result_set_from_data,
    result_set_from_json,
    result_set_to_data,
    result_set_to_json,
)
from results.types import (
    Column,
    MalformedResultSetError,
    Namespace,
    ResultSet,
    Row,
    RowKey,
)
from results.values import Value, canonical, format_value, freeze, values_equal

__all__ = [
    "Column",
    "MalformedResultSetError",
    "Namespace",
    "ResultSet",
    "Row",
    "RowKey",
    "Value",
    "canonical",
    "format_value",
    "freeze",
    "result_set_from_data",
    "result_set_from_json",
    "result_set_to_data",
    "result_set_to_json",
    "values_equal",
]
