"""Type definitions for tabular query results."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import NamedTuple

from results.values import Value, freeze


class MalformedResultSetError(ValueError):
    """Raised when rows and columns of a result set do not line up."""


class Namespace(NamedTuple):
    """A database and an optional schema grouping tables."""

    database: str
    schema: str | None = None

    def display_name(self, table: str) -> str:
        """Return ``schema.table`` when a schema is set, else the bare table."""
        return f"{self.schema}.{table}" if self.schema else table


class Column(NamedTuple):
    """A named, typed column of a result set."""

    name: str
    declared_type: str = ""


type Row = tuple[Value, ...]


@dataclass(frozen=True)
class ResultSet:
    """Rows returned by a single fetch, positionally aligned to the columns."""

    columns: tuple[Column, ...]
    rows: tuple[Row, ...] = ()
    affected_count: int | None = None
    execution_time: timedelta | None = None
    _positions: dict[str, int] = field(
        init=False,
        repr=False,
        compare=False,
        hash=False,
    )

    def __post_init__(self) -> None:
        """Normalise containers and check row width against the column list."""
        columns = tuple(
            column if isinstance(column, Column) else Column(*column)
            for column in self.columns
        )
        rows = tuple(tuple(row) for row in self.rows)

        positions: dict[str, int] = {}
        for index, column in enumerate(columns):
            if column.name in positions:
                msg = f"Duplicate column name: {column.name}"
                raise MalformedResultSetError(msg)
            positions[column.name] = index

        for index, row in enumerate(rows):
            if len(row) != len(columns):
                msg = (
                    f"Row {index} has {len(row)} values "
                    f"but the result set declares {len(columns)} columns"
                )
                raise MalformedResultSetError(msg)

        object.__setattr__(self, "columns", columns)
        object.__setattr__(self, "rows", rows)
        object.__setattr__(self, "_positions", positions)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Value]],
        columns: Iterable[Column | str] | None = None,
    ) -> ResultSet:
        """Build a result set from dictionaries, missing fields become null.

        Without an explicit column list, columns are taken in first-seen order
        across all records.
        """
        records = list(records)
        if columns is None:
            names = dict.fromkeys(name for record in records for name in record)
            columns = names.keys()
        resolved = tuple(
            column if isinstance(column, Column) else Column(column)
            for column in columns
        )
        return cls(
            columns=resolved,
            rows=tuple(
                tuple(record.get(column.name) for column in resolved)
                for record in records
            ),
        )

    @property
    def column_names(self) -> tuple[str, ...]:
        """Return column names in declared order."""
        return tuple(column.name for column in self.columns)

    def position(self, column_name: str) -> int | None:
        """Return the index of a column, or None if it is not declared."""
        return self._positions.get(column_name)

    def has_column(self, column_name: str) -> bool:
        """Check whether a column is declared."""
        return column_name in self._positions

    def value(self, row: Row, column_name: str) -> Value:
        """Return the value of a named column in one of this set's rows."""
        return row[self._positions[column_name]]

    def record(self, row: Row) -> dict[str, Value]:
        """Convert a row to a column name keyed dictionary."""
        return dict(zip(self.column_names, row, strict=True))

    def records(self) -> Iterator[dict[str, Value]]:
        """Iterate over rows as dictionaries."""
        return (self.record(row) for row in self.rows)

    def row_key(self, row: Row, key_columns: Sequence[str]) -> RowKey:
        """Build the key of a row from the given columns."""
        return RowKey({name: self.value(row, name) for name in key_columns})


class RowKey(Mapping[str, Value]):
    """Structural identity of a row, built from named column values.

    Two keys are equal when they cover the same columns and every pair of
    values is deep-equal.
    """

    __slots__ = ("_frozen", "_values")

    def __init__(self, values: Mapping[str, Value] | None = None) -> None:
        """Capture the given column values."""
        self._values: dict[str, Value] = dict(values or {})
        self._frozen = frozenset(
            (name, freeze(value)) for name, value in self._values.items()
        )

    def __getitem__(self, key: str) -> Value:
        """Return the value of a key column."""
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        """Iterate over key column names."""
        return iter(self._values)

    def __len__(self) -> int:
        """Return the number of key columns."""
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        """Compare structurally with another key."""
        if isinstance(other, RowKey):
            return self._frozen == other._frozen
        return NotImplemented

    def __hash__(self) -> int:
        """Hash consistently with structural equality."""
        return hash(self._frozen)

    def __repr__(self) -> str:
        """Represent the key by its column values."""
        return f"RowKey({self._values!r})"

    def restrict(self, columns: Iterable[str]) -> RowKey | None:
        """Return the key narrowed to the given columns, None if any is missing."""
        columns = tuple(columns)
        if not all(column in self._values for column in columns):
            return None
        return RowKey({column: self._values[column] for column in columns})

    def matches(self, values: Mapping[str, Value]) -> bool:
        """Check whether a set of column values carries this key."""
        return bool(self._values) and all(
            name in values and freeze(values[name]) == frozen
            for name, frozen in self._frozen
        )
