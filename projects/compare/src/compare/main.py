"""Key-based comparison of two result sets."""

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import StrEnum, auto
from logging import getLogger
from typing import NamedTuple

from results import Column, ResultSet, Row, RowKey, Value, values_equal

from compare.index import RowIndex

logger = getLogger(__name__)


class InvalidKeyError(ValueError):
    """Raised when key columns are not shared by both result sets."""

    def __init__(self, missing: Iterable[str]) -> None:
        """Record the key columns absent from either side."""
        self.missing = tuple(missing)
        super().__init__(
            f"Key columns not present in both result sets: {', '.join(self.missing)}",
        )


class DiffStatus(StrEnum):
    """Classification of a row across two result sets."""

    ADDED = auto()
    REMOVED = auto()
    MODIFIED = auto()
    UNCHANGED = auto()


class AlignedColumn(NamedTuple):
    """A column of the diff with its position on each side, None when absent."""

    name: str
    declared_type: str = ""
    left: int | None = None
    right: int | None = None

    @property
    def shared(self) -> bool:
        """Whether both sides carry the column."""
        return self.left is not None and self.right is not None

    def left_value(self, row: Row) -> Value:
        """Return the column's value in a left row, null when absent."""
        return row[self.left] if self.left is not None else None

    def right_value(self, row: Row) -> Value:
        """Return the column's value in a right row, null when absent."""
        return row[self.right] if self.right is not None else None


@dataclass(frozen=True)
class DiffRow:
    """A row matched (or not) across the left and right result sets."""

    status: DiffStatus
    key: RowKey
    left: Row | None = None
    right: Row | None = None
    changed_columns: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class DiffStats:
    """Row counts per status."""

    unchanged: int = 0
    added: int = 0
    removed: int = 0
    modified: int = 0

    @property
    def total(self) -> int:
        """Total number of classified rows."""
        return self.unchanged + self.added + self.removed + self.modified


def common_columns(left: ResultSet, right: ResultSet) -> tuple[Column, ...]:
    """Return right-side columns whose name also exists on the left."""
    return tuple(column for column in right.columns if left.has_column(column.name))


def align_columns(left: ResultSet, right: ResultSet) -> tuple[AlignedColumn, ...]:
    """Pair up the columns of two result sets.

    Columns are paired by name: shared columns in right-side order, then
    columns found only on the left, then columns found only on the right.
    When no name is shared, columns are paired by position and take the
    left-side name; extra columns of the wider side stay unpaired.
    """
    if common := common_columns(left, right):
        return (
            *(
                AlignedColumn(
                    column.name,
                    column.declared_type,
                    left.position(column.name),
                    right.position(column.name),
                )
                for column in common
            ),
            *(
                AlignedColumn(column.name, column.declared_type, left=index)
                for index, column in enumerate(left.columns)
                if not right.has_column(column.name)
            ),
            *(
                AlignedColumn(column.name, column.declared_type, right=index)
                for index, column in enumerate(right.columns)
                if not left.has_column(column.name)
            ),
        )

    width = len(right.columns)
    return (
        *(
            AlignedColumn(
                column.name,
                column.declared_type,
                left=index,
                right=index if index < width else None,
            )
            for index, column in enumerate(left.columns)
        ),
        *(
            AlignedColumn(column.name, column.declared_type, right=index)
            for index, column in enumerate(right.columns)
            if index >= len(left.columns)
        ),
    )


def resolve_key(
    left: ResultSet,
    right: ResultSet,
    key_columns: Sequence[str] | None = None,
) -> tuple[str, ...]:
    """Determine the columns rows are matched on.

    Without explicit key columns every shared column is part of the key,
    which cannot tell true duplicate rows apart. Without any shared column
    rows are matched on the columns paired by position, named as on the left.
    """
    if not key_columns:
        if common := common_columns(left, right):
            return tuple(column.name for column in common)
        width = min(len(left.columns), len(right.columns))
        return left.column_names[:width]

    if missing := [
        name
        for name in key_columns
        if not (left.has_column(name) and right.has_column(name))
    ]:
        raise InvalidKeyError(missing)

    return tuple(key_columns)


def key_function(
    columns: Sequence[AlignedColumn],
    value: Callable[[AlignedColumn, Row], Value],
) -> Callable[[Row], RowKey]:
    """Build the row key function of one side for the given key columns."""
    return lambda row: RowKey({column.name: value(column, row) for column in columns})


def changed_columns(
    columns: Iterable[AlignedColumn],
    left_row: Row,
    right_row: Row,
) -> frozenset[str]:
    """Return columns that differ between two matched rows.

    A column differs when it exists on one side only, or when its values are
    not deep-equal.
    """
    return frozenset(
        column.name
        for column in columns
        if not column.shared
        or not values_equal(column.left_value(left_row), column.right_value(right_row))
    )


def compare_rows(
    left: ResultSet,
    right: ResultSet,
    columns: Sequence[AlignedColumn],
    key: Sequence[AlignedColumn],
) -> Iterator[DiffRow]:
    """Match left rows against an index of right rows, then emit additions."""
    left_index = RowIndex(left.rows, key_function(key, AlignedColumn.left_value))
    right_index = RowIndex(right.rows, key_function(key, AlignedColumn.right_value))

    for row_key, left_row in left_index:
        if (right_row := right_index.pop(row_key)) is None:
            yield DiffRow(DiffStatus.REMOVED, row_key, left=left_row)
            continue

        changed = changed_columns(columns, left_row, right_row)
        yield DiffRow(
            DiffStatus.MODIFIED if changed else DiffStatus.UNCHANGED,
            row_key,
            left=left_row,
            right=right_row,
            changed_columns=changed,
        )

    for row_key, right_row in right_index:
        yield DiffRow(DiffStatus.ADDED, row_key, right=right_row)


def compare(
    left: ResultSet,
    right: ResultSet,
    key_columns: Sequence[str] | None = None,
) -> list[DiffRow]:
    """Classify every row of two result sets as added, removed or changed.

    Removed, modified and unchanged rows follow left-side order; added rows
    follow, in right-side order.
    """
    names = resolve_key(left, right, key_columns)
    columns = align_columns(left, right)
    by_name = {column.name: column for column in columns}
    logger.debug("Comparing result sets on key %s", names)
    return list(compare_rows(left, right, columns, [by_name[name] for name in names]))


def diff_stats(rows: Iterable[DiffRow]) -> DiffStats:
    """Count diff rows per status."""
    counts = dict.fromkeys(DiffStatus, 0)
    for row in rows:
        counts[row.status] += 1

    return DiffStats(
        unchanged=counts[DiffStatus.UNCHANGED],
        added=counts[DiffStatus.ADDED],
        removed=counts[DiffStatus.REMOVED],
        modified=counts[DiffStatus.MODIFIED],
    )
