"""Type definitions for pending row changes and their projection."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum, auto
from time import time
from typing import ClassVar, Literal, NamedTuple
from uuid import uuid4

from results import Namespace, ResultSet, RowKey, Value

type ChangeType = Literal["insert", "update", "delete"]


class MissingPrimaryKeyError(ValueError):
    """Raised when an update or delete cannot identify its row."""


class DeleteDisplay(StrEnum):
    """How rows pending deletion appear in a projected preview."""

    HIDDEN = auto()
    STRIKETHROUGH = auto()


def new_change_id() -> str:
    """Generate a unique change identifier."""
    return f"change_{uuid4().hex}"


@dataclass(kw_only=True)
class PendingChange:
    """Fields shared by every pending change."""

    kind: ClassVar[ChangeType]

    namespace: Namespace
    table: str
    id: str = field(default_factory=new_change_id)
    created_at: float = field(default_factory=time)

    def __post_init__(self) -> None:
        """Accept plain tuples for the namespace."""
        if not isinstance(self.namespace, Namespace):
            self.namespace = Namespace(*self.namespace)

    def targets(self, namespace: Namespace, table: str) -> bool:
        """Check whether this change applies to the given table."""
        return self.table == table and self.namespace == namespace


@dataclass(kw_only=True)
class Insert(PendingChange):
    """A row that does not exist in the database yet."""

    kind: ClassVar[ChangeType] = "insert"

    new_values: dict[str, Value] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Own a copy of the inserted values."""
        super().__post_init__()
        self.new_values = dict(self.new_values)


@dataclass(kw_only=True)
class Update(PendingChange):
    """New values for some columns of an existing row."""

    kind: ClassVar[ChangeType] = "update"

    primary_key: RowKey
    old_values: dict[str, Value] = field(default_factory=dict)
    new_values: dict[str, Value] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Own copies of the key and values."""
        super().__post_init__()
        self.primary_key = _row_key(self.primary_key)
        self.old_values = dict(self.old_values)
        self.new_values = dict(self.new_values)


@dataclass(kw_only=True)
class Delete(PendingChange):
    """An existing row to be removed."""

    kind: ClassVar[ChangeType] = "delete"

    primary_key: RowKey
    old_values: dict[str, Value] | None = None

    def __post_init__(self) -> None:
        """Own copies of the key and values."""
        super().__post_init__()
        self.primary_key = _row_key(self.primary_key)
        if self.old_values is not None:
            self.old_values = dict(self.old_values)


type Change = Insert | Update | Delete


def _row_key(value: Mapping[str, Value]) -> RowKey:
    return value if isinstance(value, RowKey) else RowKey(value)


@dataclass(frozen=True)
class RowFlags:
    """Display metadata for one row of a projected preview."""

    is_inserted: bool = False
    is_modified: bool = False
    is_deleted: bool = False
    modified_columns: frozenset[str] = frozenset()
    change: Change | None = None


@dataclass(frozen=True)
class OverlayStats:
    """Counts of changes applied by a projection."""

    inserted_rows: int = 0
    modified_rows: int = 0
    deleted_rows: int = 0
    hidden_rows: int = 0


@dataclass(frozen=True)
class Overlay:
    """A preview result set with per-row metadata, keyed by output row index."""

    result: ResultSet
    row_metadata: Mapping[int, RowFlags] = field(default_factory=dict)
    stats: OverlayStats = OverlayStats()

    def flags(self, row_index: int) -> RowFlags | None:
        """Return metadata for a row, None when the row is untouched."""
        return self.row_metadata.get(row_index)

    def is_cell_modified(self, row_index: int, column_name: str) -> bool:
        """Check whether a cell shows a pending value."""
        flags = self.row_metadata.get(row_index)
        return flags is not None and column_name in flags.modified_columns


class ColumnChange(NamedTuple):
    """Old and new value of a single column touched by a change."""

    column: str
    old: Value
    new: Value
