"""Projection of pending changes onto a fetched result set."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from results import Namespace, ResultSet, Row, RowKey

from overlay.types import (
    Change,
    ColumnChange,
    Delete,
    DeleteDisplay,
    Insert,
    Overlay,
    OverlayStats,
    RowFlags,
    Update,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def _relevant(
    changes: Iterable[Change],
    namespace: Namespace | None,
    table: str | None,
) -> list[Change]:
    return [
        change
        for change in changes
        if (table is None or change.table == table)
        and (namespace is None or change.namespace == namespace)
    ]


def _overlay_updates(
    base: ResultSet,
    row: Row,
    updates: Sequence[Update],
) -> tuple[Row, frozenset[str]]:
    values = list(row)
    modified: set[str] = set()
    for update in updates:
        for name, value in update.new_values.items():
            if (position := base.position(name)) is not None:
                values[position] = value
                modified.add(name)
    return tuple(values), frozenset(modified)


def project(
    base: ResultSet,
    changes: Iterable[Change],
    primary_key_columns: Sequence[str],
    *,
    namespace: Namespace | None = None,
    table: str | None = None,
    delete_display: DeleteDisplay = DeleteDisplay.STRIKETHROUGH,
) -> Overlay:
    """Build a preview of a result set with pending changes applied.

    Base rows keep their order. Rows pending deletion are dropped or flagged
    depending on ``delete_display``, rows pending an update show the new
    values, and pending inserts are appended after the base rows. Rows are
    matched on ``primary_key_columns``; when those are not all present in
    the base columns only inserts can be shown.

    The base result set and the changes are left untouched, so repeated
    calls with the same inputs give equal output.
    """
    changes = _relevant(changes, namespace, table)
    key_columns = tuple(primary_key_columns)
    matchable = bool(key_columns) and all(base.has_column(c) for c in key_columns)

    inserts = [change for change in changes if isinstance(change, Insert)]
    updates: dict[RowKey, list[Update]] = {}
    deletes: dict[RowKey, Delete] = {}

    if matchable:
        for change in changes:
            match change:
                case Update():
                    if (key := change.primary_key.restrict(key_columns)) is not None:
                        updates.setdefault(key, []).append(change)
                case Delete():
                    if (key := change.primary_key.restrict(key_columns)) is not None:
                        deletes.setdefault(key, change)

    rows: list[Row] = []
    metadata: dict[int, RowFlags] = {}
    hidden = 0

    for row in base.rows:
        key = base.row_key(row, key_columns) if matchable else None

        if key is not None and (delete := deletes.get(key)):
            if delete_display == DeleteDisplay.HIDDEN:
                hidden += 1
                continue
            metadata[len(rows)] = RowFlags(is_deleted=True, change=replace(delete))
            rows.append(row)
            continue

        if key is not None and (pending := updates.get(key)):
            values, modified = _overlay_updates(base, row, pending)
            metadata[len(rows)] = RowFlags(
                is_modified=True,
                modified_columns=modified,
                change=replace(pending[-1]),
            )
            rows.append(values)
            continue

        rows.append(row)

    for insert in inserts:
        metadata[len(rows)] = RowFlags(
            is_inserted=True,
            modified_columns=frozenset(
                name for name in insert.new_values if base.has_column(name)
            ),
            change=replace(insert),
        )
        rows.append(tuple(insert.new_values.get(name) for name in base.column_names))

    return Overlay(
        result=ResultSet(
            columns=base.columns,
            rows=tuple(rows),
            affected_count=base.affected_count,
            execution_time=base.execution_time,
        ),
        row_metadata=metadata,
        stats=OverlayStats(
            inserted_rows=len(inserts),
            modified_rows=sum(isinstance(c, Update) for c in changes),
            deleted_rows=sum(isinstance(c, Delete) for c in changes),
            hidden_rows=hidden,
        ),
    )


def change_diff(change: Change) -> list[ColumnChange]:
    """List the columns a change touches with their old and new values."""
    match change:
        case Insert():
            return [
                ColumnChange(column, None, value)
                for column, value in change.new_values.items()
            ]
        case Update():
            return [
                ColumnChange(column, change.old_values.get(column), value)
                for column, value in change.new_values.items()
            ]
        case Delete():
            return [
                ColumnChange(column, value, None)
                for column, value in (change.old_values or {}).items()
            ]
