"""Ordered log of pending changes with merge-on-record semantics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from logging import getLogger
from time import time
from typing import TYPE_CHECKING

from results import Namespace, RowKey

from overlay.types import (
    Change,
    ChangeType,
    Delete,
    Insert,
    MissingPrimaryKeyError,
    Update,
    new_change_id,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

logger = getLogger(__name__)

type TableRef = tuple[Namespace, str]
type RowRef = tuple[Namespace, str, RowKey]


@dataclass
class ChangeGroup:
    """Pending changes of a single table."""

    namespace: Namespace
    table: str
    changes: list[Change] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Return ``schema.table`` or the bare table name."""
        return self.namespace.display_name(self.table)

    @property
    def counts(self) -> Counter[ChangeType]:
        """Number of changes per change type."""
        return Counter(change.kind for change in self.changes)

    @property
    def last_touched(self) -> float:
        """Timestamp of the most recently recorded change."""
        return max(change.created_at for change in self.changes)


def check_primary_key(change: Update | Delete, key_columns: Sequence[str] = ()) -> None:
    """Ensure a change carries enough columns to identify its row."""
    if not change.primary_key:
        msg = (
            f"{change.kind.capitalize()} on "
            f"{change.namespace.display_name(change.table)} has no primary key"
        )
        raise MissingPrimaryKeyError(msg)

    if missing := [name for name in key_columns if name not in change.primary_key]:
        msg = (
            f"{change.kind.capitalize()} on "
            f"{change.namespace.display_name(change.table)} "
            f"is missing primary key columns: {', '.join(missing)}"
        )
        raise MissingPrimaryKeyError(msg)


class ChangeLog:
    """Pending changes of one session, in first-touch order.

    Recording an edit to a row that already has a pending change merges the
    edit into that change instead of appending, so the log holds at most one
    pending insert per new row and one pending update per existing row.
    """

    def __init__(self) -> None:
        """Initialize an empty log."""
        self._changes: dict[str, Change] = {}
        self._inserts: dict[TableRef, dict[str, Insert]] = {}
        self._updates: dict[RowRef, Update] = {}
        self._deletes: dict[RowRef, Delete] = {}

    def __len__(self) -> int:
        """Return the number of pending changes."""
        return len(self._changes)

    def __iter__(self) -> Iterator[Change]:
        """Iterate over pending changes in commit order."""
        return iter(list(self._changes.values()))

    def __contains__(self, change_id: object) -> bool:
        """Check whether a change id is pending."""
        return change_id in self._changes

    def get(self, change_id: str) -> Change | None:
        """Return a pending change by id."""
        return self._changes.get(change_id)

    def record(self, change: Change, key_columns: Sequence[str] = ()) -> Change | None:
        """Add an edit to the log, merging it into a pending change if possible.

        ``key_columns`` names the primary key of the target table when the
        caller knows it; updates and deletes must then cover every column.

        Returns the pending change that now represents the edit, or None when
        a delete cancelled a pending insert.
        """
        return self._record(change, key_columns, fresh=True)

    def _record(
        self,
        change: Change,
        key_columns: Sequence[str],
        *,
        fresh: bool,
    ) -> Change | None:
        match change:
            case Insert():
                return self._record_insert(change, key_columns, fresh=fresh)
            case Update():
                check_primary_key(change, key_columns)
                return self._record_update(change, fresh=fresh)
            case Delete():
                check_primary_key(change, key_columns)
                return self._record_delete(change, fresh=fresh)
            case _:
                msg = f"Unsupported change of type {type(change).__name__}"
                raise TypeError(msg)

    def _pending_insert(self, table: TableRef, key: RowKey) -> Insert | None:
        return next(
            (
                insert
                for insert in self._inserts.get(table, {}).values()
                if key.matches(insert.new_values)
            ),
            None,
        )

    def _record_insert(
        self,
        change: Insert,
        key_columns: Sequence[str],
        *,
        fresh: bool,
    ) -> Insert:
        table = (change.namespace, change.table)

        if key_columns and (
            key := RowKey(change.new_values).restrict(key_columns)
        ) is not None:
            if existing := self._pending_insert(table, key):
                existing.new_values.update(change.new_values)
                logger.debug("Merged insert into pending insert %s", existing.id)
                return existing

        insert = self._append(change, fresh=fresh)
        self._inserts.setdefault(table, {})[insert.id] = insert
        return insert

    def _record_update(self, change: Update, *, fresh: bool) -> Update | Insert:
        table = (change.namespace, change.table)

        if insert := self._pending_insert(table, change.primary_key):
            insert.new_values.update(change.new_values)
            logger.debug("Merged update into pending insert %s", insert.id)
            return insert

        row = (change.namespace, change.table, change.primary_key)
        if existing := self._updates.get(row):
            existing.new_values.update(change.new_values)
            existing.old_values = change.old_values | existing.old_values
            existing.created_at = time()
            logger.debug("Merged update into pending update %s", existing.id)
            return existing

        update = self._append(change, fresh=fresh)
        self._updates[row] = update
        return update

    def _record_delete(self, change: Delete, *, fresh: bool) -> Delete | None:
        table = (change.namespace, change.table)

        if insert := self._pending_insert(table, change.primary_key):
            self.remove(insert.id)
            logger.debug("Delete cancelled pending insert %s", insert.id)
            return None

        row = (change.namespace, change.table, change.primary_key)
        if existing := self._deletes.get(row):
            return existing

        delete = self._append(change, fresh=fresh)
        self._deletes[row] = delete
        return delete

    def _append[T: (Insert, Update, Delete)](self, change: T, *, fresh: bool) -> T:
        if fresh:
            pending = replace(change, id=new_change_id(), created_at=time())
        else:
            pending = replace(change)
        self._changes[pending.id] = pending
        return pending

    def remove(self, change_id: str) -> Change | None:
        """Discard a pending change, returning it if it was pending."""
        change = self._changes.pop(change_id, None)
        match change:
            case Insert():
                inserts = self._inserts.get((change.namespace, change.table), {})
                inserts.pop(change.id, None)
            case Update():
                self._updates.pop(
                    (change.namespace, change.table, change.primary_key),
                    None,
                )
            case Delete():
                self._deletes.pop(
                    (change.namespace, change.table, change.primary_key),
                    None,
                )
        return change

    def clear(self) -> None:
        """Discard every pending change."""
        self._changes.clear()
        self._inserts.clear()
        self._updates.clear()
        self._deletes.clear()

    def for_table(self, namespace: Namespace, table: str) -> list[Change]:
        """Return pending changes of one table, in commit order."""
        return [
            change for change in self._changes.values() if change.targets(namespace, table)
        ]

    def clear_table(self, namespace: Namespace, table: str) -> int:
        """Discard pending changes of one table, returning how many were removed."""
        changes = self.for_table(namespace, table)
        for change in changes:
            self.remove(change.id)
        return len(changes)

    def grouped(self) -> list[ChangeGroup]:
        """Group pending changes per table, most recently touched table first."""
        groups: dict[TableRef, ChangeGroup] = {}
        for change in self._changes.values():
            table = (change.namespace, change.table)
            if table not in groups:
                groups[table] = ChangeGroup(change.namespace, change.table)
            groups[table].changes.append(change)

        return sorted(
            groups.values(),
            key=lambda group: group.last_touched,
            reverse=True,
        )

    def detach(self) -> list[Change]:
        """Take every pending change out of the log, in commit order.

        Edits recorded afterwards start from an empty log; hand the detached
        changes that are still pending back with ``reinstate``.
        """
        changes = list(self._changes.values())
        self.clear()
        return changes

    def reinstate(self, changes: Iterable[Change]) -> None:
        """Put detached changes back ahead of the edits recorded since.

        Changes keep their ids, and later edits to the same rows merge into
        them as if they had been recorded afterwards.
        """
        later = self.detach()
        for change in (*changes, *later):
            self._record(change, (), fresh=False)

    def extend(self, changes: Iterable[Change]) -> int:
        """Record several changes in order, returning the resulting log length."""
        for change in changes:
            self.record(change)
        return len(self)
