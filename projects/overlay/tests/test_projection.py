"""Tests for projecting pending changes onto a result set."""

import pytest
from results import Column, Namespace, ResultSet

from overlay import (
    ChangeLog,
    ColumnChange,
    Delete,
    DeleteDisplay,
    Insert,
    Update,
    change_diff,
    project,
)

NS = Namespace("db")


@pytest.fixture(name="base")
def create_base() -> ResultSet:
    """Create a fetched table."""
    return ResultSet(
        columns=(Column("id", "INTEGER"), Column("name", "TEXT"), Column("score")),
        rows=((1, "a", 10), (2, "b", 20), (3, "c", 30)),
    )


@pytest.fixture(name="changes")
def create_changes() -> list[Insert | Update | Delete]:
    """Create one pending change of each kind."""
    return [
        Update(namespace=NS, table="t", primary_key={"id": 1}, new_values={"name": "A"}),
        Delete(namespace=NS, table="t", primary_key={"id": 2}),
        Insert(namespace=NS, table="t", new_values={"id": 4, "name": "d"}),
    ]


def test_strikethrough_keeps_deleted_rows(
    base: ResultSet,
    changes: list[Insert | Update | Delete],
) -> None:
    """Deleted rows stay in place and are flagged."""
    overlay = project(base, changes, ["id"])

    assert overlay.result.rows == (
        (1, "A", 10),
        (2, "b", 20),
        (3, "c", 30),
        (4, "d", None),
    )
    assert overlay.flags(0).is_modified  # type: ignore[union-attr]
    assert overlay.flags(0).modified_columns == {"name"}  # type: ignore[union-attr]
    assert overlay.flags(1).is_deleted  # type: ignore[union-attr]
    assert overlay.flags(2) is None
    assert overlay.flags(3).is_inserted  # type: ignore[union-attr]
    assert overlay.is_cell_modified(0, "name")
    assert not overlay.is_cell_modified(0, "score")
    assert overlay.is_cell_modified(3, "id")
    assert not overlay.is_cell_modified(3, "score")


def test_hidden_drops_deleted_rows(
    base: ResultSet,
    changes: list[Insert | Update | Delete],
) -> None:
    """Deleted rows are removed and later rows move up."""
    overlay = project(base, changes, ["id"], delete_display=DeleteDisplay.HIDDEN)

    assert overlay.result.rows == ((1, "A", 10), (3, "c", 30), (4, "d", None))
    assert overlay.flags(1) is None
    assert overlay.flags(2).is_inserted  # type: ignore[union-attr]
    assert overlay.stats.hidden_rows == 1
    assert overlay.stats.deleted_rows == 1
    assert overlay.stats.modified_rows == 1
    assert overlay.stats.inserted_rows == 1


def test_projection_leaves_inputs_untouched(
    base: ResultSet,
    changes: list[Insert | Update | Delete],
) -> None:
    """The base and the changes are never mutated and output is repeatable."""
    rows = base.rows
    values = [dict(change.new_values) for change in changes if isinstance(change, Update)]

    first = project(base, changes, ["id"])
    second = project(base, changes, ["id"])

    assert first == second
    assert base.rows == rows
    assert [change.new_values for change in changes if isinstance(change, Update)] == values


def test_columns_follow_base_order(base: ResultSet) -> None:
    """Insert values are placed by column name, unknown columns ignored."""
    insert = Insert(
        namespace=NS,
        table="t",
        new_values={"score": 5, "unknown": 1, "id": 7},
    )
    overlay = project(base, [insert], ["id"])
    assert overlay.result.rows[-1] == (7, None, 5)
    assert overlay.result.columns == base.columns


def test_changes_of_other_tables_are_ignored(base: ResultSet) -> None:
    """Only changes of the requested table apply."""
    changes = [
        Delete(namespace=NS, table="other", primary_key={"id": 1}),
        Delete(namespace=Namespace("elsewhere"), table="t", primary_key={"id": 2}),
    ]
    overlay = project(base, changes, ["id"], namespace=NS, table="t")
    assert overlay.result.rows == base.rows
    assert not overlay.row_metadata


def test_keys_match_structurally(base: ResultSet) -> None:
    """A key 1 does not touch a row with key "1"."""
    overlay = project(
        base,
        [Delete(namespace=NS, table="t", primary_key={"id": "1"})],
        ["id"],
    )
    assert not overlay.row_metadata


def test_without_key_only_inserts_show(base: ResultSet) -> None:
    """Without usable key columns, updates and deletes cannot be matched."""
    changes = [
        Update(namespace=NS, table="t", primary_key={"id": 1}, new_values={"name": "A"}),
        Insert(namespace=NS, table="t", new_values={"id": 9}),
    ]
    overlay = project(base, changes, ["missing"])
    assert overlay.result.rows[:3] == base.rows
    assert overlay.result.rows[3] == (9, None, None)


def test_change_diff() -> None:
    """Each change lists the columns it touches."""
    assert change_diff(Insert(namespace=NS, table="t", new_values={"id": 1})) == [
        ColumnChange("id", None, 1),
    ]
    assert change_diff(
        Update(
            namespace=NS,
            table="t",
            primary_key={"id": 1},
            old_values={"name": "a"},
            new_values={"name": "b", "score": 2},
        ),
    ) == [ColumnChange("name", "a", "b"), ColumnChange("score", None, 2)]
    assert change_diff(
        Delete(namespace=NS, table="t", primary_key={"id": 1}, old_values={"id": 1}),
    ) == [ColumnChange("id", 1, None)]
    assert change_diff(Delete(namespace=NS, table="t", primary_key={"id": 1})) == []


def test_flags_hold_snapshots_of_changes(base: ResultSet) -> None:
    """Later merges into a pending change do not alter an existing overlay."""
    log = ChangeLog()
    log.record(Update(namespace=NS, table="t", primary_key={"id": 1}, new_values={"name": "A"}))
    log.record(Insert(namespace=NS, table="t", new_values={"id": 4, "name": "d"}))

    overlay = project(base, log, ["id"])
    log.record(Update(namespace=NS, table="t", primary_key={"id": 1}, new_values={"name": "B"}))
    log.record(Update(namespace=NS, table="t", primary_key={"id": 4}, new_values={"name": "e"}))

    updated = overlay.flags(0)
    inserted = overlay.flags(3)
    assert updated is not None
    assert inserted is not None
    assert isinstance(updated.change, Update)
    assert updated.change.new_values == {"name": "A"}
    assert isinstance(inserted.change, Insert)
    assert inserted.change.new_values == {"id": 4, "name": "d"}
