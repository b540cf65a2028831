"""Tests for key-based result set comparison."""

import pytest
from results import Column, ResultSet, RowKey

from compare import (
    DiffStatus,
    InvalidKeyError,
    RowIndex,
    align_columns,
    common_columns,
    compare,
    diff_stats,
    resolve_key,
)


def records(*rows: dict[str, object]) -> ResultSet:
    """Build a result set from dictionaries."""
    return ResultSet.from_records(rows)  # type: ignore[arg-type]


@pytest.fixture(name="left")
def create_left() -> ResultSet:
    """Create the older side of a comparison."""
    return records(
        {"id": 1, "name": "a", "score": 10},
        {"id": 2, "name": "b", "score": 20},
        {"id": 3, "name": "c", "score": 30},
    )


@pytest.fixture(name="right")
def create_right() -> ResultSet:
    """Create the newer side of a comparison."""
    return records(
        {"id": 4, "name": "d", "score": 40},
        {"id": 2, "name": "b", "score": 25},
        {"id": 1, "name": "a", "score": 10},
    )


def test_modified_and_added() -> None:
    """A changed row is modified and a row only on the right is added."""
    left = records({"id": 1, "name": "x"})
    right = records({"id": 1, "name": "y"}, {"id": 2, "name": "z"})

    rows = compare(left, right, ["id"])

    assert [row.status for row in rows] == [DiffStatus.MODIFIED, DiffStatus.ADDED]
    assert rows[0].changed_columns == {"name"}
    assert rows[0].left == (1, "x")
    assert rows[0].right == (1, "y")
    assert rows[1].right == (2, "z")
    assert rows[1].left is None
    assert rows[1].key == RowKey({"id": 2})


def test_output_order(left: ResultSet, right: ResultSet) -> None:
    """Left-side order first, then additions in right-side order."""
    rows = compare(left, right, ["id"])
    assert [(row.status, row.key["id"]) for row in rows] == [
        (DiffStatus.UNCHANGED, 1),
        (DiffStatus.MODIFIED, 2),
        (DiffStatus.REMOVED, 3),
        (DiffStatus.ADDED, 4),
    ]


def test_swap_symmetry(left: ResultSet, right: ResultSet) -> None:
    """Swapping sides swaps added and removed, other statuses hold."""
    forward = {row.key: row for row in compare(left, right, ["id"])}
    backward = {row.key: row for row in compare(right, left, ["id"])}

    swapped = {
        DiffStatus.ADDED: DiffStatus.REMOVED,
        DiffStatus.REMOVED: DiffStatus.ADDED,
        DiffStatus.MODIFIED: DiffStatus.MODIFIED,
        DiffStatus.UNCHANGED: DiffStatus.UNCHANGED,
    }
    assert forward.keys() == backward.keys()
    for key, row in forward.items():
        assert backward[key].status == swapped[row.status]
        assert backward[key].left == row.right
        assert backward[key].right == row.left
        assert backward[key].changed_columns == row.changed_columns


def test_self_comparison_is_unchanged(left: ResultSet) -> None:
    """Comparing a result set with itself yields one unchanged row per row."""
    rows = compare(left, left, ["id"])
    assert len(rows) == len(left.rows)
    assert all(row.status == DiffStatus.UNCHANGED for row in rows)
    assert all(not row.changed_columns for row in rows)


def test_number_and_text_keys_do_not_match() -> None:
    """Key 1 and key "1" identify different rows."""
    rows = compare(records({"id": 1, "v": "a"}), records({"id": "1", "v": "a"}), ["id"])
    assert [row.status for row in rows] == [DiffStatus.REMOVED, DiffStatus.ADDED]


def test_number_and_text_values_differ() -> None:
    """A value that changes kind is a modification."""
    rows = compare(records({"id": 1, "v": 1}), records({"id": 1, "v": "1"}), ["id"])
    assert rows[0].status == DiffStatus.MODIFIED
    assert rows[0].changed_columns == {"v"}


def test_structured_values_ignore_key_order() -> None:
    """Objects are compared deeply, regardless of key order."""
    left = records({"id": 1, "data": {"a": 1, "b": [1, 2]}})
    right = records({"id": 1, "data": {"b": [1, 2], "a": 1}})
    assert compare(left, right, ["id"])[0].status == DiffStatus.UNCHANGED


def test_structured_keys_match_structurally() -> None:
    """Composite and structured keys match by value."""
    left = records({"k": {"x": 1, "y": 2}, "v": 1})
    right = records({"k": {"y": 2, "x": 1}, "v": 2})
    rows = compare(left, right, ["k"])
    assert [row.status for row in rows] == [DiffStatus.MODIFIED]


def test_invalid_key() -> None:
    """Key columns missing from either side are reported."""
    left = records({"id": 1, "only_left": 1})
    right = records({"id": 1})

    with pytest.raises(InvalidKeyError) as excinfo:
        compare(left, right, ["only_left", "id", "nope"])

    assert excinfo.value.missing == ("only_left", "nope")


def test_fallback_key_uses_common_columns() -> None:
    """Without key columns, rows match on every shared column."""
    left = records({"id": 1, "name": "a"}, {"id": 2, "name": "b"})
    right = records({"id": 1, "name": "a"}, {"id": 2, "name": "c"})

    assert resolve_key(left, right) == ("id", "name")
    rows = compare(left, right)
    assert [row.status for row in rows] == [
        DiffStatus.UNCHANGED,
        DiffStatus.REMOVED,
        DiffStatus.ADDED,
    ]


def test_fallback_without_shared_columns() -> None:
    """Without shared columns, rows match on columns paired by position."""
    left = records({"a": 1}, {"a": 2})
    right = records({"b": 1})

    assert resolve_key(left, right) == ("a",)
    rows = compare(left, right)

    assert [row.status for row in rows] == [
        DiffStatus.UNCHANGED,
        DiffStatus.REMOVED,
    ]
    assert rows[0].right == (1,)


def test_positional_match_with_wider_side() -> None:
    """Unpaired columns of the wider side are changes, not part of the key."""
    left = records({"a": 1, "extra": "x"}, {"a": 2, "extra": "y"})
    right = records({"b": 2}, {"b": 3})

    assert [column.name for column in align_columns(left, right)] == ["a", "extra"]
    rows = compare(left, right)

    assert [(row.status, dict(row.key)) for row in rows] == [
        (DiffStatus.REMOVED, {"a": 1}),
        (DiffStatus.MODIFIED, {"a": 2}),
        (DiffStatus.ADDED, {"a": 3}),
    ]
    assert rows[1].changed_columns == {"extra"}


def test_align_columns_union() -> None:
    """Shared columns come first, then left-only, then right-only columns."""
    left = ResultSet(columns=(Column("old"), Column("id")))
    right = ResultSet(columns=(Column("id"), Column("new")))

    columns = align_columns(left, right)

    assert [(c.name, c.left, c.right) for c in columns] == [
        ("id", 1, 0),
        ("old", 0, None),
        ("new", None, 1),
    ]


def test_different_columns_are_changes() -> None:
    """A column present on one side only marks matched rows modified."""
    left = ResultSet(columns=(Column("id"), Column("old")), rows=((1, "x"),))
    right = ResultSet(columns=(Column("id"), Column("new")), rows=((1, "x"),))

    rows = compare(left, right, ["id"])

    assert rows[0].status == DiffStatus.MODIFIED
    assert rows[0].changed_columns == {"old", "new"}
    assert common_columns(left, right) == (Column("id"),)


def test_duplicate_keys_last_row_wins() -> None:
    """Later rows with the same key replace earlier ones on that side."""
    left = records({"id": 1, "v": "first"}, {"id": 1, "v": "second"})
    right = records({"id": 1, "v": "second"})

    index = RowIndex(left.rows, lambda row: RowKey({"id": row[0]}))
    assert index.duplicates == 1
    assert len(index) == 1

    rows = compare(left, right, ["id"])
    assert [row.status for row in rows] == [DiffStatus.UNCHANGED]


def test_empty_sides() -> None:
    """Empty result sets are legal on either side."""
    empty = ResultSet(columns=(Column("id"),))
    full = records({"id": 1}, {"id": 2})

    assert compare(empty, empty, ["id"]) == []
    assert {row.status for row in compare(empty, full, ["id"])} == {DiffStatus.ADDED}
    assert {row.status for row in compare(full, empty, ["id"])} == {DiffStatus.REMOVED}


def test_diff_stats(left: ResultSet, right: ResultSet) -> None:
    """Rows are counted per status."""
    stats = diff_stats(compare(left, right, ["id"]))
    assert (stats.unchanged, stats.added, stats.removed, stats.modified) == (1, 1, 1, 1)
    assert stats.total == 4
