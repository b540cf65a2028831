"""Tests for the command line interface."""

import json
from pathlib import Path
from sqlite3 import connect

import pytest
from overlay import Delete, DeleteDisplay, Insert, Update, changes_to_json
from results import Namespace, ResultSet, result_set_to_json

from grid_toolkit.cli import commit, describe, diff, preview

MAIN = Namespace("main")

SCHEMA = """
CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
"""


def create_database(location: Path, *rows: tuple[int, str]) -> Path:
    """Create a SQLite database with a users table."""
    conn = connect(location)
    conn.executescript(SCHEMA)
    conn.executemany("INSERT INTO users VALUES (?, ?)", rows)
    conn.commit()
    conn.close()
    return location


def read_users(location: Path) -> list[tuple[int, str]]:
    """Read every user ordered by id."""
    conn = connect(location)
    rows = conn.execute("SELECT id, name FROM users ORDER BY id").fetchall()
    conn.close()
    return rows


@pytest.fixture(name="old_db")
def create_old_db(tmp_path: Path) -> Path:
    """Create the older database."""
    return create_database(tmp_path / "old.sqlite", (1, "Ann"), (2, "Bob"))


@pytest.fixture(name="new_db")
def create_new_db(tmp_path: Path) -> Path:
    """Create the newer database."""
    return create_database(tmp_path / "new.sqlite", (1, "Anna"), (3, "Cy"))


@pytest.fixture(name="changes")
def create_changes(tmp_path: Path) -> Path:
    """Write a change log touching every row kind."""
    location = tmp_path / "changes.json"
    location.write_text(
        changes_to_json(
            [
                Update(
                    namespace=MAIN,
                    table="users",
                    primary_key={"id": 1},
                    new_values={"name": "Anne"},
                ),
                Delete(namespace=MAIN, table="users", primary_key={"id": 2}),
                Insert(namespace=MAIN, table="users", new_values={"id": 5, "name": "Eve"}),
            ],
        ),
        encoding="utf-8",
    )
    return location


def test_diff_databases_as_json(
    old_db: Path,
    new_db: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Tables are matched on their primary key."""
    diff(old_db, new_db, table="users", fmt="json")

    data = json.loads(capsys.readouterr().out)
    assert [row["_status"] for row in data["rows"]] == ["modified", "removed", "added"]
    assert data["rows"][0]["name"] == {"old": "Ann", "new": "Anna"}


def test_diff_result_set_files_as_csv(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Result-set JSON files are compared on the given key."""
    left = tmp_path / "left.json"
    right = tmp_path / "right.json"
    left.write_text(
        result_set_to_json(ResultSet.from_records([{"k": 1, "v": "a"}])),
        encoding="utf-8",
    )
    right.write_text(
        result_set_to_json(ResultSet.from_records([{"k": 1, "v": "b"}])),
        encoding="utf-8",
    )

    diff(left, right, key=["k"], fmt="csv")

    assert capsys.readouterr().out == "_status,k,v\nmodified,1,a → b\n"


def test_diff_table_output(
    old_db: Path,
    new_db: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """The default output shows every row with its status."""
    diff(old_db, new_db, table="users")

    out = capsys.readouterr().out
    for status in ("modified", "removed", "added"):
        assert status in out
    assert "Anna" in out
    assert "Cy" in out


def test_diff_requires_table_for_databases(old_db: Path, new_db: Path) -> None:
    """SQLite sources need a table name."""
    with pytest.raises(SystemExit):
        diff(old_db, new_db)


def test_diff_invalid_key(old_db: Path, new_db: Path) -> None:
    """Unknown key columns are reported."""
    with pytest.raises(SystemExit):
        diff(old_db, new_db, table="users", key=["nope"])


def test_diff_missing_file(tmp_path: Path, new_db: Path) -> None:
    """Missing sources are reported."""
    with pytest.raises(SystemExit):
        diff(tmp_path / "missing.sqlite", new_db, table="users")


def test_preview(
    old_db: Path,
    changes: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Pending changes are shown without touching the database."""
    preview(old_db, "users", changes, delete_display=DeleteDisplay.HIDDEN)

    out = capsys.readouterr().out
    assert "Anne" in out
    assert "Eve" in out
    assert "Bob" not in out
    assert read_users(old_db) == [(1, "Ann"), (2, "Bob")]


def test_commit(old_db: Path, changes: Path) -> None:
    """A change log is written to the database."""
    commit(old_db, changes)
    assert read_users(old_db) == [(1, "Anne"), (5, "Eve")]


def write_failing_changes(location: Path) -> Path:
    """Write a change log whose first change matches no row."""
    location.write_text(
        changes_to_json(
            [
                Delete(namespace=MAIN, table="users", primary_key={"id": 42}),
                Insert(namespace=MAIN, table="users", new_values={"id": 7, "name": "Ok"}),
            ],
        ),
        encoding="utf-8",
    )
    return location


def test_commit_failure_rolls_back(
    tmp_path: Path,
    old_db: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A refused change undoes the whole commit and every change is printed back."""
    location = write_failing_changes(tmp_path / "bad.json")

    with pytest.raises(SystemExit):
        commit(old_db, location)

    remaining = json.loads(capsys.readouterr().out)
    assert [change["type"] for change in remaining] == ["delete", "insert"]
    assert read_users(old_db) == [(1, "Ann"), (2, "Bob")]


def test_commit_without_transaction_keeps_applied_changes(
    tmp_path: Path,
    old_db: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Without a transaction only refused changes are printed back."""
    location = write_failing_changes(tmp_path / "bad.json")

    with pytest.raises(SystemExit):
        commit(old_db, location, transaction=False)

    remaining = json.loads(capsys.readouterr().out)
    assert [change["type"] for change in remaining] == ["delete"]
    assert (7, "Ok") in read_users(old_db)


def test_commit_dry_run_prints_script(
    old_db: Path,
    changes: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A dry run prints the SQL and leaves the database untouched."""
    commit(old_db, changes, dry_run=True)

    out = capsys.readouterr().out
    assert out.startswith("-- sqlite migration script")
    assert "UPDATE users SET name='Anne' WHERE users.id = 1;" in out
    assert "DELETE FROM users WHERE users.id = 2;" in out
    assert "INSERT INTO users (id, name) VALUES (5, 'Eve');" in out
    assert read_users(old_db) == [(1, "Ann"), (2, "Bob")]


def test_diff_date_columns(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Tables with date and decimal columns can be compared."""
    for name, placed in (("old", "2024-01-15"), ("new", "2024-02-01")):
        conn = connect(tmp_path / f"{name}.db")
        conn.executescript(
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, placed DATE, total NUMERIC(10, 2));",
        )
        conn.execute("INSERT INTO orders VALUES (1, ?, 9.5)", (placed,))
        conn.commit()
        conn.close()

    diff(tmp_path / "old.db", tmp_path / "new.db", table="orders", fmt="json")

    data = json.loads(capsys.readouterr().out)
    assert data["rows"][0]["placed"] == {"old": "2024-01-15", "new": "2024-02-01"}
    assert data["rows"][0]["total"] == 9.5


def test_describe(old_db: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Tables are listed with their primary key."""
    describe(old_db)
    out = capsys.readouterr().out
    assert "users" in out
    assert "id INTEGER" in out
