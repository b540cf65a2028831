"""Preview of pending changes as a SQL migration script."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, NamedTuple

from overlay import Delete, Insert, Update
from sqlalchemy.exc import SQLAlchemyError

from backend.statements import (
    delete_statement,
    insert_statement,
    reflect_table,
    update_statement,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from overlay import Change
    from results import Namespace
    from sqlalchemy import Dialect, Engine, Executable, Table

logger = getLogger(__name__)


class MigrationScript(NamedTuple):
    """SQL a commit would run, with the changes that could not be rendered."""

    sql: str
    statement_count: int
    warnings: tuple[str, ...] = ()


def change_statement(table: Table, change: Change) -> Executable:
    """Build the statement that applies a change to its reflected table."""
    match change:
        case Insert():
            return insert_statement(table, change.new_values)
        case Update():
            if not change.new_values:
                msg = "Update has no new values"
                raise ValueError(msg)
            return update_statement(table, change.primary_key, change.new_values)
        case Delete():
            return delete_statement(table, change.primary_key)
    msg = f"Unsupported change of type {type(change).__name__}"
    raise TypeError(msg)


def compile_statement(statement: Executable, dialect: Dialect) -> str:
    """Render a statement as SQL text with its values inlined."""
    return str(
        statement.compile(dialect=dialect, compile_kwargs={"literal_binds": True}),
    )


def migration_script(engine: Engine, changes: Sequence[Change]) -> MigrationScript:
    """Render changes, in commit order, as one transactional SQL script.

    Each table is reflected once. Changes that cannot be rendered are left
    out of the script and reported as warnings, also written as comments.
    """
    tables: dict[tuple[Namespace, str], Table] = {}
    statements: list[str] = []
    warnings: list[str] = []

    for index, change in enumerate(changes):
        target = (change.namespace, change.table)
        try:
            if target not in tables:
                tables[target] = reflect_table(engine, change.namespace, change.table)
            statement = change_statement(tables[target], change)
            statements.append(compile_statement(statement, engine.dialect))
        except (
            SQLAlchemyError,
            KeyError,
            ValueError,
            TypeError,
            NotImplementedError,
        ) as err:
            logger.warning("Cannot render %s %s: %s", change.kind, change.id, err)
            warnings.append(f"Change {index} ({change.kind}): {err}")

    lines = [f"-- {engine.dialect.name} migration script"]
    lines.extend(f"-- Skipped {warning}" for warning in warnings)
    if not statements:
        lines.append("-- No changes to apply")
        return MigrationScript("\n".join(lines) + "\n", 0, tuple(warnings))

    lines.extend(["BEGIN;", ""])
    lines.extend(f"{statement};\n" for statement in statements)
    lines.append("COMMIT;")
    return MigrationScript("\n".join(lines) + "\n", len(statements), tuple(warnings))
