"""SQLAlchemy statements writing a single row."""

from __future__ import annotations

from typing import TYPE_CHECKING

from results import Namespace
from sqlalchemy import MetaData, Table, and_, delete, insert, update

from backend.conversion import to_bind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from results import Value
    from sqlalchemy import ColumnElement, Connection, Delete, Engine, Insert, Update


def schema_name(namespace: Namespace) -> str | None:
    """Map a namespace to the SQLAlchemy schema argument.

    SQLite exposes attached databases as schemas, with ``main`` as default.
    """
    if namespace.schema is not None:
        return namespace.schema
    if namespace.database == "main":
        return None
    return namespace.database


def reflect_table(
    bind: Engine | Connection,
    namespace: Namespace,
    table: str,
) -> Table:
    """Reflect a single table."""
    return Table(table, MetaData(), schema=schema_name(namespace), autoload_with=bind)


def bind_values(table: Table, values: Mapping[str, Value]) -> dict[str, object]:
    """Convert values to what the table's columns bind.

    Names that are not columns of the table are passed on unchanged, so
    SQLAlchemy reports them when the statement compiles.
    """
    return {
        name: to_bind(table.c[name].type, value) if name in table.c else value
        for name, value in values.items()
    }


def key_clause(table: Table, primary_key: Mapping[str, Value]) -> ColumnElement[bool]:
    """Match the row with the given primary key."""
    return and_(
        *(
            table.c[name] == to_bind(table.c[name].type, value)
            for name, value in primary_key.items()
        ),
    )


def insert_statement(table: Table, values: Mapping[str, Value]) -> Insert:
    """Build the statement inserting one row."""
    return insert(table).values(bind_values(table, values))


def update_statement(
    table: Table,
    primary_key: Mapping[str, Value],
    values: Mapping[str, Value],
) -> Update:
    """Build the statement updating the row with the given primary key."""
    return (
        update(table)
        .where(key_clause(table, primary_key))
        .values(bind_values(table, values))
    )


def delete_statement(table: Table, primary_key: Mapping[str, Value]) -> Delete:
    """Build the statement deleting the row with the given primary key."""
    return delete(table).where(key_clause(table, primary_key))
