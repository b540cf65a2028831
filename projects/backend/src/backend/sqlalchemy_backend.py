"""Reference backend over SQLAlchemy engines."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import timedelta
from logging import getLogger
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Concatenate

from results import Column, Namespace, ResultSet
from sqlalchemy import create_engine, inspect, select, text

from backend.conversion import to_value
from backend.migration import MigrationScript, migration_script
from backend.statements import (
    delete_statement,
    insert_statement,
    reflect_table,
    schema_name,
    update_statement,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping, Sequence

    from overlay import Change
    from results import Row, Value
    from sqlalchemy import Connection, Engine

    from backend.protocols import TableSchema

logger = getLogger(__name__)


class UnknownSessionError(KeyError):
    """Raised when a session has no connected engine."""


class RowNotFoundError(LookupError):
    """Raised when an update or delete matches no row."""


class TransactionActiveError(RuntimeError):
    """Raised when a session opens a second transaction."""


def read_only_sqlite(sqlite_location: Path) -> Engine:
    """Create a read-only SQLAlchemy engine for SQLite database."""
    connection_string = f"sqlite:///{sqlite_location}?mode=ro"
    return create_engine(connection_string, connect_args={"uri": True})


def convert_row(row: Sequence[object]) -> Row:
    """Turn a driver row into a row of result-set values."""
    return tuple(to_value(value) for value in row)


def table_result_set(
    engine: Engine,
    table: str,
    namespace: Namespace = Namespace("main"),
) -> ResultSet:
    """Fetch every row of a table, ordered by primary key when it has one."""
    reflected = reflect_table(engine, namespace, table)
    query = select(reflected).order_by(*reflected.primary_key.columns)

    started = perf_counter()
    with engine.connect() as connection:
        rows = tuple(convert_row(row) for row in connection.execute(query))

    return ResultSet(
        columns=tuple(
            Column(column.name, str(column.type)) for column in reflected.columns
        ),
        rows=rows,
        execution_time=timedelta(seconds=perf_counter() - started),
    )


def run_query(engine: Engine, query: str) -> ResultSet:
    """Execute raw SQL, returning rows or the affected row count."""
    started = perf_counter()
    with engine.begin() as connection:
        result = connection.execute(text(query))
        if result.returns_rows:
            columns = tuple(Column(name) for name in result.keys())
            rows = tuple(convert_row(row) for row in result)
            affected_count = None
        else:
            columns, rows, affected_count = (), (), result.rowcount

    return ResultSet(
        columns=columns,
        rows=rows,
        affected_count=affected_count,
        execution_time=timedelta(seconds=perf_counter() - started),
    )


def describe(engine: Engine, namespace: Namespace, table: str) -> TableSchema:
    """Inspect the columns and primary key of a table."""
    inspector = inspect(engine)
    schema = schema_name(namespace)
    columns = inspector.get_columns(table, schema=schema)
    primary_key = inspector.get_pk_constraint(table, schema=schema)

    return {
        "name": table,
        "columns": [
            {
                "name": column["name"],
                "type": str(column["type"]),
                "nullable": bool(column.get("nullable", True)),
            }
            for column in columns
        ],
        "primary_key": list(primary_key.get("constrained_columns") or []),
    }


def _no_row(namespace: Namespace, table: str, primary_key: Mapping[str, Value]) -> str:
    return f"No row in {namespace.display_name(table)} matches {dict(primary_key)}"


def write_insert(
    connection: Connection,
    namespace: Namespace,
    table: str,
    values: Mapping[str, Value],
) -> None:
    """Insert a single row."""
    reflected = reflect_table(connection, namespace, table)
    connection.execute(insert_statement(reflected, values))


def write_update(
    connection: Connection,
    namespace: Namespace,
    table: str,
    primary_key: Mapping[str, Value],
    values: Mapping[str, Value],
) -> None:
    """Update the row with the given primary key."""
    reflected = reflect_table(connection, namespace, table)
    result = connection.execute(update_statement(reflected, primary_key, values))
    if result.rowcount == 0:
        raise RowNotFoundError(_no_row(namespace, table, primary_key))


def write_delete(
    connection: Connection,
    namespace: Namespace,
    table: str,
    primary_key: Mapping[str, Value],
) -> None:
    """Delete the row with the given primary key."""
    reflected = reflect_table(connection, namespace, table)
    result = connection.execute(delete_statement(reflected, primary_key))
    if result.rowcount == 0:
        raise RowNotFoundError(_no_row(namespace, table, primary_key))


def run_write[**P](
    engine: Engine,
    write: Callable[Concatenate[Connection, P], None],
    *args: P.args,
    **kwargs: P.kwargs,
) -> None:
    """Run a single write in its own transaction."""
    with engine.begin() as connection:
        write(connection, *args, **kwargs)


class SqlAlchemyBackend:
    """Backend serving each session from its own SQLAlchemy engine.

    SQLAlchemy calls block, so every operation runs in a worker thread.
    Writes made inside ``transaction`` share one connection and commit or
    roll back together; other writes each commit on their own.
    """

    def __init__(self) -> None:
        """Initialize a backend with no connected sessions."""
        self._engines: dict[str, Engine] = {}
        self._connections: dict[str, Connection] = {}

    def connect(self, session: str, engine: Engine) -> None:
        """Serve a session from the given engine."""
        self._engines[session] = engine

    def disconnect(self, session: str) -> None:
        """Dispose of a session's engine."""
        if engine := self._engines.pop(session, None):
            engine.dispose()

    def engine(self, session: str) -> Engine:
        """Return the engine of a session."""
        try:
            return self._engines[session]
        except KeyError as err:
            msg = f"Unknown session: {session}"
            raise UnknownSessionError(msg) from err

    @asynccontextmanager
    async def transaction(self, session: str) -> AsyncIterator[None]:
        """Group the writes of a session into one all-or-nothing transaction.

        The transaction commits when the block exits cleanly and rolls back
        when it raises.
        """
        if session in self._connections:
            msg = f"Session {session} already has an open transaction"
            raise TransactionActiveError(msg)

        engine = self.engine(session)
        connection = await asyncio.to_thread(engine.connect)
        self._connections[session] = connection
        try:
            await asyncio.to_thread(connection.begin)
            yield
        except BaseException:
            logger.debug("Rolling back transaction of session %s", session)
            connection.rollback()
            raise
        else:
            await asyncio.to_thread(connection.commit)
        finally:
            self._connections.pop(session, None)
            connection.close()

    async def _write[**P](
        self,
        session: str,
        write: Callable[Concatenate[Connection, P], None],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> None:
        if (connection := self._connections.get(session)) is not None:
            await asyncio.to_thread(write, connection, *args, **kwargs)
            return
        await asyncio.to_thread(
            run_write,
            self.engine(session),
            write,
            *args,
            **kwargs,
        )

    async def execute_query(self, session: str, query: str) -> ResultSet:
        """Run a query and return its result set."""
        return await asyncio.to_thread(run_query, self.engine(session), query)

    async def list_namespaces(self, session: str) -> list[Namespace]:
        """List the schemas of the engine, one namespace each."""
        engine = self.engine(session)
        names = await asyncio.to_thread(lambda: inspect(engine).get_schema_names())
        return [Namespace(name) for name in names]

    async def list_collections(self, session: str, namespace: Namespace) -> list[str]:
        """List table names of a namespace."""
        engine = self.engine(session)
        return sorted(
            await asyncio.to_thread(
                lambda: inspect(engine).get_table_names(schema=schema_name(namespace)),
            ),
        )

    async def describe_table(
        self,
        session: str,
        namespace: Namespace,
        table: str,
    ) -> TableSchema:
        """Describe the columns and primary key of a table."""
        return await asyncio.to_thread(describe, self.engine(session), namespace, table)

    async def list_routines(self, session: str, namespace: Namespace) -> list[str]:
        """List routines; SQLAlchemy inspection does not reflect them."""
        self.engine(session)
        logger.debug("Routine listing is not available for %s", namespace)
        return []

    async def insert_row(
        self,
        session: str,
        namespace: Namespace,
        table: str,
        values: Mapping[str, Value],
    ) -> None:
        """Insert a row."""
        await self._write(session, write_insert, namespace, table, values)

    async def update_row(
        self,
        session: str,
        namespace: Namespace,
        table: str,
        primary_key: Mapping[str, Value],
        values: Mapping[str, Value],
    ) -> None:
        """Update the row identified by a primary key."""
        await self._write(session, write_update, namespace, table, primary_key, values)

    async def delete_row(
        self,
        session: str,
        namespace: Namespace,
        table: str,
        primary_key: Mapping[str, Value],
    ) -> None:
        """Delete the row identified by a primary key."""
        await self._write(session, write_delete, namespace, table, primary_key)

    async def migration_script(
        self,
        session: str,
        changes: Sequence[Change],
    ) -> MigrationScript:
        """Render the SQL a commit of the given changes would run."""
        return await asyncio.to_thread(migration_script, self.engine(session), changes)
