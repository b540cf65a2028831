"""Database backend contracts and a SQLAlchemy reference implementation."""

from backend.conversion import to_bind, to_value
from backend.migration import MigrationScript, change_statement, migration_script
from backend.protocols import (
    Backend,
    ColumnSchema,
    FetchBackend,
    TableSchema,
    WriteBackend,
)
from backend.sqlalchemy_backend import (
    RowNotFoundError,
    SqlAlchemyBackend,
    TransactionActiveError,
    UnknownSessionError,
    describe,
    read_only_sqlite,
    run_query,
    table_result_set,
)
from backend.statements import reflect_table, schema_name

__all__ = [
    "Backend",
    "ColumnSchema",
    "FetchBackend",
    "MigrationScript",
    "RowNotFoundError",
    "SqlAlchemyBackend",
    "TableSchema",
    "TransactionActiveError",
    "UnknownSessionError",
    "WriteBackend",
    "change_statement",
    "describe",
    "migration_script",
    "read_only_sqlite",
    "reflect_table",
    "run_query",
    "schema_name",
    "table_result_set",
    "to_bind",
    "to_value",
]
