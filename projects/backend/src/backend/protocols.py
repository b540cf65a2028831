"""Contracts of the database backend consumed by the toolkit."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypedDict

if TYPE_CHECKING:
    from collections.abc import Mapping
    from contextlib import AbstractAsyncContextManager

    from results import Namespace, ResultSet, Value


class ColumnSchema(TypedDict):
    """Schema of a table column."""

    name: str
    type: str
    nullable: bool


class TableSchema(TypedDict):
    """Schema of a table."""

    name: str
    columns: list[ColumnSchema]
    primary_key: list[str]  # All PK columns (supports composite keys)


class FetchBackend(Protocol):
    """Read operations, used as fetch functions of the metadata cache."""

    async def execute_query(self, session: str, query: str) -> ResultSet:
        """Run a query and return its result set."""
        ...

    async def list_namespaces(self, session: str) -> list[Namespace]:
        """List databases and schemas visible to the session."""
        ...

    async def list_collections(self, session: str, namespace: Namespace) -> list[str]:
        """List table names of a namespace."""
        ...

    async def describe_table(
        self,
        session: str,
        namespace: Namespace,
        table: str,
    ) -> TableSchema:
        """Describe the columns and primary key of a table."""
        ...

    async def list_routines(self, session: str, namespace: Namespace) -> list[str]:
        """List function and procedure names of a namespace."""
        ...


class WriteBackend(Protocol):
    """Row write operations, used when committing pending changes."""

    def transaction(self, session: str) -> AbstractAsyncContextManager[None]:
        """Group the writes made inside the block into one transaction.

        The writes commit together when the block exits cleanly and roll
        back together when it raises.
        """
        ...

    async def insert_row(
        self,
        session: str,
        namespace: Namespace,
        table: str,
        values: Mapping[str, Value],
    ) -> None:
        """Insert a row."""
        ...

    async def update_row(
        self,
        session: str,
        namespace: Namespace,
        table: str,
        primary_key: Mapping[str, Value],
        values: Mapping[str, Value],
    ) -> None:
        """Update the row identified by a primary key."""
        ...

    async def delete_row(
        self,
        session: str,
        namespace: Namespace,
        table: str,
        primary_key: Mapping[str, Value],
    ) -> None:
        """Delete the row identified by a primary key."""
        ...


class Backend(FetchBackend, WriteBackend, Protocol):
    """A backend offering both read and write operations."""
