"""JSON representation of pending changes for backup and restore."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

from results import Namespace, Value

from overlay.types import Change, ChangeType, Delete, Insert, Update

if TYPE_CHECKING:
    from collections.abc import Iterable


class NamespaceData(TypedDict):
    """Serialized namespace."""

    database: str
    schema: str | None


class ChangeData(TypedDict):
    """Serialized change, field for field."""

    type: ChangeType
    id: str
    created_at: float
    namespace: NamespaceData
    table: str
    primary_key: NotRequired[dict[str, Value]]
    old_values: NotRequired[dict[str, Value] | None]
    new_values: NotRequired[dict[str, Value]]


def change_to_data(change: Change) -> ChangeData:
    """Convert a change to its JSON-compatible form."""
    data: ChangeData = {
        "type": change.kind,
        "id": change.id,
        "created_at": change.created_at,
        "namespace": {
            "database": change.namespace.database,
            "schema": change.namespace.schema,
        },
        "table": change.table,
    }
    match change:
        case Insert():
            data["new_values"] = dict(change.new_values)
        case Update():
            data["primary_key"] = dict(change.primary_key)
            data["old_values"] = dict(change.old_values)
            data["new_values"] = dict(change.new_values)
        case Delete():
            data["primary_key"] = dict(change.primary_key)
            data["old_values"] = (
                dict(change.old_values) if change.old_values is not None else None
            )
    return data


def change_from_data(data: ChangeData) -> Change:
    """Rebuild a change from its JSON-compatible form."""
    common: dict[str, Any] = {
        "namespace": Namespace(
            data["namespace"]["database"],
            data["namespace"].get("schema"),
        ),
        "table": data["table"],
    }
    if "id" in data:
        common["id"] = data["id"]
    if "created_at" in data:
        common["created_at"] = data["created_at"]

    change_type = data["type"]
    if change_type == "insert":
        return Insert(new_values=data.get("new_values", {}), **common)
    if change_type == "update":
        return Update(
            primary_key=data.get("primary_key", {}),
            old_values=data.get("old_values") or {},
            new_values=data.get("new_values", {}),
            **common,
        )
    if change_type == "delete":
        return Delete(
            primary_key=data.get("primary_key", {}),
            old_values=data.get("old_values"),
            **common,
        )
    msg = f"Unknown change type: {change_type}"
    raise ValueError(msg)


def changes_to_json(changes: Iterable[Change]) -> str:
    """Serialize changes to a JSON array."""
    return json.dumps(
        [change_to_data(change) for change in changes],
        ensure_ascii=False,
        indent=2,
    )


def changes_from_json(text: str) -> list[Change]:
    """Parse changes from a JSON array."""
    return [change_from_data(data) for data in json.loads(text)]
