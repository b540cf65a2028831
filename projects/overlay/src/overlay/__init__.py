"""Pending-edit overlay: change logs and their projection onto result sets."""

from overlay.commit import (
    CommitResult,
    FailedChange,
    apply_change,
    apply_changes,
    apply_changes_atomically,
    commit,
)
from overlay.log import ChangeGroup, ChangeLog
from overlay.projection import change_diff, project
from overlay.serialization import (
    change_from_data,
    change_to_data,
    changes_from_json,
    changes_to_json,
)
from overlay.store import Backup, Session, SessionStore
from overlay.types import (
    Change,
    ColumnChange,
    Delete,
    DeleteDisplay,
    Insert,
    MissingPrimaryKeyError,
    Overlay,
    OverlayStats,
    RowFlags,
    Update,
)

__all__ = [
    "Backup",
    "Change",
    "ChangeGroup",
    "ChangeLog",
    "ColumnChange",
    "CommitResult",
    "Delete",
    "DeleteDisplay",
    "FailedChange",
    "Insert",
    "MissingPrimaryKeyError",
    "Overlay",
    "OverlayStats",
    "RowFlags",
    "Session",
    "SessionStore",
    "Update",
    "apply_change",
    "apply_changes",
    "apply_changes_atomically",
    "change_diff",
    "change_from_data",
    "change_to_data",
    "changes_from_json",
    "changes_to_json",
    "commit",
    "project",
]
