"""Session-scoped ownership of change logs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from threading import Lock, RLock
from time import time
from typing import TYPE_CHECKING, TypedDict

from overlay.commit import CommitResult, commit
from overlay.log import ChangeLog
from overlay.projection import project
from overlay.serialization import ChangeData, change_from_data, change_to_data
from overlay.types import Change, DeleteDisplay, Overlay

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from backend import WriteBackend
    from results import Namespace, ResultSet

logger = getLogger(__name__)


class Backup(TypedDict):
    """Snapshot of a session's pending changes, keyed by connection."""

    session_id: str
    active: bool
    changes: list[ChangeData]
    saved_at: float


@dataclass
class Session:
    """Pending-edit state owned by one connection session."""

    session_id: str
    delete_display: DeleteDisplay = DeleteDisplay.STRIKETHROUGH
    active: bool = False
    activated_at: float = 0.0
    log: ChangeLog = field(default_factory=ChangeLog)
    lock: RLock = field(default_factory=RLock, repr=False, compare=False)


class SessionStore:
    """Change logs of every open session.

    Sessions never share state. Calls against the same session are
    serialized by a per-session lock, so edits apply in the order issued.
    """

    def __init__(
        self,
        delete_display: DeleteDisplay = DeleteDisplay.STRIKETHROUGH,
    ) -> None:
        """Initialize an empty store with the default delete display policy."""
        self.delete_display = delete_display
        self._sessions: dict[str, Session] = {}
        self._backups: dict[str, Backup] = {}
        self._lock = Lock()

    def session(self, session_id: str) -> Session:
        """Return the state of a session, creating it on first use."""
        with self._lock:
            if session_id not in self._sessions:
                self._sessions[session_id] = Session(
                    session_id,
                    delete_display=self.delete_display,
                )
            return self._sessions[session_id]

    def activate(self, session_id: str) -> Session:
        """Start recording edits for a session, keeping earlier changes."""
        session = self.session(session_id)
        with session.lock:
            session.active = True
            session.activated_at = time()
        return session

    def deactivate(self, session_id: str, *, clear: bool = False) -> None:
        """Stop recording edits, optionally discarding pending changes."""
        session = self.session(session_id)
        with session.lock:
            session.active = False
            if clear:
                session.log.clear()

    def remove_session(self, session_id: str) -> None:
        """Drop every pending change of a closed session."""
        with self._lock:
            self._sessions.pop(session_id, None)

    def set_delete_display(self, session_id: str, policy: DeleteDisplay) -> None:
        """Change how rows pending deletion are previewed in a session."""
        session = self.session(session_id)
        with session.lock:
            session.delete_display = DeleteDisplay(policy)

    def record(
        self,
        session_id: str,
        change: Change,
        key_columns: Sequence[str] = (),
    ) -> Change | None:
        """Record an edit in a session's log, see ChangeLog.record."""
        session = self.session(session_id)
        with session.lock:
            return session.log.record(change, key_columns)

    def discard(self, session_id: str, change_id: str) -> Change | None:
        """Discard one pending change."""
        session = self.session(session_id)
        with session.lock:
            return session.log.remove(change_id)

    def clear(self, session_id: str) -> None:
        """Discard every pending change of a session."""
        session = self.session(session_id)
        with session.lock:
            session.log.clear()

    def clear_table(self, session_id: str, namespace: Namespace, table: str) -> int:
        """Discard pending changes of one table."""
        session = self.session(session_id)
        with session.lock:
            return session.log.clear_table(namespace, table)

    def has_pending_changes(self, session_id: str) -> bool:
        """Check whether a session has uncommitted changes."""
        session = self._sessions.get(session_id)
        return session is not None and len(session.log) > 0

    def project(
        self,
        session_id: str,
        base: ResultSet,
        primary_key_columns: Sequence[str],
        namespace: Namespace,
        table: str,
    ) -> Overlay:
        """Preview a table's result set with the session's pending changes."""
        session = self.session(session_id)
        with session.lock:
            changes = session.log.for_table(namespace, table)
            policy = session.delete_display
        return project(
            base,
            changes,
            primary_key_columns,
            namespace=namespace,
            table=table,
            delete_display=policy,
        )

    def export_changes(self, session_id: str) -> list[Change]:
        """Return copies of a session's pending changes in commit order."""
        session = self.session(session_id)
        with session.lock:
            return [replace(change) for change in session.log]

    def import_changes(self, session_id: str, changes: Iterable[Change]) -> int:
        """Replay changes into a session's log, returning the resulting length.

        Imported changes receive fresh ids and go through the merge rule, so
        restoring a backup on top of existing edits keeps the log consistent.
        """
        session = self.session(session_id)
        with session.lock:
            return session.log.extend(changes)

    def save_backup(self, connection_id: str, session_id: str) -> Backup:
        """Snapshot a session's pending changes under a connection id."""
        session = self.session(session_id)
        with session.lock:
            changes = [change_to_data(change) for change in session.log]
            saved_at = max(
                (change["created_at"] for change in changes),
                default=time(),
            )
            backup: Backup = {
                "session_id": session_id,
                "active": session.active,
                "changes": changes,
                "saved_at": saved_at,
            }
        self._backups[connection_id] = backup
        logger.debug(
            "Saved %d changes of session %s for connection %s",
            len(changes),
            session_id,
            connection_id,
        )
        return backup

    def load_backup(self, connection_id: str) -> Backup | None:
        """Return the backup saved for a connection, if any."""
        return self._backups.get(connection_id)

    def restore_backup(self, connection_id: str, session_id: str) -> int:
        """Import a connection's backup into a (new) session."""
        backup = self._backups.get(connection_id)
        if backup is None:
            return len(self.session(session_id).log)
        if backup["active"]:
            self.activate(session_id)
        return self.import_changes(
            session_id,
            (change_from_data(data) for data in backup["changes"]),
        )

    def clear_backup(self, connection_id: str) -> None:
        """Forget the backup of a connection."""
        self._backups.pop(connection_id, None)

    async def commit(
        self,
        session_id: str,
        writer: WriteBackend,
        *,
        use_transaction: bool = True,
    ) -> CommitResult:
        """Write a session's pending changes through to the backend.

        Edits recorded while the writes are in flight stay pending.
        """
        session = self.session(session_id)
        return await commit(
            session_id,
            session.log,
            writer,
            use_transaction=use_transaction,
            lock=session.lock,
        )
