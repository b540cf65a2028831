"""Write-through of pending changes to the database."""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from overlay.types import Change, Delete, Insert, Update

if TYPE_CHECKING:
    from collections.abc import Sequence
    from contextlib import AbstractContextManager

    from backend import WriteBackend

    from overlay.log import ChangeLog

logger = getLogger(__name__)


@dataclass(frozen=True)
class FailedChange:
    """A change the backend refused, with its position in the log."""

    index: int
    change: Change
    error: str


@dataclass(frozen=True)
class CommitResult:
    """Outcome of writing a change log through to the backend."""

    applied_count: int
    failures: tuple[FailedChange, ...] = ()
    rolled_back: bool = False

    @property
    def success(self) -> bool:
        """Whether every change was applied."""
        return not self.failures


async def apply_change(session: str, change: Change, writer: WriteBackend) -> None:
    """Send a single change to the matching backend write operation."""
    match change:
        case Insert():
            await writer.insert_row(
                session,
                change.namespace,
                change.table,
                dict(change.new_values),
            )
        case Update():
            await writer.update_row(
                session,
                change.namespace,
                change.table,
                dict(change.primary_key),
                dict(change.new_values),
            )
        case Delete():
            await writer.delete_row(
                session,
                change.namespace,
                change.table,
                dict(change.primary_key),
            )


async def apply_changes(
    session: str,
    changes: Sequence[Change],
    writer: WriteBackend,
) -> CommitResult:
    """Apply each change on its own, attempting every one after a failure."""
    failures: list[FailedChange] = []
    for index, change in enumerate(changes):
        try:
            await apply_change(session, change, writer)
        except Exception as err:  # noqa: BLE001
            logger.warning("Failed to apply %s %s: %s", change.kind, change.id, err)
            failures.append(FailedChange(index, change, str(err)))

    return CommitResult(
        applied_count=len(changes) - len(failures),
        failures=tuple(failures),
    )


async def apply_changes_atomically(
    session: str,
    changes: Sequence[Change],
    writer: WriteBackend,
) -> CommitResult:
    """Apply every change in one transaction, rolled back on the first failure."""
    failure: FailedChange | None = None
    try:
        async with writer.transaction(session):
            for index, change in enumerate(changes):
                try:
                    await apply_change(session, change, writer)
                except Exception as err:
                    failure = FailedChange(index, change, str(err))
                    raise
    except Exception as err:
        if failure is None:
            raise
        logger.warning(
            "Rolled back commit of session %s at %s %s: %s",
            session,
            failure.change.kind,
            failure.change.id,
            err,
        )
        return CommitResult(applied_count=0, failures=(failure,), rolled_back=True)

    return CommitResult(applied_count=len(changes))


async def commit(
    session: str,
    log: ChangeLog,
    writer: WriteBackend,
    *,
    use_transaction: bool = True,
    lock: AbstractContextManager[object] | None = None,
) -> CommitResult:
    """Apply pending changes in log order.

    With ``use_transaction`` all changes are written in one transaction and
    the first failure rolls every write back, leaving the whole log pending.
    Without it each change is attempted on its own; applied changes leave
    the log and refused ones stay pending, reported with their index.

    Pending changes are taken out of the log before writing and ``lock`` is
    only held while doing so, so edits recorded during the commit are kept
    and come after the changes that remain pending.
    """
    lock = lock if lock is not None else nullcontext()
    with lock:
        changes = log.detach()

    try:
        if use_transaction:
            result = await apply_changes_atomically(session, changes, writer)
        else:
            result = await apply_changes(session, changes, writer)
    except BaseException:
        with lock:
            log.reinstate(changes)
        raise

    with lock:
        if result.rolled_back:
            log.reinstate(changes)
        else:
            log.reinstate(failure.change for failure in result.failures)

    logger.info(
        "Committed %d changes for session %s, %d failed",
        result.applied_count,
        session,
        len(result.failures),
    )
    return result
