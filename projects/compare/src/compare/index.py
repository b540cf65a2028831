"""Key-based indexing of result set rows."""

from collections.abc import Callable, Iterable, Iterator
from logging import getLogger

from results import Row, RowKey

logger = getLogger(__name__)


class RowIndex:
    """Rows indexed by key, in first-seen key order.

    A key seen twice keeps its first position but maps to the last row
    carrying it; the earlier duplicate is dropped from matching.
    """

    def __init__(self, rows: Iterable[Row], key: Callable[[Row], RowKey]) -> None:
        """Index every row on the key computed for it."""
        self._rows: dict[RowKey, Row] = {}
        self.duplicates = 0

        for row in rows:
            row_key = key(row)
            if row_key in self._rows:
                self.duplicates += 1
            self._rows[row_key] = row

        if self.duplicates:
            logger.debug("Dropped %d duplicate rows while indexing", self.duplicates)

    def pop(self, key: RowKey) -> Row | None:
        """Remove and return the row with the given key, if any."""
        return self._rows.pop(key, None)

    def __iter__(self) -> Iterator[tuple[RowKey, Row]]:
        """Iterate over remaining keys and rows."""
        return iter(list(self._rows.items()))

    def __len__(self) -> int:
        """Return the number of remaining keys."""
        return len(self._rows)
