import threading
from collections import defaultdict

from ..domain.exceptions import AggregateNotFoundError
from .base import History, Record, Store, in_range, sort_history


class InMemoryStore(Store):
    """Dictionary-based in-memory store for testing.

    Stores records in a dictionary keyed by aggregate ID. Each aggregate's
    history is kept sorted by version on every save.

    Every aggregate ID has its own lock, so writers to different aggregates
    never contend. A guard lock protects creation of the per-aggregate
    locks.

    **NOT suitable for production** due to:
    - No durability (data lost on restart)
    - No detection of duplicate versions
    - Memory usage grows unbounded
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory store."""
        self.by_aggregate_id: dict[str, History] = {}
        self._guard = threading.Lock()
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)

    def _lock_for(self, aggregate_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[aggregate_id]

    async def save(self, aggregate_id: str, *records: Record) -> None:
        """Append records to the aggregate's history and re-sort it.

        Args:
            aggregate_id: The aggregate the records belong to
            *records: Records to append, in any order
        """
        with self._lock_for(aggregate_id):
            history = self.by_aggregate_id.get(aggregate_id, [])
            self.by_aggregate_id[aggregate_id] = sort_history([*history, *records])

    async def load(
        self,
        aggregate_id: str,
        from_version: int = 0,
        to_version: int = 0,
    ) -> History:
        """Load the records of an aggregate within a version range.

        Args:
            aggregate_id: The aggregate whose records to load
            from_version: Minimum version (inclusive). Use 0 for the beginning.
            to_version: Maximum version (inclusive). Use 0 for no upper bound.

        Returns:
            A new list of matching records, ascending by version.

        Raises:
            AggregateNotFoundError: If the aggregate has never been saved.
        """
        with self._lock_for(aggregate_id):
            history = self.by_aggregate_id.get(aggregate_id)
            if history is None:
                raise AggregateNotFoundError(f"no aggregate found with id, {aggregate_id}")

            return [
                record
                for record in history
                if in_range(record.version, from_version, to_version)
            ]
