"""Store interfaces for durable, ordered record persistence."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from ..domain import Aggregate, Event


class Record(BaseModel):
    """Serialized representation of one event.

    The store knows nothing about the event type; it only keeps the
    version for ordering and the encoded payload.

    Attributes:
        version: Version of the serialized event.
        data: The event in serialized form.
    """

    model_config = ConfigDict(frozen=True)

    version: int
    data: bytes


History = list[Record]
"""Records of one aggregate, ordered by ascending version."""


def sort_history(records: "list[Record]") -> History:
    """Return records ordered by ascending version (stable for duplicates)."""
    return sorted(records, key=lambda record: record.version)


def in_range(version: int, from_version: int, to_version: int) -> bool:
    """Check a version against an inclusive range where a to_version of 0 is unbounded."""
    return version >= from_version and (to_version == 0 or version <= to_version)


class Store(ABC):
    """Abstract interface for ordered, append-only record persistence.

    Each aggregate id owns one History. Implementations must keep that
    history in ascending version order; sorting on write is sufficient.
    Saving the same version twice is a caller error that stores are not
    required to reject.
    """

    @abstractmethod
    async def save(self, aggregate_id: str, *records: Record) -> None:
        """Append serialized records to the aggregate's history.

        Args:
            aggregate_id: The aggregate the records belong to.
            *records: Records to append, in any order.
        """
        ...

    @abstractmethod
    async def load(
        self,
        aggregate_id: str,
        from_version: int = 0,
        to_version: int = 0,
    ) -> History:
        """Load the history of an aggregate within a version range.

        Args:
            aggregate_id: The aggregate whose history to load.
            from_version: Minimum version to load (inclusive). Use 0 to
                start at the beginning.
            to_version: Maximum version to load (inclusive). Use 0 to load
                through the latest record.

        Returns:
            Records in the range, ascending by version. Empty if the
            aggregate exists but no record falls in the range.

        Raises:
            AggregateNotFoundError: If no records exist for the aggregate.
        """
        ...


@dataclass(frozen=True)
class SaveAggregateInput:
    """Everything an AggregateSaver receives for one apply.

    Attributes:
        aggregate_id: ID of the aggregate being saved.
        aggregate: The aggregate with all events applied.
        events: The events that were generated and applied.
        records: The serialized events to persist.
    """

    aggregate_id: str
    aggregate: "Aggregate"
    events: "list[Event]" = field(default_factory=list)
    records: History = field(default_factory=list)


class AggregateSaver(ABC):
    """Store capability to persist the folded aggregate alongside its records.

    When the store bound to a repository implements AggregateSaver,
    ``save_aggregate`` is called instead of ``Store.save`` so the store can
    write a materialized view of the aggregate atomically with the event
    batch.
    """

    @abstractmethod
    async def save_aggregate(self, input: SaveAggregateInput) -> None:
        """Persist the records and the post-event aggregate state.

        Args:
            input: The aggregate, its new events and their records.
        """
        ...
