"""MongoDB implementation of Store for event sourcing.

This module provides a MongoDB-backed store using PyMongo's async API. Each
record is one document in the events collection. The store also implements
AggregateSaver, keeping a materialized copy of every aggregate in the
aggregates collection next to its event records.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.errors import BulkWriteError, DuplicateKeyError
from ulid import ULID

from eventsource.domain import utc_now
from eventsource.domain.exceptions import AggregateNotFoundError, ConcurrencyError
from eventsource.store import AggregateSaver, History, Record, SaveAggregateInput, Store

from .config import MongoConfiguration

LOGGER = logging.getLogger(__name__)

_DUPLICATE_KEY = 11000


def _qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


class MongoStore(Store, AggregateSaver):
    """MongoDB implementation of the Store and AggregateSaver interfaces.

    This implementation uses MongoDB collections to store records with:
    - Compound unique index on (aggregate_id, version)
    - Server-side version filtering and ordering on load
    - A materialized aggregate document updated on every apply

    Collections:
        - events: One document per record
        - aggregates: Latest folded state of each aggregate

    Examples:
        >>> config = MongoConfiguration(uri="mongodb://localhost:27017")
        >>> store = MongoStore(config)
        >>> await store.initialize_schema()
        >>> repository = Repository(Entity, store=store, serializer=serializer)
    """

    def __init__(self, config: MongoConfiguration):
        """Initialize the MongoDB store.

        Args:
            config: MongoDB configuration and collection factory
        """
        self.config = config

    async def initialize_schema(self) -> None:
        """Create the indexes the store relies on.

        Creates:
            - Unique compound index on (aggregate_id, version) for events
        """
        await self.config.events.create_index(
            [("aggregate_id", 1), ("version", 1)], unique=True
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncClientSession | None]:
        if not self.config.use_transactions:
            yield None
            return

        async with self.config.client.start_session() as session:
            async with await session.start_transaction():
                yield session

    async def _insert(
        self,
        aggregate_id: str,
        records: tuple[Record, ...] | list[Record],
        session: AsyncClientSession | None,
    ) -> None:
        documents = [
            {
                "_id": str(ULID()),
                "aggregate_id": aggregate_id,
                "version": record.version,
                "data": record.data,
                "recorded_at": utc_now(),
            }
            for record in records
        ]
        try:
            await self.config.events.insert_many(documents, ordered=True, session=session)
        except DuplicateKeyError as err:
            raise ConcurrencyError(
                f"duplicate version saved for aggregate {aggregate_id}"
            ) from err
        except BulkWriteError as err:
            write_errors = err.details.get("writeErrors", [])
            if any(error.get("code") == _DUPLICATE_KEY for error in write_errors):
                raise ConcurrencyError(
                    f"duplicate version saved for aggregate {aggregate_id}"
                ) from err
            raise

    async def save(self, aggregate_id: str, *records: Record) -> None:
        """Insert records for an aggregate.

        Args:
            aggregate_id: The aggregate the records belong to
            *records: Records to insert

        Raises:
            ConcurrencyError: If a record's version already exists for
                the aggregate.
        """
        if not records:
            return

        async with self._session() as session:
            await self._insert(aggregate_id, records, session)

    async def load(
        self,
        aggregate_id: str,
        from_version: int = 0,
        to_version: int = 0,
    ) -> History:
        """Load records for an aggregate from MongoDB.

        Args:
            aggregate_id: The aggregate ID to load records for
            from_version: Minimum version to load (inclusive)
            to_version: Maximum version to load (inclusive), 0 for no bound

        Returns:
            Records ordered by version

        Raises:
            AggregateNotFoundError: If the aggregate has no records at all.
        """
        version_filter: dict[str, int] = {"$gte": from_version}
        if to_version:
            version_filter["$lte"] = to_version

        cursor = self.config.events.find(
            {"aggregate_id": aggregate_id, "version": version_filter}
        ).sort("version", 1)

        history = [
            Record(version=doc["version"], data=bytes(doc["data"])) async for doc in cursor
        ]

        if not history and not await self.config.events.count_documents(
            {"aggregate_id": aggregate_id}, limit=1
        ):
            raise AggregateNotFoundError(f"no aggregate found with id, {aggregate_id}")

        return history

    async def save_aggregate(self, input: SaveAggregateInput) -> None:
        """Insert the records and upsert the materialized aggregate.

        Nothing is written when the apply produced no records.

        Args:
            input: The aggregate, its new events and their records

        Raises:
            ConcurrencyError: If a record's version already exists for
                the aggregate.
        """
        if not input.records:
            return

        aggregate = input.aggregate
        async with self._session() as session:
            await self._insert(input.aggregate_id, input.records, session)
            await self.config.aggregates.replace_one(
                {"_id": input.aggregate_id},
                {
                    "_id": input.aggregate_id,
                    "aggregate_type": _qualified_name(type(aggregate)),
                    "version": input.records[-1].version,
                    "state": aggregate.model_dump(mode="json"),
                    "updated_at": utc_now(),
                },
                upsert=True,
                session=session,
            )

        LOGGER.debug(
            "Saved aggregate %s at version %d",
            input.aggregate_id,
            input.records[-1].version,
            extra={"aggregate_id": input.aggregate_id},
        )

    async def load_state(self, aggregate_id: str) -> dict[str, Any] | None:
        """Read the materialized state last written by save_aggregate.

        Args:
            aggregate_id: The aggregate to read

        Returns:
            The aggregate document (aggregate_type, version, state) or None
            if the aggregate was never saved through save_aggregate.
        """
        return await self.config.aggregates.find_one({"_id": aggregate_id})
