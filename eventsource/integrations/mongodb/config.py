"""MongoDB configuration using pydantic-settings."""

from functools import cached_property
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.asynchronous.mongo_client import AsyncMongoClient


class MongoConfiguration(BaseSettings):
    """Configuration and factory for MongoDB resources.

    All settings can be configured via environment variables with the
    EVENTSOURCE_MONGO_ prefix. For example:
    - EVENTSOURCE_MONGO_URI=mongodb://localhost:27017
    - EVENTSOURCE_MONGO_DATABASE=myapp
    - EVENTSOURCE_MONGO_EVENTS_COLLECTION=domain_events

    The configuration also acts as a factory, providing lazy-initialized
    properties for the MongoDB client, database, and collections.

    Attributes:
        uri: MongoDB connection URI.
        database: Database name to use.
        events_collection: Collection name for event records.
        aggregates_collection: Collection name for materialized aggregates.
        server_selection_timeout_ms: How long to wait for a reachable server.
        use_transactions: Write records and the materialized aggregate in one
            transaction. Requires a replica set or sharded cluster.

    Example:
        >>> config = MongoConfiguration()
        >>> store = MongoStore(config)
        >>> await store.initialize_schema()
        >>> ...
        >>> await config.on_shutdown()
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "eventsource"

    events_collection: str = "events"
    aggregates_collection: str = "aggregates"

    server_selection_timeout_ms: int = 30000
    use_transactions: bool = False

    model_config = SettingsConfigDict(env_prefix="EVENTSOURCE_MONGO_")

    @cached_property
    def client(self) -> AsyncMongoClient[dict[str, Any]]:
        """Get the MongoDB async client.

        The client is lazily created and cached for reuse.
        """
        return AsyncMongoClient(
            self.uri,
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
        )

    @cached_property
    def db(self) -> AsyncDatabase[dict[str, Any]]:
        """Get the MongoDB async database."""
        return self.client[self.database]

    @cached_property
    def events(self) -> AsyncCollection[dict[str, Any]]:
        """Get the events collection."""
        return self.db[self.events_collection]

    @cached_property
    def aggregates(self) -> AsyncCollection[dict[str, Any]]:
        """Get the aggregates collection."""
        return self.db[self.aggregates_collection]

    async def on_shutdown(self) -> None:
        """Close the MongoDB client connection if it was created."""
        if "client" in self.__dict__:
            await self.client.close()
