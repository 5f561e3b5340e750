"""Pytest fixtures for MongoDB integration tests."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from pymongo.errors import PyMongoError

from eventsource.integrations.mongodb import MongoConfiguration, MongoStore

# Assumes a MongoDB container is running locally on port 27017
LOCAL_MONGO_URI = "mongodb://localhost:27017"


@asynccontextmanager
async def create_config(
    request: pytest.FixtureRequest,
    prefix: str = "test",
) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration with a fresh database and cleanup."""
    db_name = f"{prefix}_{request.node.name}"[:63]
    config = MongoConfiguration(
        uri=LOCAL_MONGO_URI,
        database=db_name,
        server_selection_timeout_ms=1000,
    )
    try:
        await config.client.admin.command("ping")
        await config.client.drop_database(config.database)
    except PyMongoError as err:
        await config.on_shutdown()
        pytest.skip(f"MongoDB is not reachable at {LOCAL_MONGO_URI}: {err}")
    try:
        yield config
    finally:
        await config.on_shutdown()


@pytest_asyncio.fixture
async def mongo_config(request: pytest.FixtureRequest) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration pointing to local MongoDB."""
    async with create_config(request) as config:
        yield config


@pytest_asyncio.fixture
async def mongo_store(mongo_config: MongoConfiguration) -> MongoStore:
    """Create a MongoStore with its indexes in place."""
    store = MongoStore(mongo_config)
    await store.initialize_schema()
    return store
