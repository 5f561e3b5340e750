"""Central test fixtures - imports from unified test_app."""

import pytest
from ulid import ULID

from eventsource import InMemoryStore, JSONSerializer, Repository
from tests.fixtures.test_app import (
    Entity,
    EntityArchived,
    EntityCreated,
    EntityDeleted,
    EntityNameSet,
)


@pytest.fixture
def aggregate_id() -> str:
    """Generate a unique aggregate ID."""
    return str(ULID())


@pytest.fixture
def serializer() -> JSONSerializer:
    """Create a serializer bound to every test event type."""
    return JSONSerializer(EntityCreated, EntityNameSet, EntityArchived, EntityDeleted)


@pytest.fixture
def store() -> InMemoryStore:
    """Create an in-memory store."""
    return InMemoryStore()


@pytest.fixture
def repository(store: InMemoryStore, serializer: JSONSerializer) -> Repository[Entity]:
    """Create a repository for Entity aggregates."""
    return Repository(Entity, store=store, serializer=serializer)
