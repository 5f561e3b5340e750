"""Tests for the repository: load, save and apply."""

import logging
from datetime import datetime, timezone

import pytest

from eventsource import (
    AggregateNotFoundError,
    AggregateSaver,
    Event,
    InMemoryStore,
    JSONSerializer,
    Record,
    Repository,
    SaveAggregateInput,
    UnboundEventTypeError,
    UnhandledEventError,
    is_not_found,
)
from tests.fixtures.test_app import (
    ArchiveEntity,
    CreateEntity,
    Entity,
    EntityArchived,
    EntityCreated,
    EntityDeleted,
    EntityNameSet,
    EntityView,
    Nop,
    SetName,
)


class CountingStore(InMemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.saves = 0

    async def save(self, aggregate_id: str, *records: Record) -> None:
        self.saves += 1
        await super().save(aggregate_id, *records)


class SnapshottingStore(InMemoryStore, AggregateSaver):
    def __init__(self) -> None:
        super().__init__()
        self.inputs: list[SaveAggregateInput] = []
        self.plain_saves = 0

    async def save(self, aggregate_id: str, *records: Record) -> None:
        self.plain_saves += 1
        await super().save(aggregate_id, *records)

    async def save_aggregate(self, input: SaveAggregateInput) -> None:
        self.inputs.append(input)
        await InMemoryStore.save(self, input.aggregate_id, *input.records)


class FailingStore(InMemoryStore):
    async def load(self, aggregate_id: str, from_version: int = 0, to_version: int = 0):
        raise RuntimeError("store unavailable")


# Construction


def test_new_aggregate_from_class():
    repository = Repository(Entity)
    assert repository.new_aggregate() == Entity()


def test_new_aggregate_from_instance_prototype():
    repository = Repository(Entity(name="ignored"))
    aggregate = repository.new_aggregate()

    assert isinstance(aggregate, Entity)
    assert aggregate.name == ""


def test_defaults():
    repository = Repository(Entity)

    assert isinstance(repository.store, InMemoryStore)
    assert isinstance(repository.serializer, JSONSerializer)
    assert repository.serializer.registered_types() == []
    assert repository.observers == ()


def test_accessors_return_bound_collaborators(store, serializer):
    repository = Repository(Entity, store=store, serializer=serializer)

    assert repository.store is store
    assert repository.serializer is serializer


def test_with_observers_returns_new_repository(repository):
    def observer(event: Event) -> None:
        pass

    derived = repository.with_observers(observer)

    assert derived.observers == (observer,)
    assert repository.observers == ()
    assert derived.store is repository.store
    assert derived.serializer is repository.serializer
    assert derived.aggregate_type is Entity


# Save and Load


@pytest.mark.asyncio
async def test_save_then_load(repository):
    await repository.save(
        EntityCreated(aggregate_id="123", version=1, at=datetime.fromtimestamp(3, timezone.utc)),
        EntityNameSet(aggregate_id="123", version=2, at=datetime.fromtimestamp(4, timezone.utc), name="Jones"),
    )

    entity, version = await repository.load("123")

    assert isinstance(entity, Entity)
    assert entity.id == "123"
    assert entity.name == "Jones"
    assert version == 2
    assert entity.created_at == datetime.fromtimestamp(3, timezone.utc)
    assert entity.updated_at == datetime.fromtimestamp(4, timezone.utc)


@pytest.mark.asyncio
async def test_later_save_is_reflected_in_load(repository):
    await repository.save(
        EntityCreated(aggregate_id="123", version=1),
        EntityNameSet(aggregate_id="123", version=2, name="Jones"),
    )
    await repository.save(EntityNameSet(aggregate_id="123", version=3, name="Sarah"))

    entity, version = await repository.load("123")

    assert entity.name == "Sarah"
    assert version == 3


@pytest.mark.asyncio
async def test_events_saved_out_of_order_are_replayed_in_order(repository):
    await repository.save(EntityNameSet(aggregate_id="123", version=3, name="Last"))
    await repository.save(
        EntityCreated(aggregate_id="123", version=1),
        EntityNameSet(aggregate_id="123", version=2, name="First"),
    )

    entity, version = await repository.load("123")

    assert entity.name == "Last"
    assert version == 3


@pytest.mark.asyncio
async def test_save_no_events_is_noop():
    store = CountingStore()
    repository = Repository(Entity, store=store)

    await repository.save()

    assert store.saves == 0


@pytest.mark.asyncio
async def test_load_not_found(repository):
    with pytest.raises(AggregateNotFoundError) as exc_info:
        await repository.load("ghost")

    err = exc_info.value
    assert is_not_found(err)
    assert "Entity" in str(err)
    assert "ghost" in str(err)
    assert isinstance(err.__cause__, AggregateNotFoundError)


@pytest.mark.asyncio
async def test_load_empty_history_is_not_found(store, serializer):
    await store.save("empty")
    repository = Repository(Entity, store=store, serializer=serializer)

    with pytest.raises(AggregateNotFoundError):
        await repository.load("empty")


@pytest.mark.asyncio
async def test_load_is_deterministic(repository):
    await repository.save(
        EntityCreated(aggregate_id="123", version=1),
        EntityNameSet(aggregate_id="123", version=2, name="Jones"),
    )

    first = await repository.load("123")
    second = await repository.load("123")

    assert first == second
    assert first[0] is not second[0]


@pytest.mark.asyncio
async def test_load_unhandled_event(repository):
    await repository.save(
        EntityCreated(aggregate_id="123", version=1),
        EntityDeleted(aggregate_id="123", version=2),
    )

    with pytest.raises(UnhandledEventError, match="EntityDeleted") as exc_info:
        await repository.load("123")

    assert exc_info.value.__cause__ is not None


@pytest.mark.asyncio
async def test_load_wraps_aggregate_rejection(repository):
    await repository.save(
        EntityArchived(aggregate_id="123", version=1),
        EntityArchived(aggregate_id="123", version=2),
    )

    with pytest.raises(UnhandledEventError, match="entity-archived") as exc_info:
        await repository.load("123")

    assert isinstance(exc_info.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_load_unbound_event_type(store):
    writer = Repository(Entity, store=store, serializer=JSONSerializer(EntityCreated))
    reader = Repository(Entity, store=store)
    await writer.save(EntityCreated(aggregate_id="123", version=1))

    with pytest.raises(UnboundEventTypeError):
        await reader.load("123")


@pytest.mark.asyncio
async def test_load_propagates_store_errors(serializer):
    repository = Repository(Entity, store=FailingStore(), serializer=serializer)

    with pytest.raises(RuntimeError, match="store unavailable"):
        await repository.load("123")


# Apply


@pytest.mark.asyncio
async def test_apply_creates_missing_aggregate(repository):
    version = await repository.apply(CreateEntity(aggregate_id="123"))
    assert version == 1

    entity, loaded_version = await repository.load("123")
    assert loaded_version == 1
    assert entity.id == "123"


@pytest.mark.asyncio
async def test_apply_increments_version(repository):
    assert await repository.apply(CreateEntity(aggregate_id="123")) == 1
    assert await repository.apply(CreateEntity(aggregate_id="123")) == 2


@pytest.mark.asyncio
async def test_apply_sees_current_state(repository):
    await repository.apply(CreateEntity(aggregate_id="123"))
    version = await repository.apply(SetName(aggregate_id="123", name="Jones"))

    entity, _ = await repository.load("123")
    assert version == 2
    assert entity.name == "Jones"


@pytest.mark.asyncio
async def test_apply_no_events_on_missing_aggregate_reports_zero():
    store = CountingStore()
    repository = Repository(Entity, store=store)

    assert await repository.apply(Nop(aggregate_id="abc")) == 0
    assert store.saves == 0


@pytest.mark.asyncio
async def test_apply_no_events_reports_prior_version(serializer):
    store = CountingStore()
    repository = Repository(Entity, store=store, serializer=serializer)
    await repository.apply(CreateEntity(aggregate_id="123"))
    await repository.apply(SetName(aggregate_id="123", name="Jones"))
    saves = store.saves

    version = await repository.apply(SetName(aggregate_id="123", name="Jones"))

    assert version == 2
    assert store.saves == saves


@pytest.mark.asyncio
async def test_apply_rejects_none(repository):
    with pytest.raises(ValueError, match="may not be None"):
        await repository.apply(None)


@pytest.mark.asyncio
async def test_apply_rejects_blank_aggregate_id(repository):
    with pytest.raises(ValueError, match="blank aggregate_id"):
        await repository.apply(CreateEntity(aggregate_id=""))


@pytest.mark.asyncio
async def test_apply_requires_command_handler(serializer):
    repository = Repository(EntityView, serializer=serializer)

    with pytest.raises(TypeError, match="CommandHandler"):
        await repository.apply(SetName(aggregate_id="123", name="Jones"))


@pytest.mark.asyncio
async def test_apply_propagates_handler_error_unchanged(repository):
    with pytest.raises(ValueError, match="entity does not exist"):
        await repository.apply(SetName(aggregate_id="123", name="Jones"))

    with pytest.raises(AggregateNotFoundError):
        await repository.load("123")


@pytest.mark.asyncio
async def test_apply_propagates_non_not_found_load_errors(serializer):
    repository = Repository(Entity, store=FailingStore(), serializer=serializer)

    with pytest.raises(RuntimeError, match="store unavailable"):
        await repository.apply(CreateEntity(aggregate_id="123"))


@pytest.mark.asyncio
async def test_apply_publishes_to_observers(serializer):
    captured: list[Event] = []
    repository = Repository(Entity, serializer=serializer, observers=[captured.append])

    await repository.apply(CreateEntity(aggregate_id="abc"))

    assert len(captured) == 1
    assert isinstance(captured[0], EntityCreated)
    assert captured[0].aggregate_id == "abc"


@pytest.mark.asyncio
async def test_apply_publishes_each_event_to_every_observer_in_order(serializer):
    calls: list[tuple[str, int]] = []

    def first(event: Event) -> None:
        calls.append(("first", event.version))

    def second(event: Event) -> None:
        calls.append(("second", event.version))

    repository = Repository(Entity, serializer=serializer, observers=[first, second])
    await repository.apply(CreateEntity(aggregate_id="abc"))
    await repository.apply(SetName(aggregate_id="abc", name="Jones"))

    assert calls == [("first", 1), ("second", 1), ("first", 2), ("second", 2)]


@pytest.mark.asyncio
async def test_apply_no_events_publishes_nothing(serializer):
    captured: list[Event] = []
    repository = Repository(Entity, serializer=serializer, observers=[captured.append])

    await repository.apply(Nop(aggregate_id="abc"))

    assert captured == []


@pytest.mark.asyncio
async def test_observer_errors_propagate_after_persisting(repository):
    def broken(event: Event) -> None:
        raise RuntimeError("observer failed")

    with pytest.raises(RuntimeError, match="observer failed"):
        await repository.with_observers(broken).apply(CreateEntity(aggregate_id="abc"))

    _, version = await repository.load("abc")
    assert version == 1


@pytest.mark.asyncio
async def test_apply_prefers_aggregate_saver(serializer):
    store = SnapshottingStore()
    repository = Repository(Entity, store=store, serializer=serializer)

    await repository.apply(CreateEntity(aggregate_id="123"))
    version = await repository.apply(SetName(aggregate_id="123", name="Jones"))

    assert version == 2
    assert store.plain_saves == 0
    assert len(store.inputs) == 2

    saved = store.inputs[-1]
    assert saved.aggregate_id == "123"
    assert isinstance(saved.aggregate, Entity)
    assert saved.aggregate.name == "Jones"
    assert saved.aggregate.version == 2
    assert [event.version for event in saved.events] == [2]
    assert [record.version for record in saved.records] == [2]

    entity, _ = await repository.load("123")
    assert entity == saved.aggregate


@pytest.mark.asyncio
async def test_apply_no_events_skips_aggregate_saver(serializer):
    store = SnapshottingStore()
    repository = Repository(Entity, store=store, serializer=serializer)
    await repository.apply(CreateEntity(aggregate_id="123"))

    version = await repository.apply(Nop(aggregate_id="123"))

    assert version == 1
    assert len(store.inputs) == 1
    assert store.plain_saves == 0


@pytest.mark.asyncio
async def test_apply_with_aggregate_saver_wraps_fold_failure(serializer):
    store = SnapshottingStore()
    repository = Repository(Entity, store=store, serializer=serializer)
    await repository.apply(ArchiveEntity(aggregate_id="123"))

    with pytest.raises(UnhandledEventError, match="123") as exc_info:
        await repository.apply(ArchiveEntity(aggregate_id="123"))

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert len(store.inputs) == 1


@pytest.mark.asyncio
async def test_apply_persists_with_serializer(store):
    repository = Repository(Entity, store=store, serializer=JSONSerializer(EntityCreated))

    await repository.apply(CreateEntity(aggregate_id="123"))

    history = await store.load("123")
    assert len(history) == 1
    assert repository.serializer.unmarshal_event(history[0]).aggregate_id == "123"


# Logging


@pytest.mark.asyncio
async def test_debug_logs_at_info(caplog, serializer):
    repository = Repository(Entity, serializer=serializer, debug=True)

    with caplog.at_level(logging.INFO, logger="eventsource.repository"):
        await repository.apply(CreateEntity(aggregate_id="123"))
        await repository.load("123")

    messages = [record.getMessage() for record in caplog.records]
    assert "Loaded 1 event(s) for aggregate id, 123" in messages


@pytest.mark.asyncio
async def test_logs_at_debug_by_default(caplog, serializer):
    repository = Repository(Entity, serializer=serializer)
    await repository.save(EntityCreated(aggregate_id="123", version=1))

    with caplog.at_level(logging.INFO, logger="eventsource.repository"):
        await repository.load("123")

    assert caplog.records == []


@pytest.mark.asyncio
async def test_custom_logger_receives_records(caplog, serializer):
    logger = logging.getLogger("tests.repository.custom")
    repository = Repository(Entity, serializer=serializer, logger=logger)

    with caplog.at_level(logging.DEBUG, logger="tests.repository.custom"):
        await repository.save(EntityCreated(aggregate_id="123", version=1))

    assert [record.name for record in caplog.records] == ["tests.repository.custom"]
    assert caplog.records[0].aggregate_id == "123"
