import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Generic, TypeVar

from typing_extensions import Self

from .domain import Aggregate, Command, CommandHandler, Event, event_type
from .domain.exceptions import AggregateNotFoundError, UnhandledEventError
from .serialization import JSONSerializer, Serializer
from .store import AggregateSaver, History, InMemoryStore, SaveAggregateInput, Store

LOGGER = logging.getLogger(__name__)

A = TypeVar("A", bound=Aggregate)

Observer = Callable[[Event], None]


class Repository(Generic[A]):
    """Loads aggregates by replaying their history and persists new events.

    A repository is bound to one aggregate type, a Store and a Serializer.
    Aggregate state is never cached: every ``load`` and ``apply`` folds the
    full history into a fresh instance that belongs to the caller.

    Examples:
        >>> repository = Repository(
        ...     Entity,
        ...     serializer=JSONSerializer(EntityCreated, EntityNameSet),
        ... )
        >>> version = await repository.apply(CreateEntity(aggregate_id="123"))
        >>> entity, version = await repository.load("123")
    """

    __slots__ = ("aggregate_type", "_store", "_serializer", "_observers", "_level", "_logger")

    def __init__(
        self,
        prototype: A | type[A],
        *,
        store: Store | None = None,
        serializer: Serializer | None = None,
        observers: Iterable[Observer] = (),
        debug: bool = False,
        logger: logging.Logger | None = None,
    ):
        """Initialize the repository.

        Args:
            prototype: The aggregate class, or an instance of it, that
                histories are folded into.
            store: Where records are persisted. Defaults to an
                InMemoryStore suitable for testing only.
            serializer: Encodes and decodes events. Defaults to a
                JSONSerializer with no registered event types.
            observers: Callables receiving every event generated by
                ``apply``. They run synchronously, so keep them short.
            debug: Log repository activity at INFO instead of DEBUG.
            logger: Logger receiving repository activity. Defaults to
                this module's logger.
        """
        self.aggregate_type: type[A] = (
            prototype if isinstance(prototype, type) else type(prototype)
        )
        self._store = store if store is not None else InMemoryStore()
        self._serializer = serializer if serializer is not None else JSONSerializer()
        self._observers: tuple[Observer, ...] = tuple(observers)
        self._level = logging.INFO if debug else logging.DEBUG
        self._logger = logger or LOGGER

    @property
    def store(self) -> Store:
        """The underlying Store."""
        return self._store

    @property
    def serializer(self) -> Serializer:
        """The underlying Serializer."""
        return self._serializer

    @property
    def observers(self) -> tuple[Observer, ...]:
        return self._observers

    def with_observers(self, *observers: Observer) -> Self:
        """Return a repository that also notifies the given observers.

        The observers of an existing repository never change, so a
        repository can be shared between tasks while new ones are derived.
        """
        derived = type(self).__new__(type(self))
        derived.aggregate_type = self.aggregate_type
        derived._store = self._store
        derived._serializer = self._serializer
        derived._observers = (*self._observers, *observers)
        derived._level = self._level
        derived._logger = self._logger
        return derived

    def new_aggregate(self) -> A:
        """Create a new, empty instance of the bound aggregate type."""
        return self.aggregate_type()

    def _log(self, message: str, *args: object, **extra: object) -> None:
        self._logger.log(self._level, message, *args, extra=extra)

    async def save(self, *events: Event) -> None:
        """Persist events into the underlying Store.

        All events are assumed to belong to the aggregate of the first one.

        Args:
            *events: Events to persist. Nothing happens when empty.

        Raises:
            InvalidEncodingError: If an event cannot be serialized.
        """
        if not events:
            return

        aggregate_id = events[0].aggregate_id
        records = self._serializer.marshal_all(*events)
        await self._store.save(aggregate_id, *records)
        self._log(
            "Saved %d event(s) for aggregate id, %s",
            len(records),
            aggregate_id,
            aggregate_id=aggregate_id,
            event_count=len(records),
        )

    async def load(self, aggregate_id: str) -> tuple[A, int]:
        """Rebuild an aggregate from its full history.

        Args:
            aggregate_id: ID of the aggregate to load.

        Returns:
            The folded aggregate and the version of the last event applied.

        Raises:
            AggregateNotFoundError: If the aggregate has no history.
            UnhandledEventError: If the aggregate rejects one of its events.
            UnboundEventTypeError: If a record names an unregistered type.
            InvalidEncodingError: If a record cannot be decoded.
        """
        aggregate_name = self.aggregate_type.__name__
        try:
            history = await self._store.load(aggregate_id, 0, 0)
        except AggregateNotFoundError as err:
            raise AggregateNotFoundError(
                f"unable to load {aggregate_name}, {aggregate_id}"
            ) from err

        if not history:
            raise AggregateNotFoundError(f"unable to load {aggregate_name}, {aggregate_id}")

        self._log(
            "Loaded %d event(s) for aggregate id, %s",
            len(history),
            aggregate_id,
            aggregate_id=aggregate_id,
            aggregate_type=aggregate_name,
            event_count=len(history),
        )
        return self._replay(history)

    def _replay(self, history: History) -> tuple[A, int]:
        aggregate = self.new_aggregate()
        version = 0
        for record in history:
            event = self._serializer.unmarshal_event(record)
            try:
                aggregate.on(event)
            except Exception as err:
                raise UnhandledEventError(
                    f"aggregate was unable to handle event, {event_type(event)}: {err}"
                ) from err
            version = event.version

        return aggregate, version

    async def apply(self, command: Command) -> int:
        """Execute a command against the current state of its aggregate.

        The aggregate is loaded (or created empty if it has no history),
        the command is handled, the resulting events are persisted and then
        published to every observer.

        Args:
            command: The command to execute.

        Returns:
            The version of the last event the command produced, or the
            version the aggregate already had when it produced none.

        Raises:
            ValueError: If the command is None or has a blank aggregate id.
            TypeError: If the aggregate does not implement CommandHandler.
            Exception: Whatever the command handler, serializer, store or
                observers raise, unchanged.
        """
        if command is None:
            raise ValueError("command provided to Repository.apply may not be None")
        aggregate_id = command.aggregate_id
        if not aggregate_id:
            raise ValueError("command provided to Repository.apply may not contain a blank aggregate_id")

        try:
            aggregate, version = await self.load(aggregate_id)
        except AggregateNotFoundError:
            aggregate, version = self.new_aggregate(), 0

        if not isinstance(aggregate, CommandHandler):
            raise TypeError(f"aggregate, {type(aggregate).__name__}, does not implement CommandHandler")

        events = aggregate.handle(command)
        if events:
            records = self._serializer.marshal_all(*events)

            if isinstance(self._store, AggregateSaver):
                self._fold(aggregate, aggregate_id, events)
                await self._store.save_aggregate(
                    SaveAggregateInput(
                        aggregate_id=aggregate_id,
                        aggregate=aggregate,
                        events=list(events),
                        records=records,
                    )
                )
            else:
                await self._store.save(aggregate_id, *records)

            version = events[-1].version
            self._log(
                "Applied %s to aggregate id, %s producing %d event(s)",
                type(command).__name__,
                aggregate_id,
                len(events),
                aggregate_id=aggregate_id,
                event_count=len(events),
            )

        self._publish(events)
        return version

    @staticmethod
    def _fold(aggregate: Aggregate, aggregate_id: str, events: Sequence[Event]) -> None:
        for event in events:
            try:
                aggregate.on(event)
            except Exception as err:
                raise UnhandledEventError(
                    f"unable to apply generated events to aggregate, {aggregate_id}: {err}"
                ) from err

    def _publish(self, events: Sequence[Event]) -> None:
        for event in events:
            for observer in self._observers:
                observer(event)
