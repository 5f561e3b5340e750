from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, ClassVar

from pydantic import BaseModel

from ..routing import setup_command_routing, setup_event_applying
from .command import Command
from .event import Event

if TYPE_CHECKING:
    from ..routing import MessageRouter


class Aggregate(BaseModel):
    """Base class for all aggregates in the event sourcing system.

    An aggregate's current state is a left fold over its events: a fresh
    instance has every field at its default, and each event in its history
    is applied in ascending version order through ``on``.

    Event application is routed based on method decorators. Use
    @applies_event to mark event applier methods; the framework routes each
    event to the applier whose annotation matches its type. An event with no
    applier is rejected with UnhandledEventError rather than ignored.

    Aggregates that accept commands also inherit from CommandHandler.

    Examples:
        >>> class Entity(Aggregate):
        ...     name: str = ""
        ...
        ...     @applies_event
        ...     def apply_name_set(self, evt: EntityNameSet) -> None:
        ...         self.name = evt.name
        >>>
        >>> entity = Entity()
        >>> entity.on(EntityNameSet(aggregate_id="123", version=1, name="Jones"))
        >>> entity.name, entity.version
        ('Jones', 1)

    Attributes:
        id: ID of the aggregate, taken from the events applied to it.
            Empty until the first event is applied.
        version: Version of the last event applied.
    """

    id: str = ""
    version: int = 0

    _event_router: ClassVar["MessageRouter"]

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Set up event routing when a subclass is defined."""
        super().__init_subclass__(**kwargs)  # type: ignore[arg-type]
        cls._event_router = setup_event_applying(cls)

    def on(self, event: Event) -> None:
        """Fold a single event into the aggregate state.

        Args:
            event: The event to apply.

        Raises:
            UnhandledEventError: If no applier is registered for the event type.
            Exception: Anything the applier itself raises to reject the event.
        """
        self._event_router.route(self, event)
        self.id = event.aggregate_id
        self.version = event.version

    def replay_events(self, events: Sequence[Event]) -> None:
        """Replay a sequence of events to rebuild the aggregate's state.

        Args:
            events: Events to apply, in ascending version order.
        """
        for event in events:
            self.on(event)


class CommandHandler:
    """Capability mixin for aggregates that accept commands.

    Command handlers are routed based on the @handles_command decorator.
    A handler inspects the current state and returns the events the command
    produces, or an empty list when the command is a no-op. Handlers do not
    apply the events themselves; the repository persists and folds them.
    Raise an exception to reject a command.

    Subclasses may also override ``handle`` directly instead of using the
    decorator.
    """

    _command_router: ClassVar["MessageRouter"]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)  # type: ignore[arg-type]
        cls._command_router = setup_command_routing(cls)

    def handle(self, command: Command) -> list[Event]:
        """Route a command to its registered handler method.

        Args:
            command: The command to handle.

        Handlers may return a list of events, a single event or None.

        Returns:
            The events produced by the command, in generation order.

        Raises:
            NotImplementedError: If no handler is registered for this command type.
            TypeError: If the handler returns anything other than events.
        """
        result = self._command_router.route(self, command)
        if result is None:
            return []
        # Checked before Iterable: pydantic models iterate over their fields
        if isinstance(result, Event):
            return [result]
        if not isinstance(result, Iterable):
            raise TypeError(
                f"handler for {type(command).__name__} must return events, "
                f"got {type(result).__name__}"
            )

        events = list(result)
        for event in events:
            if not isinstance(event, Event):
                raise TypeError(
                    f"handler for {type(command).__name__} returned a non-event, "
                    f"{type(event).__name__}"
                )
        return events
