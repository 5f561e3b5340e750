from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Get the current UTC timestamp.

    Returns:
        Current datetime with UTC timezone information

    Note:
        Used as default_factory for Event.at to ensure all
        events are timestamped in UTC regardless of system timezone.
    """
    return datetime.now(tz=timezone.utc)


class Event(BaseModel):
    """Immutable record of a state change in an aggregate.

    Event is the core data structure in event sourcing. Each event represents
    a fact that occurred in the past - a state transition in an aggregate's
    lifecycle. Events are:

    - **Immutable**: Once created, events cannot be modified
    - **Ordered**: Events carry a version for ordering within an aggregate
    - **Typed**: Each subclass is routed by its event type name
    - **Timestamped**: All events record when they occurred (UTC)

    Concrete events subclass Event and add their domain fields. The base
    class carries the metadata every event shares.

    Attributes:
        aggregate_id: ID of the aggregate that produced this event
        version: Position in the aggregate's history. Strictly increasing
            per aggregate; gaps are allowed.
        at: When the event occurred (UTC timezone)

    Examples:
        >>> class NameSet(Event):
        ...     name: str
        >>>
        >>> event = NameSet(aggregate_id="123", version=2, name="Jones")
        >>> event.event_type()
        'NameSet'

        Pin the persisted type name so the class can be renamed safely:

        >>> class NameChanged(Event):
        ...     name: str
        ...
        ...     @classmethod
        ...     def event_type(cls) -> str:
        ...         return "NameSet"
    """

    model_config = ConfigDict(frozen=True)

    aggregate_id: str = Field(description="ID of the aggregate that produced this event")
    version: int = Field(
        default=0,
        description="Position in the aggregate's history (strictly increasing)",
    )
    at: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC timezone)",
    )

    @classmethod
    def event_type(cls) -> str:
        """Name used to tag this event type when it is persisted.

        Defaults to the class name. Override to decouple the persisted
        tag from the Python class name.
        """
        return cls.__name__


def event_type(event: Event | type[Event]) -> str:
    """Resolve the event type name of an event instance or class."""
    cls = event if isinstance(event, type) else type(event)
    return cls.event_type()
