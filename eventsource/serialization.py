"""Serialization of events to and from persisted records.

A serializer owns a type registry mapping event type names to event
classes. The registry is built once when the serializer is constructed and
never changes afterwards, so a serializer can be shared freely between
repositories and tasks.
"""

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_core import PydanticSerializationError
from typing_extensions import Self

from .domain import Event, event_type
from .domain.exceptions import InvalidEncodingError, UnboundEventTypeError
from .store import History, Record


class Serializer(ABC):
    """Converts between events and their persisted records."""

    @abstractmethod
    def marshal_event(self, event: Event) -> Record:
        """Encode one event, including its type name.

        Raises:
            InvalidEncodingError: If the event payload cannot be encoded.
        """
        ...

    @abstractmethod
    def unmarshal_event(self, record: Record) -> Event:
        """Decode a record back into a new instance of its event class.

        Raises:
            UnboundEventTypeError: If the record's type name is not registered.
            InvalidEncodingError: If the payload cannot be decoded.
        """
        ...

    def marshal_all(self, *events: Event) -> History:
        """Encode several events, stopping at the first failure."""
        return [self.marshal_event(event) for event in events]


class _Envelope(BaseModel):
    """On-disk shape of one event: its type name and its fields."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(alias="t")
    data: dict[str, Any] = Field(alias="d")


def _event_class(event: Event | type[Event]) -> type[Event]:
    cls = event if isinstance(event, type) else type(event)
    if not issubclass(cls, Event):
        raise TypeError(f"{cls.__name__} is not an Event subclass")
    return cls


class JSONSerializer(Serializer):
    """Serializer encoding each event as a self-describing JSON document.

    Each record holds ``{"t": <event type>, "d": <event fields>}``. Event
    fields are dumped with pydantic in JSON mode, so any field type pydantic
    can serialize round-trips.

    Examples:
        >>> serializer = JSONSerializer(EntityCreated, EntityNameSet)
        >>> record = serializer.marshal_event(
        ...     EntityNameSet(aggregate_id="123", version=2, name="Jones")
        ... )
        >>> serializer.unmarshal_event(record).name
        'Jones'
    """

    def __init__(self, *events: Event | type[Event]):
        """Build the type registry.

        Args:
            *events: Event classes or example instances to register. Only
                the class of an instance matters.

        Raises:
            TypeError: If an argument is not an Event class or instance.
            ValueError: If two different classes share an event type name.
        """
        registry: dict[str, type[Event]] = {}
        for event in events:
            cls = _event_class(event)
            name = event_type(cls)
            bound = registry.setdefault(name, cls)
            if bound is not cls:
                raise ValueError(
                    f"event type {name!r} is bound to both "
                    f"{bound.__qualname__} and {cls.__qualname__}"
                )
        self._registry = MappingProxyType(registry)

    def bind(self, *events: Event | type[Event]) -> Self:
        """Return a new serializer with additional event types registered."""
        return type(self)(*self._registry.values(), *events)

    def registered_types(self) -> list[str]:
        """Names of all registered event types."""
        return sorted(self._registry)

    def marshal_event(self, event: Event) -> Record:
        try:
            envelope = _Envelope(type=event_type(event), data=event.model_dump(mode="json"))
            data = envelope.model_dump_json(by_alias=True).encode("utf-8")
        except (PydanticSerializationError, ValueError, TypeError) as err:
            raise InvalidEncodingError(
                f"unable to encode event, {type(event).__name__}: {err}"
            ) from err

        return Record(version=event.version, data=data)

    def unmarshal_event(self, record: Record) -> Event:
        try:
            envelope = _Envelope.model_validate_json(record.data)
        except ValidationError as err:
            raise InvalidEncodingError(
                f"unable to decode record at version {record.version}"
            ) from err

        cls = self._registry.get(envelope.type)
        if cls is None:
            raise UnboundEventTypeError(envelope.type)

        try:
            return cls.model_validate(envelope.data)
        except ValidationError as err:
            raise InvalidEncodingError(f"unable to decode event, {envelope.type}") from err
