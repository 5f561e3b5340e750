"""eventsource - Event Sourcing persistence core for Python.

Aggregates are rebuilt by replaying their ordered history of events, and
commands are turned into new events that are persisted and published.

This module provides the public API.
"""

from .domain import (
    Aggregate,
    AggregateNotFoundError,
    Command,
    CommandHandler,
    ConcurrencyError,
    Event,
    EventSourceError,
    InvalidEncodingError,
    UnboundEventTypeError,
    UnhandledEventError,
    event_type,
    is_not_found,
)
from .repository import Observer, Repository
from .routing import applies_event, handles_command
from .serialization import JSONSerializer, Serializer
from .store import (
    AggregateSaver,
    History,
    InMemoryStore,
    Record,
    SaveAggregateInput,
    Store,
)

__all__ = [
    # Repository
    "Repository",
    "Observer",
    # Domain primitives
    "Aggregate",
    "CommandHandler",
    "Command",
    "Event",
    "event_type",
    # Serialization
    "Serializer",
    "JSONSerializer",
    # Storage
    "Store",
    "AggregateSaver",
    "SaveAggregateInput",
    "InMemoryStore",
    "Record",
    "History",
    # Errors
    "EventSourceError",
    "InvalidEncodingError",
    "UnboundEventTypeError",
    "AggregateNotFoundError",
    "UnhandledEventError",
    "ConcurrencyError",
    "is_not_found",
    # Decorators
    "applies_event",
    "handles_command",
]
