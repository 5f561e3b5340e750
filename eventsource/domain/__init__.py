"""Domain primitives for event sourcing.

This module contains the core building blocks that users extend to create
their domain models:

- Aggregate: Base class for domain aggregates rebuilt by folding events
- CommandHandler: Capability mixin for aggregates that accept commands
- Command: Base class for command messages
- Event: Base class for event messages
- Exceptions classifying encoding, registry, not-found and fold failures
"""

from .aggregate import Aggregate, CommandHandler
from .command import Command
from .event import Event, event_type, utc_now
from .exceptions import (
    AggregateNotFoundError,
    ConcurrencyError,
    EventSourceError,
    InvalidEncodingError,
    UnboundEventTypeError,
    UnhandledEventError,
    is_not_found,
)

__all__ = [
    "Aggregate",
    "CommandHandler",
    "Command",
    "Event",
    "event_type",
    "utc_now",
    "EventSourceError",
    "InvalidEncodingError",
    "UnboundEventTypeError",
    "AggregateNotFoundError",
    "UnhandledEventError",
    "ConcurrencyError",
    "is_not_found",
]
