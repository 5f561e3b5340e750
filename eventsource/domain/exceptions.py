"""Exceptions raised by the event sourcing core.

Every error is classified by its class, so callers test for a condition
with ``isinstance`` (or ``is_not_found``) instead of matching messages.
Wrapping always uses ``raise ... from err`` which keeps the original
failure inspectable through ``__cause__``.
"""


class EventSourceError(Exception):
    """Base class for all errors raised by the event sourcing core."""


class InvalidEncodingError(EventSourceError):
    """Raised when a serializer cannot encode or decode an event payload."""


class UnboundEventTypeError(EventSourceError):
    """Raised when a record names an event type that was never registered."""

    def __init__(self, event_type: str):
        super().__init__(f"no event type registered with name, {event_type}")
        self.event_type = event_type


class AggregateNotFoundError(EventSourceError):
    """Raised when no history exists for an aggregate id."""


class UnhandledEventError(EventSourceError):
    """Raised when an aggregate is unable to apply an event it was given."""


class ConcurrencyError(EventSourceError):
    """Raised when a store detects a version collision.

    This exception indicates that another writer appended an event with
    the same version to the aggregate between when it was loaded and when
    changes were attempted to be saved.
    """


def is_not_found(err: BaseException | None) -> bool:
    """Check whether an error, or any error it wraps, is a not-found error.

    Args:
        err: The error to classify.

    Returns:
        True if ``err`` or anything in its ``__cause__``/``__context__``
        chain is an AggregateNotFoundError.
    """
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, AggregateNotFoundError):
            return True
        seen.add(id(err))
        err = err.__cause__ or err.__context__
    return False
