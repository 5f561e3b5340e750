"""Decorator based routing of commands and events to aggregate methods.

Handler methods are tagged with the kind of message they take and the class
their message parameter is annotated with. When an aggregate class is
defined, its tagged methods are collected into a MessageRouter, one per
kind.
"""

import inspect
from collections.abc import Callable
from functools import singledispatch
from typing import Any, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

Unrouted = Callable[[Any, Any], Any]

_ROUTE_ATTR = "_eventsource_route"

COMMAND = "handler"
EVENT = "applier"


def message_type_of(func: Callable[..., Any]) -> type:
    """Return the class a handler's message parameter is annotated with.

    The message is the first parameter after ``self``.

    Raises:
        ValueError: If the handler takes no message, or its annotation is
            missing or is not a class.
    """
    name = getattr(func, "__qualname__", repr(func))
    params = list(inspect.signature(func).parameters.values())
    if len(params) < 2:
        raise ValueError(f"Handler {name} must accept self and a message")

    param = params[1]
    if param.annotation is inspect.Parameter.empty:
        raise ValueError(f"Handler {name} parameter '{param.name}' must have a type annotation")
    if not isinstance(param.annotation, type):
        raise ValueError(f"Handler {name} must be annotated with a class, got {param.annotation!r}")
    return param.annotation


def rejecting(kind: str, error_type: type[Exception]) -> Unrouted:
    """Build the fallback that raises for messages without a handler."""

    def reject(instance: Any, message: Any) -> Any:
        raise error_type(
            f"No {kind} registered on {type(instance).__name__} for {type(message).__name__}"
        )

    return reject


class MessageRouter:
    """Dispatches a message to the method registered for its class.

    Lookup walks the message's MRO through functools.singledispatch, so a
    method registered for a base class also receives its subclasses.
    """

    __slots__ = ("_dispatch",)

    def __init__(self, unrouted: Unrouted):
        @singledispatch
        def dispatch(message: object, instance: object) -> object:
            return unrouted(instance, message)

        self._dispatch = dispatch

    def register(self, message_type: type, method: Callable[[Any, Any], Any]) -> None:
        self._dispatch.register(message_type, lambda message, instance: method(instance, message))

    def route(self, instance: Any, message: Any) -> object:
        """Call the method registered for ``message`` on ``instance``."""
        return self._dispatch(message, instance)


class HandlerDecorator:
    """Tags a method as routing one kind of message.

    The message class is read from the method's annotation at decoration
    time, so a missing annotation fails when the class is defined.
    """

    def __init__(self, kind: str):
        self.kind = kind

    def __call__(self, func: F) -> F:
        setattr(func, _ROUTE_ATTR, (self.kind, message_type_of(func)))
        return func


handles_command = HandlerDecorator(COMMAND)
applies_event = HandlerDecorator(EVENT)

handles_command.__doc__ = """Decorator marking a method as a command handler.

The command type is automatically extracted from the method's type annotation.
Command handlers return the events the command produced; they must not
change the aggregate's state themselves.

Example:
    >>> class Entity(Aggregate, CommandHandler):
    ...     @handles_command
    ...     def handle_create(self, cmd: CreateEntity) -> list[Event]:
    ...         return [EntityCreated(aggregate_id=cmd.aggregate_id, version=1)]
"""

applies_event.__doc__ = """Decorator marking a method as an event applier.

The event type is automatically extracted from the method's type annotation.
Appliers fold one event into the aggregate's state. Events without an
applier are rejected with UnhandledEventError.

Example:
    >>> class Entity(Aggregate):
    ...     name: str = ""
    ...
    ...     @applies_event
    ...     def apply_name_set(self, evt: EntityNameSet) -> None:
    ...         self.name = evt.name
"""


def build_router(cls: type, kind: str, unrouted: Unrouted) -> MessageRouter:
    """Collect the methods of ``cls`` tagged with ``kind`` into a router.

    Base classes register first, so a subclass method for the same message
    class replaces the inherited one.
    """
    router = MessageRouter(unrouted)
    for klass in reversed(cls.__mro__):
        for member in vars(klass).values():
            route = getattr(member, _ROUTE_ATTR, None)
            if route is not None and route[0] == kind:
                router.register(route[1], member)
    return router


def setup_command_routing(cls: type) -> MessageRouter:
    return build_router(cls, COMMAND, rejecting(COMMAND, NotImplementedError))


def setup_event_applying(cls: type) -> MessageRouter:
    from .domain.exceptions import UnhandledEventError

    return build_router(cls, EVENT, rejecting(EVENT, UnhandledEventError))
