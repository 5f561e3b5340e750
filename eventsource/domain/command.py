"""Command base class for the write side of event sourcing.

Commands represent intentions to change state and are applied to aggregates.
"""

from pydantic import BaseModel, Field


class Command(BaseModel):
    """Base class for all commands in the system.

    Commands represent intentions to change state and are handled by
    aggregates that implement CommandHandler. Every command names the
    aggregate instance it targets. Commands are transient - they are never
    persisted, only the events they produce are.

    Attributes:
        aggregate_id: ID of the aggregate that should handle this command.

    Examples:
        >>> class SetName(Command):
        ...     name: str
        >>>
        >>> class Entity(Aggregate, CommandHandler):
        ...     @handles_command
        ...     def handle_set_name(self, cmd: SetName) -> list[Event]:
        ...         return [NameSet(aggregate_id=cmd.aggregate_id,
        ...                         version=self.version + 1, name=cmd.name)]
    """

    aggregate_id: str = Field(description="ID of the aggregate this command targets")
