"""Test domain shared by the unit and integration tests."""

from .aggregates.entity import (
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

__all__ = [
    "Entity",
    "EntityView",
    "CreateEntity",
    "SetName",
    "ArchiveEntity",
    "Nop",
    "EntityCreated",
    "EntityNameSet",
    "EntityArchived",
    "EntityDeleted",
]
