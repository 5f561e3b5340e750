"""Persistence of serialized events.

This package provides:
- Record / History: the stored form of events
- Store: Abstract interface for ordered, append-only persistence
- AggregateSaver: Capability to persist the folded aggregate with its records
- InMemoryStore: Simple in-memory implementation for testing
"""

from .base import (
    AggregateSaver,
    History,
    Record,
    SaveAggregateInput,
    Store,
    in_range,
    sort_history,
)
from .memory import InMemoryStore

__all__ = [
    "Record",
    "History",
    "Store",
    "AggregateSaver",
    "SaveAggregateInput",
    "InMemoryStore",
    "in_range",
    "sort_history",
]
