"""MongoDB integration for the eventsource persistence core.

Installation:
    pip install eventsource[mongodb]

Usage:
    >>> from eventsource.integrations.mongodb import MongoConfiguration, MongoStore
    >>>
    >>> config = MongoConfiguration(
    ...     uri="mongodb://localhost:27017",
    ...     database="myapp"
    ... )
    >>> store = MongoStore(config)
    >>> await store.initialize_schema()
    >>> repository = Repository(Entity, store=store, serializer=serializer)
"""

try:
    import pymongo  # noqa: F401
except ImportError as err:
    raise ImportError(
        "pymongo package is required for MongoDB integration. "
        "Install it with: pip install eventsource[mongodb]"
    ) from err

from .config import MongoConfiguration
from .store import MongoStore

__all__ = [
    "MongoConfiguration",
    "MongoStore",
]
