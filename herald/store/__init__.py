"""Repository interfaces and backing stores for Herald.

Configuration entities (channels, events, rules, templates), applications
and staff are read through the protocols in ``herald.store.base``.  The
message log store is the only one the engine appends to at runtime.

Two backends ship with the package: ``herald.store.memory`` (tests, demo)
and ``herald.store.sqlite`` (durable message logs and escalation watches).
"""

from herald.store.base import ApplicationStore, ConfigStore, MessageLogStore, StaffStore
from herald.store.memory import InMemoryCatalog, InMemoryMessageLogStore
from herald.store.sqlite import SqliteMessageLogStore

__all__ = [
    "ApplicationStore",
    "ConfigStore",
    "MessageLogStore",
    "StaffStore",
    "InMemoryCatalog",
    "InMemoryMessageLogStore",
    "SqliteMessageLogStore",
]
