"""Storage module - durable key-value backends and the shared client store."""

from .client_store import ClientSessionStore
from .kv_store import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    MongoKeyValueStore,
)

__all__ = [
    "ClientSessionStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MongoKeyValueStore",
]
