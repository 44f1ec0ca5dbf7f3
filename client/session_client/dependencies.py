"""Shared instances for the session client."""

from session_client.api.client import BackendClient
from session_client.config import Settings, get_settings
from session_client.session.lifecycle import SessionLifecycleManager
from session_client.storage.client_store import ClientSessionStore
from session_client.storage.kv_store import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    MongoKeyValueStore,
)

# Global singleton instances, one per application process
_store: ClientSessionStore | None = None
_backend: BackendClient | None = None
_lifecycle: SessionLifecycleManager | None = None


def build_key_value_store(settings: Settings) -> KeyValueStore:
    """Construct the durable backend selected by ``storage_backend``."""
    if settings.storage_backend == "memory":
        return InMemoryKeyValueStore()
    if settings.storage_backend == "mongodb":
        return MongoKeyValueStore.connect(
            settings.mongodb_uri,
            settings.mongodb_database,
            settings.storage_collection,
        )
    return JsonFileKeyValueStore(settings.storage_path)


def get_client_store() -> ClientSessionStore:
    """Return singleton ClientSessionStore instance."""
    global _store
    if _store is None:
        _store = ClientSessionStore(build_key_value_store(get_settings()))
    return _store


def get_backend_client() -> BackendClient:
    """Return singleton BackendClient instance."""
    global _backend
    if _backend is None:
        _backend = BackendClient(get_settings())
    return _backend


def get_lifecycle_manager() -> SessionLifecycleManager:
    """Return singleton SessionLifecycleManager instance."""
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = SessionLifecycleManager(
            get_client_store(),
            get_backend_client(),
            get_settings(),
        )
    return _lifecycle
