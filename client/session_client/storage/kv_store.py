"""Durable key-value backends for client-side session state.

Every backend exposes the same small synchronous surface, modeled on a
browser's ``localStorage``: string keys mapping to string values.

- ``InMemoryKeyValueStore``: process-local, used by tests and ephemeral runs
- ``JsonFileKeyValueStore``: one JSON object on disk, rewritten atomically
- ``MongoKeyValueStore``: one MongoDB document per key (pymongo, synchronous)

Backends raise ``StorageError`` when the underlying medium fails. Callers in
this package never see that exception directly: ``ClientSessionStore``
downgrades it to "value absent".
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Protocol, runtime_checkable

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from session_client.exceptions import StorageError

logger = logging.getLogger(__name__)

COLLECTION_NAME = "client_storage"


@runtime_checkable
class KeyValueStore(Protocol):
    """Synchronous string-to-string store that survives restarts."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class InMemoryKeyValueStore:
    """Dict-backed store; contents live as long as the instance."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))


class JsonFileKeyValueStore:
    """Whole-file JSON store.

    The file is read once at construction and rewritten on every mutation
    through a temporary file plus ``os.replace`` so a crash never leaves a
    half-written document behind. An unreadable or malformed file starts the
    store empty; it is overwritten on the next write.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._data: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring storage file %s: top level is not an object", self.path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise StorageError(f"Failed to write {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to write {self.path}: {exc}") from exc
        finally:
            if os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError as exc:
                    logger.warning("Could not remove temporary file %s: %s", tmp_name, exc)

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        previous = self._data.get(key)
        self._data[key] = value
        try:
            self._flush()
        except StorageError:
            # Keep memory and disk in agreement.
            if previous is None:
                self._data.pop(key, None)
            else:
                self._data[key] = previous
            raise

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        previous = self._data.pop(key)
        try:
            self._flush()
        except StorageError:
            self._data[key] = previous
            raise

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))


class MongoKeyValueStore:
    """MongoDB-backed store, one document per key.

    Document schema::

        {"key": "chat-messages-session-1760870400000-ab12cd34e", "value": "[...]"}

    Uses **pymongo** (synchronous) because the store contract is synchronous.
    """

    def __init__(self, collection: Collection) -> None:
        self._collection = collection
        try:
            self._collection.create_index("key", unique=True)
        except PyMongoError as exc:
            logger.warning("Could not ensure index on %s: %s", collection.name, exc)

    @classmethod
    def connect(
        cls,
        connection_string: str,
        database_name: str,
        collection_name: str = COLLECTION_NAME,
    ) -> "MongoKeyValueStore":
        client: MongoClient = MongoClient(
            connection_string,
            serverSelectionTimeoutMS=5_000,
        )
        logger.info("Using MongoDB storage %s.%s", database_name, collection_name)
        return cls(client[database_name][collection_name])

    def get_item(self, key: str) -> str | None:
        try:
            doc = self._collection.find_one({"key": key}, {"_id": 0, "value": 1})
        except PyMongoError as exc:
            raise StorageError(f"Failed to read {key!r}: {exc}") from exc
        if not doc:
            return None
        value = doc.get("value")
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        try:
            self._collection.update_one(
                {"key": key},
                {"$set": {"value": value}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StorageError(f"Failed to write {key!r}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        try:
            self._collection.delete_one({"key": key})
        except PyMongoError as exc:
            raise StorageError(f"Failed to remove {key!r}: {exc}") from exc

    def keys(self) -> Iterator[str]:
        try:
            docs = list(self._collection.find({}, {"_id": 0, "key": 1}))
        except PyMongoError as exc:
            raise StorageError(f"Failed to list keys: {exc}") from exc
        return iter([doc["key"] for doc in docs if "key" in doc])
