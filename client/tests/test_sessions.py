"""Tests for session identity, the session registry and the message store."""

from session_client.models.messages import Message, MessageRole
from session_client.session.identity import SessionIdentity
from session_client.session.message_store import MessageStore
from session_client.session.registry import SessionRegistry
from session_client.storage.client_store import (
    CURRENT_SESSION_KEY,
    SESSION_LIST_KEY,
    ClientSessionStore,
    messages_key,
)
from session_client.storage.kv_store import InMemoryKeyValueStore


class FailingWrites(InMemoryKeyValueStore):
    def set_item(self, key, value):
        raise OSError("quota exceeded")


def _conversation() -> list[Message]:
    return [
        Message.user("What is the main theorem in chapter 2?"),
        Message.assistant("The spectral theorem.", sources=["lecture-02.pdf"]),
        Message.error("timeout"),
    ]


def test_get_or_create_is_stable(store: ClientSessionStore) -> None:
    identity = SessionIdentity(store)

    first = identity.get_or_create()
    second = identity.get_or_create()

    assert first == second
    assert first.startswith("session-")
    assert store.get(CURRENT_SESSION_KEY) == first


def test_replace_returns_a_different_id(store: ClientSessionStore) -> None:
    identity = SessionIdentity(store)
    registry = SessionRegistry(store)
    messages = MessageStore(store, registry)

    original = identity.get_or_create()
    messages.save(original, _conversation())
    replaced = identity.replace()

    assert replaced != original
    assert identity.current() == replaced
    assert len(messages.load(original)) == 3


def test_reset_drops_the_pointer(store: ClientSessionStore) -> None:
    identity = SessionIdentity(store)
    original = identity.get_or_create()

    identity.reset()

    assert identity.current() is None
    assert identity.get_or_create() != original


def test_registry_register_is_idempotent(store: ClientSessionStore) -> None:
    registry = SessionRegistry(store)

    registry.register("session-a")
    registry.register("session-b")
    registry.register("session-a")

    assert registry.list_all() == ["session-a", "session-b"]
    assert "session-b" in registry

    registry.forget("session-a")
    assert registry.list_all() == ["session-b"]
    registry.forget("session-b")
    assert store.get(SESSION_LIST_KEY) is None


def test_registry_treats_malformed_data_as_empty() -> None:
    store = ClientSessionStore(InMemoryKeyValueStore({SESSION_LIST_KEY: '{"a": 1}'}))
    assert SessionRegistry(store).list_all() == []


def test_message_store_round_trip_registers_session(store: ClientSessionStore) -> None:
    registry = SessionRegistry(store)
    messages = MessageStore(store, registry)
    conversation = _conversation()

    assert messages.save("session-1", conversation) is True

    assert messages.load("session-1") == conversation
    assert registry.list_all() == ["session-1"]


def test_message_store_save_replaces_previous_history(store: ClientSessionStore) -> None:
    messages = MessageStore(store, SessionRegistry(store))
    conversation = _conversation()

    messages.save("session-1", conversation)
    messages.save("session-1", conversation[:1])

    assert messages.load("session-1") == conversation[:1]


def test_message_store_load_unknown_or_corrupt_is_empty() -> None:
    kv = InMemoryKeyValueStore(
        {
            messages_key("corrupt"): "[{this is not json",
            messages_key("wrong-shape"): '{"role": "user"}',
        }
    )
    messages = MessageStore(ClientSessionStore(kv), SessionRegistry(ClientSessionStore(kv)))

    assert messages.load("never-saved") == []
    assert messages.load("corrupt") == []
    assert messages.load("wrong-shape") == []


def test_message_store_reads_browser_shaped_entries() -> None:
    raw = (
        '[{"role": "user", "content": "hi", "timestamp": "2026-10-19T10:30:00.000Z",'
        ' "id": "msg-1760869800000-abc123def"}]'
    )
    store = ClientSessionStore(InMemoryKeyValueStore({messages_key("s"): raw}))

    [message] = MessageStore(store, SessionRegistry(store)).load("s")

    assert message.role is MessageRole.USER
    assert message.content == "hi"
    assert message.sources is None


def test_message_store_clear_keeps_registry_entry(store: ClientSessionStore) -> None:
    registry = SessionRegistry(store)
    messages = MessageStore(store, registry)
    messages.save("session-1", _conversation())

    messages.clear("session-1")

    assert messages.load("session-1") == []
    assert registry.list_all() == ["session-1"]


def test_message_store_failed_save_does_not_register() -> None:
    store = ClientSessionStore(FailingWrites())
    registry = SessionRegistry(store)

    assert MessageStore(store, registry).save("session-1", _conversation()) is False
    assert registry.list_all() == []
