import pytest

from tutor.database.models import Message, Role
from tutor.exceptions import NotFound


def test_create_seeds_system_prompt(session_store):
    session = session_store.create("user-1", "it", "travel", "S")

    assert session.messages == [Message(Role.SYSTEM, "S")]
    assert session.level == 3
    assert session.created_at == session.updated_at
    assert session_store.get(session.id).user_id == "user-1"


def test_get_messages_excludes_system_prompt(session_store):
    session = session_store.create("user-1", "it", "travel", "S")
    session_store.add_message(session.id, Message(Role.USER, "hi"))
    session_store.add_message(session.id, Message(Role.ASSISTANT, "hello"))

    assert session_store.get_messages(session.id) == [
        Message(Role.USER, "hi"),
        Message(Role.ASSISTANT, "hello"),
    ]
    assert session_store.get(session.id).messages[0] == Message(Role.SYSTEM, "S")


def test_messages_keep_append_order(session_store):
    session = session_store.create("user-1", "es", "food-dining", "S")
    sent = [Message(Role.USER if i % 2 == 0 else Role.ASSISTANT, f"m{i}") for i in range(10)]
    for message in sent:
        session_store.add_message(session.id, message)

    assert session_store.get_messages(session.id) == sent
    assert len(session_store.get(session.id).messages) == 11


def test_add_message_bumps_updated_at(session_store):
    session = session_store.create("user-1", "it", "travel", "S")
    session_store.add_message(session.id, Message(Role.USER, "ciao"))

    assert session_store.get(session.id).updated_at >= session.updated_at


def test_snapshots_do_not_leak_into_store(session_store):
    session = session_store.create("user-1", "it", "travel", "S")
    snapshot = session_store.get(session.id)
    snapshot.messages.clear()

    assert session_store.get(session.id).messages == [Message(Role.SYSTEM, "S")]


def test_messages_are_immutable():
    message = Message(Role.USER, "hi")
    with pytest.raises(AttributeError):
        message.content = "changed"


@pytest.mark.parametrize("operation", ["get", "get_messages"])
def test_unknown_session(session_store, operation):
    with pytest.raises(NotFound):
        getattr(session_store, operation)("missing")


def test_add_message_to_unknown_session(session_store):
    with pytest.raises(NotFound):
        session_store.add_message("missing", Message(Role.USER, "hi"))


def test_context_store_keeps_recent_non_system_messages(context_store):
    messages = [Message(Role.SYSTEM, "S")] + [Message(Role.USER, f"m{i}") for i in range(30)]
    context_store.save("user-1", "it", 2, messages)

    kept = context_store.get("user-1", "it", 2)
    assert len(kept) == context_store.MAX_MESSAGES
    assert kept[-1] == Message(Role.USER, "m29")
    assert all(m.role is not Role.SYSTEM for m in kept)
    assert context_store.get("user-1", "it", 3) == []
