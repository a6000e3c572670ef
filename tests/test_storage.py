"""Tests for session and message-log JSON storage."""

from transporter.models import Message
from transporter.storage import Storage


def test_create_and_get_session(store):
    session = store.create_session()
    assert store.get_session(session.id) == session


def test_get_missing_session(store):
    assert store.get_session("deadbeef") is None


def test_get_session_rejects_path_like_ids(store):
    assert store.get_session("../etc") is None


def test_list_sessions(store):
    a = store.create_session()
    b = store.create_session()
    ids = {s.id for s in store.list_sessions()}
    assert ids == {a.id, b.id}


def test_delete_session(store, tmp_path):
    session = store.create_session()
    store.append_message(session.id, Message(persona="user", message="hi"))
    assert store.delete_session(session.id) is True
    assert store.get_session(session.id) is None
    assert not (tmp_path / "sessions" / session.id).exists()


def test_delete_missing_session(store):
    assert store.delete_session("deadbeef") is False


def test_messages_empty_by_default(store):
    session = store.create_session()
    assert store.get_messages(session.id) == []


def test_append_and_get_messages(store):
    session = store.create_session()
    store.append_message(session.id, Message(persona="user", message="Down, please"))
    store.append_message(session.id, Message(persona="elevator", message="No.", action="none"))
    msgs = store.get_messages(session.id)
    assert [m.persona for m in msgs] == ["user", "elevator"]
    assert msgs[0].message == "Down, please"


def test_append_deduplicates_consecutive_identical(store):
    session = store.create_session()
    msg = Message(persona="guide", message="Now arriving at floor 2...")
    store.append_message(session.id, msg)
    result = store.append_message(session.id, msg)
    assert len(result) == 1
    assert len(store.get_messages(session.id)) == 1


def test_messages_survive_reopen(store, tmp_path):
    session = store.create_session()
    store.append_message(session.id, Message(persona="elevator", message="Whee", action="up"))
    reopened = Storage(tmp_path)
    assert reopened.get_messages(session.id) == [
        Message(persona="elevator", message="Whee", action="up"),
    ]


def test_truncate_messages(store):
    session = store.create_session()
    for i in range(4):
        store.append_message(session.id, Message(persona="user", message=str(i)))
    remaining = store.truncate_messages(session.id, 2)
    assert [m.message for m in remaining] == ["0", "1"]
    assert store.get_messages(session.id) == remaining
