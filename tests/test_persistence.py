"""
Tests for the JSON-file SessionStore
"""

import pytest

from brand_discovery.persistence import SessionNotFoundError, SessionStore, StoreError


@pytest.fixture
def store(tmp_path):
    return SessionStore(base_dir=str(tmp_path / "sessions"))


@pytest.fixture
def session_id(store):
    store.create_session("abc12345", {'status': 'active', 'company_name': 'Acme'})
    return "abc12345"


# ========== Session Record Tests ==========

def test_create_and_load(store, session_id):
    record = store.load_session(session_id)

    assert record['id'] == session_id
    assert record['company_name'] == "Acme"
    assert store.session_exists(session_id)
    assert not store.session_exists("other123")


def test_create_duplicate_rejected(store, session_id):
    with pytest.raises(StoreError, match="already exists"):
        store.create_session(session_id, {})


def test_missing_session(store):
    with pytest.raises(SessionNotFoundError) as exc_info:
        store.load_session("missing1")
    assert exc_info.value.session_id == "missing1"


def test_update_session_merges(store, session_id):
    store.update_session(session_id, status='completed', current_phase='COMPLETE')
    record = store.load_session(session_id)

    assert record['status'] == "completed"
    assert record['company_name'] == "Acme"


def test_corrupt_record(store, session_id, tmp_path):
    path = tmp_path / "sessions" / f"SESSION-{session_id}" / "session.json"
    path.write_text("{not json", encoding='utf-8')

    with pytest.raises(StoreError, match="Corrupt record"):
        store.load_session(session_id)


# ========== Transcript Tests ==========

def test_message_sequence_numbers(store, session_id):
    store.append_message(session_id, "assistant", "Welcome")
    store.append_message(session_id, "user", "Hi")
    third = store.append_message(session_id, "assistant", "Tell me more", response_data={'x': 1})

    messages = store.load_messages(session_id)
    assert [m['sequence_number'] for m in messages] == [1, 2, 3]
    assert third['response_data'] == {'x': 1}


def test_append_message_missing_session(store):
    with pytest.raises(SessionNotFoundError):
        store.append_message("missing1", "user", "Hi")


# ========== Rapid-Fire and Values Tests ==========

def test_rapid_fire_answers(store, session_id):
    store.append_rapid_fire(session_id, "Trust", "yes")
    store.append_rapid_fire(session_id, "Speed", "no")

    answers = store.load_rapid_fire(session_id)
    assert [a['value_word'] for a in answers] == ["Trust", "Speed"]
    assert answers[1]['sequence_number'] == 2


def test_values_sorted_by_display_order(store, session_id):
    store.save_values(session_id, [
        {'value_name': 'Craft', 'display_order': 2},
        {'value_name': 'Trust', 'display_order': 1},
    ])
    assert [v['value_name'] for v in store.load_values(session_id)] == ["Trust", "Craft"]


# ========== Deliverable Tests ==========

def test_save_and_find_deliverable(store, session_id):
    store.save_deliverable(session_id, {'share_slug': 'k3j9x2ab', 'content': {'values': []}})

    assert store.slug_exists('k3j9x2ab')
    found = store.find_deliverable_by_slug('k3j9x2ab')
    assert found['session_id'] == session_id
    assert store.find_deliverable_by_slug('unknown1') is None


def test_deliverable_update_in_place(store, session_id):
    store.save_deliverable(session_id, {'share_slug': 'k3j9x2ab', 'content': {'v': 1}})
    store.save_deliverable(session_id, {'share_slug': 'k3j9x2ab', 'content': {'v': 2}})

    assert store.load_deliverable(session_id)['content'] == {'v': 2}


def test_deliverable_slug_cannot_change(store, session_id):
    store.save_deliverable(session_id, {'share_slug': 'k3j9x2ab', 'content': {}})

    with pytest.raises(StoreError, match="already has share slug"):
        store.save_deliverable(session_id, {'share_slug': 'zzzzzzzz', 'content': {}})


def test_slug_owned_by_other_session(store, session_id):
    store.create_session("other123", {'status': 'active'})
    store.save_deliverable(session_id, {'share_slug': 'k3j9x2ab', 'content': {}})

    with pytest.raises(StoreError, match="already in use"):
        store.save_deliverable("other123", {'share_slug': 'k3j9x2ab', 'content': {}})


# ========== Write Safety Tests ==========

def test_failed_write_keeps_previous_record(store, session_id, tmp_path):
    """A write that fails mid-serialization leaves the old record readable"""
    with pytest.raises(TypeError):
        store.update_session(session_id, unserializable=object())

    record = store.load_session(session_id)
    assert record['company_name'] == "Acme"
    assert 'unserializable' not in record
    assert list((tmp_path / "sessions").rglob("*.tmp")) == []


def test_no_temp_files_left_behind(store, session_id, tmp_path):
    store.append_message(session_id, "user", "Hi")
    store.update_session(session_id, status='completed')

    leftovers = list((tmp_path / "sessions").rglob("*.tmp"))
    assert leftovers == []
