"""
Tests for SessionService command handling

Runs the full pipeline against the scripted stub model and a temporary
JSON store: start, turns, rapid-fire, amendments, finalization and the
IllegalCommand paths.
"""

import pytest

from brand_discovery.commands import (
    AmendValue,
    FinalizeSession,
    RecordRapidFire,
    StartSession,
    SubmitMessage,
)
from brand_discovery.core.orchestrator import FALLBACK_SPOKEN_RESPONSE
from brand_discovery.core.session_service import FALLBACK_MARKER, SessionService
from brand_discovery.persistence import SessionNotFoundError, SessionStore
from brand_discovery.results import (
    CODE_ILLEGAL_COMMAND,
    CODE_INVALID_INPUT,
    CODE_SESSION_NOT_FOUND,
    FinalReport,
    IllegalCommand,
    RapidFireRecorded,
    TurnResult,
    ValueAmended,
)
from brand_discovery.utils.model_client_stub import StubModelClient
from brand_discovery.utils.session_phases import SessionPhase

P = SessionPhase

# Number of stub turns from OPENING to COMPLETE
TURNS_TO_COMPLETE = 8


@pytest.fixture
def store(tmp_path):
    return SessionStore(base_dir=str(tmp_path / "sessions"))


@pytest.fixture
def model():
    return StubModelClient()


@pytest.fixture
def service(store, model):
    return SessionService(
        store=store,
        model_client=model,
        system_prompt="You are a brand strategist.",
        base_url="https://example.test/"
    )


def start(service, company="Acme", user="Sam"):
    return service.handle(StartSession(company_name=company, user_name=user))


def submit(service, session_id, text="Tell me more"):
    return service.handle(SubmitMessage(session_id=session_id, user_message=text))


def run_to_complete(service, session_id):
    result = None
    for i in range(TURNS_TO_COMPLETE):
        result = submit(service, session_id, f"answer {i}")
    return result


# ========== Construction Tests ==========

def test_rejects_incomplete_store(model):
    with pytest.raises(TypeError, match="store must have callable"):
        SessionService(store=object(), model_client=model, system_prompt="x")


def test_unknown_command_type(service):
    with pytest.raises(TypeError, match="Unknown command type"):
        service.handle("start please")


# ========== StartSession Tests ==========

def test_start_session(service, store):
    result = start(service)

    assert isinstance(result, TurnResult)
    assert result.error is None
    assert result.current_phase == P.OPENING
    assert "What brought you here today?" in result.response.spoken_response

    record = store.load_session(result.session_id)
    assert record['status'] == "active"
    assert record['company_name'] == "Acme"
    assert record['current_phase'] == "OPENING"

    messages = store.load_messages(result.session_id)
    assert len(messages) == 1
    assert messages[0]['role'] == "assistant"
    assert messages[0]['response_data']['spokenResponse'] == result.response.spoken_response


def test_start_session_sends_company_context(service, model):
    start(service, company="Northwind")
    assert "Company Name: Northwind" in model.calls[0]['prompt']


def test_start_session_with_failing_model(store):
    service = SessionService(store, StubModelClient(should_fail=True), "You are a brand strategist.")

    result = start(service)

    assert result.error
    assert result.response.spoken_response == FALLBACK_SPOKEN_RESPONSE
    assert store.session_exists(result.session_id)


# ========== SubmitMessage Tests ==========

def test_submit_message_advances_phase(service, store):
    session_id = start(service).session_id

    result = submit(service, session_id, "We keep getting compared to cheaper rivals.")

    assert result.current_phase == P.RAPID_FIRE_INTRO
    assert store.load_session(session_id)['current_phase'] == "RAPID_FIRE_INTRO"
    roles = [m['role'] for m in store.load_messages(session_id)]
    assert roles == ["assistant", "user", "assistant"]


def test_submit_message_rebuilds_history(service, model):
    session_id = start(service).session_id
    submit(service, session_id, "first answer")
    submit(service, session_id, "second answer")

    prompt = model.calls[-1]['prompt']
    assert "USER: first answer" in prompt
    assert "USER: second answer" in prompt


def test_values_persisted_with_display_order(service, store):
    session_id = start(service).session_id
    for _ in range(4):
        submit(service, session_id)

    values = store.load_values(session_id)
    assert [v['value_name'] for v in values] == ["Trust", "Craft"]
    assert [v['display_order'] for v in values] == [1, 2]
    assert not any(v['is_final'] for v in values)


def test_session_reaches_complete(service):
    session_id = start(service).session_id

    result = run_to_complete(service, session_id)

    assert result.current_phase == P.COMPLETE
    assert result.session_complete


def test_failed_turn_persists_fallback(store):
    model = StubModelClient()
    service = SessionService(store, model, "You are a brand strategist.")
    session_id = start(service).session_id

    model.should_fail = True
    result = submit(service, session_id, "hello")

    assert result.error
    assert result.current_phase == P.OPENING
    messages = store.load_messages(session_id)
    assert messages[-2]['content'] == "hello"
    assert messages[-1]['content'] == FALLBACK_SPOKEN_RESPONSE


def test_submit_unknown_session(service):
    result = submit(service, "missing1")

    assert isinstance(result, IllegalCommand)
    assert result.code == CODE_SESSION_NOT_FOUND
    assert result.command_type == "SubmitMessage"


def test_submit_empty_message(service):
    session_id = start(service).session_id
    result = submit(service, session_id, "   ")

    assert isinstance(result, IllegalCommand)
    assert result.code == CODE_INVALID_INPUT


def test_submit_after_complete_rejected(service):
    session_id = start(service).session_id
    run_to_complete(service, session_id)

    result = submit(service, session_id, "one more thing")

    assert isinstance(result, IllegalCommand)
    assert result.code == CODE_ILLEGAL_COMMAND


def test_submit_after_finalize_rejected(service):
    session_id = start(service).session_id
    service.handle(FinalizeSession(session_id=session_id))

    result = submit(service, session_id)

    assert isinstance(result, IllegalCommand)
    assert result.reason == "Session is not active"


# ========== RecordRapidFire Tests ==========

def test_record_rapid_fire(service, store):
    session_id = start(service).session_id

    first = service.handle(RecordRapidFire(session_id, "Trust", "yes"))
    second = service.handle(RecordRapidFire(session_id, "Speed", "No"))

    assert isinstance(second, RapidFireRecorded)
    assert first.rapid_fire_index == 1
    assert second.rapid_fire_index == 2
    assert second.response == "no"

    answers = store.load_rapid_fire(session_id)
    assert [(a['value_word'], a['response']) for a in answers] == [("Trust", "yes"), ("Speed", "no")]


def test_rapid_fire_answers_reach_context(service, model):
    session_id = start(service).session_id
    service.handle(RecordRapidFire(session_id, "Trust", "yes"))

    submit(service, session_id)

    assert "- Trust: yes" in model.calls[-1]['prompt']


def test_record_rapid_fire_bad_answer(service):
    session_id = start(service).session_id
    result = service.handle(RecordRapidFire(session_id, "Trust", "sometimes"))

    assert isinstance(result, IllegalCommand)
    assert result.code == CODE_INVALID_INPUT


# ========== AmendValue Tests ==========

def test_amend_value(service):
    session_id = start(service).session_id
    for _ in range(3):
        submit(service, session_id)

    result = service.handle(AmendValue(
        session_id, "Trust", definition="We do what we say", quote="Our word is the contract"
    ))

    assert isinstance(result, ValueAmended)
    assert result.value['personalized_definition'] == "We do what we say"
    assert result.value['user_quotes'] == ["Our word is the contract"]


def test_amend_unknown_value(service):
    session_id = start(service).session_id
    result = service.handle(AmendValue(session_id, "Joy", definition="..."))

    assert isinstance(result, IllegalCommand)
    assert result.code == CODE_INVALID_INPUT


# ========== FinalizeSession Tests ==========

def test_finalize_session(service, store):
    session_id = start(service).session_id
    run_to_complete(service, session_id)

    report = service.handle(FinalizeSession(session_id))

    assert isinstance(report, FinalReport)
    assert len(report.share_slug) == 8
    assert report.share_url == f"https://example.test/deliverable/{report.share_slug}"
    assert report.content['company_name'] == "Acme"
    assert [v['value_name'] for v in report.content['values']] == ["Trust", "Craft"]

    record = store.load_session(session_id)
    assert record['status'] == "completed"
    assert record['completed_at'] is not None
    assert record['duration_seconds'] >= 0
    assert all(v['is_final'] for v in store.load_values(session_id))


def test_finalize_twice_keeps_slug(service, store):
    """Re-finalizing updates the deliverable in place"""
    session_id = start(service).session_id

    first = service.handle(FinalizeSession(session_id))
    second = service.handle(FinalizeSession(session_id))

    assert second.share_slug == first.share_slug
    assert store.find_deliverable_by_slug(first.share_slug)['session_id'] == session_id


def test_finalize_forces_complete_phase(service, store):
    session_id = start(service).session_id

    service.handle(FinalizeSession(session_id))

    record = store.load_session(session_id)
    assert record['current_phase'] == "COMPLETE"
    assert record['state']['phase'] == "COMPLETE"


def test_finalize_unknown_session(service):
    result = service.handle(FinalizeSession("missing1"))
    assert isinstance(result, IllegalCommand)
    assert result.code == CODE_SESSION_NOT_FOUND


def test_deliverable_lookup_and_markdown(service):
    session_id = start(service).session_id
    run_to_complete(service, session_id)
    report = service.handle(FinalizeSession(session_id))

    deliverable = service.get_deliverable(report.share_slug)
    markdown = service.get_deliverable_markdown(report.share_slug)

    assert deliverable['content'] == report.content
    assert markdown.startswith("# Acme")
    assert "### 1. Trust" in markdown
    assert service.get_deliverable("nope1234") is None
    assert service.get_deliverable_markdown("nope1234") is None


# ========== Progress Tests ==========

def test_get_progress(service):
    session_id = start(service).session_id
    for _ in range(4):
        submit(service, session_id)

    progress = service.get_progress(session_id)

    assert progress['current_phase'] == "DEEP_DIVE"
    assert progress['status'] == "active"
    assert progress['identified_values'] == ["Trust", "Craft"]
    assert progress['unexplored_values'] == ["Craft"]
    assert len(progress['phases']) == len(list(SessionPhase))


def test_get_progress_unknown_session(service):
    with pytest.raises(SessionNotFoundError):
        service.get_progress("missing1")


def test_value_records_default_practice_fields(service, store):
    session_id = start(service).session_id
    for _ in range(3):
        submit(service, session_id)

    trust = store.load_values(session_id)[0]
    assert trust['in_practice'] is None
    assert trust['anti_pattern'] is None


def test_amend_practice_fields_reach_deliverable(service, store):
    session_id = start(service).session_id
    for _ in range(3):
        submit(service, session_id)

    result = service.handle(AmendValue(
        session_id,
        "Trust",
        in_practice="We publish our roadmap",
        anti_pattern="Overpromising to close deals"
    ))

    assert result.value['in_practice'] == "We publish our roadmap"
    assert result.value['anti_pattern'] == "Overpromising to close deals"

    report = service.handle(FinalizeSession(session_id))
    trust = report.content['values'][0]
    assert trust['in_practice'] == "We publish our roadmap"
    assert trust['anti_pattern'] == "Overpromising to close deals"


# ========== Fallback Transcript Tests ==========

def test_fallback_reply_marked_and_left_out_of_context(store):
    model = StubModelClient()
    service = SessionService(store, model, "You are a brand strategist.")
    session_id = start(service).session_id

    model.should_fail = True
    submit(service, session_id, "hello")
    model.should_fail = False
    submit(service, session_id, "hello again")

    stored = store.load_messages(session_id)
    fallback = [m for m in stored if m['content'] == FALLBACK_SPOKEN_RESPONSE]
    assert len(fallback) == 1
    assert fallback[0]['response_data'][FALLBACK_MARKER] is True

    prompt = model.calls[-1]['prompt']
    assert FALLBACK_SPOKEN_RESPONSE not in prompt
    assert "USER: hello\n" in prompt
