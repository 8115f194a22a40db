"""
Unit tests for the Prompt Builder

Tests section order, omission of empty subsections, transcript rendering,
the session-start marker and determinism.
"""

import pytest

from brand_discovery.contracts import ConversationTurn, IdentifiedValue, RapidFireResponse
from brand_discovery.core.prompt_builder import (
    EMPTY_HISTORY_NOTE,
    SESSION_START_MARKER,
    SESSION_START_NOTE,
    PromptBuildError,
    build_context_message,
    build_initial_message,
)
from brand_discovery.core.session_state import INITIAL_STATE, SessionState
from brand_discovery.utils.session_phases import SessionPhase


def sample_history():
    return [
        ConversationTurn(role="assistant", content="What brought you here today?", sequence_number=1),
        ConversationTurn(role="user", content="We keep losing deals on trust.", sequence_number=2),
    ]


def rich_state():
    return SessionState(
        phase=SessionPhase.DEEP_DIVE,
        rapid_fire_responses=(
            RapidFireResponse(word="Trust", response="yes"),
            RapidFireResponse(word="Speed", response="maybe"),
        ),
        identified_values=(
            IdentifiedValue(name="Trust", definition="Keep every promise"),
            IdentifiedValue(name="Craft"),
        ),
        deep_dive_values_explored=("Trust", "Craft"),
    )


# ========== Section Order Tests ==========

def test_sections_in_fixed_order():
    prompt = build_context_message(INITIAL_STATE, sample_history(), user_message="Hello")

    context = prompt.index("<session_context>")
    history = prompt.index("<conversation_history>")
    current = prompt.index("<current_user_message>")

    assert context < history < current
    assert prompt.endswith("</current_user_message>")


def test_phase_line_always_present():
    prompt = build_context_message(INITIAL_STATE, [], user_message="Hello")
    assert "Current Phase: OPENING" in prompt


# ========== Subsection Tests ==========

def test_empty_subsections_omitted():
    """No empty headers for empty collections"""
    prompt = build_context_message(INITIAL_STATE, sample_history(), user_message="Hello")

    assert "Rapid Fire Responses:" not in prompt
    assert "Identified Values:" not in prompt
    assert "Values Already Explored in Deep Dive:" not in prompt
    assert "Company Name:" not in prompt
    assert "User Name:" not in prompt


def test_populated_subsections_rendered():
    prompt = build_context_message(
        rich_state(),
        sample_history(),
        company_name="Acme",
        user_name="Sam",
        user_message="It has to be trust."
    )

    assert "Company Name: Acme" in prompt
    assert "User Name: Sam" in prompt
    assert "Rapid Fire Responses:\n- Trust: yes\n- Speed: maybe" in prompt
    assert "Identified Values:\n- Trust: Keep every promise\n- Craft" in prompt
    assert "Values Already Explored in Deep Dive: Trust, Craft" in prompt


def test_transcript_rendering():
    prompt = build_context_message(INITIAL_STATE, sample_history(), user_message="Hello")

    assert "ASSISTANT: What brought you here today?" in prompt
    assert "USER: We keep losing deals on trust." in prompt
    assert prompt.index("ASSISTANT:") < prompt.index("USER:")


def test_unknown_role_raises():
    history = [ConversationTurn(role="system", content="x", sequence_number=1)]
    with pytest.raises(PromptBuildError, match="Unknown conversation role"):
        build_context_message(INITIAL_STATE, history, user_message="Hello")


# ========== Session Start Tests ==========

def test_session_start_marker():
    prompt = build_context_message(INITIAL_STATE, [], company_name="Acme")

    assert SESSION_START_NOTE in prompt
    assert EMPTY_HISTORY_NOTE in prompt
    assert f"<current_user_message>\n{SESSION_START_MARKER}\n</current_user_message>" in prompt


def test_build_initial_message():
    prompt = build_initial_message("Acme", "Sam")

    assert prompt == build_context_message(INITIAL_STATE, [], "Acme", "Sam", None)
    assert "Company Name: Acme" in prompt


def test_user_message_suppresses_start_marker():
    prompt = build_context_message(INITIAL_STATE, sample_history(), user_message="Hi")

    assert SESSION_START_MARKER not in prompt
    assert SESSION_START_NOTE not in prompt


# ========== Determinism Tests ==========

def test_deterministic():
    first = build_context_message(rich_state(), sample_history(), "Acme", "Sam", "Yes")
    second = build_context_message(rich_state(), sample_history(), "Acme", "Sam", "Yes")
    assert first == second
