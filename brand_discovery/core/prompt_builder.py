"""
Prompt Builder - Serialize session state into the model's context block

Responsibilities:
- Render accumulated session state as a delimited context section
- Render the conversation transcript, oldest first
- Append the new user message, or the session-start marker

NOT responsible for:
- Persona instructions (system prompt is passed separately)
- Phase logic
- Response parsing
- LLM calls

Design principles:
- Deterministic: identical inputs produce identical text (no clocks, no randomness)
- Fixed section order: session_context, conversation_history, current_user_message
- Empty subsections are omitted entirely (no empty headers)
"""

import logging
from typing import Iterable, List, Optional

from brand_discovery.contracts import VALID_ROLES, ConversationTurn
from brand_discovery.core.session_state import INITIAL_STATE, SessionState

logger = logging.getLogger(__name__)

SESSION_START_NOTE = (
    "This is the start of the session. Deliver your opening greeting and first question."
)
SESSION_START_MARKER = "[SESSION START - Deliver opening greeting]"
EMPTY_HISTORY_NOTE = "(No previous messages - this is the session start)"


class PromptBuildError(Exception):
    """Raised when the context cannot be built from the given inputs"""
    pass


def _session_context_lines(
    state: SessionState,
    company_name: Optional[str],
    user_name: Optional[str]
) -> List[str]:
    lines = [f"Current Phase: {state.phase.value}"]

    if company_name:
        lines.append(f"Company Name: {company_name}")
    if user_name:
        lines.append(f"User Name: {user_name}")

    if state.rapid_fire_responses:
        lines.append("")
        lines.append("Rapid Fire Responses:")
        lines.extend(f"- {r.word}: {r.response}" for r in state.rapid_fire_responses)

    if state.identified_values:
        lines.append("")
        lines.append("Identified Values:")
        for value in state.identified_values:
            suffix = f": {value.definition}" if value.definition else ""
            lines.append(f"- {value.name}{suffix}")

    if state.deep_dive_values_explored:
        lines.append("")
        lines.append(
            "Values Already Explored in Deep Dive: "
            + ", ".join(state.deep_dive_values_explored)
        )

    return lines


def _history_lines(history: Iterable[ConversationTurn]) -> List[str]:
    lines = []
    for turn in history:
        if turn.role not in VALID_ROLES:
            raise PromptBuildError(f"Unknown conversation role: {turn.role!r}")
        lines.append(f"{turn.role.upper()}: {turn.content}")
    return lines


def build_context_message(
    state: SessionState,
    history: Iterable[ConversationTurn],
    company_name: Optional[str] = None,
    user_name: Optional[str] = None,
    user_message: Optional[str] = None
) -> str:
    """
    Build the single user-role text block sent to the model.

    Args:
        state: Current session state
        history: Conversation transcript, oldest first
        company_name: Founder's company, if known
        user_name: Founder's name, if known
        user_message: New user message; None means session start

    Returns:
        str: Delimited context block

    Raises:
        PromptBuildError: If the transcript contains an unknown role
    """
    context_lines = _session_context_lines(state, company_name, user_name)
    if user_message is None:
        context_lines.append(SESSION_START_NOTE)

    history_lines = _history_lines(history) or [EMPTY_HISTORY_NOTE]
    current = SESSION_START_MARKER if user_message is None else user_message

    sections = [
        "<session_context>",
        *context_lines,
        "</session_context>",
        "",
        "<conversation_history>",
        *history_lines,
        "</conversation_history>",
        "",
        "<current_user_message>",
        current,
        "</current_user_message>",
    ]

    prompt = "\n".join(sections)
    logger.debug(f"Built context message ({len(prompt)} chars, phase={state.phase.value})")
    return prompt


def build_initial_message(company_name: Optional[str] = None, user_name: Optional[str] = None) -> str:
    """Context block for the opening greeting of a brand-new session."""
    return build_context_message(INITIAL_STATE, [], company_name, user_name)
