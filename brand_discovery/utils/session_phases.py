"""
Session phase enum for the values discovery interview.

Invariants:
- Exactly one phase is active per session
- Phase tags are upper-case strings (JSON and storage friendly)
- Display rank is for progress UI only; RAPID_FIRE_INTRO and RAPID_FIRE
  share rank 1 but remain distinct states in the transition graph

Design:
- SessionPhase is a string-based enum for JSON serialization
- Phase Machine owns the transition graph
- Response Parser validates phase strings against VALID_PHASES
"""

from enum import Enum
from typing import Optional


class SessionPhase(str, Enum):
    """
    Stages of the guided interview, in interview order.

    OPENING:
        Build rapport, learn why the founder is here.
    RAPID_FIRE_INTRO:
        Explain the yes/no/maybe word exercise.
    RAPID_FIRE:
        Gut-check on value words, 2-3 at a time.
    RAPID_FIRE_DEBRIEF:
        Reflect on patterns and hesitations.
    DEEP_DIVE:
        Explore what 2-3 values really mean to the founder.
    SCENARIO:
        Test values under a realistic dilemma.
    SYNTHESIS:
        Play back the values the persona believes it heard.
    REFINEMENT:
        Incorporate feedback; may loop back to SYNTHESIS.
    COMPLETE:
        Wrap up. Terminal.
    """
    OPENING = "OPENING"
    RAPID_FIRE_INTRO = "RAPID_FIRE_INTRO"
    RAPID_FIRE = "RAPID_FIRE"
    RAPID_FIRE_DEBRIEF = "RAPID_FIRE_DEBRIEF"
    DEEP_DIVE = "DEEP_DIVE"
    SCENARIO = "SCENARIO"
    SYNTHESIS = "SYNTHESIS"
    REFINEMENT = "REFINEMENT"
    COMPLETE = "COMPLETE"


# Interview order (enum definition order)
PHASE_ORDER = tuple(SessionPhase)

# Single source of truth for valid phase strings
VALID_PHASES = {phase.value for phase in SessionPhase}

# Progress display rank
PHASE_DISPLAY_RANK = {
    SessionPhase.OPENING: 0,
    SessionPhase.RAPID_FIRE_INTRO: 1,
    SessionPhase.RAPID_FIRE: 1,
    SessionPhase.RAPID_FIRE_DEBRIEF: 2,
    SessionPhase.DEEP_DIVE: 3,
    SessionPhase.SCENARIO: 4,
    SessionPhase.SYNTHESIS: 5,
    SessionPhase.REFINEMENT: 6,
    SessionPhase.COMPLETE: 7,
}


def coerce_phase(value) -> Optional[SessionPhase]:
    """
    Convert a phase tag (any case, surrounding whitespace allowed) to SessionPhase.

    Args:
        value: SessionPhase or string

    Returns:
        SessionPhase, or None if the value is not a known phase tag
    """
    if isinstance(value, SessionPhase):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().upper()
    if normalized not in VALID_PHASES:
        return None
    return SessionPhase(normalized)
