"""
Phase Machine - Validated phase progression for the interview

Responsibilities:
- Define the fixed directed phase graph
- Validate phase transitions requested by the model
- Compute advisory completion predicates for progress display

Design principles:
- The model proposes, the machine disposes
- Invalid requests are rejected silently (logged), never raised
- Self-loops represent "stay in phase"
- REFINEMENT is the only phase with three outgoing edges
  (loop, back to SYNTHESIS, forward to COMPLETE)
"""

import logging
from typing import Any, Dict, List, Optional

from brand_discovery.utils.session_phases import (
    PHASE_DISPLAY_RANK,
    PHASE_ORDER,
    SessionPhase,
    coerce_phase,
)

logger = logging.getLogger(__name__)

P = SessionPhase

VALID_TRANSITIONS = {
    P.OPENING: (P.OPENING, P.RAPID_FIRE_INTRO),
    P.RAPID_FIRE_INTRO: (P.RAPID_FIRE_INTRO, P.RAPID_FIRE),
    P.RAPID_FIRE: (P.RAPID_FIRE, P.RAPID_FIRE_DEBRIEF),
    P.RAPID_FIRE_DEBRIEF: (P.RAPID_FIRE_DEBRIEF, P.DEEP_DIVE),
    P.DEEP_DIVE: (P.DEEP_DIVE, P.SCENARIO),
    P.SCENARIO: (P.SCENARIO, P.SYNTHESIS),
    P.SYNTHESIS: (P.SYNTHESIS, P.REFINEMENT),
    P.REFINEMENT: (P.REFINEMENT, P.SYNTHESIS, P.COMPLETE),
    P.COMPLETE: (P.COMPLETE,),
}

# Advisory thresholds for completion predicates
RAPID_FIRE_MIN_RESPONSES = 15
DEEP_DIVE_MIN_VALUES = 2


def can_transition_to(current: SessionPhase, target: SessionPhase) -> bool:
    """
    Check whether target is reachable from current in one step.

    Args:
        current: Current phase
        target: Requested phase

    Returns:
        bool: True if target is in the adjacency list of current
    """
    return target in VALID_TRANSITIONS[current]


def validate_transition(current: SessionPhase, requested) -> SessionPhase:
    """
    Resolve a requested transition against the phase graph.

    Args:
        current: Current phase
        requested: Phase (or phase tag string) proposed by the model

    Returns:
        SessionPhase: requested if it is a legal next phase, otherwise current

    Examples:
        >>> validate_transition(SessionPhase.OPENING, 'RAPID_FIRE_INTRO')
        <SessionPhase.RAPID_FIRE_INTRO: 'RAPID_FIRE_INTRO'>

        >>> validate_transition(SessionPhase.RAPID_FIRE, SessionPhase.COMPLETE)
        <SessionPhase.RAPID_FIRE: 'RAPID_FIRE'>
    """
    target = coerce_phase(requested)

    if target is not None and can_transition_to(current, target):
        return target

    requested_tag = getattr(requested, "value", requested)
    logger.warning(
        f"Invalid phase transition attempted: {current.value} -> {requested_tag}"
    )
    return current


def get_next_phase(current: SessionPhase) -> Optional[SessionPhase]:
    """
    Next logical phase (first successor that is not a self-loop).

    Returns:
        SessionPhase, or None when current is terminal
    """
    for candidate in VALID_TRANSITIONS[current]:
        if candidate != current:
            return candidate
    return None


def is_phase_complete(state, phase: SessionPhase) -> bool:
    """
    Advisory completion predicate for progress display.

    Not a gate: the model alone decides when to advance.

    Args:
        state: SessionState (any object with the state attributes)
        phase: Phase to evaluate

    Returns:
        bool: Whether the phase counts as complete for this state
    """
    if phase in (P.OPENING, P.RAPID_FIRE_INTRO, P.RAPID_FIRE_DEBRIEF):
        return state.phase != phase

    if phase == P.RAPID_FIRE:
        return len(state.rapid_fire_responses) >= RAPID_FIRE_MIN_RESPONSES

    if phase == P.DEEP_DIVE:
        return len(state.deep_dive_values_explored) >= DEEP_DIVE_MIN_VALUES

    if phase == P.SCENARIO:
        return state.scenario_completed

    if phase == P.SYNTHESIS:
        return state.synthesis_delivered

    if phase == P.REFINEMENT:
        return state.phase == P.COMPLETE

    # COMPLETE
    return True


def phase_progress(state, labels: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    """
    Build the progress-tracker projection of a session.

    Args:
        state: SessionState
        labels: Optional display labels keyed by phase tag

    Returns:
        list: One entry per phase in interview order:
            {'phase', 'label', 'rank', 'complete', 'current'}
    """
    labels = labels or {}
    progress = []

    for phase in PHASE_ORDER:
        progress.append({
            'phase': phase.value,
            'label': labels.get(phase.value, phase.value.replace('_', ' ').title()),
            'rank': PHASE_DISPLAY_RANK[phase],
            'complete': is_phase_complete(state, phase),
            'current': state.phase == phase,
        })

    return progress
