"""
Session State - Interview progress and the reducer that folds model output into it

Responsibilities:
- Hold accumulated session state (phase, rapid-fire answers, values, flags)
- Fold validated AgentResponses into new state (apply_state_updates)
- Record rapid-fire answers captured outside the model round-trip
- Amend identified values (definition, quotes)
- Serialize to/from JSON-safe dicts for rehydration

Design principles:
- State is immutable; every update returns a new SessionState
- Reducer functions are pure (no I/O, no clocks)
- Monotonic rules: values never removed, flags never reset,
  explored set only grows, rapid-fire answers append-only
- Phase changes always pass through the Phase Machine
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from brand_discovery.contracts import (
    RAPID_FIRE_ANSWERS,
    AgentResponse,
    IdentifiedValue,
    RapidFireResponse,
)
from brand_discovery.core.phase_machine import validate_transition
from brand_discovery.utils.session_phases import SessionPhase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    """
    Accumulated interview state.

    Attributes:
        phase: Current phase
        rapid_fire_index: Rapid-fire exchanges processed (non-decreasing)
        rapid_fire_responses: Append-only word judgments
        deep_dive_values_explored: Values that received deep-dive treatment
            (set semantics, insertion order kept for display)
        identified_values: Unique by exact name, never removed
        scenario_completed: Set once SCENARIO -> SYNTHESIS is observed
        synthesis_delivered: Set once SYNTHESIS is entered or resided in
        insights: Append-only observations reported by the model
    """
    phase: SessionPhase = SessionPhase.OPENING
    rapid_fire_index: int = 0
    rapid_fire_responses: Tuple[RapidFireResponse, ...] = ()
    deep_dive_values_explored: Tuple[str, ...] = ()
    identified_values: Tuple[IdentifiedValue, ...] = ()
    scenario_completed: bool = False
    synthesis_delivered: bool = False
    insights: Tuple[str, ...] = ()

    def value_names(self) -> List[str]:
        return [value.name for value in self.identified_values]

    def get_value(self, name: str) -> Optional[IdentifiedValue]:
        for value in self.identified_values:
            if value.name == name:
                return value
        return None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to JSON-safe dict.

        Returns:
            dict: Lossless snapshot, suitable for from_dict()
        """
        return {
            'phase': self.phase.value,
            'rapid_fire_index': self.rapid_fire_index,
            'rapid_fire_responses': [r.to_dict() for r in self.rapid_fire_responses],
            'deep_dive_values_explored': list(self.deep_dive_values_explored),
            'identified_values': [v.to_dict() for v in self.identified_values],
            'scenario_completed': self.scenario_completed,
            'synthesis_delivered': self.synthesis_delivered,
            'insights': list(self.insights),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SessionState":
        """
        Rehydrate from a snapshot dict.

        Missing keys fall back to the initial-state defaults.

        Raises:
            ValueError: If phase is not a known phase tag
        """
        return SessionState(
            phase=SessionPhase(data.get('phase', SessionPhase.OPENING.value)),
            rapid_fire_index=int(data.get('rapid_fire_index', 0)),
            rapid_fire_responses=tuple(
                RapidFireResponse(word=r['word'], response=r['response'])
                for r in data.get('rapid_fire_responses', [])
            ),
            deep_dive_values_explored=tuple(data.get('deep_dive_values_explored', [])),
            identified_values=tuple(
                IdentifiedValue(
                    name=v['name'],
                    definition=v.get('definition'),
                    quotes=tuple(v.get('quotes') or []),
                    in_practice=v.get('in_practice'),
                    anti_pattern=v.get('anti_pattern'),
                )
                for v in data.get('identified_values', [])
            ),
            scenario_completed=bool(data.get('scenario_completed', False)),
            synthesis_delivered=bool(data.get('synthesis_delivered', False)),
            insights=tuple(data.get('insights', [])),
        )


INITIAL_STATE = SessionState()


# ========================
# Reducer
# ========================

def apply_state_updates(state: SessionState, response: AgentResponse) -> SessionState:
    """
    Fold a validated model response into session state.

    Rules:
    - Phase goes through validate_transition (invalid request keeps phase)
    - New value names appended only if not already present (exact match)
    - valuesToExplore unioned into the explored set, regardless of phase
    - scenario_completed set when SCENARIO -> SYNTHESIS is observed
    - synthesis_delivered set when current or new phase is SYNTHESIS
    - newInsights appended to insights
    - Everything else carried over unchanged

    Args:
        state: Current state
        response: Validated AgentResponse

    Returns:
        SessionState: New state (input is not modified)
    """
    updates = response.state_updates
    new_phase = validate_transition(state.phase, updates.phase)

    identified_values = state.identified_values
    existing_names = set(state.value_names())
    added = []
    for name in updates.identified_values:
        if name not in existing_names:
            added.append(IdentifiedValue(name=name))
            existing_names.add(name)
    if added:
        identified_values = identified_values + tuple(added)
        logger.info(f"Identified new values: {[v.name for v in added]}")

    explored = list(state.deep_dive_values_explored)
    for name in updates.values_to_explore:
        if name not in explored:
            explored.append(name)

    scenario_completed = state.scenario_completed or (
        state.phase == SessionPhase.SCENARIO and new_phase == SessionPhase.SYNTHESIS
    )

    synthesis_delivered = state.synthesis_delivered or (
        state.phase == SessionPhase.SYNTHESIS or new_phase == SessionPhase.SYNTHESIS
    )

    if new_phase != state.phase:
        logger.info(f"Phase transition: {state.phase.value} -> {new_phase.value}")

    return replace(
        state,
        phase=new_phase,
        identified_values=identified_values,
        deep_dive_values_explored=tuple(explored),
        scenario_completed=scenario_completed,
        synthesis_delivered=synthesis_delivered,
        insights=state.insights + tuple(updates.new_insights),
    )


def record_rapid_fire_response(state: SessionState, word: str, response: str) -> SessionState:
    """
    Append a rapid-fire answer captured outside the model round-trip.

    Args:
        state: Current state
        word: Value word shown to the user
        response: 'yes', 'no' or 'maybe' (case-insensitive)

    Returns:
        SessionState: New state with the answer appended and index incremented

    Raises:
        ValueError: If word is empty or response is not yes/no/maybe
    """
    if not isinstance(word, str) or not word.strip():
        raise ValueError("word must be a non-empty string")

    normalized = response.strip().lower() if isinstance(response, str) else response
    if normalized not in RAPID_FIRE_ANSWERS:
        raise ValueError(
            f"response must be one of {RAPID_FIRE_ANSWERS}, got {response!r}"
        )

    return replace(
        state,
        rapid_fire_responses=state.rapid_fire_responses + (
            RapidFireResponse(word=word.strip(), response=normalized),
        ),
        rapid_fire_index=state.rapid_fire_index + 1,
    )


def amend_identified_value(
    state: SessionState,
    name: str,
    definition: Optional[str] = None,
    quote: Optional[str] = None,
    in_practice: Optional[str] = None,
    anti_pattern: Optional[str] = None
) -> SessionState:
    """
    Amend an identified value in place (text fields replaced, quote appended).

    Args:
        state: Current state
        name: Exact value name
        definition: New personalized definition (unchanged if None)
        quote: Founder quote to append (nothing appended if None)
        in_practice: What the value looks like day to day (unchanged if None)
        anti_pattern: What violating the value looks like (unchanged if None)

    Returns:
        SessionState: New state

    Raises:
        ValueError: If no value with that name has been identified
    """
    if state.get_value(name) is None:
        raise ValueError(f"Value '{name}' has not been identified")

    amended = []
    for value in state.identified_values:
        if value.name == name:
            if definition is not None:
                value = replace(value, definition=definition)
            if quote is not None:
                value = replace(value, quotes=value.quotes + (quote,))
            if in_practice is not None:
                value = replace(value, in_practice=in_practice)
            if anti_pattern is not None:
                value = replace(value, anti_pattern=anti_pattern)
        amended.append(value)

    return replace(state, identified_values=tuple(amended))


# ========================
# Queries
# ========================

def get_unexplored_values(state: SessionState) -> List[str]:
    """Identified values not yet given a deep dive, in identification order."""
    explored = set(state.deep_dive_values_explored)
    return [name for name in state.value_names() if name not in explored]


def get_yes_responses(state: SessionState) -> List[str]:
    return [r.word for r in state.rapid_fire_responses if r.response == 'yes']


def get_maybe_responses(state: SessionState) -> List[str]:
    return [r.word for r in state.rapid_fire_responses if r.response == 'maybe']
