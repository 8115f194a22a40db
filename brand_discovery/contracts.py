"""
Semantic contracts for the brand values discovery system.

This module defines immutable data structures that serve as contracts
between modules. These are NOT validators - they define shape and
semantics without enforcing rules. Validation of model output lives in
the Response Parser; validation of rapid-fire answers lives in the reducer.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists so nested values stay immutable
- No dependencies on other modules except the phase enum
- Wire format (camelCase) produced by to_dict(), never by callers

Contents:
- ConversationTurn: One entry of the durable transcript
- RapidFireResponse: One yes/no/maybe judgment on a value word
- IdentifiedValue: A value the persona believes is core to the brand
- StateUpdates / UIActions / AgentResponse: Validated model output

Usage:
    from brand_discovery.contracts import AgentResponse, StateUpdates, UIActions
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from brand_discovery.utils.session_phases import SessionPhase

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
VALID_ROLES = {ROLE_USER, ROLE_ASSISTANT}

RAPID_FIRE_ANSWERS = ("yes", "no", "maybe")


@dataclass(frozen=True)
class ConversationTurn:
    """
    Single transcript entry.

    Attributes:
        role: 'user' or 'assistant'
        content: What was said
        sequence_number: Strictly increasing position in the transcript (1-indexed)
    """
    role: str
    content: str
    sequence_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'role': self.role,
            'content': self.content,
            'sequence_number': self.sequence_number,
        }


@dataclass(frozen=True)
class RapidFireResponse:
    """Gut-check answer for one value word ('yes', 'no' or 'maybe')."""
    word: str
    response: str

    def to_dict(self) -> Dict[str, Any]:
        return {'word': self.word, 'response': self.response}


@dataclass(frozen=True)
class IdentifiedValue:
    """
    A value emerging as core to the founder's brand.

    Identity is the exact (case-sensitive) name. Definition, quotes,
    in-practice and anti-pattern text start empty and are amended as the
    deep dive progresses.
    """
    name: str
    definition: Optional[str] = None
    quotes: Tuple[str, ...] = ()
    in_practice: Optional[str] = None
    anti_pattern: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'definition': self.definition,
            'quotes': list(self.quotes),
            'in_practice': self.in_practice,
            'anti_pattern': self.anti_pattern,
        }


@dataclass(frozen=True)
class StateUpdates:
    """
    State changes proposed by the model.

    The phase here is a *request*; the Phase Machine decides whether
    it is honoured.
    """
    phase: SessionPhase
    new_insights: Tuple[str, ...] = ()
    identified_values: Tuple[str, ...] = ()
    values_to_explore: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'newInsights': list(self.new_insights),
            'identifiedValues': list(self.identified_values),
            'valuesToExplore': list(self.values_to_explore),
        }


@dataclass(frozen=True)
class UIActions:
    """
    Presentation hints. None means "not provided".

    Attributes:
        show_value_cards: Words to display as cards
        highlight_value: Single word to highlight
        update_progress: Progress label to show
        show_summary: Whether to reveal the values summary
    """
    show_value_cards: Optional[Tuple[str, ...]] = None
    highlight_value: Optional[str] = None
    update_progress: Optional[str] = None
    show_summary: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.show_value_cards is not None:
            result['showValueCards'] = list(self.show_value_cards)
        if self.highlight_value is not None:
            result['highlightValue'] = self.highlight_value
        if self.update_progress is not None:
            result['updateProgress'] = self.update_progress
        if self.show_summary is not None:
            result['showSummary'] = self.show_summary
        return result


@dataclass(frozen=True)
class AgentResponse:
    """
    Validated output of one model call.

    This is the sole channel through which the model can affect session
    state. Produced only by the Response Parser (or the orchestrator's
    fixed fallback).
    """
    spoken_response: str
    internal_notes: str
    state_updates: StateUpdates
    ui_actions: UIActions = field(default_factory=UIActions)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire format the model produces."""
        return {
            'spokenResponse': self.spoken_response,
            'internalNotes': self.internal_notes,
            'stateUpdates': self.state_updates.to_dict(),
            'uiActions': self.ui_actions.to_dict(),
        }
