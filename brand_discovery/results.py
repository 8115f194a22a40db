"""
Result types returned by SessionService.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from brand_discovery.contracts import AgentResponse
from brand_discovery.utils.session_phases import SessionPhase

CODE_ILLEGAL_COMMAND = "ILLEGAL_COMMAND"
CODE_SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
CODE_INVALID_INPUT = "INVALID_INPUT"


@dataclass(frozen=True)
class TurnResult:
    """
    Outcome of one model round-trip.

    Returned by: StartSession, SubmitMessage

    Attributes:
        session_id: Session identifier
        response: Validated AgentResponse, or the fallback apology
        current_phase: Phase after the turn
        error: Failure description when the fallback was used
        debug: Parse metadata, phase before/after, etc.
        session_complete: Whether the phase is now COMPLETE
    """
    session_id: str
    response: AgentResponse
    current_phase: SessionPhase
    error: Optional[str] = None
    debug: Dict[str, Any] = field(default_factory=dict)
    session_complete: bool = False


@dataclass(frozen=True)
class RapidFireRecorded:
    """
    Rapid-fire answer stored.

    Returned by: RecordRapidFire
    """
    session_id: str
    word: str
    response: str
    rapid_fire_index: int


@dataclass(frozen=True)
class ValueAmended:
    """
    Identified value updated.

    Returned by: AmendValue

    Attributes:
        value: Stored value record (value_name, personalized_definition,
            user_quotes, display_order, is_final)
    """
    session_id: str
    value: Dict[str, Any]


@dataclass(frozen=True)
class FinalReport:
    """
    Deliverable generated for a finished session.

    Returned by: FinalizeSession

    Attributes:
        session_id: Session identifier
        share_slug: Public slug (stable across repeated finalization)
        share_url: <base_url>/deliverable/<share_slug>
        content: Deliverable content dict
    """
    session_id: str
    share_slug: str
    share_url: str
    content: Dict[str, Any]


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected by the service.

    Examples:
    - SubmitMessage for an unknown session
    - SubmitMessage after the session was finalized or reached COMPLETE
    - RecordRapidFire with an answer other than yes/no/maybe

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
        code: Machine-readable category (ILLEGAL_COMMAND, SESSION_NOT_FOUND, INVALID_INPUT)
    """
    reason: str
    command_type: str
    code: str = CODE_ILLEGAL_COMMAND
