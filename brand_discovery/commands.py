"""
Command types for SessionService control flow.

Commands are the ONLY public interface to SessionService for state-changing
operations. Flask routes and the console harness build commands; they never
touch the store or the orchestrator directly.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StartSession:
    """
    Create a session and request the opening greeting.

    No state parameter - the service creates initial state.
    Returns: TurnResult with the greeting.
    """
    company_name: Optional[str] = None
    user_name: Optional[str] = None


@dataclass(frozen=True)
class SubmitMessage:
    """
    Process one founder message.

    Rejected once the session is finalized or has reached COMPLETE.
    Returns: TurnResult with the persona's reply.
    """
    session_id: str
    user_message: str


@dataclass(frozen=True)
class RecordRapidFire:
    """
    Record a yes/no/maybe answer tapped on a value card (no model call).

    Returns: RapidFireRecorded.
    """
    session_id: str
    word: str
    response: str


@dataclass(frozen=True)
class AmendValue:
    """
    Set a value's personalized definition, in-practice or anti-pattern
    text, and/or append a founder quote. None leaves a field unchanged.

    Returns: ValueAmended.
    """
    session_id: str
    value_name: str
    definition: Optional[str] = None
    quote: Optional[str] = None
    in_practice: Optional[str] = None
    anti_pattern: Optional[str] = None


@dataclass(frozen=True)
class FinalizeSession:
    """
    Generate (or regenerate) the deliverable and close the session.

    Calling twice updates the deliverable in place under the same slug.
    Returns: FinalReport with the share URL.
    """
    session_id: str


# Command union type for type hints
Command = StartSession | SubmitMessage | RecordRapidFire | AmendValue | FinalizeSession
